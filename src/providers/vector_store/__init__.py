"""Vector store provider implementations.

ChromaDBProvider keeps record properties in SQLite and vectors in one
ChromaDB cosine collection per record class.  To swap the backend, create
a new class implementing IVectorStoreProvider and register it in main.py.
"""

from src.providers.vector_store.chromadb_provider import ChromaDBProvider

__all__ = ["ChromaDBProvider"]
