"""Public interface definitions for all external service providers.

Services reach every external system (model APIs, the record and vector
store, browsers and HTTP) only through the abstract base classes in this
package.  Concrete adapters live in ``src/providers/`` and are wired
together in ``src/main.py``; tests inject mocks built from these classes.

CONCRETE PROVIDER MAP:
    Interface                  ->  Concrete implementations (in src/providers/)
    ------------------------------------------------------------------------
    IEmbeddingProvider         ->  OpenAIEmbeddingProvider
    ILLMProvider               ->  OpenAILLMProvider
    IDocumentProvider          ->  PDFDocumentProvider, RenderedPageProvider
    IVectorStoreProvider       ->  ChromaDBProvider
"""

from src.interfaces.document_provider import ExtractedContent, IDocumentProvider
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider, StoredObject

__all__ = [
    "ExtractedContent",
    "IDocumentProvider",
    "IEmbeddingProvider",
    "ILLMProvider",
    "IVectorStoreProvider",
    "StoredObject",
]
