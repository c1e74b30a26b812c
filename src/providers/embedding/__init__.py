"""Embedding provider implementations.

OpenAIEmbeddingProvider embeds with text-embedding-3-small by default and
also serves any OpenAI-compatible endpoint configured via OPENAI_BASE_URL.
"""

from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider"]
