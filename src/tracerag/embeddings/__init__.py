"""Embedding provider layer for tracerag.

This package provides a unified interface for the supported embedding APIs:
- OpenAIEmbeddingProvider: OpenAI embeddings (1536 dimensions)
- GeminiEmbeddingProvider: Google Gemini embeddings (3072 dimensions)

All providers implement the EmbeddingProvider protocol and share the retry
and backoff policy of HTTPEmbeddingProvider.

Usage:
    from tracerag.embeddings import ProviderID, get_embedding_provider

    provider = get_embedding_provider(ProviderID.OPENAI, api_key)
    vector = await provider.generate_embedding("Element not found after page load")
"""

from tracerag.constants import ProviderID
from tracerag.embeddings.base import (
    EmbeddingGenerationError,
    EmbeddingProvider,
    EmbeddingRequestError,
    HTTPEmbeddingProvider,
    compute_backoff_delay,
)
from tracerag.embeddings.factory import build_providers, get_api_keys, get_embedding_provider
from tracerag.embeddings.gemini import GeminiEmbeddingProvider
from tracerag.embeddings.openai import OpenAIEmbeddingProvider

__all__ = [
    "ProviderID",
    "EmbeddingProvider",
    "HTTPEmbeddingProvider",
    "EmbeddingGenerationError",
    "EmbeddingRequestError",
    "compute_backoff_delay",
    "OpenAIEmbeddingProvider",
    "GeminiEmbeddingProvider",
    "get_embedding_provider",
    "build_providers",
    "get_api_keys",
]
