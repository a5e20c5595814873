"""Document store for failure documentation and per-provider embeddings.

This module provides:
- DocumentStore: SQLite storage with one embedding column pair per provider
- DocumentEntry / SearchHit: data models
- StoreConfig: snapshot and database locations
- StoreError and its subclasses
"""

from tracerag.service.store.config import StoreConfig
from tracerag.service.store.document_store import DocumentStore, embedding_columns
from tracerag.service.store.errors import (
    DocumentNotFoundError,
    EmbeddingDimensionError,
    StoreError,
)
from tracerag.service.store.models import DocumentEntry, SearchHit

__all__ = [
    "DocumentStore",
    "DocumentEntry",
    "SearchHit",
    "StoreConfig",
    "StoreError",
    "DocumentNotFoundError",
    "EmbeddingDimensionError",
    "embedding_columns",
]
