"""Pytest configuration and shared fixtures for the test suite."""

import asyncio
import os
from collections.abc import Generator
from pathlib import Path

import pytest

from tracerag.constants import ProviderID
from tracerag.service.store import DocumentEntry, DocumentStore

# Test fixture paths
FIXTURES_DIR = Path(__file__).parent / "fixtures"
DOCUMENTS_DIR = FIXTURES_DIR / "documents"

# Small dimensions keep vectors readable in tests
TEST_DIMENSIONS = {ProviderID.OPENAI: 4, ProviderID.GEMINI: 4}


class FakeEmbeddingProvider:
    """In-memory EmbeddingProvider returning canned vectors."""

    def __init__(
        self,
        provider_id: ProviderID = ProviderID.OPENAI,
        vector: list[float] | None = None,
        dimensions: int = 4,
        vectors: dict[str, list[float]] | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.provider_id = provider_id
        self.dimensions = dimensions
        self.vector = vector or [1.0, 0.0, 0.0, 0.0]
        self.vectors = vectors or {}
        self.error = error
        self.delay = delay
        self.calls: list[str] = []

    async def generate_embedding(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        for key, vector in self.vectors.items():
            if key in text:
                return vector
        return self.vector

    async def validate_connection(self) -> bool:
        return self.error is None


# Service availability checks
def api_key_available(provider: ProviderID) -> bool:
    """Check if an API key for the provider is set in the environment."""
    env_var = "OPENAI_API_KEY" if provider == ProviderID.OPENAI else "GEMINI_API_KEY"
    return bool(os.getenv(env_var, "").strip())


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Clear tracerag configuration variables so tests do not depend on the host."""
    for name in (
        "TRACE_DEFAULT_MODEL",
        "TRACE_DEFAULT_PROVIDER",
        "TRACE_SIMILARITY_THRESHOLD",
        "TRACE_MAX_RESULTS",
        "TRACE_EMBEDDING_TIMEOUT",
        "TRACE_SNAPSHOT_PATH",
        "TRACE_DATABASE_PATH",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def no_api_keys(monkeypatch):
    """Remove provider API keys from the environment."""
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)


# Path fixtures
@pytest.fixture
def documents_dir() -> Path:
    """Provide the directory of markdown corpus fixtures."""
    return DOCUMENTS_DIR


# Store fixtures
@pytest.fixture
def writable_store(tmp_path) -> Generator[DocumentStore, None, None]:
    """Provide a file-backed store with 4-dimensional embeddings.

    Yields:
        Initialized DocumentStore, closed after the test
    """
    store = DocumentStore(dimensions=TEST_DIMENSIONS)
    store.initialize_writable(tmp_path / "trace-documents.db")
    yield store
    store.close()


@pytest.fixture
def create_document():
    """Factory fixture to create test document entries.

    Returns:
        Function that creates a DocumentEntry with custom parameters
    """

    def _create_document(
        title: str = "Element not found",
        category: str = "selenium",
        content: str = "### Title: Element not found",
        summary: str | None = "Locator ran before render.",
        root_causes: str | None = "Missing wait",
        resolution_steps: str | None = "Add an explicit wait",
        tags: str | None = None,
    ) -> DocumentEntry:
        return DocumentEntry(
            category=category,
            title=title,
            content=content,
            summary=summary,
            root_causes=root_causes,
            resolution_steps=resolution_steps,
            tags=tags,
        )

    return _create_document


@pytest.fixture
def scenario_store(writable_store, create_document) -> DocumentStore:
    """Store holding three documents with known OpenAI embeddings.

    Document ids 1, 2 and 3 have embeddings [0.8, 0.6, 0, 0],
    [0.6, 0.8, 0, 0] and [0, 0, 1, 0].
    """
    vectors = [
        [0.8, 0.6, 0.0, 0.0],
        [0.6, 0.8, 0.0, 0.0],
        [0.0, 0.0, 1.0, 0.0],
    ]
    for index, vector in enumerate(vectors, start=1):
        writable_store.insert_document(
            create_document(title=f"Document {index}"),
            {ProviderID.OPENAI: vector},
        )
    return writable_store
