"""Corpus refresh pipeline: rebuild the document store from parsed entries."""

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from tracerag.constants import REFRESH_RATE_LIMIT_SECONDS, ProviderID
from tracerag.embeddings.base import EmbeddingGenerationError, EmbeddingProvider
from tracerag.service.store.document_store import DocumentStore
from tracerag.service.store.errors import StoreError
from tracerag.service.store.models import DocumentEntry

logger = logging.getLogger(__name__)


@dataclass
class RefreshSummary:
    """Outcome of a refresh run."""

    cleared: int = 0
    inserted: int = 0
    embeddings_generated: int = 0
    failures: list[str] = field(default_factory=list)
    counts: dict[ProviderID, int] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return not self.failures


async def refresh_document_store(
    store: DocumentStore,
    documents: Sequence[DocumentEntry],
    providers: Mapping[ProviderID, EmbeddingProvider],
    rate_limit: float = REFRESH_RATE_LIMIT_SECONDS,
) -> RefreshSummary:
    """Replace the store contents with documents and embed them per provider.

    Documents are inserted without embeddings first. Each document is then
    embedded with every provider and its embedding column updated. A failure
    for one document and provider is logged and recorded; the run continues.

    Args:
        store: An initialized, writable store
        documents: Parsed entries to index
        providers: Providers to embed with; may be empty to index text only
        rate_limit: Pause between documents, in seconds

    Returns:
        RefreshSummary: Counts and per-document failures

    Raises:
        StoreError: If the store cannot be cleared
    """
    summary = RefreshSummary()
    logger.info(f"🔄 Refreshing document store with {len(documents)} documents")

    summary.cleared = store.clear_all()

    inserted: list[tuple[int, DocumentEntry]] = []
    for document in documents:
        try:
            document_id = store.insert_document(document)
        except (StoreError, ValueError) as e:
            logger.error(f"❌ Failed to insert: {document.title} - {e}")
            summary.failures.append(f"insert {document.title}: {e}")
            continue
        inserted.append((document_id, document))
    summary.inserted = len(inserted)
    logger.info(f"✅ Inserted {summary.inserted} documents")

    if not providers:
        logger.warning("⚠️ No embedding providers configured - skipping embedding generation")
    else:
        logger.info(f"🤖 Generating embeddings with: {[p.value for p in providers]}")
        for position, (document_id, document) in enumerate(inserted):
            text = document.build_embedding_content()
            for provider_id, provider in providers.items():
                try:
                    vector = await provider.generate_embedding(text)
                    store.update_embedding(document_id, provider_id, vector)
                except (EmbeddingGenerationError, StoreError, ValueError) as e:
                    logger.error(
                        f"❌ Failed to generate {provider_id.value} embedding for: "
                        f"{document.title} - {e}"
                    )
                    summary.failures.append(f"{provider_id.value} {document.title}: {e}")
                    continue
                summary.embeddings_generated += 1
                logger.info(f"Generated {provider_id.value} embedding for: {document.title}")

            if rate_limit > 0 and position < len(inserted) - 1:
                await asyncio.sleep(rate_limit)

        logger.info(f"✅ Generated {summary.embeddings_generated} embeddings")

    for provider_id in ProviderID:
        summary.counts[provider_id] = store.count_with_embeddings(provider_id)
        logger.info(
            f"Database contains {summary.counts[provider_id]} documents with "
            f"{provider_id.value} embeddings"
        )
    return summary
