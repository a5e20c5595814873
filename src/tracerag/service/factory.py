"""Build a fully wired RetrievalOrchestrator from environment configuration."""

import logging

from dotenv import load_dotenv

from tracerag.embeddings.factory import build_providers
from tracerag.service.retrieval import RetrievalOrchestrator, RetrievalSettings
from tracerag.service.store.document_store import DocumentStore

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def create_orchestrator(
    settings: RetrievalSettings | None = None, store: DocumentStore | None = None
) -> RetrievalOrchestrator:
    """Create an orchestrator over the packaged snapshot.

    Args:
        settings: Retrieval settings (default: RetrievalSettings.from_env())
        store: An initialized store. If None, the read-only snapshot is
            loaded into memory.

    Returns:
        RetrievalOrchestrator: Ready to serve retrieve() calls

    Raises:
        StoreError: If the snapshot cannot be loaded
    """
    if settings is None:
        settings = RetrievalSettings.from_env()

    if store is None:
        store = DocumentStore()
        store.initialize_read_only()

    providers = build_providers(settings.api_keys)
    if not providers:
        logger.warning("⚠️ No embedding provider API keys configured; retrieval will return no context")

    return RetrievalOrchestrator(store, providers, settings)
