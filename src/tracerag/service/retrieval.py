"""Retrieval orchestration: query embedding, candidate scan, ranking and formatting."""

import asyncio
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

from tracerag.constants import (
    API_KEY_ENV_VARS,
    DEFAULT_MAX_RESULTS,
    DEFAULT_SIMILARITY_THRESHOLD,
    EMBEDDING_TIMEOUT_SECONDS,
    QUERY_PREVIEW_LENGTH,
    ProviderID,
    provider_for_model,
)
from tracerag.embeddings.base import EmbeddingProvider
from tracerag.service.ranking import rank_and_filter
from tracerag.service.store.document_store import DocumentStore
from tracerag.service.store.errors import EmbeddingDimensionError, StoreError
from tracerag.service.store.models import SearchHit

logger = logging.getLogger(__name__)

CONTEXT_HEADER = "### Relevant Documentation ###\n"
ENTRY_DIVIDER = "---\n\n"


class QueryType(str, Enum):
    """Kind of text being used as the retrieval query."""

    USER_QUERY = "user_query"
    FAILURE_ANALYSIS = "failure_analysis"


class AnalysisMode(str, Enum):
    """Depth of the analysis the retrieved context will feed."""

    OVERVIEW = "overview"
    DETAILED = "detailed"


class RetrievalConfigurationError(RuntimeError):
    """Raised when no embedding provider can be resolved for a query."""


@dataclass
class RetrievalSettings:
    """Configuration consulted on every retrieval.

    Attributes:
        default_model: The caller's chosen chat model; its provider is used
            for query embeddings
        default_provider: Explicit provider override, takes precedence over
            default_model
        api_keys: Provider to API key, used to infer a provider when no
            default is configured
        similarity_threshold: Minimum similarity for a hit, inclusive
        max_results: Maximum number of hits formatted into the context
        embedding_timeout: Overall budget for the query embedding, in seconds
    """

    default_model: str | None = None
    default_provider: ProviderID | None = None
    api_keys: dict[ProviderID, str] = field(default_factory=dict)
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    max_results: int = DEFAULT_MAX_RESULTS
    embedding_timeout: float = EMBEDDING_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        if not 0.0 <= self.similarity_threshold <= 1.0:
            raise ValueError(
                f"Similarity threshold must be between 0 and 1, got {self.similarity_threshold}"
            )
        if self.max_results <= 0:
            raise ValueError(f"max_results must be positive, got {self.max_results}")
        if self.embedding_timeout <= 0:
            raise ValueError(f"embedding_timeout must be positive, got {self.embedding_timeout}")

    @classmethod
    def from_env(cls) -> "RetrievalSettings":
        """Build settings from environment variables.

        Reads TRACE_DEFAULT_MODEL, TRACE_DEFAULT_PROVIDER, OPENAI_API_KEY,
        GEMINI_API_KEY, TRACE_SIMILARITY_THRESHOLD, TRACE_MAX_RESULTS and
        TRACE_EMBEDDING_TIMEOUT.

        Raises:
            ValueError: If a numeric variable cannot be parsed or is out of range
        """
        api_keys = {}
        for provider, env_var in API_KEY_ENV_VARS.items():
            value = os.getenv(env_var, "").strip()
            if value:
                api_keys[provider] = value

        return cls(
            default_model=os.getenv("TRACE_DEFAULT_MODEL") or None,
            default_provider=ProviderID.from_id(os.getenv("TRACE_DEFAULT_PROVIDER")),
            api_keys=api_keys,
            similarity_threshold=float(
                os.getenv("TRACE_SIMILARITY_THRESHOLD", str(DEFAULT_SIMILARITY_THRESHOLD))
            ),
            max_results=int(os.getenv("TRACE_MAX_RESULTS", str(DEFAULT_MAX_RESULTS))),
            embedding_timeout=float(
                os.getenv("TRACE_EMBEDDING_TIMEOUT", str(EMBEDDING_TIMEOUT_SECONDS))
            ),
        )

    def resolve_provider(self) -> ProviderID | None:
        """Determine the provider whose embeddings serve retrieval.

        Order: explicit default provider, the default model's provider, then
        the first provider (in ProviderID order) with a non-blank API key.

        Returns:
            The active provider, or None if nothing is configured
        """
        if self.default_provider is not None:
            return self.default_provider

        model_provider = provider_for_model(self.default_model)
        if model_provider is not None:
            return model_provider

        for provider in ProviderID:
            key = self.api_keys.get(provider)
            if key and key.strip():
                return provider
        return None


def format_document_context(hits: list[SearchHit]) -> str:
    """Render ranked hits as a markdown block for a downstream prompt.

    Returns an empty string when there are no hits so callers do not insert
    an empty documentation section.
    """
    if not hits:
        logger.info("No relevant documents found")
        return ""

    logger.info(f"Formatting {len(hits)} relevant documents for AI prompt")
    parts = [CONTEXT_HEADER]
    for index, hit in enumerate(hits, start=1):
        document = hit.document
        parts.append(f"**Document {index}:** {document.title} - Similarity: {hit.similarity_score:.3f}\n")
        if document.summary and document.summary.strip():
            parts.append(f"{document.summary}\n\n")
        if document.root_causes and document.root_causes.strip():
            parts.append(f"**Root Causes:** {document.root_causes}\n\n")
        if document.resolution_steps and document.resolution_steps.strip():
            parts.append(f"**Resolution Steps:** {document.resolution_steps}\n\n")
        if index < len(hits):
            parts.append(ENTRY_DIVIDER)

    context = "".join(parts)
    logger.debug(f"Formatted document context length: {len(context)} characters")
    return context


class RetrievalOrchestrator:
    """Compose provider, store and ranker into a single retrieval call.

    Every dependency is passed in; the orchestrator keeps no global state and
    caches nothing between calls.
    """

    def __init__(
        self,
        store: DocumentStore,
        providers: Mapping[ProviderID, EmbeddingProvider],
        settings: RetrievalSettings | None = None,
    ) -> None:
        self.store = store
        self.providers = dict(providers)
        self.settings = settings or RetrievalSettings()
        logger.info(
            f"🔎 Retrieval orchestrator ready: providers="
            f"{[provider.value for provider in self.providers]}, "
            f"threshold={self.settings.similarity_threshold}, "
            f"max_results={self.settings.max_results}"
        )

    def active_provider(self) -> ProviderID | None:
        return self.settings.resolve_provider()

    async def retrieve(
        self,
        query_text: str,
        query_type: QueryType = QueryType.USER_QUERY,
        failure_context: str | None = None,
        mode: AnalysisMode = AnalysisMode.OVERVIEW,
    ) -> str:
        """Return formatted documentation relevant to the query.

        Never raises: a missing provider, an embedding failure or timeout, a
        dimension mismatch or a storage error all produce an empty string.
        Cancellation of the calling task still propagates.

        Args:
            query_text: Failure description or follow-up question
            query_type: Kind of query, recorded in logs
            failure_context: Optional failure details, recorded in logs
            mode: Analysis depth, recorded in logs

        Returns:
            str: Markdown context block, or "" when nothing relevant was found
        """
        logger.info(
            f"Retrieving relevant documents for query type: {getattr(query_type, 'value', query_type)}, "
            f"mode: {getattr(mode, 'value', mode)}"
        )
        if failure_context:
            logger.debug(f"Failure context provided ({len(failure_context)} characters)")

        if query_text is None or not query_text.strip():
            logger.warning("⚠️ Empty query text, skipping retrieval")
            return ""

        try:
            hits = await self.search(query_text)
        except RetrievalConfigurationError as e:
            logger.warning(f"⚠️ {e}. Skipping retrieval.")
            return ""
        except asyncio.TimeoutError:
            logger.warning(
                f"⚠️ Query embedding timed out after {self.settings.embedding_timeout}s, "
                "proceeding without documents"
            )
            return ""
        except Exception as e:
            logger.error(f"❌ Document retrieval failed: {type(e).__name__}: {e}", exc_info=True)
            return ""

        return format_document_context(hits)

    async def search(self, query_text: str) -> list[SearchHit]:
        """Run a retrieval and return the ranked hits.

        Args:
            query_text: Non-blank query

        Returns:
            list[SearchHit]: Ranked hits at or above the similarity threshold

        Raises:
            ValueError: If query_text is blank
            RetrievalConfigurationError: If no provider can be resolved
            asyncio.TimeoutError: If the query embedding exceeds the timeout
            EmbeddingDimensionError: If the query embedding has the wrong length
            EmbeddingGenerationError: If the provider failed after all retries
            StoreError: If the candidate scan failed
        """
        if query_text is None or not query_text.strip():
            raise ValueError("Query text cannot be null or empty")

        provider_id = self.active_provider()
        if provider_id is None:
            raise RetrievalConfigurationError(
                "No embedding provider available (no default model and no API key)"
            )
        provider = self.providers.get(provider_id)
        if provider is None:
            raise RetrievalConfigurationError(
                f"No {provider_id.value} embedding provider is registered"
            )

        preview = query_text[:QUERY_PREVIEW_LENGTH]
        logger.info(f"Generating query embedding with {provider_id.value}: '{preview}'")
        embedding = await asyncio.wait_for(
            provider.generate_embedding(query_text), timeout=self.settings.embedding_timeout
        )

        if len(embedding) != provider.dimensions:
            raise EmbeddingDimensionError(
                f"Query embedding has {len(embedding)} dimensions, "
                f"expected {provider.dimensions} for {provider_id.value}"
            )

        candidates = await asyncio.to_thread(self.store.scan_candidates, provider_id)
        hits = rank_and_filter(
            embedding,
            candidates,
            self.settings.similarity_threshold,
            self.settings.max_results,
        )

        logger.info(
            f"✅ Found {len(hits)} relevant documents above threshold "
            f"{self.settings.similarity_threshold} ({len(candidates)} candidates)"
        )
        for rank, hit in enumerate(hits, start=1):
            logger.debug(f"  {rank}. {hit.title} - {hit.similarity_score:.3f}")
        return hits

    def document_count(self, provider: ProviderID | None = None) -> int:
        """Count documents with embeddings for a provider.

        Args:
            provider: Provider to count for (default: the active provider)

        Returns:
            int: Number of documents, or 0 if no provider is active or the
            store cannot be read
        """
        provider_id = provider or self.active_provider()
        if provider_id is None:
            return 0
        try:
            return self.store.count_with_embeddings(provider_id)
        except StoreError as e:
            logger.error(f"❌ Failed to get document count: {e}")
            return 0

    def is_ready(self) -> bool:
        """Return True if the active provider has at least one indexed document."""
        count = self.document_count()
        logger.info(f"Document database contains {count} documents with embeddings")
        return count > 0
