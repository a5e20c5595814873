"""Base classes and protocols for embedding providers."""

import asyncio
import logging
import time
from typing import Any, Protocol

import httpx

from tracerag.constants import (
    EMBEDDING_DIMENSIONS,
    INITIAL_BACKOFF_SECONDS,
    MAX_BACKOFF_SECONDS,
    MAX_RETRIES,
    REQUEST_TIMEOUT_SECONDS,
    VALIDATION_TEXT,
    ProviderID,
)
from tracerag.vectors import to_float32

logger = logging.getLogger(__name__)


class EmbeddingGenerationError(RuntimeError):
    """Raised when an embedding could not be produced after all retries."""


class EmbeddingRequestError(RuntimeError):
    """Raised for a single failed attempt: HTTP error status or malformed payload."""


class EmbeddingProvider(Protocol):
    """Protocol defining the interface for embedding providers.

    Each provider produces vectors of a fixed length (``dimensions``) and owns
    its own retry policy. The retrieval orchestrator only talks to providers
    through this interface.
    """

    provider_id: ProviderID
    dimensions: int

    async def generate_embedding(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text.

        Args:
            text: Non-blank text to embed

        Returns:
            list[float]: The embedding vector

        Raises:
            ValueError: If text is blank (before any network attempt)
            EmbeddingGenerationError: If every attempt failed
        """
        ...

    async def validate_connection(self) -> bool:
        """Return True if a trivial embedding request succeeds."""
        ...


def compute_backoff_delay(attempt: int, initial: float, maximum: float) -> float:
    """Exponential backoff delay after a failed attempt (0-based), capped at maximum."""
    return min(initial * (2**attempt), maximum)


class HTTPEmbeddingProvider:
    """Shared request, retry and validation logic for HTTP embedding APIs.

    Subclasses supply the endpoint, headers, request payload and the
    extraction of the vector from the provider's JSON envelope.
    """

    provider_id: ProviderID
    display_name: str = "embedding"

    def __init__(
        self,
        api_key: str,
        *,
        model: str,
        dimensions: int | None = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        max_retries: int = MAX_RETRIES,
        initial_backoff: float = INITIAL_BACKOFF_SECONDS,
        max_backoff: float = MAX_BACKOFF_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            api_key: API key for the provider (must not be blank)
            model: Embedding model name
            dimensions: Expected vector length (default: provider constant)
            timeout: Per-request timeout in seconds
            max_retries: Total number of attempts
            initial_backoff: Delay after the first failed attempt, in seconds
            max_backoff: Upper bound for the backoff delay, in seconds
            client: Optional shared httpx.AsyncClient. If None, a client is
                created for each request.

        Raises:
            ValueError: If api_key is blank or max_retries is below 1
        """
        if api_key is None or not api_key.strip():
            raise ValueError("API key cannot be null or empty")
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")

        self.api_key = api_key.strip()
        self.model = model
        self.dimensions = dimensions or EMBEDDING_DIMENSIONS[self.provider_id]
        self.timeout = timeout
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self._client = client
        logger.info(
            f"🤖 Initializing {type(self).__name__}: model={model}, dimensions={self.dimensions}"
        )

    # ------------------------------------------------------------------
    # Provider-specific hooks
    # ------------------------------------------------------------------

    def endpoint(self) -> str:
        raise NotImplementedError

    def headers(self) -> dict[str, str]:
        raise NotImplementedError

    def build_payload(self, text: str) -> dict[str, Any]:
        raise NotImplementedError

    def extract_values(self, payload: Any) -> list[Any]:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def generate_embedding(self, text: str) -> list[float]:
        """Generate an embedding, retrying with exponential backoff.

        The backoff sleeps with asyncio.sleep, so only the calling task is
        suspended and cancelling that task interrupts the wait.

        Args:
            text: Non-blank text to embed

        Returns:
            list[float]: The embedding vector, rounded to single precision

        Raises:
            ValueError: If text is blank
            EmbeddingGenerationError: If every attempt failed
        """
        if text is None or not text.strip():
            raise ValueError("Text cannot be null or empty")

        logger.info(f"Generating {self.display_name} embedding for text length: {len(text)}")

        last_error: Exception | None = None
        for attempt in range(self.max_retries):
            try:
                return await self._attempt(text)
            except (httpx.HTTPError, EmbeddingRequestError) as e:
                last_error = e
                logger.warning(
                    f"⚠️ {self.display_name} embedding attempt {attempt + 1}/{self.max_retries} "
                    f"failed: {e}"
                )
                if attempt < self.max_retries - 1:
                    delay = compute_backoff_delay(attempt, self.initial_backoff, self.max_backoff)
                    await asyncio.sleep(delay)

        logger.error(
            f"❌ Failed to generate {self.display_name} embedding after {self.max_retries} attempts"
        )
        raise EmbeddingGenerationError(
            f"Failed to generate {self.display_name} embedding after {self.max_retries} attempts"
        ) from last_error

    async def validate_connection(self) -> bool:
        """Check the provider by embedding a trivial input.

        Returns:
            bool: True if an embedding was generated, False otherwise
        """
        try:
            await self.generate_embedding(VALIDATION_TEXT)
        except Exception as e:
            logger.warning(f"⚠️ {self.display_name} connection validation failed: {e}")
            return False
        logger.info(f"✅ {self.display_name} connection validation successful")
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _attempt(self, text: str) -> list[float]:
        started = time.perf_counter()
        response = await self._post(self.build_payload(text))

        if response.status_code != 200:
            raise EmbeddingRequestError(
                f"{self.display_name} embedding API request failed with status "
                f"{response.status_code}: {response.text[:500]}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise EmbeddingRequestError(
                f"{self.display_name} embedding response is not valid JSON: {e}"
            ) from e

        vector = self._parse_vector(payload)
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        logger.info(f"✅ {self.display_name} embedding generated in {elapsed_ms:.0f}ms")
        return vector

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(
                self.endpoint(), json=payload, headers=self.headers(), timeout=self.timeout
            )
        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout)) as client:
            return await client.post(self.endpoint(), json=payload, headers=self.headers())

    def _parse_vector(self, payload: Any) -> list[float]:
        try:
            values = self.extract_values(payload)
            vector = to_float32([float(value) for value in values])
        except EmbeddingRequestError:
            raise
        except (AttributeError, KeyError, IndexError, TypeError, ValueError, OverflowError) as e:
            raise EmbeddingRequestError(
                f"Failed to parse {self.display_name} embedding response: {e}"
            ) from e

        if not vector:
            raise EmbeddingRequestError(f"Empty embedding in {self.display_name} response")

        if len(vector) != self.dimensions:
            logger.warning(
                f"⚠️ Embedding dimensions mismatch: expected {self.dimensions}, got {len(vector)}"
            )
        return vector
