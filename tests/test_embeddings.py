"""Tests for the embedding provider layer."""

import json
import logging
import os
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from tracerag.constants import (
    EMBEDDING_DIMENSIONS,
    OPENAI_EMBEDDING_URL,
    ProviderID,
    get_embedding_model,
    provider_for_model,
)
from tracerag.embeddings import (
    EmbeddingGenerationError,
    EmbeddingRequestError,
    GeminiEmbeddingProvider,
    OpenAIEmbeddingProvider,
    build_providers,
    compute_backoff_delay,
    get_api_keys,
    get_embedding_provider,
)


class RecordingHandler:
    """httpx.MockTransport handler that replays a list of responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _openai(handler, **kwargs) -> OpenAIEmbeddingProvider:
    kwargs.setdefault("dimensions", 3)
    kwargs.setdefault("initial_backoff", 0.0)
    return OpenAIEmbeddingProvider(
        "sk-test", model="text-embedding-ada-002", client=_client(handler), **kwargs
    )


def _gemini(handler, **kwargs) -> GeminiEmbeddingProvider:
    kwargs.setdefault("dimensions", 3)
    kwargs.setdefault("initial_backoff", 0.0)
    return GeminiEmbeddingProvider(
        "gm-test", model="gemini-embedding-001", client=_client(handler), **kwargs
    )


def _openai_body(values):
    return {"data": [{"embedding": values, "index": 0}], "model": "text-embedding-ada-002"}


class TestProviderConstruction:
    """Tests for provider construction and defaults."""

    def test_default_dimensions(self):
        """Test that providers default to their documented dimensions."""
        assert OpenAIEmbeddingProvider("k", model="m").dimensions == 1536
        assert GeminiEmbeddingProvider("k", model="m").dimensions == 3072
        assert EMBEDDING_DIMENSIONS[ProviderID.OPENAI] == 1536
        assert EMBEDDING_DIMENSIONS[ProviderID.GEMINI] == 3072

    @pytest.mark.parametrize("api_key", ["", "   ", None])
    def test_blank_api_key_rejected(self, api_key):
        """Test that a blank API key is a configuration error."""
        with pytest.raises(ValueError, match="API key"):
            OpenAIEmbeddingProvider(api_key, model="m")

    def test_max_retries_must_be_positive(self):
        """Test that at least one attempt is required."""
        with pytest.raises(ValueError, match="max_retries"):
            GeminiEmbeddingProvider("k", model="m", max_retries=0)


class TestOpenAIEmbeddingProvider:
    """Tests for OpenAIEmbeddingProvider."""

    @pytest.mark.asyncio
    async def test_generate_embedding_request_shape(self):
        """Test the endpoint, auth header and payload sent to OpenAI."""
        handler = RecordingHandler(httpx.Response(200, json=_openai_body([0.5, 0.25, -1.0])))
        provider = _openai(handler)

        vector = await provider.generate_embedding("Element not found")

        assert vector == [0.5, 0.25, -1.0]
        request = handler.requests[0]
        assert str(request.url) == OPENAI_EMBEDDING_URL
        assert request.headers["Authorization"] == "Bearer sk-test"
        assert json.loads(request.content) == {
            "model": "text-embedding-ada-002",
            "input": "Element not found",
        }

    @pytest.mark.asyncio
    async def test_values_rounded_to_float32(self):
        """Test that returned values are single precision."""
        handler = RecordingHandler(httpx.Response(200, json=_openai_body([0.1, 0.2, 0.3])))
        vector = await _openai(handler).generate_embedding("text")
        assert vector[0] != 0.1
        assert vector[0] == pytest.approx(0.1, rel=1e-6)

    @pytest.mark.asyncio
    async def test_missing_data_fails_after_retries(self):
        """Test that a response without data is retried and then fails."""
        handler = RecordingHandler(httpx.Response(200, json={"object": "list"}))
        provider = _openai(handler)

        with pytest.raises(EmbeddingGenerationError) as exc_info:
            await provider.generate_embedding("text")

        assert isinstance(exc_info.value.__cause__, EmbeddingRequestError)
        assert len(handler.requests) == 3


class TestGeminiEmbeddingProvider:
    """Tests for GeminiEmbeddingProvider."""

    @pytest.mark.asyncio
    async def test_generate_embedding_request_shape(self):
        """Test the endpoint, key header and payload sent to Gemini."""
        handler = RecordingHandler(
            httpx.Response(200, json={"embedding": {"values": [1.0, 2.0, 3.0]}})
        )
        provider = _gemini(handler)

        await provider.generate_embedding("Stale element")

        request = handler.requests[0]
        assert str(request.url).endswith("/v1beta/models/gemini-embedding-001:embedContent")
        assert request.headers["x-goog-api-key"] == "gm-test"
        assert json.loads(request.content) == {
            "model": "models/gemini-embedding-001",
            "content": {"parts": [{"text": "Stale element"}]},
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {"embeddings": [{"values": [1.0, 2.0, 3.0]}]},
            {"embedding": {"values": [1.0, 2.0, 3.0]}},
            {"values": [1.0, 2.0, 3.0]},
        ],
    )
    async def test_accepts_every_response_envelope(self, body):
        """Test that all observed Gemini response shapes are parsed."""
        handler = RecordingHandler(httpx.Response(200, json=body))
        assert await _gemini(handler).generate_embedding("text") == [1.0, 2.0, 3.0]

    @pytest.mark.asyncio
    async def test_empty_embeddings_array_fails(self):
        """Test that an empty embeddings array is not treated as a vector."""
        handler = RecordingHandler(httpx.Response(200, json={"embeddings": []}))
        with pytest.raises(EmbeddingGenerationError):
            await _gemini(handler, max_retries=1).generate_embedding("text")


class TestRetryPolicy:
    """Tests for retry and backoff behaviour shared by all providers."""

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self):
        """Test that a success after failures returns the vector."""
        handler = RecordingHandler(
            httpx.Response(500, text="server error"),
            httpx.ConnectError("connection refused"),
            httpx.Response(200, json=_openai_body([1.0, 0.0, 0.0])),
        )
        vector = await _openai(handler).generate_embedding("text")

        assert vector == [1.0, 0.0, 0.0]
        assert len(handler.requests) == 3

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_generation_error(self):
        """Test that the error after the last attempt chains the last failure."""
        handler = RecordingHandler(httpx.Response(429, text="rate limited"))

        with pytest.raises(EmbeddingGenerationError, match="after 3 attempts") as exc_info:
            await _openai(handler).generate_embedding("text")

        assert "429" in str(exc_info.value.__cause__)
        assert len(handler.requests) == 3

    @pytest.mark.asyncio
    async def test_backoff_doubles_and_is_capped(self):
        """Test that sleeps between attempts double up to the cap."""
        handler = RecordingHandler(httpx.Response(503, text="unavailable"))
        provider = _openai(handler, max_retries=5, initial_backoff=1.0, max_backoff=5.0)

        with patch("tracerag.embeddings.base.asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(EmbeddingGenerationError):
                await provider.generate_embedding("text")

        assert [call.args[0] for call in sleep.await_args_list] == [1.0, 2.0, 4.0, 5.0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   \n\t"])
    async def test_blank_text_rejected_before_network(self, text):
        """Test that blank input fails without any request."""
        handler = RecordingHandler(httpx.Response(200, json=_openai_body([1.0, 0.0, 0.0])))
        with pytest.raises(ValueError, match="Text cannot be null or empty"):
            await _openai(handler).generate_embedding(text)
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_non_json_response_is_retried(self):
        """Test that a 200 response with an invalid body counts as a failure."""
        handler = RecordingHandler(
            httpx.Response(200, text="<html>proxy error</html>"),
            httpx.Response(200, json=_openai_body([1.0, 0.0, 0.0])),
        )
        assert await _openai(handler).generate_embedding("text") == [1.0, 0.0, 0.0]
        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_out_of_range_values_are_retried(self):
        """Test that values too large for float32 fail the attempt instead of becoming inf."""
        handler = RecordingHandler(
            httpx.Response(200, json=_openai_body([1e300, 1.0, 0.0])),
            httpx.Response(200, json=_openai_body([1.0, 0.0, 0.0])),
        )
        assert await _openai(handler).generate_embedding("text") == [1.0, 0.0, 0.0]
        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_dimension_mismatch_only_warns(self, caplog):
        """Test that an unexpected vector length is logged, not rejected."""
        handler = RecordingHandler(httpx.Response(200, json=_openai_body([1.0, 0.0])))
        with caplog.at_level(logging.WARNING, logger="tracerag.embeddings.base"):
            vector = await _openai(handler).generate_embedding("text")

        assert vector == [1.0, 0.0]
        assert "dimensions mismatch" in caplog.text

    def test_compute_backoff_delay(self):
        """Test the exponential backoff schedule."""
        assert [compute_backoff_delay(n, 1.0, 10.0) for n in range(6)] == [
            1.0,
            2.0,
            4.0,
            8.0,
            10.0,
            10.0,
        ]


class TestValidateConnection:
    """Tests for validate_connection."""

    @pytest.mark.asyncio
    async def test_success(self):
        """Test that a working provider validates."""
        handler = RecordingHandler(httpx.Response(200, json=_openai_body([1.0, 0.0, 0.0])))
        assert await _openai(handler).validate_connection() is True
        assert json.loads(handler.requests[0].content)["input"] == "Hello, world!"

    @pytest.mark.asyncio
    async def test_failure_returns_false(self):
        """Test that a failing provider reports False instead of raising."""
        handler = RecordingHandler(httpx.Response(401, text="invalid key"))
        assert await _gemini(handler, max_retries=1).validate_connection() is False


class TestFactory:
    """Tests for provider factory functions."""

    def test_get_embedding_provider_by_string(self):
        """Test that providers can be created from their string id."""
        provider = get_embedding_provider("gemini", "key")
        assert isinstance(provider, GeminiEmbeddingProvider)
        assert provider.model == get_embedding_model(ProviderID.GEMINI)

    def test_get_embedding_provider_unknown(self):
        """Test that an unknown provider id is rejected."""
        with pytest.raises(ValueError, match="Unsupported embedding provider"):
            get_embedding_provider("ollama", "key")

    def test_build_providers_skips_blank_keys(self):
        """Test that only providers with keys are built."""
        providers = build_providers({ProviderID.OPENAI: "sk", ProviderID.GEMINI: "  "})
        assert list(providers) == [ProviderID.OPENAI]
        assert isinstance(providers[ProviderID.OPENAI], OpenAIEmbeddingProvider)

    def test_get_api_keys_reads_environment(self, monkeypatch):
        """Test that API keys are read from the environment."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        monkeypatch.setenv("GEMINI_API_KEY", "")
        assert get_api_keys() == {ProviderID.OPENAI: "sk-env"}

    def test_embedding_model_override(self, monkeypatch):
        """Test that OPENAI_EMBEDDING_MODEL overrides the default model."""
        monkeypatch.setenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small")
        assert get_embedding_model(ProviderID.OPENAI) == "text-embedding-3-small"

    @pytest.mark.parametrize(
        "model,expected",
        [
            ("gpt-4o", ProviderID.OPENAI),
            ("o3-mini", ProviderID.OPENAI),
            ("Gemini-2.5-Flash", ProviderID.GEMINI),
            ("llama3", None),
            ("", None),
            (None, None),
        ],
    )
    def test_provider_for_model(self, model, expected):
        """Test mapping chat model names to embedding providers."""
        assert provider_for_model(model) == expected


class TestLiveProviders:
    """Integration tests against the real embedding APIs."""

    @pytest.mark.integration
    @pytest.mark.requires_openai
    @pytest.mark.slow
    @pytest.mark.asyncio
    async def test_openai_live_embedding(self):
        """Test generating a real OpenAI embedding."""
        api_key = os.getenv("OPENAI_API_KEY", "").strip()
        if not api_key:
            pytest.skip("OPENAI_API_KEY not set")

        vector = await get_embedding_provider(ProviderID.OPENAI, api_key).generate_embedding(
            "Element not found after page load"
        )
        assert len(vector) == 1536

    @pytest.mark.integration
    @pytest.mark.requires_gemini
    @pytest.mark.slow
    @pytest.mark.asyncio
    async def test_gemini_live_embedding(self):
        """Test generating a real Gemini embedding."""
        api_key = os.getenv("GEMINI_API_KEY", "").strip()
        if not api_key:
            pytest.skip("GEMINI_API_KEY not set")

        vector = await get_embedding_provider(ProviderID.GEMINI, api_key).generate_embedding(
            "Element not found after page load"
        )
        assert len(vector) == 3072
