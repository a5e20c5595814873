"""Google Gemini embedding provider implementation."""

from typing import Any

from tracerag.constants import GEMINI_EMBEDDING_URL_TEMPLATE, ProviderID
from tracerag.embeddings.base import EmbeddingRequestError, HTTPEmbeddingProvider


class GeminiEmbeddingProvider(HTTPEmbeddingProvider):
    """Google Gemini embeddings over the Generative Language REST API.

    The API key is sent in the ``x-goog-api-key`` header. Responses have been
    observed in several envelopes; all of these are accepted:

    - ``{"embeddings": [{"values": [...]}]}``
    - ``{"embedding": {"values": [...]}}``
    - ``{"values": [...]}``
    """

    provider_id = ProviderID.GEMINI
    display_name = "Gemini"

    def endpoint(self) -> str:
        return GEMINI_EMBEDDING_URL_TEMPLATE.format(model=self.model)

    def headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-goog-api-key": self.api_key,
        }

    def build_payload(self, text: str) -> dict[str, Any]:
        return {
            "model": f"models/{self.model}",
            "content": {"parts": [{"text": text}]},
        }

    def extract_values(self, payload: Any) -> list[Any]:
        embeddings = payload.get("embeddings")
        if embeddings is None:
            embedding = payload.get("embedding")
            if isinstance(embedding, dict) and embedding.get("values") is not None:
                return embedding["values"]
            if payload.get("values") is not None:
                return payload["values"]
            raise EmbeddingRequestError(
                f"No embeddings in Gemini response. Response keys: {sorted(payload)}"
            )

        if not embeddings:
            raise EmbeddingRequestError("Empty embeddings array in Gemini response")

        # Only one text is sent per request
        values = embeddings[0].get("values")
        if values is None:
            raise EmbeddingRequestError("No values in Gemini embedding response")
        return values
