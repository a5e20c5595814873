"""OpenAI embedding provider implementation."""

from typing import Any

from tracerag.constants import OPENAI_EMBEDDING_URL, ProviderID
from tracerag.embeddings.base import EmbeddingRequestError, HTTPEmbeddingProvider


class OpenAIEmbeddingProvider(HTTPEmbeddingProvider):
    """OpenAI embeddings over the REST API.

    Sends ``{"model", "input"}`` to the embeddings endpoint with bearer
    authentication and reads the vector from ``data[0].embedding``.
    """

    provider_id = ProviderID.OPENAI
    display_name = "OpenAI"

    def endpoint(self) -> str:
        return OPENAI_EMBEDDING_URL

    def headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def build_payload(self, text: str) -> dict[str, Any]:
        return {"model": self.model, "input": text}

    def extract_values(self, payload: Any) -> list[Any]:
        data = payload.get("data")
        if not data:
            raise EmbeddingRequestError("No data in OpenAI embedding response")
        embedding = data[0].get("embedding")
        if embedding is None:
            raise EmbeddingRequestError("No embedding in OpenAI response data")
        return embedding
