"""Factory functions for creating embedding provider instances."""

import logging
import os
from collections.abc import Mapping
from typing import Any

from dotenv import load_dotenv

from tracerag.constants import API_KEY_ENV_VARS, ProviderID, get_embedding_model
from tracerag.embeddings.base import EmbeddingProvider, HTTPEmbeddingProvider
from tracerag.embeddings.gemini import GeminiEmbeddingProvider
from tracerag.embeddings.openai import OpenAIEmbeddingProvider

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[ProviderID, type[HTTPEmbeddingProvider]] = {
    ProviderID.OPENAI: OpenAIEmbeddingProvider,
    ProviderID.GEMINI: GeminiEmbeddingProvider,
}


def get_api_keys() -> dict[ProviderID, str]:
    """Read provider API keys from the environment.

    Returns:
        dict: Provider to API key, only for providers whose key is set and non-blank
    """
    keys = {}
    for provider, env_var in API_KEY_ENV_VARS.items():
        value = os.getenv(env_var, "").strip()
        if value:
            keys[provider] = value
    return keys


def get_embedding_provider(
    provider: ProviderID | str, api_key: str, **kwargs: Any
) -> EmbeddingProvider:
    """Factory function to create an embedding provider instance.

    Args:
        provider: Provider id (ProviderID or its string value)
        api_key: API key for the provider
        **kwargs: Passed through to the provider constructor (model,
            dimensions, timeout, retry settings, client)

    Returns:
        EmbeddingProvider: A provider implementing the EmbeddingProvider protocol.

    Raises:
        ValueError: If the provider is unsupported or the key is blank
    """
    provider_id = provider if isinstance(provider, ProviderID) else ProviderID.from_id(provider)
    if provider_id is None:
        raise ValueError(f"Unsupported embedding provider: {provider}")

    kwargs.setdefault("model", get_embedding_model(provider_id))
    return PROVIDER_CLASSES[provider_id](api_key, **kwargs)


def build_providers(
    api_keys: Mapping[ProviderID, str] | None = None, **kwargs: Any
) -> dict[ProviderID, EmbeddingProvider]:
    """Create one provider per available API key.

    Args:
        api_keys: Provider to API key mapping. If None, keys are read from
            the environment.
        **kwargs: Passed through to every provider constructor

    Returns:
        dict: Provider id to provider instance; providers with blank keys are skipped
    """
    if api_keys is None:
        api_keys = get_api_keys()

    providers: dict[ProviderID, EmbeddingProvider] = {}
    for provider_id, api_key in api_keys.items():
        if not api_key or not api_key.strip():
            logger.debug(f"Skipping {provider_id.value} provider: no API key")
            continue
        providers[provider_id] = get_embedding_provider(provider_id, api_key, **kwargs)
    return providers
