"""Application-wide constants and defaults for tracerag.

This module provides a single source of truth for configuration defaults,
magic numbers, and other constants used throughout the application.
"""

import os
from enum import Enum


class ProviderID(str, Enum):
    """Embedding providers with a dedicated column pair in the document store."""

    OPENAI = "openai"
    GEMINI = "gemini"

    @classmethod
    def from_id(cls, value: str | None) -> "ProviderID | None":
        """Resolve a provider from its string id, case-insensitively.

        Returns None for blank or unknown ids instead of raising.
        """
        if value is None or not value.strip():
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


# =============================================================================
# Embedding Providers
# =============================================================================
EMBEDDING_DIMENSIONS = {
    ProviderID.OPENAI: 1536,
    ProviderID.GEMINI: 3072,
}

EMBEDDING_DEFAULTS = {
    ProviderID.OPENAI: "text-embedding-ada-002",
    ProviderID.GEMINI: "gemini-embedding-001",
}

OPENAI_EMBEDDING_URL = "https://api.openai.com/v1/embeddings"
GEMINI_EMBEDDING_URL_TEMPLATE = (
    "https://generativelanguage.googleapis.com/v1beta/models/{model}:embedContent"
)

API_KEY_ENV_VARS = {
    ProviderID.OPENAI: "OPENAI_API_KEY",
    ProviderID.GEMINI: "GEMINI_API_KEY",
}

# Chat model name prefixes mapped to the provider that also serves embeddings
MODEL_PROVIDER_PREFIXES = {
    "gpt-": ProviderID.OPENAI,
    "o1": ProviderID.OPENAI,
    "o3": ProviderID.OPENAI,
    "o4": ProviderID.OPENAI,
    "text-embedding-": ProviderID.OPENAI,
    "gemini-": ProviderID.GEMINI,
}

VALIDATION_TEXT = "Hello, world!"

# =============================================================================
# Network & Retry Policy
# =============================================================================
REQUEST_TIMEOUT_SECONDS = 30.0
MAX_RETRIES = 3
INITIAL_BACKOFF_SECONDS = 1.0
MAX_BACKOFF_SECONDS = 10.0

# =============================================================================
# Retrieval Settings
# =============================================================================
DEFAULT_SIMILARITY_THRESHOLD = 0.7
DEFAULT_MAX_RESULTS = 3
EMBEDDING_TIMEOUT_SECONDS = 30.0

# =============================================================================
# Display Settings
# =============================================================================
QUERY_PREVIEW_LENGTH = 100  # Characters of query text written to logs
CONTENT_PREVIEW_LENGTH = 200  # Characters to show in CLI previews

# =============================================================================
# Storage & Refresh
# =============================================================================
SNAPSHOT_FILENAME = "trace-documents.db"
DEFAULT_DATABASE_PATH = "build/trace-documents.db"
REFRESH_RATE_LIMIT_SECONDS = 0.2  # Pause between documents during a refresh

# =============================================================================
# Default URLs and Hosts
# =============================================================================
DEFAULT_MCP_HOST = "0.0.0.0"
DEFAULT_MCP_PORT = 8002


def get_embedding_model(provider: ProviderID) -> str:
    """Get the embedding model for a given provider.

    Checks the provider-specific environment variable first
    (OPENAI_EMBEDDING_MODEL or GEMINI_EMBEDDING_MODEL), then falls back
    to the provider default.

    Args:
        provider: The embedding provider.

    Returns:
        str: The embedding model name to use.
    """
    env_model = os.getenv(f"{provider.value.upper()}_EMBEDDING_MODEL")
    if env_model:
        return env_model
    return EMBEDDING_DEFAULTS[provider]


def provider_for_model(model_name: str | None) -> ProviderID | None:
    """Map a chat model name to the provider whose embeddings should be used.

    Args:
        model_name: Model name such as "gpt-4o" or "gemini-2.5-flash".

    Returns:
        The matching provider, or None if the model is unknown.
    """
    if not model_name or not model_name.strip():
        return None
    name = model_name.strip().lower()
    for prefix, provider in MODEL_PROVIDER_PREFIXES.items():
        if name.startswith(prefix):
            return provider
    return None
