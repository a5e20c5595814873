"""Helper functions for CLI commands."""

from pathlib import Path

import click

from tracerag.constants import CONTENT_PREVIEW_LENGTH, ProviderID
from tracerag.embeddings.base import EmbeddingProvider
from tracerag.embeddings.factory import build_providers, get_api_keys
from tracerag.service.store.document_store import DocumentStore
from tracerag.service.store.errors import StoreError
from tracerag.service.store.models import SearchHit


def open_existing_store(database_path: Path) -> DocumentStore:
    """Load an existing database into memory for read-only commands.

    Args:
        database_path: Database written by tracerag-refresh

    Returns:
        DocumentStore: Initialized store; the caller closes it

    Raises:
        click.Abort: If the database does not exist or cannot be loaded
    """
    if not database_path.is_file():
        click.echo(f"✗ Error: Database does not exist: {database_path}", err=True)
        click.echo("\nPlease build the database first using:", err=True)
        click.echo("  tracerag-refresh <documents-directory>", err=True)
        raise click.Abort()

    store = DocumentStore()
    try:
        store.initialize_read_only(database_path)
    except StoreError as e:
        click.echo(f"✗ Failed to open database: {e}", err=True)
        raise click.Abort()
    return store


def select_providers(provider: str | None = None) -> dict[ProviderID, EmbeddingProvider]:
    """Build providers for every configured API key, optionally just one.

    Args:
        provider: Provider id to restrict to, or None for all configured

    Returns:
        dict: Provider id to provider instance

    Raises:
        click.Abort: If no matching provider has an API key
    """
    api_keys = get_api_keys()
    if provider is not None:
        provider_id = ProviderID(provider)
        api_keys = {k: v for k, v in api_keys.items() if k == provider_id}

    if not api_keys:
        wanted = provider or "any provider"
        click.echo(f"✗ Error: No API key configured for {wanted}", err=True)
        click.echo("\nSet OPENAI_API_KEY and/or GEMINI_API_KEY in the environment or .env", err=True)
        raise click.Abort()

    return build_providers(api_keys)


def format_search_hit(index: int, hit: SearchHit, max_length: int = CONTENT_PREVIEW_LENGTH) -> str:
    """Format a search hit for display.

    Args:
        index: Result number (1-based)
        hit: Ranked search hit
        max_length: Maximum summary length before truncation

    Returns:
        Formatted string for display
    """
    document = hit.document
    preview = document.summary or document.content
    display_content = preview[:max_length] + "..." if len(preview) > max_length else preview

    lines = [
        f"{index}. [{document.category} - #{document.id}] {document.title} "
        f"(score: {hit.similarity_score:.4f})",
        f"   {display_content}",
        "",
    ]
    return "\n".join(lines)


def get_store_counts(store: DocumentStore) -> tuple[int, dict[ProviderID, int]]:
    """Get the total document count and per-provider embedding counts.

    Returns:
        Tuple of (total documents, provider to documents with embeddings)
    """
    total = store.count_documents()
    per_provider = {provider: store.count_with_embeddings(provider) for provider in ProviderID}
    return total, per_provider
