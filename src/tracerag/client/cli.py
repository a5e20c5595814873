"""Command-line interface for tracerag using Click."""

import asyncio
import logging
import os
from dataclasses import replace
from pathlib import Path

import click
from dotenv import load_dotenv

from tracerag.client.cli_helpers import (
    format_search_hit,
    get_store_counts,
    open_existing_store,
    select_providers,
)
from tracerag.client.ingest import parse_documents_directory
from tracerag.client.refresh import refresh_document_store
from tracerag.constants import REFRESH_RATE_LIMIT_SECONDS, ProviderID
from tracerag.embeddings.base import EmbeddingGenerationError
from tracerag.service.retrieval import (
    RetrievalConfigurationError,
    RetrievalOrchestrator,
    RetrievalSettings,
)
from tracerag.service.store.config import StoreConfig
from tracerag.service.store.document_store import DocumentStore
from tracerag.service.store.errors import StoreError

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "WARNING")),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

PROVIDER_CHOICE = click.Choice([provider.value for provider in ProviderID])

database_option = click.option(
    "--database",
    "database_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Document database (default: TRACE_DATABASE_PATH or build/trace-documents.db)",
)


@click.command()
@click.argument(
    "directory",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
    required=False,
)
@database_option
@click.option(
    "--provider",
    type=PROVIDER_CHOICE,
    default=None,
    help="Only generate embeddings for this provider (default: every provider with an API key)",
)
@click.option(
    "--skip-embeddings",
    is_flag=True,
    default=False,
    help="Index document text without generating embeddings",
)
@click.option(
    "--rate-limit",
    type=float,
    default=REFRESH_RATE_LIMIT_SECONDS,
    show_default=True,
    help="Pause between documents in seconds",
)
def refresh(
    directory: Path | None,
    database_path: Path | None,
    provider: str | None,
    skip_embeddings: bool,
    rate_limit: float,
) -> None:
    """Rebuild the document database from the markdown files in DIRECTORY.

    Existing documents are deleted first. DIRECTORY defaults to the corpus
    packaged with tracerag.

    Example:
        tracerag-refresh
        tracerag-refresh docs/failures/ --database build/trace-documents.db
        tracerag-refresh --provider openai
    """
    directory = directory or StoreConfig.get_documents_dir()
    database_path = database_path or StoreConfig.get_database_path()
    providers = {} if skip_embeddings else select_providers(provider)

    documents = parse_documents_directory(directory)
    if not documents:
        click.echo(f"No documents found in '{directory}'")
        return

    click.echo(f"Found {len(documents)} document(s) in '{directory}'")
    click.echo(f"Database: {database_path}")
    if providers:
        click.echo(f"Embedding providers: {', '.join(p.value for p in providers)}\n")

    store = DocumentStore()
    try:
        store.initialize_writable(database_path)
        summary = asyncio.run(
            refresh_document_store(store, documents, providers, rate_limit=rate_limit)
        )
    except StoreError as e:
        click.echo(f"✗ Error refreshing database: {e}", err=True)
        raise click.Abort()
    finally:
        store.close()

    click.echo(f"✓ Inserted {summary.inserted} document(s)")
    for provider_id, count in summary.counts.items():
        click.echo(f"  {provider_id.value}: {count} document(s) with embeddings")

    if summary.failures:
        click.echo(f"\n✗ {len(summary.failures)} failure(s):", err=True)
        for failure in summary.failures:
            click.echo(f"  • {failure}", err=True)
        raise click.Abort()

    click.echo("\n✓ Refresh complete!")


@click.command()
@database_option
def count(database_path: Path | None) -> None:
    """Show the number of documents and embeddings in the database.

    Example:
        tracerag-count
    """
    database_path = database_path or StoreConfig.get_database_path()
    with open_existing_store(database_path) as store:
        try:
            total, per_provider = get_store_counts(store)
        except StoreError as e:
            click.echo(f"✗ Error counting documents: {e}", err=True)
            raise click.Abort()

    click.echo(f"📊 Database contains {total} document(s)")
    for provider_id, provider_count in per_provider.items():
        click.echo(f"   {provider_id.value}: {provider_count} with embeddings")


@click.command()
@click.argument("query", type=str)
@database_option
@click.option("--provider", type=PROVIDER_CHOICE, default=None, help="Embedding provider to query with")
@click.option("--top-k", type=int, default=None, help="Number of results to return (default: 3)")
@click.option(
    "--threshold",
    type=click.FloatRange(0.0, 1.0),
    default=None,
    help="Minimum similarity score (default: 0.7)",
)
@click.option(
    "--context",
    "show_context",
    is_flag=True,
    default=False,
    help="Print the formatted documentation block instead of a result list",
)
def search(
    query: str,
    database_path: Path | None,
    provider: str | None,
    top_k: int | None,
    threshold: float | None,
    show_context: bool,
) -> None:
    """Search the failure documentation for entries similar to QUERY.

    Example:
        tracerag-search "element not found after page load"
        tracerag-search "timeout waiting for element" --top-k 5 --threshold 0.5
    """
    try:
        settings = RetrievalSettings.from_env()
        overrides = {}
        if provider is not None:
            overrides["default_provider"] = ProviderID(provider)
        if top_k is not None:
            overrides["max_results"] = top_k
        if threshold is not None:
            overrides["similarity_threshold"] = threshold
        settings = replace(settings, **overrides)
    except ValueError as e:
        click.echo(f"✗ Error: {e}", err=True)
        raise click.Abort()

    providers = select_providers(provider)
    database_path = database_path or StoreConfig.get_database_path()

    click.echo(f"🔍 Searching for: '{query}'")
    click.echo(f"   Returning top {settings.max_results} results above {settings.similarity_threshold}...\n")

    with open_existing_store(database_path) as store:
        orchestrator = RetrievalOrchestrator(store, providers, settings)
        try:
            if show_context:
                click.echo(asyncio.run(orchestrator.retrieve(query)) or "No results found.")
                return
            hits = asyncio.run(orchestrator.search(query))
        except (RetrievalConfigurationError, EmbeddingGenerationError, StoreError, ValueError) as e:
            click.echo(f"✗ Error: {e}", err=True)
            raise click.Abort()
        except asyncio.TimeoutError:
            click.echo("✗ Error: Timed out generating the query embedding", err=True)
            raise click.Abort()

    if not hits:
        click.echo("No results found.")
        return

    click.echo(f"✅ Found {len(hits)} result(s):\n")
    for i, hit in enumerate(hits, 1):
        click.echo(format_search_hit(i, hit))


@click.command()
@click.option("--provider", type=PROVIDER_CHOICE, default=None, help="Only validate this provider")
def validate(provider: str | None) -> None:
    """Check that configured embedding providers accept requests.

    Example:
        tracerag-validate
        tracerag-validate --provider gemini
    """
    providers = select_providers(provider)

    async def _validate_all() -> dict[ProviderID, bool]:
        return {
            provider_id: await instance.validate_connection()
            for provider_id, instance in providers.items()
        }

    results = asyncio.run(_validate_all())
    for provider_id, ok in results.items():
        mark = "✓" if ok else "✗"
        click.echo(f"{mark} {provider_id.value}: {'connected' if ok else 'failed'}")

    if not all(results.values()):
        raise click.Abort()


if __name__ == "__main__":
    refresh()
