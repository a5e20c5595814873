"""FastMCP server exposing failure documentation retrieval as tools."""

import logging
import os
from functools import lru_cache
from typing import Any

from dotenv import load_dotenv
from fastmcp import FastMCP

from tracerag.constants import DEFAULT_MCP_HOST, DEFAULT_MCP_PORT, QUERY_PREVIEW_LENGTH
from tracerag.service.factory import create_orchestrator
from tracerag.service.retrieval import AnalysisMode, QueryType, RetrievalOrchestrator

# Configure logging
log_level = os.getenv("LOG_LEVEL", "INFO")
logging.basicConfig(
    level=getattr(logging, log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Load environment variables
load_dotenv()
logger.debug("Environment variables loaded for MCP server")

# Create FastMCP instance
mcp = FastMCP("Trace Failure Documentation Retrieval")


@lru_cache(maxsize=1)
def get_orchestrator() -> RetrievalOrchestrator:
    """Create the process-wide orchestrator on first use."""
    return create_orchestrator()


async def retrieve_failure_context_impl(
    query: str,
    query_type: str = QueryType.USER_QUERY.value,
    failure_context: str | None = None,
    mode: str = AnalysisMode.OVERVIEW.value,
) -> str:
    """Validate tool arguments and run a retrieval."""
    logger.debug(
        f"MCP Tool: Parameters - query='{query[:QUERY_PREVIEW_LENGTH]}...', "
        f"query_type={query_type}, mode={mode}"
    )

    try:
        parsed_type = QueryType(query_type)
        parsed_mode = AnalysisMode(mode)
    except ValueError as e:
        error_msg = f"Invalid parameter: {e}"
        logger.error(f"❌ MCP Tool: {error_msg}")
        raise ValueError(error_msg) from e

    try:
        orchestrator = get_orchestrator()
    except Exception as e:
        logger.error(f"❌ MCP Tool: Retrieval unavailable: {type(e).__name__}: {e}", exc_info=True)
        return ""

    context = await orchestrator.retrieve(
        query, parsed_type, failure_context=failure_context, mode=parsed_mode
    )
    logger.info(f"✅ MCP Tool: Returning {len(context)} characters of context to MCP client")
    return context


async def count_indexed_documents_impl() -> dict[str, Any]:
    """Report the active provider and its indexed document count."""
    logger.info("📂 MCP Tool count_indexed_documents: Counting indexed documents")

    try:
        orchestrator = get_orchestrator()
        provider = orchestrator.active_provider()
        count = orchestrator.document_count()
    except Exception as e:
        error_msg = f"Error counting documents: {type(e).__name__}: {e}"
        logger.error(f"❌ MCP Tool: {error_msg}", exc_info=True)
        return {"provider": None, "count": 0, "ready": False}

    logger.info(f"✅ MCP Tool: {count} indexed documents")
    return {
        "provider": provider.value if provider else None,
        "count": count,
        "ready": count > 0,
    }


@mcp.tool()
async def retrieve_failure_context(
    query: str,
    query_type: str = QueryType.USER_QUERY.value,
    failure_context: str | None = None,
    mode: str = AnalysisMode.OVERVIEW.value,
) -> str:
    """
    Searches the curated test failure documentation for entries that are
    semantically similar to the query and returns them as a markdown block
    ready to include in an analysis prompt. Returns an empty string when
    nothing relevant is found.

    Args:
        query: Failure description or follow-up question
        query_type: "user_query" or "failure_analysis"
        failure_context: Optional failure details (stack trace, test name)
        mode: "overview" or "detailed"
    """
    return await retrieve_failure_context_impl(query, query_type, failure_context, mode)


@mcp.tool()
async def count_indexed_documents() -> dict[str, Any]:
    """
    Reports how many documents have embeddings for the active embedding
    provider. Use this tool to check whether retrieval can return anything.

    Returns:
        dict with:
            - provider: the active provider id, or None if none is configured
            - count: number of documents with embeddings for that provider
            - ready: True if count is above zero
    """
    return await count_indexed_documents_impl()


def main() -> None:
    """Entry point for the MCP server command-line interface."""
    host = os.getenv("MCP_HOST", DEFAULT_MCP_HOST)
    port = int(os.getenv("MCP_PORT", str(DEFAULT_MCP_PORT)))
    logger.info("🚀 Starting Trace MCP Server...")
    mcp.run(transport="sse", host=host, port=port)


if __name__ == "__main__":
    main()
