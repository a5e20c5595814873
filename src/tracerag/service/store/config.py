"""Configuration for document store locations."""

import os
from importlib import resources
from pathlib import Path

from dotenv import load_dotenv

from tracerag.constants import DEFAULT_DATABASE_PATH, SNAPSHOT_FILENAME

# Load environment variables
load_dotenv()


class StoreConfig:
    """Configuration class for document store file locations."""

    @staticmethod
    def get_snapshot_path() -> Path:
        """Get the read-only snapshot loaded at startup.

        Returns:
            Path: TRACE_SNAPSHOT_PATH if set, otherwise the snapshot packaged
            in tracerag/resources
        """
        override = os.getenv("TRACE_SNAPSHOT_PATH")
        if override:
            return Path(override)
        return Path(str(resources.files("tracerag.resources").joinpath(SNAPSHOT_FILENAME)))

    @staticmethod
    def get_database_path() -> Path:
        """Get the writable database used by corpus refresh tooling.

        Returns:
            Path: TRACE_DATABASE_PATH if set (default: build/trace-documents.db)
        """
        return Path(os.getenv("TRACE_DATABASE_PATH", DEFAULT_DATABASE_PATH))

    @staticmethod
    def get_documents_dir() -> Path:
        """Get the markdown corpus directory packaged with tracerag."""
        return Path(str(resources.files("tracerag.resources").joinpath("documents")))
