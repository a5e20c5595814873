"""SQLite-backed document store with one embedding column pair per provider.

The store owns a single SQLite connection. Reads run under the shared side of
a reader/writer lock, writes under the exclusive side, and every write is one
transaction.
"""

import logging
import sqlite3
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from pathlib import Path

from tracerag.constants import EMBEDDING_DIMENSIONS, ProviderID
from tracerag.service.store.config import StoreConfig
from tracerag.service.store.errors import (
    DocumentNotFoundError,
    EmbeddingDimensionError,
    StoreError,
)
from tracerag.service.store.locking import ReadWriteLock
from tracerag.service.store.models import DocumentEntry
from tracerag.vectors import deserialize_embedding, serialize_embedding

logger = logging.getLogger(__name__)

DOCUMENT_COLUMNS = (
    "id",
    "category",
    "title",
    "content",
    "summary",
    "root_causes",
    "resolution_steps",
    "tags",
    "created_at",
    "updated_at",
)


def embedding_columns(provider: ProviderID) -> tuple[str, str]:
    """Return the (data, dimension) column names for a provider."""
    return f"{provider.value}_embedding_data", f"{provider.value}_embedding_dimension"


def _schema_sql() -> str:
    embedding_defs = []
    for provider in ProviderID:
        data_column, dimension_column = embedding_columns(provider)
        embedding_defs.append(f"{data_column} BLOB")
        embedding_defs.append(f"{dimension_column} INTEGER")
    embedding_sql = ",\n        ".join(embedding_defs)

    return f"""
    CREATE TABLE IF NOT EXISTS documents (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        category TEXT NOT NULL,
        title TEXT NOT NULL,
        content TEXT NOT NULL,
        summary TEXT,
        root_causes TEXT,
        resolution_steps TEXT,
        tags TEXT,
        {embedding_sql},
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
    );
    CREATE INDEX IF NOT EXISTS idx_documents_category ON documents(category);
    CREATE INDEX IF NOT EXISTS idx_documents_title ON documents(title);
    CREATE INDEX IF NOT EXISTS idx_documents_tags ON documents(tags);
    """


@contextmanager
def _sqlite_errors(action: str) -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as e:
        logger.error(f"❌ Failed to {action}: {e}")
        raise StoreError(f"Failed to {action}: {e}", cause=e) from e


class DocumentStore:
    """Durable storage for failure documentation and its embeddings.

    Use initialize_read_only() in production, where the corpus is a snapshot
    packaged with the application, and initialize_writable() from refresh
    tooling that builds that snapshot.

    The store does not rank anything: scan_candidates() hands every document
    with an embedding for a provider to the caller.
    """

    def __init__(self, dimensions: Mapping[ProviderID, int] | None = None) -> None:
        """Create an uninitialized store.

        Args:
            dimensions: Per-provider embedding length overrides. Providers not
                listed use EMBEDDING_DIMENSIONS.
        """
        self.dimensions: dict[ProviderID, int] = dict(EMBEDDING_DIMENSIONS)
        if dimensions:
            self.dimensions.update(dimensions)
        self.database_path: Path | None = None
        self._connection: sqlite3.Connection | None = None
        self._lock = ReadWriteLock()

    def __enter__(self) -> "DocumentStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def is_initialized(self) -> bool:
        return self._connection is not None

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def initialize_read_only(self, snapshot_path: str | Path | None = None) -> None:
        """Load a snapshot wholesale into an in-memory database.

        The snapshot file is opened read-only and never modified; writes made
        afterwards only affect the in-memory copy.

        Args:
            snapshot_path: Snapshot file (default: StoreConfig.get_snapshot_path())

        Raises:
            StoreError: If the snapshot is missing or cannot be loaded
        """
        path = Path(snapshot_path) if snapshot_path else StoreConfig.get_snapshot_path()
        logger.info(f"📦 Loading document snapshot into memory: {path}")

        if not path.is_file():
            raise StoreError(
                f"Database resource not found: {path}. Build one with tracerag-refresh, "
                "then copy it to this path or point TRACE_SNAPSHOT_PATH at it"
            )

        try:
            source = sqlite3.connect(f"{path.resolve().as_uri()}?mode=ro", uri=True)
        except sqlite3.Error as e:
            raise StoreError(f"Database loading failed: {e}", cause=e) from e

        memory = sqlite3.connect(":memory:", check_same_thread=False)
        try:
            source.backup(memory)
            memory.executescript(_schema_sql())
        except sqlite3.Error as e:
            memory.close()
            raise StoreError(f"Database loading failed: {e}", cause=e) from e
        finally:
            source.close()

        memory.row_factory = sqlite3.Row
        self._replace_connection(memory, None)
        logger.info("✅ Document snapshot loaded into memory")

    def initialize_writable(self, path: str | Path) -> None:
        """Open or create a file-backed store for corpus refresh tooling.

        Args:
            path: Database file; parent directories are created as needed

        Raises:
            StoreError: If the database cannot be opened or the schema created
        """
        database_path = Path(path)
        logger.info(f"🗄️  Opening document database for writing: {database_path}")
        database_path.parent.mkdir(parents=True, exist_ok=True)

        with _sqlite_errors("open document database"):
            connection = sqlite3.connect(database_path, check_same_thread=False)
            try:
                connection.executescript(_schema_sql())
            except sqlite3.Error:
                connection.close()
                raise

        connection.row_factory = sqlite3.Row
        self._replace_connection(connection, database_path)
        logger.info(f"✅ Document database ready: {database_path}")

    def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        self._replace_connection(None, None)

    def _replace_connection(
        self, connection: sqlite3.Connection | None, database_path: Path | None
    ) -> None:
        with self._lock.write_locked():
            previous = self._connection
            self._connection = connection
            self.database_path = database_path
        if previous is not None:
            try:
                previous.close()
                logger.info("Document database connection closed")
            except sqlite3.Error as e:
                logger.error(f"❌ Error closing database connection: {e}")

    def _require_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            raise StoreError("Document store is not initialized")
        return self._connection

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert_document(
        self,
        entry: DocumentEntry,
        embeddings: Mapping[ProviderID, Sequence[float]] | None = None,
    ) -> int:
        """Insert one document, optionally with embeddings.

        Args:
            entry: Document to insert; its id is ignored
            embeddings: Provider to vector mapping; providers may be omitted

        Returns:
            int: The id assigned to the new document

        Raises:
            ValueError: If category, title or content is blank
            EmbeddingDimensionError: If a vector has the wrong length
            StoreError: If the insert fails
        """
        for field_name in ("category", "title", "content"):
            value = getattr(entry, field_name)
            if value is None or not str(value).strip():
                raise ValueError(f"Document {field_name} cannot be null or empty")

        columns = [
            "category",
            "title",
            "content",
            "summary",
            "root_causes",
            "resolution_steps",
            "tags",
        ]
        values: list[object] = [
            entry.category,
            entry.title,
            entry.content,
            entry.summary,
            entry.root_causes,
            entry.resolution_steps,
            entry.tags,
        ]
        for provider, vector in (embeddings or {}).items():
            provider = ProviderID(provider)
            self._check_dimension(provider, vector)
            data_column, dimension_column = embedding_columns(provider)
            columns.extend([data_column, dimension_column])
            values.extend([serialize_embedding(vector), len(vector)])

        placeholders = ", ".join("?" for _ in columns)
        sql = f"INSERT INTO documents ({', '.join(columns)}) VALUES ({placeholders})"

        with self._lock.write_locked(), _sqlite_errors("insert document"):
            connection = self._require_connection()
            with connection:
                cursor = connection.execute(sql, values)
            document_id = int(cursor.lastrowid)

        logger.debug(f"Inserted document: {entry.title} with ID: {document_id}")
        return document_id

    def update_embedding(
        self, document_id: int, provider: ProviderID, vector: Sequence[float]
    ) -> None:
        """Replace one provider's embedding for an existing document.

        Raises:
            EmbeddingDimensionError: If the vector has the wrong length
            DocumentNotFoundError: If no document has this id
            StoreError: If the update fails
        """
        provider = ProviderID(provider)
        self._check_dimension(provider, vector)
        data_column, dimension_column = embedding_columns(provider)
        sql = (
            f"UPDATE documents SET {data_column} = ?, {dimension_column} = ?, "
            "updated_at = CURRENT_TIMESTAMP WHERE id = ?"
        )

        with self._lock.write_locked(), _sqlite_errors("update embedding"):
            connection = self._require_connection()
            with connection:
                cursor = connection.execute(
                    sql, (serialize_embedding(vector), len(vector), document_id)
                )
                if cursor.rowcount == 0:
                    raise DocumentNotFoundError(document_id)

        logger.debug(f"Updated {provider.value} embedding for document ID: {document_id}")

    def delete_document(self, document_id: int) -> None:
        """Delete a document and all of its embeddings.

        Raises:
            DocumentNotFoundError: If no document has this id
        """
        with self._lock.write_locked(), _sqlite_errors("delete document"):
            connection = self._require_connection()
            with connection:
                cursor = connection.execute("DELETE FROM documents WHERE id = ?", (document_id,))
                if cursor.rowcount == 0:
                    raise DocumentNotFoundError(document_id)

        logger.debug(f"Deleted document ID: {document_id}")

    def clear_all(self) -> int:
        """Delete every document in one transaction.

        Returns:
            int: Number of documents deleted
        """
        with self._lock.write_locked(), _sqlite_errors("clear documents"):
            connection = self._require_connection()
            with connection:
                deleted = connection.execute("DELETE FROM documents").rowcount

        logger.info(f"🗑️  Cleared {deleted} documents from database")
        return deleted

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def scan_candidates(self, provider: ProviderID) -> list[tuple[DocumentEntry, list[float]]]:
        """Return every document that has an embedding for the provider.

        Results are ordered by document id.

        Raises:
            EmbeddingDimensionError: If a stored embedding has the wrong length
            StoreError: If the query fails
        """
        provider = ProviderID(provider)
        data_column, dimension_column = embedding_columns(provider)
        sql = (
            f"SELECT {', '.join(DOCUMENT_COLUMNS)}, {data_column}, {dimension_column} "
            f"FROM documents WHERE {data_column} IS NOT NULL ORDER BY id"
        )

        with self._lock.read_locked(), _sqlite_errors("scan documents"):
            rows = self._require_connection().execute(sql).fetchall()

        expected = self.dimensions[provider]
        candidates = []
        for row in rows:
            try:
                vector = deserialize_embedding(row[data_column])
            except ValueError as e:
                raise EmbeddingDimensionError(
                    f"Document {row['id']} has a corrupt {provider.value} embedding: {e}"
                ) from e
            if len(vector) != expected or row[dimension_column] != expected:
                raise EmbeddingDimensionError(
                    f"Document {row['id']} has a {provider.value} embedding of "
                    f"{len(vector)} dimensions (recorded {row[dimension_column]}), "
                    f"expected {expected}"
                )
            candidates.append((self._row_to_entry(row), vector))

        logger.debug(f"Scanned {len(candidates)} documents with {provider.value} embeddings")
        return candidates

    def get_document(self, document_id: int) -> DocumentEntry | None:
        """Return a document by id, or None if it does not exist."""
        sql = f"SELECT {', '.join(DOCUMENT_COLUMNS)} FROM documents WHERE id = ?"
        with self._lock.read_locked(), _sqlite_errors("load document"):
            row = self._require_connection().execute(sql, (document_id,)).fetchone()
        return self._row_to_entry(row) if row is not None else None

    def list_documents_without_embeddings(self) -> list[DocumentEntry]:
        """Return documents that have no embedding for any provider."""
        conditions = " AND ".join(
            f"{embedding_columns(provider)[0]} IS NULL" for provider in ProviderID
        )
        sql = f"SELECT {', '.join(DOCUMENT_COLUMNS)} FROM documents WHERE {conditions} ORDER BY id"
        with self._lock.read_locked(), _sqlite_errors("list documents"):
            rows = self._require_connection().execute(sql).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def count_with_embeddings(self, provider: ProviderID) -> int:
        """Count documents that have an embedding for the provider."""
        data_column, _ = embedding_columns(ProviderID(provider))
        sql = f"SELECT COUNT(*) FROM documents WHERE {data_column} IS NOT NULL"
        with self._lock.read_locked(), _sqlite_errors("count documents"):
            return int(self._require_connection().execute(sql).fetchone()[0])

    def count_documents(self) -> int:
        """Count all documents, with or without embeddings."""
        with self._lock.read_locked(), _sqlite_errors("count documents"):
            return int(self._require_connection().execute("SELECT COUNT(*) FROM documents").fetchone()[0])

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_dimension(self, provider: ProviderID, vector: Sequence[float]) -> None:
        expected = self.dimensions[provider]
        if len(vector) != expected:
            raise EmbeddingDimensionError(
                f"{provider.value} embedding has {len(vector)} dimensions, expected {expected}"
            )

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> DocumentEntry:
        return DocumentEntry(
            id=row["id"],
            category=row["category"],
            title=row["title"],
            content=row["content"],
            summary=row["summary"],
            root_causes=row["root_causes"],
            resolution_steps=row["resolution_steps"],
            tags=row["tags"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
