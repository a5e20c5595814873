"""Exceptions raised by the document store."""


class StoreError(RuntimeError):
    """Raised when the underlying database cannot be opened, read or written."""

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.__cause__ = cause


class DocumentNotFoundError(StoreError):
    """Raised when an operation targets a document id that does not exist."""

    def __init__(self, document_id: int) -> None:
        super().__init__(f"No document found with ID: {document_id}")
        self.document_id = document_id


class EmbeddingDimensionError(StoreError):
    """Raised when an embedding's length differs from its provider's dimension."""
