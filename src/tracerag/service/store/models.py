"""Data models for documents and search results."""

from dataclasses import dataclass


@dataclass
class DocumentEntry:
    """A unit of failure documentation stored in the document store.

    Attributes:
        category: Grouping derived from the source file (e.g. "selenium")
        title: Human-readable title of the failure pattern
        content: Full body of the entry
        summary: Short description of the failure
        root_causes: Newline-separated root causes
        resolution_steps: Newline-separated resolution steps
        tags: Free-text tags
        id: Store-assigned id, None until inserted
        created_at: Creation timestamp as written by the store
        updated_at: Last modification timestamp as written by the store
    """

    category: str
    title: str
    content: str
    summary: str | None = None
    root_causes: str | None = None
    resolution_steps: str | None = None
    tags: str | None = None
    id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def build_embedding_content(self) -> str:
        """Build the text that is embedded for this document."""
        lines = [f"Title: {self.title}"]
        if self.summary and self.summary.strip():
            lines.append(f"Summary: {self.summary}")
        if self.root_causes and self.root_causes.strip():
            lines.append(f"Root Causes: {self.root_causes}")
        if self.resolution_steps and self.resolution_steps.strip():
            lines.append(f"Resolution Steps: {self.resolution_steps}")
        return "\n".join(lines) + "\n"


@dataclass(frozen=True)
class SearchHit:
    """A document returned by a similarity search, with its score.

    Instances are snapshots: they carry no reference to the store and are
    never modified after creation.
    """

    document: DocumentEntry
    similarity_score: float

    @property
    def document_id(self) -> int | None:
        return self.document.id

    @property
    def title(self) -> str:
        return self.document.title
