"""Markdown corpus parser for failure documentation.

A corpus file holds one or more entries separated by ``---`` lines::

    ### Title: Element not found after page load
    **Summary**: The locator ran before the element was rendered.
    **Root Causes**:
    - Missing explicit wait
    - Locator depends on dynamic id
    **Resolution Steps**:
    1. Wait for visibility before interacting
    2. Use a stable locator
    **Tags**: selenium, wait, locator

The category of every entry is the lowercased file name without extension.
"""

import logging
import re
from pathlib import Path

from tracerag.service.store.models import DocumentEntry

logger = logging.getLogger(__name__)

SECTION_SEPARATOR = re.compile(r"\n\s*---\s*\n")
TITLE_PATTERN = re.compile(r"^### Title:\s*(.+)$", re.MULTILINE)
SUMMARY_PATTERN = re.compile(r"\*\*Summary\*\*:\s*(.+)", re.IGNORECASE)
TAGS_PATTERN = re.compile(r"\*\*Tags\*\*:\s*(.+)", re.IGNORECASE)
BULLET_PREFIX = re.compile(r"^[-*]\s*")
NUMBER_PREFIX = re.compile(r"^[0-9]+\.\s*")

ROOT_CAUSES_MARKER = "**Root Causes**:"
RESOLUTION_MARKERS = ("**Resolution Steps**:", "**Solution**:")


def split_sections(text: str) -> list[str]:
    """Split a corpus file into non-empty, stripped entry sections."""
    return [section.strip() for section in SECTION_SEPARATOR.split(text) if section.strip()]


def _first_match(pattern: re.Pattern[str], text: str) -> str | None:
    match = pattern.search(text)
    return match.group(1).strip() if match else None


def _collect_list(text: str, markers: tuple[str, ...], is_item) -> str | None:
    """Collect the list items that follow the first marker found in text.

    Blank lines inside the list are skipped; the first other non-item line
    ends it. Bullets and numbering are stripped from the returned items.
    """
    start = -1
    for marker in markers:
        start = text.find(marker)
        if start != -1:
            break
    if start == -1:
        return None

    items = []
    for line in text[start:].splitlines()[1:]:
        stripped = line.strip()
        if not stripped:
            continue
        if not is_item(stripped):
            break
        cleaned = NUMBER_PREFIX.sub("", BULLET_PREFIX.sub("", stripped)).strip()
        if cleaned:
            items.append(cleaned)
    return "\n".join(items)


def _is_bullet(line: str) -> bool:
    return line.startswith("-") or (line.startswith("*") and not line.startswith("**"))


def _is_numbered(line: str) -> bool:
    return NUMBER_PREFIX.match(line) is not None


def parse_section(section: str, category: str, fallback_title: str) -> DocumentEntry:
    """Parse one entry section into a DocumentEntry.

    Args:
        section: Entry text, without separators
        category: Category for the entry
        fallback_title: Title used when the section has no "### Title:" line

    Returns:
        DocumentEntry: The parsed entry; content is the full section text
    """
    title = _first_match(TITLE_PATTERN, section) or fallback_title
    return DocumentEntry(
        category=category,
        title=title,
        content=section.strip(),
        summary=_first_match(SUMMARY_PATTERN, section),
        root_causes=_collect_list(section, (ROOT_CAUSES_MARKER,), _is_bullet),
        resolution_steps=_collect_list(section, RESOLUTION_MARKERS, _is_numbered),
        tags=_first_match(TAGS_PATTERN, section),
    )


def validate_document(document: DocumentEntry) -> bool:
    """Check that a document has the fields the store requires.

    Returns:
        bool: True if title, content and category are all non-blank
    """
    for field_name in ("title", "content", "category"):
        value = getattr(document, field_name)
        if value is None or not value.strip():
            logger.warning(f"⚠️ Document missing {field_name}")
            return False
    return True


def parse_markdown_file(path: Path) -> list[DocumentEntry]:
    """Parse every entry in a markdown corpus file.

    Invalid sections are logged and skipped.

    Args:
        path: Path to a .md file

    Returns:
        list[DocumentEntry]: Valid entries in file order

    Raises:
        OSError: If the file cannot be read
    """
    text = path.read_text(encoding="utf-8")
    category = path.stem.lower()
    sections = split_sections(text)
    logger.info(f"Found {len(sections)} document sections in: {path.name}")

    documents = []
    for index, section in enumerate(sections, start=1):
        document = parse_section(section, category, f"{path.stem}_{index}")
        if validate_document(document):
            documents.append(document)
            logger.debug(f"Parsed section {index} - Title: {document.title}")
        else:
            logger.warning(f"⚠️ Failed to parse section {index} in: {path.name}")
    return documents


def parse_documents_directory(directory: Path) -> list[DocumentEntry]:
    """Parse every .md file in a directory, in file name order.

    Args:
        directory: Directory containing corpus files

    Returns:
        list[DocumentEntry]: All valid entries; empty if the directory does not exist
    """
    if not directory.is_dir():
        logger.warning(f"⚠️ Directory does not exist or is not a directory: {directory}")
        return []

    files = sorted(
        path for path in directory.iterdir() if path.is_file() and path.suffix.lower() == ".md"
    )
    logger.info(f"Found {len(files)} markdown files to parse")

    documents = []
    for path in files:
        file_documents = parse_markdown_file(path)
        documents.extend(file_documents)
        logger.info(f"✓ Parsed {len(file_documents)} documents from {path.name}")

    logger.info(f"Parsed {len(documents)} documents successfully")
    return documents
