"""Office document (DOCX) text extraction."""

from __future__ import annotations

import logging
from pathlib import Path

import docx

from docretrieval.errors import ParseError
from docretrieval.models import ParsedDocument

LOGGER = logging.getLogger(__name__)


def extract_docx(path: Path) -> ParsedDocument:
    if path.stat().st_size == 0:
        LOGGER.warning("Skipping empty DOCX file: %s", path.name)
        raise ParseError(path, "DOCX file is empty or corrupted")
    try:
        document = docx.Document(str(path))
    except Exception as exc:
        LOGGER.error("Failed to parse DOCX file %s: %s", path, exc)
        raise ParseError(path, f"DOCX parsing failed: {exc}") from exc

    paragraphs = [paragraph.text for paragraph in document.paragraphs]
    for table in document.tables:
        for row in table.rows:
            paragraphs.append(" | ".join(cell.text.strip() for cell in row.cells))

    properties = document.core_properties
    return ParsedDocument(
        text="\n".join(p for p in paragraphs if p.strip()).strip(),
        title=properties.title or path.stem,
        metadata={
            "file_type": "docx",
            "author": properties.author or "",
            "paragraphs": len(document.paragraphs),
        },
    )
