"""File-type dispatch: fingerprinting, text extraction and chunking."""

from __future__ import annotations

import csv
import io
import json
import logging
from pathlib import Path
from typing import Callable, Dict, List

from bs4 import BeautifulSoup

from docretrieval.errors import ParseError
from docretrieval.ingestion.office import extract_docx
from docretrieval.ingestion.pdf_loader import extract_pdf
from docretrieval.models import FileFingerprint, ParsedDocument
from docretrieval.utils.files import compute_sha256
from docretrieval.utils.text import chunk_text, collapse_whitespace, count_tokens

LOGGER = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = frozenset(
    {".txt", ".md", ".markdown", ".json", ".csv", ".html", ".htm", ".pdf", ".docx"}
)


def _read_text(path: Path) -> str:
    return path.read_bytes().decode("utf-8", errors="replace")


def parse_text(path: Path) -> ParsedDocument:
    return ParsedDocument(
        text=_read_text(path).strip(),
        title=path.stem,
        metadata={"file_type": "text", "encoding": "utf8"},
    )


def parse_json(path: Path) -> ParsedDocument:
    try:
        data = json.loads(_read_text(path))
    except json.JSONDecodeError as exc:
        raise ParseError(path, f"Invalid JSON file: {exc}") from exc
    keys = list(data.keys()) if isinstance(data, dict) else []
    return ParsedDocument(
        text=json.dumps(data, indent=2, ensure_ascii=False),
        title=path.stem,
        metadata={"file_type": "json", "keys": keys},
    )


def parse_csv(path: Path) -> ParsedDocument:
    raw = _read_text(path)
    rows = [row for row in csv.reader(io.StringIO(raw)) if any(cell.strip() for cell in row)]
    lines: List[str] = []
    for index, row in enumerate(rows):
        joined = ",".join(row)
        lines.append(f"Headers: {joined}" if index == 0 else f"Row {index}: {joined}")
    return ParsedDocument(
        text="\n".join(lines),
        title=path.stem,
        metadata={"file_type": "csv", "row_count": max(len(rows) - 1, 0)},
    )


def parse_html(path: Path) -> ParsedDocument:
    soup = BeautifulSoup(_read_text(path), "html.parser")
    title_tag = soup.find("title")
    title = title_tag.get_text(strip=True) if title_tag else ""
    for tag in soup(["script", "style"]):
        tag.decompose()
    return ParsedDocument(
        text=collapse_whitespace(soup.get_text(" ")),
        title=title or path.stem,
        metadata={"file_type": "html", "has_title": bool(title)},
    )


class DocumentParser:
    """Turns supported files into text and fragments."""

    def __init__(self) -> None:
        self._handlers: Dict[str, Callable[[Path], ParsedDocument]] = {
            ".txt": parse_text,
            ".md": parse_text,
            ".markdown": parse_text,
            ".json": parse_json,
            ".csv": parse_csv,
            ".html": parse_html,
            ".htm": parse_html,
            ".pdf": extract_pdf,
            ".docx": extract_docx,
        }

    def is_supported(self, path: Path) -> bool:
        return Path(path).suffix.lower() in SUPPORTED_EXTENSIONS

    def fingerprint(self, path: Path) -> FileFingerprint:
        path = Path(path)
        stat = path.stat()
        return FileFingerprint(
            path=path,
            size=stat.st_size,
            mtime=stat.st_mtime,
            sha256=compute_sha256(path),
            file_type=path.suffix.lower().lstrip(".") or "unknown",
        )

    def extract(self, path: Path) -> ParsedDocument:
        """Extract text, title and metadata; unknown types are read as raw text."""
        path = Path(path)
        handler = self._handlers.get(path.suffix.lower(), parse_text)
        try:
            return handler(path)
        except ParseError:
            raise
        except (OSError, UnicodeError, ValueError) as exc:
            LOGGER.error("Failed to parse document %s: %s", path, exc)
            raise ParseError(path, str(exc)) from exc

    def chunk(self, text: str, size: int = 1200, overlap: int = 150) -> List[str]:
        return chunk_text(text, max_chars=size, overlap=overlap)

    def count_tokens(self, text: str) -> int:
        return count_tokens(text)
