"""Tests for DOCX text extraction."""

from __future__ import annotations

from pathlib import Path

import docx
import pytest

from docretrieval.errors import ParseError
from docretrieval.ingestion.office import extract_docx


def _write_docx(path: Path) -> None:
    document = docx.Document()
    document.core_properties.title = "Wartungsvertrag"
    document.core_properties.author = "Jane Doe"
    document.add_paragraph("Dieser Vertrag regelt die Wartung.")
    document.add_paragraph("")
    table = document.add_table(rows=1, cols=2)
    table.rows[0].cells[0].text = "Laufzeit"
    table.rows[0].cells[1].text = "12 Monate"
    document.save(str(path))


class TestExtractDocx:
    def test_paragraphs_and_tables(self, tmp_path: Path) -> None:
        path = tmp_path / "contract.docx"
        _write_docx(path)

        parsed = extract_docx(path)

        assert parsed.text == "Dieser Vertrag regelt die Wartung.\nLaufzeit | 12 Monate"
        assert parsed.title == "Wartungsvertrag"
        assert parsed.metadata["author"] == "Jane Doe"
        assert parsed.metadata["file_type"] == "docx"

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.docx"
        path.write_bytes(b"")

        with pytest.raises(ParseError, match="empty or corrupted"):
            extract_docx(path)

    def test_corrupted_file(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.docx"
        path.write_bytes(b"this is not a zip archive")

        with pytest.raises(ParseError, match="DOCX parsing failed"):
            extract_docx(path)
