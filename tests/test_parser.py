"""Tests for file-type dispatch and text extraction."""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from unittest.mock import patch

import pytest

from docretrieval.errors import ParseError
from docretrieval.ingestion.parser import DocumentParser
from docretrieval.models import ParsedDocument


@pytest.fixture
def parser() -> DocumentParser:
    return DocumentParser()


class TestIsSupported:
    @pytest.mark.parametrize(
        "name", ["a.txt", "a.md", "a.markdown", "a.json", "a.csv", "a.HTML", "a.htm", "a.pdf", "a.docx"]
    )
    def test_supported(self, parser: DocumentParser, name: str) -> None:
        assert parser.is_supported(Path(name))

    @pytest.mark.parametrize("name", ["a.png", "a.doc", "a.xlsx", "Makefile"])
    def test_unsupported(self, parser: DocumentParser, name: str) -> None:
        assert not parser.is_supported(Path(name))


class TestFingerprint:
    def test_fingerprint(self, parser: DocumentParser, tmp_path: Path) -> None:
        path = tmp_path / "Notes.MD"
        path.write_bytes(b"# Title\nbody")

        fingerprint = parser.fingerprint(path)

        assert fingerprint.path == path
        assert fingerprint.size == 12
        assert fingerprint.mtime == path.stat().st_mtime
        assert fingerprint.sha256 == hashlib.sha256(b"# Title\nbody").hexdigest()
        assert fingerprint.file_type == "md"

    def test_no_extension(self, parser: DocumentParser, tmp_path: Path) -> None:
        path = tmp_path / "README"
        path.write_text("x")

        assert parser.fingerprint(path).file_type == "unknown"


class TestExtract:
    """Test per-type extraction."""

    def test_text(self, parser: DocumentParser, tmp_path: Path) -> None:
        path = tmp_path / "letter.txt"
        path.write_text("\n  Sehr geehrte Damen und Herren  \n", encoding="utf-8")

        parsed = parser.extract(path)

        assert parsed.text == "Sehr geehrte Damen und Herren"
        assert parsed.title == "letter"
        assert parsed.metadata["file_type"] == "text"

    def test_invalid_utf8_is_replaced(self, parser: DocumentParser, tmp_path: Path) -> None:
        path = tmp_path / "broken.txt"
        path.write_bytes(b"caf\xe9 au lait")

        assert parser.extract(path).text == "caf\ufffd au lait"

    def test_json_is_pretty_printed(self, parser: DocumentParser, tmp_path: Path) -> None:
        path = tmp_path / "data.json"
        path.write_text('{"name": "Drohne", "weight": 249}')

        parsed = parser.extract(path)

        assert json.loads(parsed.text) == {"name": "Drohne", "weight": 249}
        assert '\n  "name": "Drohne"' in parsed.text
        assert parsed.metadata["keys"] == ["name", "weight"]

    def test_invalid_json(self, parser: DocumentParser, tmp_path: Path) -> None:
        path = tmp_path / "bad.json"
        path.write_text("{not json")

        with pytest.raises(ParseError, match="Invalid JSON") as excinfo:
            parser.extract(path)
        assert excinfo.value.path == path

    def test_csv(self, parser: DocumentParser, tmp_path: Path) -> None:
        path = tmp_path / "table.csv"
        path.write_text("name,amount\nAlice,10\n\nBob,20\n")

        parsed = parser.extract(path)

        assert parsed.text == "Headers: name,amount\nRow 1: Alice,10\nRow 2: Bob,20"
        assert parsed.metadata["row_count"] == 2

    def test_html(self, parser: DocumentParser, tmp_path: Path) -> None:
        path = tmp_path / "page.html"
        path.write_text(
            "<html><head><title>Flight Report</title><style>p { color: red; }</style></head>"
            "<body><script>var x = 1;</script><p>Hello   <b>world</b></p></body></html>"
        )

        parsed = parser.extract(path)

        assert parsed.title == "Flight Report"
        assert "Hello world" in parsed.text
        assert "var x" not in parsed.text
        assert "color" not in parsed.text

    def test_html_without_title(self, parser: DocumentParser, tmp_path: Path) -> None:
        path = tmp_path / "fragment.htm"
        path.write_text("<p>Only a paragraph</p>")

        parsed = parser.extract(path)

        assert parsed.title == "fragment"
        assert parsed.text == "Only a paragraph"

    def test_unknown_extension_read_as_text(self, parser: DocumentParser, tmp_path: Path) -> None:
        path = tmp_path / "notes.log"
        path.write_text("plain log line")

        assert parser.extract(path).text == "plain log line"

    def test_missing_file(self, parser: DocumentParser, tmp_path: Path) -> None:
        with pytest.raises(ParseError):
            parser.extract(tmp_path / "missing.txt")

    def test_pdf_dispatch(self, parser: DocumentParser, tmp_path: Path) -> None:
        path = tmp_path / "scan.pdf"
        expected = ParsedDocument(text="pdf text", title="scan")
        with patch.dict(parser._handlers, {".pdf": lambda p: expected}):
            assert parser.extract(path) is expected


class TestChunking:
    def test_chunk_uses_window(self, parser: DocumentParser) -> None:
        text = "Sentence one is short. " * 100

        chunks = parser.chunk(text, 200, 20)

        assert len(chunks) > 1
        assert all(len(chunk) <= 200 for chunk in chunks)

    def test_count_tokens(self, parser: DocumentParser) -> None:
        assert parser.count_tokens("a b  c") == 3
