"""Tests for text utility functions."""

from __future__ import annotations

import pytest

from docretrieval.utils.text import (
    chunk_text,
    collapse_whitespace,
    count_tokens,
    normalize_whitespace,
    trigrams,
    word_similarity,
)


class TestChunkText:
    """Test chunk_text function."""

    def test_chunk_short_text(self) -> None:
        """Should return the trimmed input as the only chunk."""
        chunks = chunk_text("  Short text  \n", max_chars=100, overlap=10)

        assert chunks == ["Short text"]

    def test_chunk_empty_text(self) -> None:
        assert chunk_text("", max_chars=100, overlap=10) == []
        assert chunk_text("   \n\t", max_chars=100, overlap=10) == []

    def test_chunk_long_text(self) -> None:
        """Should split long text into chunks no longer than max_chars."""
        chunks = chunk_text("a" * 500, max_chars=100, overlap=20)

        assert len(chunks) > 1
        for chunk in chunks:
            assert len(chunk) <= 100

    def test_chunk_overlap(self) -> None:
        """Consecutive hard-cut chunks share ``overlap`` characters."""
        text = "0123456789" * 20
        chunks = chunk_text(text, max_chars=100, overlap=20)

        assert len(chunks) >= 2
        assert chunks[0][-20:] == chunks[1][:20]

    def test_prefers_sentence_boundaries(self) -> None:
        text = "First sentence is here. " * 10
        chunks = chunk_text(text, max_chars=100, overlap=10)

        assert len(chunks) > 1
        assert chunks[0].endswith("here.")
        assert len(chunks[0]) <= 100

    def test_falls_back_to_word_boundaries(self) -> None:
        text = "word " * 50
        chunks = chunk_text(text, max_chars=40, overlap=5)

        assert len(chunks) > 1
        for chunk in chunks:
            assert set(chunk.split()) == {"word"}

    def test_no_blank_chunks(self) -> None:
        text = "a" + " " * 300 + "b"
        chunks = chunk_text(text, max_chars=100, overlap=10)

        assert chunks[0] == "a"
        assert chunks[-1].endswith("b")
        assert all(chunk.strip() for chunk in chunks)

    def test_tail_is_not_duplicated(self) -> None:
        text = "x" * 250
        chunks = chunk_text(text, max_chars=100, overlap=10)

        assert chunks[-1] != chunks[-2]
        assert "".join(chunk[10:] if i else chunk for i, chunk in enumerate(chunks)) == text

    @pytest.mark.parametrize("max_chars, overlap", [(0, 0), (100, 100), (100, -1)])
    def test_invalid_parameters(self, max_chars: int, overlap: int) -> None:
        with pytest.raises(ValueError):
            chunk_text("text", max_chars=max_chars, overlap=overlap)


class TestWhitespaceHelpers:
    def test_normalize_whitespace(self) -> None:
        assert normalize_whitespace(["  Line 1  ", "", "   ", "Line 2"]) == "Line 1\nLine 2"

    def test_collapse_whitespace(self) -> None:
        assert collapse_whitespace(" a \n\n b\tc ") == "a b c"

    def test_count_tokens(self) -> None:
        assert count_tokens("one two  three\nfour") == 4
        assert count_tokens("") == 0


class TestWordSimilarity:
    """Test the trigram-based fuzzy matcher."""

    def test_trigrams_are_padded(self) -> None:
        assert trigrams("Cat") == {"  c", " ca", "cat", "at "}

    def test_identical_phrase(self) -> None:
        assert word_similarity("flight log", "my flight log book") == 1.0

    def test_tolerates_typos(self) -> None:
        score = word_similarity("Brandhan", "Kontakt: Herr Brandhahn, Berlin")

        assert 0.7 < score < 1.0

    def test_unrelated_text(self) -> None:
        assert word_similarity("xyz", "hello world") == 0.0

    def test_empty_inputs(self) -> None:
        assert word_similarity("", "text") == 0.0
        assert word_similarity("query", "") == 0.0
