"""Text helpers: boundary-aware chunking, token counts and fuzzy matching."""

from __future__ import annotations

import re
from typing import Iterable, List, Set

_SENTENCE_TERMINATORS = ".?!"
_WHITESPACE = " \t\n\r\f\v"
_WORD_RE = re.compile(r"\w+")


def chunk_text(text: str, *, max_chars: int = 1200, overlap: int = 150) -> List[str]:
    """Split text into overlapping fragments that end on natural boundaries.

    A window of ``max_chars`` slides over the text. Unless the window already
    reaches the end of the text, its right edge is pulled back to the last
    sentence terminator inside the window, or failing that (no terminator in
    the second half of the window) to the last whitespace. The next window
    starts ``overlap`` characters before the cut.

    Blank fragments are never returned; blank input yields an empty list.
    """
    if max_chars <= 0:
        raise ValueError("max_chars must be positive")
    if overlap < 0 or overlap >= max_chars:
        raise ValueError("overlap must be between 0 and max_chars - 1")

    length = len(text)
    if length <= max_chars:
        stripped = text.strip()
        return [stripped] if stripped else []

    half = max_chars / 2
    chunks: List[str] = []
    start = 0
    while start < length:
        end = start + max_chars
        if end >= length:
            end = length
        else:
            window = text[start:end]
            cut = max(window.rfind(char) for char in _SENTENCE_TERMINATORS)
            if cut > half:
                end = start + cut + 1
            else:
                space = max(window.rfind(char) for char in _WHITESPACE)
                if space > half:
                    end = start + space

        piece = text[start:end].strip()
        if piece:
            chunks.append(piece)
        if end >= length:
            break

        next_start = max(end - overlap, 0)
        # Always make progress, even with a large overlap and an early cut.
        start = next_start if next_start > start else end

    return chunks


def count_tokens(text: str) -> int:
    """Approximate token count: whitespace-delimited words."""
    return len(text.split())


def normalize_whitespace(lines: Iterable[str]) -> str:
    """Collapse whitespace and join lines."""
    return "\n".join(line.strip() for line in lines if line.strip())


def collapse_whitespace(text: str) -> str:
    return " ".join(text.split())


def trigrams(word: str) -> Set[str]:
    """Trigrams of a single word, padded the way pg_trgm pads them."""
    padded = f"  {word.lower()} "
    return {padded[i : i + 3] for i in range(len(padded) - 2)}


def word_similarity(query: str, text: str) -> float:
    """Word-level trigram similarity of ``query`` against the best-matching
    run of words in ``text``.

    Returns the share of the query's trigrams found in the closest run of
    consecutive words of ``text`` (run length = number of query words), in
    [0, 1]. Tolerates typos such as ``Brandhahn`` vs ``Brandhan``.
    """
    query_words = _WORD_RE.findall(query.lower())
    if not query_words or not text:
        return 0.0
    wanted: Set[str] = set()
    for word in query_words:
        wanted |= trigrams(word)

    words = _WORD_RE.findall(text.lower())
    if not words:
        return 0.0

    hits = [trigrams(word) & wanted for word in words]
    width = len(query_words)
    best = 0
    for i in range(len(hits)):
        shared: Set[str] = set()
        for part in hits[i : i + width]:
            shared |= part
        if len(shared) > best:
            best = len(shared)
            if best == len(wanted):
                break
    return best / len(wanted)
