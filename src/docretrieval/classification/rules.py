"""Rule tables used by the document classifier.

Terms cover German and English documents.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Tuple

INVOICE_TERMS = ("rechnung", "invoice")
CONTRACT_TERMS = ("vertrag", "contract")
CERTIFICATE_TERMS = ("zertifikat", "certificate", "nachweis")
REPORT_TERMS = ("bericht", "report")
LETTER_FILENAME_TERMS = ("brief", "letter")
LETTER_CONTENT_TERMS = ("sehr geehrte", "dear")
MINUTES_TERMS = ("protokoll", "minutes")
AVIATION_TERMS = ("fernpilot", "drohne", "drone", "pilot", "luftfahrt", "aviation")
TELECOM_TERMS = ("telekom", "telecom", "deutsche telekom", "vodafone", "mobilfunk")


@dataclass(frozen=True, slots=True)
class Rule:
    """First-match-wins classification rule.

    Every group in ``all_of`` must match for the rule to apply. A group matches
    when one of its terms occurs in the filename (as a substring) or starts a
    word of the content. ``filename_only`` and ``content_only`` hold positions
    of groups restricted to one of the two.
    """

    document_type: str
    category: str
    all_of: Tuple[Tuple[str, ...], ...]
    filename_only: FrozenSet[int] = frozenset()
    content_only: FrozenSet[int] = frozenset()


RULES: Tuple[Rule, ...] = (
    Rule("invoice", "telecommunications", (INVOICE_TERMS, TELECOM_TERMS)),
    Rule("invoice", "financial", (INVOICE_TERMS,)),
    Rule("contract", "legal", (CONTRACT_TERMS,)),
    Rule("certificate", "aviation", (CERTIFICATE_TERMS, AVIATION_TERMS)),
    Rule("certificate", "legal", (CERTIFICATE_TERMS,)),
    Rule("report", "technical", (REPORT_TERMS,)),
    Rule("letter", "correspondence", (LETTER_FILENAME_TERMS,), filename_only=frozenset({0})),
    Rule("letter", "correspondence", (LETTER_CONTENT_TERMS,), content_only=frozenset({0})),
    Rule("minutes", "administrative", (MINUTES_TERMS,)),
    Rule("certificate", "aviation", (AVIATION_TERMS,), content_only=frozenset({0})),
    Rule("invoice", "telecommunications", (TELECOM_TERMS,), content_only=frozenset({0})),
)

DEFAULT_TYPE = "document"
DEFAULT_CATEGORY = "general"

TYPE_WEIGHTS: Dict[str, float] = {
    "certificate": 1.8,
    "contract": 1.6,
    "report": 1.4,
    "letter": 1.3,
    "invoice": 1.2,
    "minutes": 1.0,
    "document": 1.0,
}

CATEGORY_WEIGHTS: Dict[str, float] = {
    "aviation": 2.0,
    "legal": 1.7,
    "technical": 1.4,
    "financial": 1.3,
    "administrative": 1.0,
    "correspondence": 1.0,
    "general": 1.0,
    "telecommunications": 0.8,
}

LANGUAGE_MARKERS: Dict[str, Tuple[str, ...]] = {
    "de": (
        "der", "die", "das", "und", "oder", "mit", "von", "zu", "auf", "für", "ist",
        "sind", "haben", "werden", "wurde", "rechnung", "betrag", "datum",
    ),
    "en": (
        "the", "and", "or", "with", "from", "to", "on", "for", "is", "are", "have",
        "will", "was", "invoice", "amount", "date",
    ),
}

STOP_WORDS: FrozenSet[str] = frozenset(
    {
        # German
        "der", "die", "das", "und", "oder", "aber", "mit", "von", "zu", "auf", "für",
        "ist", "sind", "haben", "werden", "wurde", "wird", "sein", "eine", "einer",
        "eines", "dem", "den", "des", "nicht", "auch", "sich", "wenn", "noch", "nach",
        # English
        "the", "and", "or", "but", "with", "from", "to", "on", "for", "is", "are",
        "have", "will", "was", "were", "been", "being", "a", "an", "this", "that",
        "these", "those", "which", "their", "there", "would", "should", "could",
        "into", "about",
    }
)

DATE_RE = re.compile(r"\b\d{1,2}[.\-/]\d{1,2}[.\-/]\d{4}\b|\b\d{4}-\d{2}-\d{2}\b")
AMOUNT_RE = re.compile(
    r"(\d+(?:[.,]\d{3})*[.,]\d{2})\s*(?:€|EUR|\$|USD)|(?:€|EUR|\$|USD)\s*(\d+(?:[.,]\d{3})*[.,]\d{2})"
)
EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
PHONE_RE = re.compile(r"(?:\+49|\b0)\s*\d{2,4}[\s/-]*\d{6,8}\b")
INVOICE_NUMBER_RE = re.compile(
    r"(?:rechnungs?(?:nummer|nr\.?)?|invoice(?:\s+(?:number|no\.?))?)[\s\-#:]*([A-Z0-9][\w\-/]*\d[\w\-/]*)",
    re.IGNORECASE,
)
CERTIFICATE_NUMBER_RE = re.compile(
    r"(?:zertifikat|certificate|nachweis)(?:\s*(?:nummer|nr\.?|number|no\.?))?[\s\-#:]*([A-Z0-9][\w\-/]*\d[\w\-/]*)",
    re.IGNORECASE,
)

TYPE_IDENTIFIERS: Dict[str, Tuple[str, "re.Pattern[str]"]] = {
    "invoice": ("invoice_numbers", INVOICE_NUMBER_RE),
    "certificate": ("certificate_numbers", CERTIFICATE_NUMBER_RE),
}


def term_pattern(term: str) -> "re.Pattern[str]":
    return re.compile(r"(?<!\w)" + re.escape(term))


def find_rule(filename: str, content: str) -> Optional[Rule]:
    """Return the first rule whose term groups all match, or None."""
    for rule in RULES:
        matched = True
        for position, group in enumerate(rule.all_of):
            in_name = position not in rule.content_only and any(term in filename for term in group)
            in_content = position not in rule.filename_only and _starts_any_word(content, group)
            if not (in_name or in_content):
                matched = False
                break
        if matched:
            return rule
    return None


_PATTERNS: Dict[str, "re.Pattern[str]"] = {}


def _starts_any_word(haystack: str, terms: Tuple[str, ...]) -> bool:
    for term in terms:
        pattern = _PATTERNS.get(term)
        if pattern is None:
            pattern = _PATTERNS[term] = term_pattern(term)
        if pattern.search(haystack):
            return True
    return False
