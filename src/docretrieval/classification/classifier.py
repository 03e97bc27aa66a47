"""Rule-based document classification and importance scoring."""

from __future__ import annotations

import logging
import re
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Tuple

from docretrieval.classification import rules
from docretrieval.models import Classification, DocumentRecord

LOGGER = logging.getLogger(__name__)

MIN_IMPORTANCE = 0.1
MAX_IMPORTANCE = 2.0
LARGE_FILE_BYTES = 100_000
SUMMARY_CHARS = 300
MAX_KEYWORDS = 10

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_WORD_COUNT_RES = {
    word: re.compile(r"\b" + re.escape(word) + r"\b")
    for words in rules.LANGUAGE_MARKERS.values()
    for word in words
}


def fallback_classification(content: str) -> Classification:
    return Classification(
        document_type=rules.DEFAULT_TYPE,
        category=rules.DEFAULT_CATEGORY,
        language="unknown",
        summary=_truncated(content),
        keywords=[],
        extracted_data={},
        importance=1.0,
    )


def _truncated(content: str, limit: int = 200) -> str:
    return content[:limit] + "..." if len(content) > limit else content


class DocumentClassifier:
    """Derives type, category, language, summary, keywords, structured data
    and an importance score from a document's text and file metadata.

    Importance counteracts volume: a pile of routine invoices should not
    statistically bury a single certificate in later ranking.
    """

    def classify(
        self, document: DocumentRecord, content: str, *, now: datetime | None = None
    ) -> Classification:
        LOGGER.debug("Classifying document: %s", document.path)
        try:
            document_type, category = self.detect_type(document.path.name, content)
            extracted = self.extract_structured_data(content, document_type)
            classification = Classification(
                document_type=document_type,
                category=category,
                language=self.detect_language(content),
                summary=self.summarize(content),
                keywords=self.extract_keywords(content),
                extracted_data=extracted,
                importance=self.importance(document, document_type, category, extracted, now=now),
            )
        except Exception as exc:
            LOGGER.error("Failed to classify document %s: %s", document.path, exc)
            return fallback_classification(content)

        LOGGER.info(
            "Document classified as: %s (%s) - Importance: %.2f",
            classification.document_type,
            classification.category,
            classification.importance,
        )
        return classification

    def detect_type(self, filename: str, content: str) -> Tuple[str, str]:
        rule = rules.find_rule(filename.lower(), content.lower())
        if rule is None:
            return rules.DEFAULT_TYPE, rules.DEFAULT_CATEGORY
        return rule.document_type, rule.category

    def detect_language(self, content: str) -> str:
        lowered = content.lower()
        scores = {
            language: sum(len(_WORD_COUNT_RES[word].findall(lowered)) for word in words)
            for language, words in rules.LANGUAGE_MARKERS.items()
        }
        ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
        best_language, best_score = ranked[0]
        if best_score == 0 or (len(ranked) > 1 and ranked[1][1] == best_score):
            return "unknown"
        return best_language

    def extract_keywords(self, content: str) -> List[str]:
        words = _PUNCTUATION_RE.sub(" ", content.lower()).split()
        counts = Counter(w for w in words if len(w) > 3 and w not in rules.STOP_WORDS)
        return [word for word, _ in counts.most_common(MAX_KEYWORDS)]

    def summarize(self, content: str) -> str:
        """Leading sentences up to ~300 characters; extractive only."""
        sentences = [s.strip() for s in _SENTENCE_SPLIT_RE.split(content) if len(s.strip()) > 20]
        if not sentences:
            return _truncated(content)
        summary = ""
        for sentence in sentences[:3]:
            if summary and len(summary) + len(sentence) > SUMMARY_CHARS:
                break
            summary += sentence[:SUMMARY_CHARS] + ". "
        return summary.strip()

    def extract_structured_data(self, content: str, document_type: str) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        dates = rules.DATE_RE.findall(content)
        if dates:
            data["dates"] = dates
        amounts = [first or second for first, second in rules.AMOUNT_RE.findall(content)]
        if amounts:
            data["amounts"] = amounts
        emails = rules.EMAIL_RE.findall(content)
        if emails:
            data["emails"] = emails
        phones = [match.strip() for match in rules.PHONE_RE.findall(content)]
        if phones:
            data["phones"] = phones

        identifier = rules.TYPE_IDENTIFIERS.get(document_type)
        if identifier is not None:
            key, pattern = identifier
            numbers = pattern.findall(content)
            if numbers:
                data[key] = numbers
        return data

    def importance(
        self,
        document: DocumentRecord,
        document_type: str,
        category: str,
        extracted_data: Dict[str, Any],
        *,
        now: datetime | None = None,
    ) -> float:
        score = 1.0
        score *= rules.TYPE_WEIGHTS.get(document_type, 1.0)
        score *= rules.CATEGORY_WEIGHTS.get(category, 1.0)

        if document.size > LARGE_FILE_BYTES:
            score *= 1.1

        now = now or datetime.now()
        age_days = (now - document.modified_at).total_seconds() / 86400
        if age_days < 30:
            score *= 1.2
        elif age_days > 365:
            score *= 0.9

        if len(extracted_data) > 3:
            score *= 1.1

        return max(MIN_IMPORTANCE, min(MAX_IMPORTANCE, score))
