"""Scoring, diversity filtering and channel combination for hybrid search.

Everything here is pure: functions take candidates and a
:class:`~docretrieval.config.RankingConfig` and return new lists.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import replace
from typing import Dict, Iterable, List

from docretrieval.config import RankingConfig
from docretrieval.models import SearchResult

LOGGER = logging.getLogger(__name__)


def fulltext_rank(bm25: float | None) -> float:
    """Map an FTS5 bm25 value (lower is better) into [0, 1)."""
    if bm25 is None:
        return 0.0
    strength = max(-bm25, 0.0)
    return strength / (1.0 + strength)


def keyword_score(
    bm25: float | None, substring_match: bool, trigram: float, config: RankingConfig
) -> float:
    signal = max(
        fulltext_rank(bm25) * config.fulltext_weight,
        config.substring_score if substring_match else 0.0,
        (trigram or 0.0) * config.trigram_weight,
    )
    return config.keyword_base_score + signal


def enhanced_score(
    similarity: float, importance: float, access_count: int, config: RankingConfig
) -> float:
    access_boost = min(access_count * config.access_step, config.access_cap)
    return similarity * importance * (1.0 + access_boost)


def vector_pool_size(limit: int, config: RankingConfig) -> int:
    return min(limit * config.vector_pool_factor, config.vector_pool_cap)


def apply_diversity_filter(
    candidates: Iterable[SearchResult], limit: int, config: RankingConfig
) -> List[SearchResult]:
    """Admit candidates best-first while capping repeats of a category or type.

    Candidates above ``config.high_importance`` get wider caps and are
    admitted past them as long as the result list has room.
    """
    ordered = sorted(candidates, key=lambda item: item.score, reverse=True)
    categories: Counter[str] = Counter()
    types: Counter[str] = Counter()
    admitted: List[SearchResult] = []

    for candidate in ordered:
        if len(admitted) >= limit:
            break
        high = candidate.importance > config.high_importance
        max_category = math.ceil(
            limit * (config.high_category_fraction if high else config.category_fraction)
        )
        max_type = math.ceil(limit * (config.high_type_fraction if high else config.type_fraction))

        within_caps = (
            categories[candidate.category] < max_category
            and types[candidate.document_type] < max_type
        )
        if within_caps or high:
            admitted.append(candidate)
            categories[candidate.category] += 1
            types[candidate.document_type] += 1

    LOGGER.debug(
        "Applied diversity filtering: %s -> %s results %s",
        len(ordered),
        len(admitted),
        dict(categories),
    )
    return admitted


def combine_results(
    keyword_hits: Iterable[SearchResult],
    vector_hits: Iterable[SearchResult],
    limit: int,
    config: RankingConfig,
) -> List[SearchResult]:
    """Merge both channels into one ranked list.

    Keyword hits come first with a boost. A vector hit for a chunk already
    present adds a bonus to that entry instead of appearing twice.
    """
    combined: Dict[int, SearchResult] = {}
    for hit in keyword_hits:
        if hit.chunk_id in combined:
            continue
        combined[hit.chunk_id] = replace(hit, score=hit.score * config.keyword_boost)

    for hit in vector_hits:
        existing = combined.get(hit.chunk_id)
        if existing is None:
            combined[hit.chunk_id] = replace(hit)
        else:
            existing.score += hit.score * config.duplicate_bonus
            existing.channel = "hybrid"

    ranked = sorted(combined.values(), key=lambda item: item.score, reverse=True)
    return ranked[:limit]
