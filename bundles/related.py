"""Related-bundle scoring.

A candidate scores 0.4 for the same occasion, 0.3 for the same humor style,
0.2 for the same price range tier and up to 0.1 for recipient keyword overlap
(Jaccard). Works on anything exposing those four attributes, ORM rows included.
"""
from __future__ import annotations

from typing import Any, Iterable, TypeVar

OCCASION_WEIGHT = 0.4
HUMOR_STYLE_WEIGHT = 0.3
PRICE_RANGE_WEIGHT = 0.2
KEYWORDS_WEIGHT = 0.1
MAX_CANDIDATES = 50

BundleT = TypeVar("BundleT")


def keyword_similarity(left: str | None, right: str | None) -> float:
    a, b = set((left or "").split()), set((right or "").split())
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def _value(item: Any, name: str):
    value = getattr(item, name, None)
    return getattr(value, "value", value)


def related_score(source: Any, candidate: Any) -> float:
    score = 0.0
    occasion = _value(source, "occasion")
    if occasion and _value(candidate, "occasion") == occasion:
        score += OCCASION_WEIGHT
    if _value(candidate, "humor_style") == _value(source, "humor_style"):
        score += HUMOR_STYLE_WEIGHT
    price_range = _value(source, "price_range")
    if price_range and _value(candidate, "price_range") == price_range:
        score += PRICE_RANGE_WEIGHT
    score += KEYWORDS_WEIGHT * keyword_similarity(
        _value(source, "recipient_keywords"), _value(candidate, "recipient_keywords")
    )
    return round(score, 4)


def rank_related(source: Any, candidates: Iterable[BundleT], limit: int = 4) -> list[tuple[float, BundleT]]:
    """Best `limit` candidates by score; ties keep candidate order."""
    scored = [(related_score(source, c), c) for c in candidates if _value(c, "slug") != _value(source, "slug")]
    scored.sort(key=lambda pair: pair[0], reverse=True)
    return scored[: max(limit, 0)]
