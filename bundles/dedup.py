"""Candidate pool construction: identity resolution, merging and capping.

Identity keys
    ``amazon:<asin>`` / ``etsy:<listing_id>`` when the marketplace id looks
    stable, otherwise ``<source>:t:<normalized title>``.

Fuzzy title matching
    Two records of the same source where at least one has no stable id are
    the same product when their normalized titles differ in length by at most
    ``title_length_tolerance`` (relative to the longer title) and
    ``difflib.SequenceMatcher.ratio()`` is at least
    ``title_similarity_threshold``.
"""
from __future__ import annotations

import logging
import re
from difflib import SequenceMatcher
from typing import Iterable, Optional

from app.core.logic_config import PipelineSettings

from .images import clean_image_url
from .models import CandidateProduct, GiftConcept, RetrievedProduct, Source

logger = logging.getLogger(__name__)

_STABLE_IDS = {
    Source.AMAZON: re.compile(r"^[A-Z0-9]{10}$"),
    Source.ETSY: re.compile(r"^\d+$"),
}
_PUNCTUATION = re.compile(r"[^\w\s]", re.UNICODE)


def normalize_title(title: str) -> str:
    text = _PUNCTUATION.sub(" ", (title or "").casefold()).replace("_", " ")
    return " ".join(text.split())


def has_stable_id(source: Source, source_id: Optional[str]) -> bool:
    pattern = _STABLE_IDS.get(source)
    return bool(source_id and pattern and pattern.match(source_id.strip()))


def identity_key(source: Source, source_id: Optional[str], title: str) -> str:
    if has_stable_id(source, source_id):
        return f"{source.value}:{source_id.strip().lower()}"
    return f"{source.value}:t:{normalize_title(title)}"


def _is_title_key(key: str) -> bool:
    return ":t:" in key


def titles_match(left: str, right: str, config: PipelineSettings) -> bool:
    a, b = normalize_title(left), normalize_title(right)
    if not a or not b:
        return False
    if a == b:
        return True
    longer = max(len(a), len(b))
    if abs(len(a) - len(b)) / longer > config.title_length_tolerance:
        return False
    matcher = SequenceMatcher(None, a, b)
    if matcher.quick_ratio() < config.title_similarity_threshold:
        return False
    return matcher.ratio() >= config.title_similarity_threshold


def candidates_from_retrieved(retrieved: Iterable[RetrievedProduct]) -> list[CandidateProduct]:
    """One candidate per raw record, with cleaned image and identity key, in arrival order."""
    candidates: list[CandidateProduct] = []
    for position, item in enumerate(retrieved):
        raw = item.product
        if not raw.title or not raw.title.strip() or not raw.url:
            logger.debug("Skipping %s record without title or url: %r", raw.source.value, raw.source_id)
            continue
        candidates.append(
            CandidateProduct(
                identity_key=identity_key(raw.source, raw.source_id, raw.title),
                source=raw.source,
                source_id=raw.source_id,
                title=raw.title.strip(),
                image_url=clean_image_url(raw.image_url, raw.source),
                price=raw.price,
                currency=raw.currency,
                url=raw.url,
                concept_orders=[item.concept.order],
                queries=[item.query.text],
                first_seen=position,
            )
        )
    return candidates


def _union(first: list, second: list) -> list:
    merged = list(first)
    for value in second:
        if value not in merged:
            merged.append(value)
    return merged


def merge_candidates(existing: CandidateProduct, incoming: CandidateProduct) -> CandidateProduct:
    """Keeps the more complete record; ties keep the earlier one. Provenance is unioned."""
    base = incoming if incoming.completeness > existing.completeness else existing
    other = existing if base is incoming else incoming
    key, source_id = base.identity_key, base.source_id
    if _is_title_key(key) and not _is_title_key(other.identity_key):
        key, source_id = other.identity_key, other.source_id

    return base.model_copy(
        update={
            "identity_key": key,
            "source_id": source_id,
            "concept_orders": _union(existing.concept_orders, incoming.concept_orders),
            "queries": _union(existing.queries, incoming.queries),
            "first_seen": min(existing.first_seen, incoming.first_seen),
        }
    )


def _find_match(pool: list[CandidateProduct], candidate: CandidateProduct, config: PipelineSettings) -> Optional[int]:
    for idx, existing in enumerate(pool):
        if existing.identity_key == candidate.identity_key:
            return idx
    candidate_stable = not _is_title_key(candidate.identity_key)
    for idx, existing in enumerate(pool):
        if existing.source != candidate.source:
            continue
        if candidate_stable and not _is_title_key(existing.identity_key):
            continue
        if titles_match(existing.title, candidate.title, config):
            return idx
    return None


def _collapse(candidates: list[CandidateProduct], config: PipelineSettings) -> list[CandidateProduct]:
    pool: list[CandidateProduct] = []
    for candidate in candidates:
        idx = _find_match(pool, candidate, config)
        if idx is None:
            pool.append(candidate)
        else:
            pool[idx] = merge_candidates(pool[idx], candidate)
    return pool


def deduplicate(candidates: list[CandidateProduct], config: PipelineSettings) -> list[CandidateProduct]:
    """
    Collapses duplicates until no pair matches any more, so the result is a
    fixed point: deduplicating it again changes nothing. Output is ordered by
    first appearance.
    """
    pool = list(candidates)
    while True:
        collapsed = _collapse(pool, config)
        if len(collapsed) == len(pool):
            break
        pool = collapsed
    return sorted(collapsed, key=lambda c: c.first_seen)


def cap_candidates(
    pool: list[CandidateProduct], concept_orders: Iterable[int], limit: int
) -> list[CandidateProduct]:
    """
    Deterministic cut down to ``limit``: first one candidate per concept (in
    concept order, skipping concepts an earlier pick already covers), then
    the remaining slots by first appearance.
    """
    if len(pool) <= limit:
        return list(pool)

    selected: set[int] = set()
    covered: set[int] = set()
    for order in concept_orders:
        if len(selected) >= limit:
            break
        if order in covered:
            continue
        for idx, candidate in enumerate(pool):
            if idx not in selected and order in candidate.concept_orders:
                selected.add(idx)
                covered.update(candidate.concept_orders)
                break

    for idx in range(len(pool)):
        if len(selected) >= limit:
            break
        selected.add(idx)

    return [pool[idx] for idx in sorted(selected)]


def build_candidate_pool(
    retrieved: list[RetrievedProduct], concepts: list[GiftConcept], config: PipelineSettings
) -> list[CandidateProduct]:
    candidates = candidates_from_retrieved(retrieved)
    unique = deduplicate(candidates, config)
    pool = cap_candidates(unique, [c.order for c in concepts], config.max_products_before_llm)
    logger.info(
        "Candidate pool: raw=%s unique=%s capped=%s", len(candidates), len(unique), len(pool)
    )
    return pool
