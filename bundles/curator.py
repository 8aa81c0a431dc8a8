from __future__ import annotations

import json
import logging
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from app.core.logic_config import PipelineSettings
from app.prompts import registry
from app.services.llm.interface import LLMError
from app.services.llm.structured import StructuredLLM, sanitize_input

from .errors import CurationFailed, CurationUnderfilled
from .models import CandidateProduct, CuratedProduct, GiftConcept, PriceRange

logger = logging.getLogger(__name__)


class Selection(BaseModel):
    id: str
    concept: Optional[int] = None

    @field_validator("id", mode="before")
    @classmethod
    def _numeric_id(cls, value):
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("concept", mode="before")
    @classmethod
    def _concept_index(cls, value):
        # anything but an index (e.g. the concept title) falls back to the candidate's concept
        if isinstance(value, bool):
            return None
        try:
            return int(value) if value is not None else None
        except (TypeError, ValueError):
            return None


class CurationResponse(BaseModel):
    # entries are validated one by one in Curator.curate
    selections: list[Any] = Field(default_factory=list)


def _format_concepts(concepts: list[GiftConcept]) -> str:
    return json.dumps(
        [{"concept": c.order, "title": c.text, "description": c.description or ""} for c in concepts],
        ensure_ascii=False,
        indent=2,
    )


def _format_products(pool: list[CandidateProduct]) -> str:
    return json.dumps(
        [
            {
                "id": c.identity_key,
                "title": c.title,
                "price": f"{c.price} {c.currency}" if c.price is not None else None,
                "source": c.source.value,
                "concepts": c.concept_orders,
            }
            for c in pool
        ],
        ensure_ascii=False,
        indent=2,
    )


class Curator:
    """
    Final selection over the bounded candidate pool.

    The model is asked once (no retry) and its answer is revalidated against
    the pool: unknown or repeated ids are dropped and ranks are reassigned
    densely from 0.
    """

    def __init__(self, llm: StructuredLLM, config: PipelineSettings, model: Optional[str] = None):
        self.llm = llm
        self.config = config
        self.model = model

    async def curate(
        self,
        recipient_description: str,
        concepts: list[GiftConcept],
        pool: list[CandidateProduct],
        price_range: Optional[PriceRange] = None,
    ) -> list[CuratedProduct]:
        target = self.config.products_per_bundle
        minimum = self.config.min_viable_products

        try:
            response = await self.llm.generate(
                registry.render(
                    "curate_products",
                    recipient=sanitize_input(recipient_description),
                    budget=price_range.describe() if price_range else "no budget given",
                    concepts_json=_format_concepts(concepts),
                    product_count=len(pool),
                    products_json=_format_products(pool),
                    target=target,
                ),
                CurationResponse,
                system_prompt=registry.get_prompt("system_curator"),
                model=self.model,
                timeout_s=self.config.llm_timeout_s,
                temperature=0.3,
                call_type="curate_products",
            )
        except LLMError as exc:
            raise CurationFailed(f"Curator call failed: {exc}", {"pool_size": len(pool)}) from exc

        by_key = {c.identity_key.casefold(): c for c in pool}
        by_order = {c.order: c for c in concepts}

        curated: list[CuratedProduct] = []
        seen: set[str] = set()
        unknown: list[str] = []
        malformed = 0
        for entry in response.selections:
            try:
                selection = Selection.model_validate(entry)
            except ValidationError:
                malformed += 1
                continue
            key = selection.id.strip().casefold()
            candidate = by_key.get(key)
            if candidate is None:
                unknown.append(selection.id)
                continue
            if key in seen:
                continue
            seen.add(key)

            matched = by_order.get(selection.concept) if selection.concept is not None else None
            if matched is None:
                matched = next((by_order[o] for o in candidate.concept_orders if o in by_order), concepts[0])
            curated.append(CuratedProduct(product=candidate, rank=len(curated), matched_concept=matched))
            if len(curated) >= target:
                break

        if unknown:
            logger.warning("Curator returned %s unknown product ids, discarded: %s", len(unknown), unknown[:10])
        if malformed:
            logger.warning("Curator returned %s malformed selections, discarded", malformed)

        if len(curated) < minimum:
            raise CurationUnderfilled(
                f"Curator selected {len(curated)} valid products, need at least {minimum}",
                {"selected": len(curated), "minimum": minimum, "discarded": len(unknown) + malformed},
            )

        logger.info("Curated %s/%s products from a pool of %s", len(curated), target, len(pool))
        return curated
