from __future__ import annotations

import json
import logging
from typing import Optional

from pydantic import BaseModel, Field

from app.core.logic_config import PipelineSettings
from app.prompts import registry
from app.services.llm.interface import LLMError
from app.services.llm.structured import StructuredLLM, sanitize_input

from .errors import ConceptGenerationFailed
from .models import GiftConcept, HumorStyle, PriceRange

logger = logging.getLogger(__name__)

STYLE_GUIDES = {
    HumorStyle.DAD_JOKE: "Use wholesome puns, groan-worthy wordplay, and family-friendly humor. Think classic dad jokes and corny one-liners.",
    HumorStyle.OFFICE_SAFE: "Keep it professional yet funny. Suitable for workplace gifts with clever wit but nothing offensive or inappropriate.",
    HumorStyle.EDGY: "Push boundaries with sarcastic, irreverent humor. Clever and bold, but not mean-spirited.",
    HumorStyle.PG: "Fun and lighthearted humor suitable for all ages. Playful and silly without any adult themes.",
}


class ConceptPayload(BaseModel):
    title: str = ""
    tagline: Optional[str] = None
    description: Optional[str] = None


class ConceptsResponse(BaseModel):
    concepts: list[ConceptPayload] = Field(default_factory=list)


def _concept_key(text: str) -> str:
    return " ".join(text.split()).casefold()


class ConceptGenerator:
    def __init__(self, llm: StructuredLLM, config: PipelineSettings, model: Optional[str] = None):
        self.llm = llm
        self.config = config
        self.model = model

    async def generate(
        self,
        recipient_description: str,
        humor_style: HumorStyle = HumorStyle.DAD_JOKE,
        occasion: Optional[str] = None,
        price_range: Optional[PriceRange] = None,
    ) -> list[GiftConcept]:
        """Returns exactly `concepts_count` distinct concepts or raises ConceptGenerationFailed."""
        target = self.config.concepts_count
        if not recipient_description or not recipient_description.strip():
            raise ConceptGenerationFailed("Recipient description is empty")

        collected: dict[str, ConceptPayload] = {}
        attempts = 1 + self.config.llm_retries
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            missing = target - len(collected)
            try:
                response = await self.llm.generate(
                    registry.render(
                        "generate_concepts",
                        count=missing,
                        recipient=sanitize_input(recipient_description),
                        occasion=sanitize_input(occasion) or "not specified",
                        humor_style=humor_style.value,
                        budget=price_range.describe() if price_range else "no budget given",
                        taken=", ".join(c.title for c in collected.values()) or "none",
                    ),
                    ConceptsResponse,
                    system_prompt=registry.render("system_concepts", style_guide=STYLE_GUIDES[humor_style]),
                    model=self.model,
                    timeout_s=self.config.llm_timeout_s,
                    call_type="generate_concepts",
                )
            except LLMError as exc:
                last_error = exc
                logger.warning("Concept generation attempt %s/%s failed: %s", attempt, attempts, exc)
                continue

            for payload in response.concepts:
                title = " ".join((payload.title or "").split())
                if not title:
                    continue
                key = _concept_key(title)
                if key not in collected:
                    collected[key] = payload.model_copy(update={"title": title})

            if len(collected) >= target:
                break
            logger.warning(
                "Concept generation attempt %s/%s returned %s/%s usable concepts",
                attempt,
                attempts,
                len(collected),
                target,
            )

        if len(collected) < target:
            raise ConceptGenerationFailed(
                f"Expected {target} concepts, got {len(collected)}",
                {"received": len(collected), "expected": target, "error": str(last_error) if last_error else None},
            )

        concepts = [
            GiftConcept(text=p.title, order=i, tagline=p.tagline, description=p.description)
            for i, p in enumerate(list(collected.values())[:target])
        ]
        logger.info("Generated concepts: %s", json.dumps([c.text for c in concepts], ensure_ascii=False))
        return concepts
