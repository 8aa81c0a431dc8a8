from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from pydantic import BaseModel, Field

from app.core.logic_config import PipelineSettings
from app.prompts import registry
from app.services.llm.interface import LLMError
from app.services.llm.structured import StructuredLLM, sanitize_input

from .errors import QueryExpansionFailed
from .models import GiftConcept, SearchQuery

logger = logging.getLogger(__name__)


class QueriesResponse(BaseModel):
    # non-string items are skipped individually by _normalize_query
    queries: list[Any] = Field(default_factory=list)


def _normalize_query(value) -> Optional[str]:
    if not isinstance(value, str):
        return None
    normalized = " ".join(value.split()).lower()
    return normalized or None


class QueryExpander:
    def __init__(self, llm: StructuredLLM, config: PipelineSettings, model: Optional[str] = None):
        self.llm = llm
        self.config = config
        self.model = model

    async def expand(self, recipient_description: str, concept: GiftConcept) -> list[SearchQuery]:
        """Up to `queries_per_concept` distinct queries; raises QueryExpansionFailed on zero."""
        target = self.config.queries_per_concept
        attempts = 1 + self.config.llm_retries
        response: Optional[QueriesResponse] = None

        for attempt in range(1, attempts + 1):
            try:
                response = await self.llm.generate(
                    registry.render(
                        "expand_queries",
                        recipient=sanitize_input(recipient_description),
                        concept_title=sanitize_input(concept.text),
                        concept_description=sanitize_input(concept.description) or "-",
                        count=target,
                    ),
                    QueriesResponse,
                    model=self.model,
                    timeout_s=self.config.llm_timeout_s,
                    call_type="expand_queries",
                )
                break
            except LLMError as exc:
                logger.warning(
                    "Query expansion for %r attempt %s/%s failed: %s", concept.text, attempt, attempts, exc
                )

        seen: set[str] = set()
        queries: list[SearchQuery] = []
        for raw in response.queries if response else []:
            normalized = _normalize_query(raw)
            if not normalized or normalized in seen:
                continue
            seen.add(normalized)
            queries.append(SearchQuery(text=normalized, concept=concept))
            if len(queries) >= target:
                break

        if not queries:
            raise QueryExpansionFailed(
                f"No search queries for concept {concept.text!r}", {"concept": concept.text}
            )
        if len(queries) < target:
            logger.info("Concept %r expanded to %s/%s queries", concept.text, len(queries), target)
        return queries

    async def expand_all(
        self, recipient_description: str, concepts: list[GiftConcept]
    ) -> dict[int, list[SearchQuery]]:
        """
        Expands concepts concurrently. A concept whose expansion fails is dropped
        and logged; the run aborts only if no concept survives.
        """
        semaphore = asyncio.Semaphore(self.config.expansion_concurrency)

        async def _expand(concept: GiftConcept) -> list[SearchQuery]:
            async with semaphore:
                return await self.expand(recipient_description, concept)

        results = await asyncio.gather(*[_expand(c) for c in concepts], return_exceptions=True)

        surviving: dict[int, list[SearchQuery]] = {}
        for concept, result in zip(concepts, results):
            if isinstance(result, QueryExpansionFailed):
                logger.warning("Dropping concept %r: %s", concept.text, result.message)
            elif isinstance(result, BaseException):
                raise result
            else:
                surviving[concept.order] = result

        if not surviving:
            raise QueryExpansionFailed("No concept produced search queries", {"concepts": len(concepts)})
        return surviving
