from __future__ import annotations

import logging
import time
from typing import Optional

from app.core.logic_config import PipelineSettings
from app.repositories.bundles import BundleRepository
from app.services.llm.structured import StructuredLLM
from integrations.marketplaces.base import ProductSearchAdapter

from .assembler import BundleAssembler
from .concept_generator import ConceptGenerator
from .curator import Curator
from .dedup import build_candidate_pool
from .errors import CurationUnderfilled, NoCandidatesFound
from .models import GiftBundle, HumorStyle, PriceRange
from .query_expander import QueryExpander
from .retrieval import retrieve_products

logger = logging.getLogger(__name__)


class GiftBundlePipeline:
    """
    recipient description -> concepts -> queries -> marketplace search ->
    dedup/cap -> curation -> assembly -> persistence.

    Nothing is written until the bundle is complete; any stage failure
    raises a PipelineError naming the stage.
    """

    def __init__(
        self,
        llm: StructuredLLM,
        search: ProductSearchAdapter,
        repository: BundleRepository,
        config: PipelineSettings,
        model_fast: Optional[str] = None,
        model_smart: Optional[str] = None,
    ):
        self.config = config
        self.search = search
        self.concept_generator = ConceptGenerator(llm, config, model=model_fast)
        self.query_expander = QueryExpander(llm, config, model=model_fast)
        self.curator = Curator(llm, config, model=model_smart)
        self.assembler = BundleAssembler(repository, config)

    async def run(
        self,
        recipient_description: str,
        humor_style: HumorStyle = HumorStyle.DAD_JOKE,
        occasion: Optional[str] = None,
        price_range: Optional[PriceRange] = None,
    ) -> GiftBundle:
        timings: dict[str, int] = {}
        started = time.perf_counter()

        def _mark(stage: str, since: float) -> float:
            now = time.perf_counter()
            timings[stage] = int((now - since) * 1000)
            return now

        concepts = await self.concept_generator.generate(
            recipient_description, humor_style, occasion, price_range
        )
        checkpoint = _mark("concepts", started)

        queries_by_concept = await self.query_expander.expand_all(recipient_description, concepts)
        surviving = [c for c in concepts if c.order in queries_by_concept]
        checkpoint = _mark("query_expansion", checkpoint)

        queries = [q for c in surviving for q in queries_by_concept[c.order]]
        retrieved, debug = await retrieve_products(self.search, queries, self.config, price_range)
        checkpoint = _mark("retrieval", checkpoint)

        pool = build_candidate_pool(retrieved, surviving, self.config)
        if not pool:
            raise NoCandidatesFound(
                "Marketplace search returned no usable products",
                {"queries": len(queries), "failed_queries": len(debug["failed_queries"])},
            )
        if len(pool) < self.config.min_viable_products:
            raise CurationUnderfilled(
                f"Candidate pool of {len(pool)} products is below the minimum of {self.config.min_viable_products}",
                {"selected": 0, "pool_size": len(pool), "minimum": self.config.min_viable_products},
            )
        checkpoint = _mark("dedup", checkpoint)

        curated = await self.curator.curate(recipient_description, surviving, pool, price_range)
        checkpoint = _mark("curation", checkpoint)

        bundle = await self.assembler.assemble(
            recipient_description, humor_style, surviving, curated, occasion=occasion, price_range=price_range
        )
        bundle = await self.assembler.save(bundle)
        _mark("persistence", checkpoint)

        timings["total"] = int((time.perf_counter() - started) * 1000)
        logger.info(
            "Bundle %s: concepts=%s queries=%s raw=%s pool=%s products=%s timings_ms=%s",
            bundle.slug,
            len(surviving),
            len(queries),
            len(retrieved),
            len(pool),
            len(bundle.products),
            timings,
        )
        return bundle
