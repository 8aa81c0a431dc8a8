from __future__ import annotations

import re
import sys
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.logic_config import PipelineSettings
from app.db import Base, build_engine
from app import models  # noqa: F401
from app.repositories.bundles import BundleRepository, SlugConflict
from bundles.concept_generator import ConceptPayload, ConceptsResponse
from bundles.curator import CurationResponse, Selection
from bundles.models import (
    BundleFilters,
    BundlePage,
    GiftBundle,
    GiftConcept,
    PriceRange,
    RawProduct,
    RelatedBundle,
    Source,
)
from bundles.related import rank_related
from bundles.query_expander import QueriesResponse
from integrations.marketplaces.base import ProductSearchAdapter


@pytest.fixture
def pipeline_config() -> PipelineSettings:
    return PipelineSettings(
        concepts_count=3,
        queries_per_concept=4,
        max_products_before_llm=12,
        products_per_bundle=10,
        search_timeout_s=1.0,
        llm_timeout_s=1.0,
    )


def make_raw(
    source_id: Optional[str],
    title: str,
    source: Source = Source.AMAZON,
    price: Optional[str] = "19.99",
    image_url: str = "https://m.media-amazon.com/images/I/abc.jpg",
) -> RawProduct:
    return RawProduct(
        source_id=source_id,
        source=source,
        title=title,
        image_url=image_url,
        price=Decimal(price) if price is not None else None,
        url=f"https://example.com/{source_id or title.replace(' ', '-')}",
    )


def make_asin(n: int) -> str:
    return f"B0{n:08d}"


class FakeSearchAdapter(ProductSearchAdapter):
    """Returns scripted results per query; a scripted exception (or list of them) is raised in order."""

    def __init__(self, results: Optional[dict] = None, default=None):
        self.results = results or {}
        self.default = default
        self.calls: list[str] = []
        self.price_ranges: list[Optional[PriceRange]] = []

    async def search(
        self, query: str, sources: Iterable[Source], price_range: Optional[PriceRange] = None
    ) -> list[RawProduct]:
        self.calls.append(query)
        self.price_ranges.append(price_range)
        outcome = self.results.get(query, self.default)
        if callable(outcome):
            outcome = outcome(query)
        if isinstance(outcome, list) and outcome and isinstance(outcome[0], BaseException):
            error = outcome.pop(0)
            raise error
        if isinstance(outcome, BaseException):
            raise outcome
        return list(outcome or [])


class ScriptedLLM:
    """
    Stands in for StructuredLLM. Dispatches on the requested schema:
    concepts come from `concepts`, queries are derived from the concept title,
    curation picks ids from the prompt (optionally with extra `hallucinated` ids).
    """

    def __init__(
        self,
        concepts: list[str],
        queries_per_concept: int = 4,
        failing_concepts: Iterable[str] = (),
        hallucinated: Iterable[str] = (),
        curate_limit: Optional[int] = None,
    ):
        self.concepts = concepts
        self.queries_per_concept = queries_per_concept
        self.failing_concepts = set(failing_concepts)
        self.hallucinated = list(hallucinated)
        self.curate_limit = curate_limit
        self.calls: list[str] = []

    async def generate(self, prompt, response_schema, **kwargs):
        self.calls.append(kwargs.get("call_type", response_schema.__name__))
        if response_schema is ConceptsResponse:
            return ConceptsResponse(
                concepts=[ConceptPayload(title=t, tagline=f"{t}!", description=f"All about {t}") for t in self.concepts]
            )
        if response_schema is QueriesResponse:
            title = re.search(r'BUNDLE: "(.+?)"', prompt).group(1)
            if title in self.failing_concepts:
                return QueriesResponse(queries=[])
            slug = title.lower().replace(" ", "-")
            return QueriesResponse(queries=[f"{slug} q{i}" for i in range(self.queries_per_concept)])
        if response_schema is CurationResponse:
            ids = re.findall(r'"id": "([^"]+)"', prompt)
            if self.curate_limit is not None:
                ids = ids[: self.curate_limit]
            selections = [Selection(id=i) for i in self.hallucinated] + [Selection(id=i) for i in ids]
            return CurationResponse(selections=selections)
        raise AssertionError(f"unexpected schema {response_schema}")


class InMemoryBundleRepository(BundleRepository):
    def __init__(self, taken: Iterable[str] = (), conflicts: Iterable[str] = ()):
        self.bundles: dict[str, GiftBundle] = {}
        self.taken = set(taken)
        # slugs that pass slug_exists but collide on insert (a concurrent writer)
        self.conflicts = set(conflicts)
        self.product_clicks: dict[str, int] = {}
        self.impressions: dict[str, int] = {}
        self.click_log: list[dict] = []
        self.bundle_counters: dict[tuple[str, str], int] = {}

    async def insert_bundle(self, bundle: GiftBundle) -> None:
        if bundle.slug in self.bundles or bundle.slug in self.taken or bundle.slug in self.conflicts:
            raise SlugConflict(bundle.slug)
        self.bundles[bundle.slug] = bundle
        for item in bundle.products:
            self.product_clicks.setdefault(item.identity_key, 0)

    async def slug_exists(self, slug: str) -> bool:
        return slug in self.bundles or slug in self.taken

    async def find_bundle_by_slug(self, slug: str) -> Optional[GiftBundle]:
        bundle = self.bundles.get(slug)
        return bundle if bundle and bundle.deleted_at is None else None

    async def list_bundles(self, filters: Optional[BundleFilters] = None, page: int = 1, page_size: int = 20,
                           sort_by: str = "created_at", sort_order: str = "desc") -> BundlePage:
        raise NotImplementedError

    async def find_related_bundles(self, slug: str, limit: int = 4) -> Optional[list[RelatedBundle]]:
        source = await self.find_bundle_by_slug(slug)
        if source is None:
            return None
        live = [b for b in self.bundles.values() if b.deleted_at is None]
        return [
            RelatedBundle(score=score, **bundle.model_dump(include=set(RelatedBundle.model_fields) - {"score"}))
            for score, bundle in rank_related(source, live, limit)
        ]

    async def soft_delete_bundle(self, slug: str) -> bool:
        return slug in self.bundles

    async def increment_product_click(self, product_id: str) -> int:
        if product_id not in self.product_clicks:
            return 0
        self.product_clicks[product_id] += 1
        return 1

    async def record_product_click(self, product_id, source="bundle", bundle_slug=None, user_agent=None, referer=None):
        self.click_log.append({"product_id": product_id, "source": source, "bundle_slug": bundle_slug})

    async def increment_product_impressions(self, product_ids) -> int:
        updated = 0
        for pid in set(product_ids):
            if pid in self.product_clicks:
                self.impressions[pid] = self.impressions.get(pid, 0) + 1
                updated += 1
        return updated

    async def _bump(self, slug: str, counter: str) -> int:
        if slug not in self.bundles:
            return 0
        key = (slug, counter)
        self.bundle_counters[key] = self.bundle_counters.get(key, 0) + 1
        return 1

    async def increment_bundle_click(self, slug: str) -> int:
        return await self._bump(slug, "click")

    async def increment_bundle_view(self, slug: str) -> int:
        return await self._bump(slug, "view")

    async def increment_bundle_share(self, slug: str) -> int:
        return await self._bump(slug, "share")


@pytest.fixture
def memory_repository() -> InMemoryBundleRepository:
    return InMemoryBundleRepository()


@pytest.fixture
def concepts() -> list[GiftConcept]:
    return [
        GiftConcept(text="Dirt Don't Hurt", order=0, description="gardening gear"),
        GiftConcept(text="Thyme After Thyme", order=1, description="herb garden"),
        GiftConcept(text="Plant Mom Energy", order=2, description="house plants"),
    ]


@pytest.fixture
async def sqlite_session(tmp_path):
    db_path = tmp_path / "bundles.sqlite"
    engine = build_engine(f"sqlite:///{db_path}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def raw_product():
    return make_raw


@pytest.fixture
def asin():
    return make_asin


@pytest.fixture
def search_adapter_cls():
    return FakeSearchAdapter


@pytest.fixture
def scripted_llm_cls():
    return ScriptedLLM


@pytest.fixture
def repository_cls():
    return InMemoryBundleRepository
