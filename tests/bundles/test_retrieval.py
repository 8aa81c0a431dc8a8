import asyncio

import pytest

from bundles.models import SearchQuery
from bundles.retrieval import retrieve_products
from integrations.marketplaces.base import PermanentSearchError, TransientSearchError


def _queries(concepts, texts_by_concept):
    return [
        SearchQuery(text=text, concept=concepts[order])
        for order, texts in texts_by_concept.items()
        for text in texts
    ]


@pytest.mark.asyncio
async def test_preserves_provenance_and_query_order(pipeline_config, concepts, raw_product, asin, search_adapter_cls):
    shared = raw_product(asin(1), "Garden Kneeler")
    adapter = search_adapter_cls(
        {
            "kneeler": [shared, raw_product(asin(2), "Trowel")],
            "thyme pot": [shared],
        }
    )
    queries = _queries(concepts, {0: ["kneeler"], 1: ["thyme pot"]})

    retrieved, debug = await retrieve_products(adapter, queries, pipeline_config)

    assert [(r.product.source_id, r.query.text, r.concept.order) for r in retrieved] == [
        (asin(1), "kneeler", 0),
        (asin(2), "kneeler", 0),
        (asin(1), "thyme pot", 1),
    ]
    assert debug["total_raw"] == 3
    assert debug["failed_queries"] == []


@pytest.mark.asyncio
async def test_transient_failure_is_retried_once(pipeline_config, concepts, raw_product, asin, search_adapter_cls):
    adapter = search_adapter_cls({"kneeler": [TransientSearchError("amazon", "503"), raw_product(asin(1), "Kneeler")]})

    retrieved, debug = await retrieve_products(adapter, _queries(concepts, {0: ["kneeler"]}), pipeline_config)

    assert adapter.calls == ["kneeler", "kneeler"]
    assert len(retrieved) == 1
    assert debug["per_query"][0]["attempts"] == 2


@pytest.mark.asyncio
async def test_persistent_failure_is_skipped(pipeline_config, concepts, raw_product, asin, search_adapter_cls):
    adapter = search_adapter_cls(
        {
            "kneeler": TransientSearchError("amazon", "timeout"),
            "trowel": [raw_product(asin(2), "Trowel")],
        }
    )

    retrieved, debug = await retrieve_products(adapter, _queries(concepts, {0: ["kneeler", "trowel"]}), pipeline_config)

    assert adapter.calls.count("kneeler") == 2
    assert [r.query.text for r in retrieved] == ["trowel"]
    assert debug["failed_queries"] == ["kneeler"]


@pytest.mark.asyncio
async def test_permanent_failure_is_not_retried(pipeline_config, concepts, search_adapter_cls):
    adapter = search_adapter_cls({"kneeler": PermanentSearchError("etsy", "403")})

    retrieved, debug = await retrieve_products(adapter, _queries(concepts, {0: ["kneeler"]}), pipeline_config)

    assert adapter.calls == ["kneeler"]
    assert retrieved == []
    assert debug["failed_queries"] == ["kneeler"]


@pytest.mark.asyncio
async def test_timeout_counts_as_transient(pipeline_config, concepts, search_adapter_cls):
    config = pipeline_config.model_copy(update={"search_timeout_s": 0.01})

    class SlowAdapter(search_adapter_cls):
        async def search(self, query, sources, price_range=None):
            self.calls.append(query)
            await asyncio.sleep(1)
            return []

    adapter = SlowAdapter()
    retrieved, debug = await retrieve_products(adapter, _queries(concepts, {0: ["kneeler"]}), config)

    assert adapter.calls == ["kneeler", "kneeler"]
    assert retrieved == []
    assert "timeout" in debug["per_query"][0]["error"]


@pytest.mark.asyncio
async def test_parallelism_is_bounded(pipeline_config, concepts, search_adapter_cls):
    config = pipeline_config.model_copy(update={"search_concurrency": 2})
    active = 0
    peak = 0

    class CountingAdapter(search_adapter_cls):
        async def search(self, query, sources, price_range=None):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return []

    queries = _queries(concepts, {0: [f"q{i}" for i in range(8)]})
    await retrieve_products(CountingAdapter(), queries, config)

    assert peak == 2
