from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Optional

from app.core.logic_config import PipelineSettings
from integrations.marketplaces.base import ProductSearchAdapter, SearchError, TransientSearchError

from .models import PriceRange, RawProduct, RetrievedProduct, SearchQuery, Source

logger = logging.getLogger(__name__)


async def _search_with_retry(
    adapter: ProductSearchAdapter,
    query: SearchQuery,
    sources: list[Source],
    config: PipelineSettings,
    price_range: Optional[PriceRange] = None,
) -> tuple[list[RawProduct], dict[str, Any]]:
    attempts = 1 + config.search_retries
    last_error: str | None = None

    for attempt in range(1, attempts + 1):
        try:
            products = await asyncio.wait_for(
                adapter.search(query.text, sources, price_range), timeout=config.search_timeout_s
            )
            return products, {"attempts": attempt, "error": None}
        except asyncio.TimeoutError:
            last_error = f"timeout after {config.search_timeout_s}s"
        except TransientSearchError as exc:
            last_error = str(exc)
        except SearchError as exc:
            logger.warning("Query %r failed permanently, skipping: %s", query.text, exc)
            return [], {"attempts": attempt, "error": str(exc)}

        logger.info("Query %r attempt %s/%s failed: %s", query.text, attempt, attempts, last_error)

    logger.warning("Query %r failed after %s attempts, skipping: %s", query.text, attempts, last_error)
    return [], {"attempts": attempts, "error": last_error}


async def retrieve_products(
    adapter: ProductSearchAdapter,
    queries: Iterable[SearchQuery],
    config: PipelineSettings,
    price_range: Optional[PriceRange] = None,
) -> tuple[list[RetrievedProduct], dict]:
    """
    Runs every query against the configured sources with bounded parallelism.

    Results keep query order and carry the query/concept that surfaced them.
    A bundle budget is spread over `queries_per_concept` items per search.
    No deduplication happens here.
    """
    selected = list(queries)
    sources = [Source(s) for s in config.sources]
    semaphore = asyncio.Semaphore(config.search_concurrency)
    item_price = price_range.per_item(config.queries_per_concept) if price_range else None

    async def _run(query: SearchQuery):
        async with semaphore:
            return await _search_with_retry(adapter, query, sources, config, item_price)

    results = await asyncio.gather(*[_run(q) for q in selected])

    retrieved: list[RetrievedProduct] = []
    per_query_stats: list[dict[str, Any]] = []
    failed_queries: list[str] = []
    empty_queries: list[str] = []

    for query, (products, stats) in zip(selected, results):
        retrieved.extend(RetrievedProduct(product=p, query=query) for p in products)
        if stats["error"]:
            failed_queries.append(query.text)
        elif not products:
            empty_queries.append(query.text)
        per_query_stats.append(
            {
                "query": query.text,
                "concept": query.concept.order,
                "count": len(products),
                **stats,
            }
        )

    debug = {
        "sources": [s.value for s in sources],
        "per_query": per_query_stats,
        "failed_queries": failed_queries,
        "empty_queries": empty_queries,
        "total_raw": len(retrieved),
    }
    logger.info(
        "Retrieved %s raw products from %s queries (%s failed)",
        len(retrieved),
        len(selected),
        len(failed_queries),
    )
    return retrieved, debug
