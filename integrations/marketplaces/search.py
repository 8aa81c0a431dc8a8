from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional

from bundles.models import PriceRange, RawProduct, Source

from .amazon import AmazonSearchClient
from .base import MarketplaceClient, ProductSearchAdapter, SearchError, TransientSearchError
from .etsy import EtsySearchClient

logger = logging.getLogger(__name__)


class MarketplaceSearch(ProductSearchAdapter):
    """Queries every requested, configured marketplace and returns the union."""

    def __init__(self, clients: Optional[list[MarketplaceClient]] = None, timeout_s: float = 8.0) -> None:
        if clients is None:
            clients = [AmazonSearchClient(timeout_s=timeout_s), EtsySearchClient(timeout_s=timeout_s)]
        self.clients = {client.source: client for client in clients}

    async def search(
        self, query: str, sources: Iterable[Source], price_range: Optional[PriceRange] = None
    ) -> list[RawProduct]:
        selected = []
        for source in sources:
            client = self.clients.get(Source(source))
            if client is None or not client.is_configured:
                logger.debug("%s search not configured, skipping", getattr(source, "value", source))
                continue
            selected.append(client)

        if not selected:
            return []

        results = await asyncio.gather(*[c.search(query, price_range) for c in selected], return_exceptions=True)

        products: list[RawProduct] = []
        transient: list[SearchError] = []
        for client, result in zip(selected, results):
            if isinstance(result, TransientSearchError):
                transient.append(result)
            elif isinstance(result, SearchError):
                logger.warning("Search %r failed permanently on %s: %s", query, client.source.value, result)
            elif isinstance(result, BaseException):
                raise result
            else:
                products.extend(result)

        if transient and len(transient) == len(selected):
            raise TransientSearchError(",".join(e.source for e in transient), f"all sources failed for {query!r}")
        for error in transient:
            logger.warning("Search %r failed on %s: %s", query, error.source, error)
        return products
