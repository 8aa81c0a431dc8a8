from __future__ import annotations

import logging
from typing import Optional

import httpx

from app.config import get_settings
from bundles.models import PriceRange, RawProduct, Source

from .base import MarketplaceClient
from .normalizer import normalize_etsy_listing

logger = logging.getLogger(__name__)

ETSY_LISTINGS_URL = "https://api.etsy.com/v3/application/listings/active"


class EtsySearchClient(MarketplaceClient):
    source = Source.ETSY

    def __init__(
        self,
        api_key: Optional[str] = None,
        limit: int = 25,
        timeout_s: float = 8.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(timeout_s=timeout_s, http_client=http_client)
        self.api_key = (api_key or get_settings().etsy_api_key or "").strip()
        self.limit = limit

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def search(self, query: str, price_range: Optional[PriceRange] = None) -> list[RawProduct]:
        params = {
            "keywords": query,
            "sort_on": "score",
            "sort_order": "down",
            "limit": self.limit,
            "offset": 0,
            "includes": "Images",
        }
        if price_range is not None:
            if price_range.min_price is not None:
                params["min_price"] = price_range.min_price
            if price_range.max_price is not None:
                params["max_price"] = price_range.max_price
        data = await self._get_json(ETSY_LISTINGS_URL, params=params, headers={"x-api-key": self.api_key})
        results = data.get("results") if isinstance(data, dict) else None
        if not results:
            return []

        products = []
        for listing in results:
            product = normalize_etsy_listing(listing)
            if product is not None:
                products.append(product)
        return products
