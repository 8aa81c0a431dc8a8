from __future__ import annotations

import logging
from typing import Optional

import httpx

from app.config import get_settings
from bundles.models import PriceRange, RawProduct, Source

from .base import MarketplaceClient
from .normalizer import normalize_google_amazon_item

logger = logging.getLogger(__name__)

GOOGLE_CSE_URL = "https://customsearch.googleapis.com/customsearch/v1"


class AmazonSearchClient(MarketplaceClient):
    """
    Amazon product search through the Google Custom Search JSON API,
    restricted to amazon.com. Works around PA-API rate limits.
    """

    source = Source.AMAZON

    def __init__(
        self,
        api_key: Optional[str] = None,
        search_engine_id: Optional[str] = None,
        associate_tag: Optional[str] = None,
        best_seller_prefix: Optional[bool] = None,
        timeout_s: float = 8.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(timeout_s=timeout_s, http_client=http_client)
        settings = get_settings()
        self.api_key = (api_key or settings.google_search_api_key or "").strip()
        self.search_engine_id = (search_engine_id or settings.google_search_engine_id or "").strip()
        self.associate_tag = associate_tag if associate_tag is not None else settings.amazon_associate_tag
        self.best_seller_prefix = (
            best_seller_prefix if best_seller_prefix is not None else settings.google_search_best_seller
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.search_engine_id)

    async def search(self, query: str, price_range: Optional[PriceRange] = None) -> list[RawProduct]:
        # Google CSE has no price filter; the curator sees prices and the budget instead
        search_query = f"best seller {query}" if self.best_seller_prefix else query
        params = {
            "key": self.api_key,
            "cx": self.search_engine_id,
            "q": search_query,
            "siteSearch": "amazon.com",
            "siteSearchFilter": "i",
            "num": 10,
        }
        data = await self._get_json(GOOGLE_CSE_URL, params=params)
        items = data.get("items") if isinstance(data, dict) else None
        if not items:
            logger.info("No Amazon products found via Google for %r", search_query)
            return []

        products = []
        for item in items:
            product = normalize_google_amazon_item(item, self.associate_tag)
            if product is not None:
                products.append(product)
        return products
