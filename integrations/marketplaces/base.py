from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional

import httpx

from bundles.models import PriceRange, RawProduct, Source

logger = logging.getLogger(__name__)


class SearchError(Exception):
    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"{source}: {message}")


class TransientSearchError(SearchError):
    """Network failure, timeout, rate limit or 5xx; worth one more try."""


class PermanentSearchError(SearchError):
    """Bad request, auth failure or misconfiguration; retrying will not help."""


class ProductSearchAdapter(ABC):
    @abstractmethod
    async def search(
        self, query: str, sources: Iterable[Source], price_range: Optional[PriceRange] = None
    ) -> list[RawProduct]:
        """Returns raw product records for `query` from the requested marketplaces.
        `price_range` is a per-item filter; sources without price filtering ignore it.
        """


class MarketplaceClient(ABC):
    """One marketplace source behind the search adapter."""

    source: Source

    def __init__(self, timeout_s: float = 8.0, http_client: Optional[httpx.AsyncClient] = None) -> None:
        self.timeout_s = timeout_s
        self._http_client = http_client

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        pass

    @abstractmethod
    async def search(self, query: str, price_range: Optional[PriceRange] = None) -> list[RawProduct]:
        pass

    async def _get_json(self, url: str, params: dict[str, Any], headers: Optional[dict[str, str]] = None) -> Any:
        name = self.source.value
        try:
            if self._http_client is not None:
                response = await self._http_client.get(url, params=params, headers=headers, timeout=self.timeout_s)
            else:
                async with httpx.AsyncClient(timeout=self.timeout_s) as client:
                    response = await client.get(url, params=params, headers=headers)
        except (httpx.TimeoutException, httpx.TransportError) as exc:
            raise TransientSearchError(name, f"request failed: {exc}") from exc

        if response.status_code == 429 or response.status_code >= 500:
            raise TransientSearchError(name, f"HTTP {response.status_code}")
        if response.status_code >= 400:
            logger.warning("%s error %s: %s", name, response.status_code, response.text[:300])
            raise PermanentSearchError(name, f"HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as exc:
            raise PermanentSearchError(name, "response is not JSON") from exc
