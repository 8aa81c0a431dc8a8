"""Marketplace product search integrations."""

from .base import PermanentSearchError, ProductSearchAdapter, SearchError, TransientSearchError
from .search import MarketplaceSearch

__all__ = [
    "MarketplaceSearch",
    "PermanentSearchError",
    "ProductSearchAdapter",
    "SearchError",
    "TransientSearchError",
]
