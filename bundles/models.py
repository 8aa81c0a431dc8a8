from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
import math
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class Source(str, Enum):
    AMAZON = "amazon"
    ETSY = "etsy"


class HumorStyle(str, Enum):
    DAD_JOKE = "dad-joke"
    OFFICE_SAFE = "office-safe"
    EDGY = "edgy"
    PG = "pg"


class PriceRange(BaseModel):
    """Budget for the whole bundle in whole dollars; either bound may be open."""

    min_price: Optional[int] = Field(None, ge=0)
    max_price: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def _ordered(self) -> "PriceRange":
        if self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            raise ValueError("min_price must not be greater than max_price")
        return self

    @property
    def is_open(self) -> bool:
        return self.min_price is None and self.max_price is None

    @property
    def tier(self) -> Optional[str]:
        """budget / mid / premium by the average of the given bounds."""
        bounds = [b for b in (self.min_price, self.max_price) if b is not None]
        if not bounds:
            return None
        average = sum(bounds) / len(bounds)
        if average < 50:
            return "budget"
        if average < 150:
            return "mid"
        return "premium"

    def per_item(self, items: int) -> "PriceRange":
        """The bundle budget spread over `items` products, widened to whole dollars."""
        items = max(items, 1)
        return PriceRange(
            min_price=math.floor(self.min_price / items) if self.min_price is not None else None,
            max_price=math.ceil(self.max_price / items) if self.max_price is not None else None,
        )

    def describe(self) -> str:
        if self.min_price is not None and self.max_price is not None:
            return f"${self.min_price}-${self.max_price}"
        if self.max_price is not None:
            return f"under ${self.max_price}"
        if self.min_price is not None:
            return f"from ${self.min_price}"
        return "no budget given"


class GiftConcept(BaseModel):
    """One thematic angle; `text` is the punny concept title."""

    text: str
    order: int
    tagline: Optional[str] = None
    description: Optional[str] = None


class SearchQuery(BaseModel):
    text: str
    concept: GiftConcept


class RawProduct(BaseModel):
    source_id: Optional[str] = None
    source: Source
    title: str
    image_url: str = ""
    price: Optional[Decimal] = None
    currency: str = "USD"
    url: str


class RetrievedProduct(BaseModel):
    """A raw marketplace record tagged with the query that surfaced it."""

    product: RawProduct
    query: SearchQuery

    @property
    def concept(self) -> GiftConcept:
        return self.query.concept


class CandidateProduct(BaseModel):
    identity_key: str
    source: Source
    source_id: Optional[str] = None
    title: str
    image_url: str = ""
    price: Optional[Decimal] = None
    currency: str = "USD"
    url: str
    # orders of every concept that surfaced this product, first-seen first
    concept_orders: list[int] = Field(default_factory=list)
    queries: list[str] = Field(default_factory=list)
    first_seen: int = 0

    @property
    def completeness(self) -> int:
        return int(self.price is not None and self.price > 0) + int(bool(self.image_url))


class CuratedProduct(BaseModel):
    product: CandidateProduct
    rank: int
    matched_concept: GiftConcept

    @property
    def identity_key(self) -> str:
        return self.product.identity_key


class GiftBundle(BaseModel):
    slug: str
    recipient_description: str
    humor_style: HumorStyle
    occasion: Optional[str] = None
    min_price: Optional[int] = None
    max_price: Optional[int] = None
    # budget / mid / premium, see PriceRange.tier
    price_range: Optional[str] = None
    seo_title: str
    seo_description: str = ""
    seo_keywords: str = ""
    recipient_keywords: str = ""
    concepts: list[GiftConcept]
    products: list[CuratedProduct]
    click_count: int = 0
    view_count: int = 0
    share_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None


class BundleSummary(BaseModel):
    slug: str
    recipient_description: str
    humor_style: HumorStyle
    occasion: Optional[str] = None
    price_range: Optional[str] = None
    seo_title: Optional[str] = None
    view_count: int = 0
    click_count: int = 0
    created_at: Optional[datetime] = None


class RelatedBundle(BundleSummary):
    score: float = 0.0


class BundleFilters(BaseModel):
    humor_style: Optional[HumorStyle] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    min_views: Optional[int] = None
    search: Optional[str] = None


class BundlePage(BaseModel):
    bundles: list[BundleSummary]
    page: int
    page_size: int
    total: int
    total_pages: int
