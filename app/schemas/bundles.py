from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from bundles.models import GiftBundle, HumorStyle, PriceRange


class GenerateBundleRequest(BaseModel):
    recipient_description: str = Field(..., min_length=3, max_length=500, alias="recipientDescription")
    humor_style: HumorStyle = Field(HumorStyle.DAD_JOKE, alias="humorStyle")
    occasion: Optional[str] = Field(None, max_length=200)
    min_price: Optional[int] = Field(None, ge=0, alias="minPrice")
    max_price: Optional[int] = Field(None, ge=0, alias="maxPrice")

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def _check_budget(self) -> "GenerateBundleRequest":
        if self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            raise ValueError("minPrice must not be greater than maxPrice")
        return self

    @property
    def price_range(self) -> Optional[PriceRange]:
        budget = PriceRange(min_price=self.min_price, max_price=self.max_price)
        return None if budget.is_open else budget


class ConceptOut(BaseModel):
    title: str
    tagline: Optional[str] = None
    description: Optional[str] = None


class ProductOut(BaseModel):
    id: str
    rank: int
    title: str
    price: Optional[Decimal] = None
    currency: str
    image_url: str
    url: str
    source: str
    concept: str


class BundleOut(BaseModel):
    slug: str
    permalink: str
    recipient_description: str
    humor_style: HumorStyle
    occasion: Optional[str] = None
    min_price: Optional[int] = None
    max_price: Optional[int] = None
    price_range: Optional[str] = None
    seo_title: str
    seo_description: str
    seo_keywords: str
    concepts: List[ConceptOut]
    products: List[ProductOut]
    view_count: int = 0
    click_count: int = 0
    share_count: int = 0
    created_at: Optional[datetime] = None

    @classmethod
    def from_bundle(cls, bundle: GiftBundle, base_url: str) -> "BundleOut":
        return cls(
            slug=bundle.slug,
            permalink=f"{base_url.rstrip('/')}/{bundle.slug}",
            recipient_description=bundle.recipient_description,
            humor_style=bundle.humor_style,
            occasion=bundle.occasion,
            min_price=bundle.min_price,
            max_price=bundle.max_price,
            price_range=bundle.price_range,
            seo_title=bundle.seo_title,
            seo_description=bundle.seo_description,
            seo_keywords=bundle.seo_keywords,
            concepts=[ConceptOut(title=c.text, tagline=c.tagline, description=c.description) for c in bundle.concepts],
            products=[
                ProductOut(
                    id=item.identity_key,
                    rank=item.rank,
                    title=item.product.title,
                    price=item.product.price,
                    currency=item.product.currency,
                    image_url=item.product.image_url,
                    url=item.product.url,
                    source=item.product.source.value,
                    concept=item.matched_concept.text,
                )
                for item in bundle.products
            ],
            view_count=bundle.view_count,
            click_count=bundle.click_count,
            share_count=bundle.share_count,
            created_at=bundle.created_at,
        )


class TrackClickRequest(BaseModel):
    slug: Optional[str] = None
    product_id: Optional[str] = Field(None, alias="productId")
    source: str = "bundle"

    model_config = ConfigDict(populate_by_name=True)


class TrackImpressionRequest(BaseModel):
    product_ids: List[str] = Field(default_factory=list, alias="productIds")

    model_config = ConfigDict(populate_by_name=True)


class TrackShareRequest(BaseModel):
    slug: str = Field(..., min_length=1)


class TrackResponse(BaseModel):
    success: bool = True
