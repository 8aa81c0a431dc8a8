from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class GiftBundleRecord(TimestampMixin, Base):
    __tablename__ = "gift_bundles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    recipient_description: Mapped[str] = mapped_column(Text, nullable=False)
    occasion: Mapped[Optional[str]] = mapped_column(String(500), nullable=True, index=True)
    humor_style: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    min_price: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    max_price: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    price_range: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, index=True)

    seo_title: Mapped[Optional[str]] = mapped_column(String(60), nullable=True)
    seo_description: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    seo_keywords: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    recipient_keywords: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0", index=True)
    click_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    share_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    concepts: Mapped[list["BundleConcept"]] = relationship(
        back_populates="bundle", cascade="all, delete-orphan", order_by="BundleConcept.position"
    )
    items: Mapped[list["BundleProduct"]] = relationship(
        back_populates="bundle", cascade="all, delete-orphan", order_by="BundleProduct.position"
    )


class BundleConcept(Base):
    __tablename__ = "bundle_concepts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    bundle_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("gift_bundles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    tagline: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    bundle: Mapped[GiftBundleRecord] = relationship(back_populates="concepts")


class Product(TimestampMixin, Base):
    __tablename__ = "products"

    # identity key, e.g. "amazon:b0abc12345"
    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(10, 2), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD", server_default="USD")
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    source: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    source_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    click_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    impression_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_clicked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class BundleProduct(Base):
    __tablename__ = "bundle_products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    bundle_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("gift_bundles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    concept_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("bundle_concepts.id", ondelete="SET NULL"), nullable=True
    )
    product_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    bundle: Mapped[GiftBundleRecord] = relationship(back_populates="items")
    concept: Mapped[Optional[BundleConcept]] = relationship()
    product: Mapped[Product] = relationship()


class ProductClick(Base):
    __tablename__ = "product_clicks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    source: Mapped[str] = mapped_column(String(50), nullable=False, default="bundle")
    bundle_slug: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    referer: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
