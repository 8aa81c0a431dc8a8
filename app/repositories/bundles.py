from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from datetime import datetime, time, timedelta
from typing import Iterable, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models import BundleConcept, BundleProduct, GiftBundleRecord, Product, ProductClick
from bundles.errors import PersistenceFailed
from bundles.models import (
    BundleFilters,
    BundlePage,
    BundleSummary,
    CandidateProduct,
    CuratedProduct,
    GiftBundle,
    GiftConcept,
    RelatedBundle,
    Source,
)
from bundles.related import MAX_CANDIDATES, rank_related

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "created_at": GiftBundleRecord.created_at,
    "view_count": GiftBundleRecord.view_count,
}


class SlugConflict(Exception):
    def __init__(self, slug: str):
        super().__init__(f"Slug already taken: {slug}")
        self.slug = slug


def _not_deleted():
    """The one predicate every default bundle read goes through."""
    return GiftBundleRecord.deleted_at.is_(None)


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class BundleRepository(ABC):
    @abstractmethod
    async def insert_bundle(self, bundle: GiftBundle) -> None:
        """Writes the bundle with its concepts and products atomically.
        Raises SlugConflict when the slug is taken.
        """
        pass

    @abstractmethod
    async def slug_exists(self, slug: str) -> bool:
        """True for any bundle ever stored under the slug, soft-deleted ones included."""
        pass

    @abstractmethod
    async def find_bundle_by_slug(self, slug: str) -> Optional[GiftBundle]:
        pass

    @abstractmethod
    async def list_bundles(
        self,
        filters: Optional[BundleFilters] = None,
        page: int = 1,
        page_size: int = 20,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> BundlePage:
        pass

    @abstractmethod
    async def find_related_bundles(self, slug: str, limit: int = 4) -> Optional[list[RelatedBundle]]:
        """Most similar live bundles; None when the slug itself is unknown."""
        pass

    @abstractmethod
    async def soft_delete_bundle(self, slug: str) -> bool:
        pass

    @abstractmethod
    async def increment_product_click(self, product_id: str) -> int:
        """Returns affected row count; 0 for unknown products."""
        pass

    @abstractmethod
    async def record_product_click(
        self,
        product_id: str,
        source: str = "bundle",
        bundle_slug: Optional[str] = None,
        user_agent: Optional[str] = None,
        referer: Optional[str] = None,
    ) -> None:
        pass

    @abstractmethod
    async def increment_product_impressions(self, product_ids: Iterable[str]) -> int:
        pass

    @abstractmethod
    async def increment_bundle_click(self, slug: str) -> int:
        pass

    @abstractmethod
    async def increment_bundle_view(self, slug: str) -> int:
        pass

    @abstractmethod
    async def increment_bundle_share(self, slug: str) -> int:
        pass


class SQLBundleRepository(BundleRepository):
    """SQLAlchemy implementation; runs on PostgreSQL (asyncpg) and SQLite (aiosqlite)."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _insert(self):
        if self.session.bind.dialect.name == "postgresql":
            return postgresql.insert
        return sqlite.insert

    async def _upsert_products(self, products: list[CandidateProduct]) -> None:
        if not products:
            return

        rows = [
            {
                "id": p.identity_key,
                "title": p.title,
                "price": p.price,
                "currency": p.currency,
                "image_url": p.image_url or None,
                "url": p.url,
                "source": p.source.value,
                "source_id": p.source_id,
            }
            for p in products
        ]
        stmt = self._insert()(Product).values(rows)
        # counters are never overwritten by a re-run
        stmt = stmt.on_conflict_do_update(
            index_elements=[Product.id],
            set_={
                "title": stmt.excluded.title,
                "price": stmt.excluded.price,
                "currency": stmt.excluded.currency,
                "image_url": stmt.excluded.image_url,
                "url": stmt.excluded.url,
                "updated_at": func.now(),
            },
        )
        await self.session.execute(stmt)

    async def insert_bundle(self, bundle: GiftBundle) -> None:
        record = GiftBundleRecord(
            slug=bundle.slug,
            recipient_description=bundle.recipient_description,
            occasion=bundle.occasion,
            humor_style=bundle.humor_style.value,
            min_price=bundle.min_price,
            max_price=bundle.max_price,
            price_range=bundle.price_range,
            seo_title=bundle.seo_title,
            seo_description=bundle.seo_description,
            seo_keywords=bundle.seo_keywords,
            recipient_keywords=bundle.recipient_keywords,
            view_count=0,
            click_count=0,
            share_count=0,
        )
        concept_rows: dict[int, BundleConcept] = {}
        for position, concept in enumerate(bundle.concepts):
            row = BundleConcept(
                title=concept.text,
                tagline=concept.tagline,
                description=concept.description,
                position=position,
            )
            concept_rows[concept.order] = row
            record.concepts.append(row)
        for item in bundle.products:
            record.items.append(
                BundleProduct(
                    product_id=item.identity_key,
                    concept=concept_rows.get(item.matched_concept.order),
                    position=item.rank,
                )
            )

        try:
            await self._upsert_products([item.product for item in bundle.products])
            self.session.add(record)
            await self.session.flush()
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            if "slug" in str(exc.orig).lower():
                raise SlugConflict(bundle.slug) from exc
            logger.error(f"Failed to insert bundle {bundle.slug}: {exc}")
            raise PersistenceFailed(f"Failed to store bundle {bundle.slug}", {"slug": bundle.slug}) from exc
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.error(f"Failed to insert bundle {bundle.slug}: {type(exc).__name__}: {exc}")
            raise PersistenceFailed(f"Failed to store bundle {bundle.slug}", {"slug": bundle.slug}) from exc

        logger.info("Stored bundle %s with %s products", bundle.slug, len(bundle.products))

    async def slug_exists(self, slug: str) -> bool:
        result = await self.session.execute(
            select(func.count(GiftBundleRecord.id)).where(GiftBundleRecord.slug == slug)
        )
        return (result.scalar() or 0) > 0

    async def find_bundle_by_slug(self, slug: str) -> Optional[GiftBundle]:
        stmt = (
            select(GiftBundleRecord)
            .where(GiftBundleRecord.slug == slug, _not_deleted())
            .options(
                selectinload(GiftBundleRecord.concepts),
                selectinload(GiftBundleRecord.items).selectinload(BundleProduct.product),
                selectinload(GiftBundleRecord.items).selectinload(BundleProduct.concept),
            )
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        record = result.scalar_one_or_none()
        return _to_bundle(record) if record else None

    async def list_bundles(
        self,
        filters: Optional[BundleFilters] = None,
        page: int = 1,
        page_size: int = 20,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> BundlePage:
        filters = filters or BundleFilters()
        page = max(page, 1)
        page_size = max(page_size, 1)

        conditions = [_not_deleted()]
        if filters.humor_style:
            conditions.append(GiftBundleRecord.humor_style == filters.humor_style.value)
        if filters.date_from:
            conditions.append(GiftBundleRecord.created_at >= datetime.combine(filters.date_from, time.min))
        if filters.date_to:
            # inclusive of the whole end day
            end = datetime.combine(filters.date_to + timedelta(days=1), time.min)
            conditions.append(GiftBundleRecord.created_at < end)
        if filters.min_views is not None:
            conditions.append(GiftBundleRecord.view_count >= filters.min_views)
        if filters.search:
            pattern = f"%{_escape_like(filters.search.strip())}%"
            conditions.append(
                or_(
                    GiftBundleRecord.slug.ilike(pattern, escape="\\"),
                    GiftBundleRecord.recipient_description.ilike(pattern, escape="\\"),
                    GiftBundleRecord.seo_title.ilike(pattern, escape="\\"),
                )
            )

        total_result = await self.session.execute(
            select(func.count(GiftBundleRecord.id)).where(*conditions)
        )
        total = total_result.scalar() or 0

        column = SORT_COLUMNS.get(sort_by, GiftBundleRecord.created_at)
        ordering = column.asc() if sort_order == "asc" else column.desc()
        stmt = (
            select(GiftBundleRecord)
            .where(*conditions)
            .order_by(ordering, GiftBundleRecord.slug)
            .offset((page - 1) * page_size)
            .limit(page_size)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        bundles = [_to_summary(BundleSummary, r) for r in result.scalars().all()]
        return BundlePage(
            bundles=bundles,
            page=page,
            page_size=page_size,
            total=total,
            total_pages=math.ceil(total / page_size) if total else 0,
        )

    async def find_related_bundles(self, slug: str, limit: int = 4) -> Optional[list[RelatedBundle]]:
        result = await self.session.execute(
            select(GiftBundleRecord).where(GiftBundleRecord.slug == slug, _not_deleted())
        )
        source = result.scalar_one_or_none()
        if source is None:
            return None

        shared = [GiftBundleRecord.humor_style == source.humor_style]
        if source.occasion:
            shared.append(GiftBundleRecord.occasion == source.occasion)
        if source.price_range:
            shared.append(GiftBundleRecord.price_range == source.price_range)
        stmt = (
            select(GiftBundleRecord)
            .where(_not_deleted(), GiftBundleRecord.slug != slug, or_(*shared))
            .order_by(GiftBundleRecord.created_at.desc(), GiftBundleRecord.slug)
            .limit(MAX_CANDIDATES)
        )
        candidates = (await self.session.execute(stmt)).scalars().all()
        return [
            _to_summary(RelatedBundle, record, score=score)
            for score, record in rank_related(source, candidates, limit)
        ]

    async def _execute_update(self, stmt) -> int:
        try:
            result = await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        return result.rowcount or 0

    async def soft_delete_bundle(self, slug: str) -> bool:
        stmt = (
            update(GiftBundleRecord)
            .where(GiftBundleRecord.slug == slug, _not_deleted())
            .values(deleted_at=func.now())
        )
        return await self._execute_update(stmt) > 0

    async def increment_product_click(self, product_id: str) -> int:
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(click_count=Product.click_count + 1, last_clicked_at=func.now())
        )
        return await self._execute_update(stmt)

    async def record_product_click(
        self,
        product_id: str,
        source: str = "bundle",
        bundle_slug: Optional[str] = None,
        user_agent: Optional[str] = None,
        referer: Optional[str] = None,
    ) -> None:
        self.session.add(
            ProductClick(
                product_id=product_id,
                source=source,
                bundle_slug=bundle_slug,
                user_agent=user_agent,
                referer=referer,
            )
        )
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise

    async def increment_product_impressions(self, product_ids: Iterable[str]) -> int:
        ids = {pid for pid in product_ids if pid}
        if not ids:
            return 0
        stmt = (
            update(Product)
            .where(Product.id.in_(ids))
            .values(impression_count=Product.impression_count + 1)
        )
        return await self._execute_update(stmt)

    async def increment_bundle_click(self, slug: str) -> int:
        return await self._increment_bundle_counter(slug, GiftBundleRecord.click_count)

    async def increment_bundle_view(self, slug: str) -> int:
        return await self._increment_bundle_counter(slug, GiftBundleRecord.view_count)

    async def increment_bundle_share(self, slug: str) -> int:
        return await self._increment_bundle_counter(slug, GiftBundleRecord.share_count)

    async def _increment_bundle_counter(self, slug: str, column) -> int:
        stmt = (
            update(GiftBundleRecord)
            .where(GiftBundleRecord.slug == slug, _not_deleted())
            .values({column: column + 1})
        )
        return await self._execute_update(stmt)


def _to_bundle(record: GiftBundleRecord) -> GiftBundle:
    concepts = [
        GiftConcept(text=c.title, order=c.position, tagline=c.tagline, description=c.description)
        for c in record.concepts
    ]
    by_id = {c.id: concept for c, concept in zip(record.concepts, concepts)}

    products = []
    for item in record.items:
        matched = by_id.get(item.concept_id) or concepts[0]
        p = item.product
        products.append(
            CuratedProduct(
                product=CandidateProduct(
                    identity_key=p.id,
                    source=Source(p.source),
                    source_id=p.source_id,
                    title=p.title,
                    image_url=p.image_url or "",
                    price=p.price,
                    currency=p.currency,
                    url=p.url,
                    concept_orders=[matched.order],
                ),
                rank=item.position,
                matched_concept=matched,
            )
        )

    return GiftBundle(
        slug=record.slug,
        recipient_description=record.recipient_description,
        humor_style=record.humor_style,
        occasion=record.occasion,
        min_price=record.min_price,
        max_price=record.max_price,
        price_range=record.price_range,
        seo_title=record.seo_title or "",
        seo_description=record.seo_description or "",
        seo_keywords=record.seo_keywords or "",
        recipient_keywords=record.recipient_keywords or "",
        concepts=concepts,
        products=products,
        click_count=record.click_count,
        view_count=record.view_count,
        share_count=record.share_count,
        created_at=record.created_at,
        updated_at=record.updated_at,
        deleted_at=record.deleted_at,
    )


def _to_summary(model, record: GiftBundleRecord, **extra):
    return model(
        slug=record.slug,
        recipient_description=record.recipient_description,
        humor_style=record.humor_style,
        occasion=record.occasion,
        price_range=record.price_range,
        seo_title=record.seo_title,
        view_count=record.view_count,
        click_count=record.click_count,
        created_at=record.created_at,
        **extra,
    )
