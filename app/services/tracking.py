from __future__ import annotations

import logging
from typing import Iterable, Optional

from app.repositories.bundles import BundleRepository

logger = logging.getLogger(__name__)

# pseudo-slug used by the trending carousel; not a stored bundle
TRENDING_SLUG = "trending"


class TrackingService:
    """
    Click/impression/share/view counters.

    Every method reports success: a tracking failure is logged and never
    surfaces to the user-facing flow.
    """

    def __init__(self, repository: BundleRepository):
        self.repository = repository

    async def track_click(
        self,
        product_id: Optional[str] = None,
        slug: Optional[str] = None,
        source: str = "bundle",
        user_agent: Optional[str] = None,
        referer: Optional[str] = None,
    ) -> bool:
        try:
            if slug and slug != TRENDING_SLUG:
                await self.repository.increment_bundle_click(slug)
            if product_id:
                updated = await self.repository.increment_product_click(product_id)
                if not updated:
                    logger.info(f"Click for unknown product {product_id}")
                await self.repository.record_product_click(
                    product_id,
                    source=source,
                    bundle_slug=slug if slug and slug != TRENDING_SLUG else None,
                    user_agent=user_agent,
                    referer=referer,
                )
        except Exception as e:
            logger.error(f"Error tracking click (product={product_id}, slug={slug}): {e}")
        return True

    async def track_impressions(self, product_ids: Iterable[str]) -> bool:
        ids = [pid for pid in product_ids if pid]
        try:
            updated = await self.repository.increment_product_impressions(ids)
            logger.debug(f"Tracked impressions for {updated}/{len(ids)} products")
        except Exception as e:
            logger.error(f"Error tracking impressions for {len(ids)} products: {e}")
        return True

    async def track_share(self, slug: str) -> bool:
        try:
            await self.repository.increment_bundle_share(slug)
        except Exception as e:
            logger.error(f"Error tracking share for {slug}: {e}")
        return True

    async def track_view(self, slug: str) -> bool:
        try:
            await self.repository.increment_bundle_view(slug)
        except Exception as e:
            logger.error(f"Error tracking view for {slug}: {e}")
        return True
