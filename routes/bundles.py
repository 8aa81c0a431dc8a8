from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from starlette import status

from app.config import get_settings
from app.deps import get_bundle_repository, get_pipeline, get_tracking_service
from app.repositories.bundles import BundleRepository
from app.schemas.bundles import BundleOut, GenerateBundleRequest
from app.services.tracking import TrackingService
from app.utils.errors import AppError
from bundles.models import RelatedBundle
from bundles.pipeline import GiftBundlePipeline

router = APIRouter(prefix="/api/v1/bundles", tags=["bundles"])
logger = logging.getLogger(__name__)


@router.post("/generate", response_model=BundleOut, status_code=status.HTTP_201_CREATED)
async def generate_bundle(
    payload: GenerateBundleRequest,
    pipeline: GiftBundlePipeline = Depends(get_pipeline),
):
    bundle = await pipeline.run(
        payload.recipient_description, payload.humor_style, payload.occasion, payload.price_range
    )
    return BundleOut.from_bundle(bundle, get_settings().base_url)


@router.get("/{slug}", response_model=BundleOut)
async def get_bundle(
    slug: str,
    repository: BundleRepository = Depends(get_bundle_repository),
    tracking: TrackingService = Depends(get_tracking_service),
):
    bundle = await repository.find_bundle_by_slug(slug)
    if bundle is None:
        raise AppError("not_found", f"Bundle {slug} not found", status.HTTP_404_NOT_FOUND)
    await tracking.track_view(slug)
    return BundleOut.from_bundle(bundle, get_settings().base_url)


@router.get("/{slug}/related", response_model=list[RelatedBundle])
async def get_related_bundles(
    slug: str,
    limit: int = Query(4, ge=1, le=12),
    repository: BundleRepository = Depends(get_bundle_repository),
):
    related = await repository.find_related_bundles(slug, limit)
    if related is None:
        raise AppError("not_found", f"Bundle {slug} not found", status.HTTP_404_NOT_FOUND)
    return related
