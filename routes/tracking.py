from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from starlette import status

from app.deps import get_tracking_service
from app.schemas.bundles import TrackClickRequest, TrackImpressionRequest, TrackResponse, TrackShareRequest
from app.services.tracking import TrackingService
from app.utils.errors import AppError

router = APIRouter(prefix="/api/v1/track", tags=["tracking"])


@router.post("/click", response_model=TrackResponse)
async def track_click(
    payload: TrackClickRequest,
    request: Request,
    tracking: TrackingService = Depends(get_tracking_service),
):
    if not payload.slug and not payload.product_id:
        raise AppError(
            "validation_error",
            "Either slug or productId is required",
            status.HTTP_400_BAD_REQUEST,
            {"slug": "required", "productId": "required"},
        )
    await tracking.track_click(
        product_id=payload.product_id,
        slug=payload.slug,
        source=payload.source,
        user_agent=request.headers.get("user-agent"),
        referer=request.headers.get("referer"),
    )
    return TrackResponse(success=True)


@router.post("/impression", response_model=TrackResponse)
async def track_impression(
    payload: TrackImpressionRequest,
    tracking: TrackingService = Depends(get_tracking_service),
):
    if not payload.product_ids:
        raise AppError(
            "validation_error", "productIds must be a non-empty list", status.HTTP_400_BAD_REQUEST
        )
    await tracking.track_impressions(payload.product_ids)
    return TrackResponse(success=True)


@router.post("/share", response_model=TrackResponse)
async def track_share(
    payload: TrackShareRequest,
    tracking: TrackingService = Depends(get_tracking_service),
):
    await tracking.track_share(payload.slug)
    return TrackResponse(success=True)
