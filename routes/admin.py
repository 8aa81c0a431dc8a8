from __future__ import annotations

from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from starlette import status

from app.deps import get_bundle_repository, verify_internal_token
from app.repositories.bundles import BundleRepository
from app.utils.errors import AppError
from bundles.models import BundleFilters, BundlePage, HumorStyle

router = APIRouter(
    prefix="/api/v1/admin/bundles",
    tags=["admin"],
    dependencies=[Depends(verify_internal_token)],
)


@router.get("", response_model=BundlePage)
async def list_bundles(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    humor_style: Optional[HumorStyle] = Query(None, alias="humorStyle"),
    date_from: Optional[date] = Query(None, alias="dateFrom"),
    date_to: Optional[date] = Query(None, alias="dateTo"),
    min_views: Optional[int] = Query(None, alias="minViews", ge=0),
    search: Optional[str] = Query(None, max_length=200),
    sort_by: Literal["created_at", "view_count"] = Query("created_at", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    repository: BundleRepository = Depends(get_bundle_repository),
):
    filters = BundleFilters(
        humor_style=humor_style,
        date_from=date_from,
        date_to=date_to,
        min_views=min_views,
        search=search or None,
    )
    return await repository.list_bundles(
        filters, page=page, page_size=limit, sort_by=sort_by, sort_order=sort_order
    )


@router.delete("/{slug}")
async def delete_bundle(slug: str, repository: BundleRepository = Depends(get_bundle_repository)):
    deleted = await repository.soft_delete_bundle(slug)
    if not deleted:
        raise AppError("not_found", f"Bundle {slug} not found", status.HTTP_404_NOT_FOUND)
    return {"success": True, "slug": slug}
