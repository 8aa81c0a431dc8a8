from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession
from starlette import status

from app.config import get_settings
from app.db import get_db
from app.repositories.bundles import BundleRepository, SQLBundleRepository
from app.services.bundles import build_pipeline
from app.services.tracking import TrackingService
from app.utils.errors import AppError
from bundles.pipeline import GiftBundlePipeline


def get_bundle_repository(db: AsyncSession = Depends(get_db)) -> BundleRepository:
    return SQLBundleRepository(db)


def get_tracking_service(repository: BundleRepository = Depends(get_bundle_repository)) -> TrackingService:
    return TrackingService(repository)


def get_pipeline(repository: BundleRepository = Depends(get_bundle_repository)) -> GiftBundlePipeline:
    return build_pipeline(repository)


async def verify_internal_token(x_internal_token: Optional[str] = Header(None)) -> str:
    if not x_internal_token or x_internal_token != get_settings().internal_api_token:
        raise AppError("unauthorized", "Invalid internal token", status.HTTP_401_UNAUTHORIZED)
    return x_internal_token
