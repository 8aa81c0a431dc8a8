from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.utils.errors import install_exception_handlers
from routes.admin import router as admin_router
from routes.bundles import router as bundles_router
from routes.tracking import router as tracking_router

settings = get_settings()

app = FastAPI(title="Gift Bundles API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_exception_handlers(app)
app.include_router(bundles_router)
app.include_router(tracking_router)
app.include_router(admin_router)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
