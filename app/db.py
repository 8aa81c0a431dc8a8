from __future__ import annotations

from typing import Union

from sqlalchemy import MetaData, event
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.config import get_settings

settings = get_settings()

convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=convention)


def async_url(raw: Union[str, URL]) -> URL:
    """Maps sync driver names onto their async counterparts (asyncpg, aiosqlite)."""
    url = make_url(raw)
    if url.drivername in {"postgresql", "postgresql+psycopg2"}:
        return url.set(drivername="postgresql+asyncpg")
    if url.drivername == "sqlite":
        return url.set(drivername="sqlite+aiosqlite")
    return url


def build_engine(raw: Union[str, URL], echo: bool = False) -> AsyncEngine:
    url = async_url(raw)
    if url.get_backend_name() != "sqlite":
        # URL object, not a string: asyncpg chokes on special chars in DSN passwords
        return create_async_engine(url, echo=echo, pool_pre_ping=True)

    sqlite_engine = create_async_engine(url, echo=echo)

    # cascades on bundle children need foreign keys, which SQLite keeps off per connection
    @event.listens_for(sqlite_engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return sqlite_engine


db_url = async_url(settings.database_url)
engine = build_engine(db_url)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def get_db() -> AsyncSession:
    async with SessionLocal() as session:
        yield session
