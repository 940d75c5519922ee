from functools import lru_cache
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import get_settings


@lru_cache
def get_engine() -> AsyncEngine:
    settings = get_settings()
    options: dict[str, Any] = {"echo": settings.echo_sql, "pool_pre_ping": True, "pool_recycle": 3600}
    if settings.db_isolation_level:
        options["isolation_level"] = settings.db_isolation_level
    return create_async_engine(settings.database_url, **options)


@lru_cache
def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(get_engine(), expire_on_commit=False, class_=AsyncSession)
