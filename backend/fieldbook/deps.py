import logging
from datetime import timedelta
from functools import lru_cache
from typing import AsyncIterator
from zoneinfo import ZoneInfo

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from .database import get_sessionmaker
from .domain.principal import Principal
from .domain.reaper import ExpiryReaper
from .models import User
from .utils.auth import decode_access_token
from .utils.time import Clock, SystemClock

logger = logging.getLogger(__name__)


async def get_session() -> AsyncIterator[AsyncSession]:
    async with get_sessionmaker()() as session:
        yield session


def _unauthenticated() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="NOT_AUTHENTICATED",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_principal(
    authorization: str | None = Header(default=None),
    session: AsyncSession = Depends(get_session),
) -> Principal:
    if authorization is None:
        raise _unauthenticated()
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _unauthenticated()

    settings = get_settings()
    try:
        username = decode_access_token(
            token.strip(),
            secret=settings.auth_secret,
            algorithms=[settings.auth_algorithm],
            issuer=settings.auth_issuer,
        )
    except ValueError as exc:
        raise _unauthenticated() from exc

    try:
        async with session.begin():
            user = await session.get(User, username)
    except SQLAlchemyError as exc:
        logger.exception("user lookup failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="USER_LOOKUP_FAILED") from exc

    if user is None:
        raise _unauthenticated()
    if user.disabled:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="USER_DISABLED")
    return Principal(username=user.username, role=user.role)


async def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="NOT_AUTHORIZED")
    return principal


@lru_cache
def get_clock() -> Clock:
    return SystemClock(ZoneInfo(get_settings().timezone))


@lru_cache
def get_reaper() -> ExpiryReaper:
    cooldown = timedelta(seconds=get_settings().reaper_cooldown_seconds)
    return ExpiryReaper(get_clock(), cooldown=cooldown)
