import datetime as dt

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_principal, get_reaper, get_session
from ..domain.errors import DomainError
from ..domain.reaper import ExpiryReaper
from ..infrastructure.repositories import build_repositories
from ..schemas import DayAvailabilityRead
from ..usecases import slots as slot_usecase
from .common import reap_expired, to_http_exception

router = APIRouter(prefix="", tags=["slots"], dependencies=[Depends(get_current_principal)])


@router.get("/slots", response_model=DayAvailabilityRead)
async def list_availability(
    date: dt.date = Query(..., description="Calendar date (YYYY-MM-DD)"),
    field_id: str = Query(..., min_length=1, max_length=64),
    session: AsyncSession = Depends(get_session),
    reaper: ExpiryReaper = Depends(get_reaper),
) -> DayAvailabilityRead:
    repos = build_repositories(session)
    await reap_expired(session, repos, reaper)
    try:
        availability = await slot_usecase.list_availability(repos, day=date, field_id=field_id)
    except DomainError as exc:
        raise to_http_exception(exc) from exc
    return DayAvailabilityRead.from_domain(availability)
