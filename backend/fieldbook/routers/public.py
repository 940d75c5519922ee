from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings, get_settings
from ..deps import get_session
from ..infrastructure.repositories import build_repositories
from ..schemas import (
    BookingConfigRead,
    ClosedDayList,
    ClosedDayRead,
    ClosedSlotList,
    ClosedSlotRead,
    FieldSchema,
    PublicConfigRead,
)
from ..usecases import admin as admin_usecase
from ..usecases import closures as closure_usecase
from ..utils.weather import fetch_forecast

router = APIRouter(prefix="", tags=["public"])


@router.get("/fields", response_model=list[FieldSchema])
async def list_fields(session: AsyncSession = Depends(get_session)) -> list[FieldSchema]:
    repos = build_repositories(session)
    rows = await admin_usecase.list_fields(repos.fields)
    return [FieldSchema.from_db(field=row) for row in rows]


@router.get("/public/config", response_model=PublicConfigRead)
async def get_public_config(session: AsyncSession = Depends(get_session)) -> PublicConfigRead:
    repos = build_repositories(session)
    rules = await admin_usecase.get_rules(repos.config)
    fields = await admin_usecase.list_fields(repos.fields)
    base = BookingConfigRead.from_rules(rules)
    return PublicConfigRead(**base.model_dump(), fields=[FieldSchema.from_db(field=f) for f in fields])


@router.get("/public/closed-days", response_model=ClosedDayList)
async def list_closed_days(session: AsyncSession = Depends(get_session)) -> ClosedDayList:
    repos = build_repositories(session)
    rows = await closure_usecase.list_closed_days(repos.closures)
    return ClosedDayList(days=[ClosedDayRead.from_db(closed_day=row) for row in rows])


@router.get("/public/closed-slots", response_model=ClosedSlotList)
async def list_closed_slots(session: AsyncSession = Depends(get_session)) -> ClosedSlotList:
    repos = build_repositories(session)
    rows = await closure_usecase.list_closed_slots(repos.closures)
    return ClosedSlotList(items=[ClosedSlotRead.from_db(closed_slot=row) for row in rows])


@router.get("/weather")
async def get_weather(settings: Settings = Depends(get_settings)) -> dict[str, Any]:
    return await fetch_forecast(settings)
