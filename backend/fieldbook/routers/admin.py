import datetime as dt
from typing import Any

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_session, require_admin
from ..domain.errors import DomainError
from ..domain.principal import Principal
from ..infrastructure.repositories import build_repositories
from ..schemas import (
    AddCreditsAll,
    AddCreditsAllResult,
    BookingConfigRead,
    BookingConfigUpdate,
    ClosedDayCreate,
    ClosedDayList,
    ClosedDayRangeCreate,
    ClosedDayRead,
    ClosedSlotCreate,
    ClosedSlotList,
    ClosedSlotRead,
    CreditAdjust,
    FieldSchema,
    FieldsUpdate,
    OkResponse,
    UserList,
    UserRead,
    UserRename,
    UserRenameResult,
    UserStatusUpdate,
)
from ..usecases import admin as admin_usecase
from ..usecases import closures as closure_usecase
from ..utils.audit_log import AuditAction, emit_audit_log
from .common import audit_failed, to_http_exception

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


def _audit(action: AuditAction, principal: Principal, **kwargs: Any) -> None:
    try:
        emit_audit_log(action=action, initiator="admin", actor=principal.username, **kwargs)
    except RuntimeError as exc:
        raise audit_failed() from exc


@router.get("/config", response_model=BookingConfigRead)
async def get_config(session: AsyncSession = Depends(get_session)) -> BookingConfigRead:
    repos = build_repositories(session)
    return BookingConfigRead.from_rules(await admin_usecase.get_rules(repos.config))


@router.put("/config", response_model=BookingConfigRead)
async def update_config(
    payload: BookingConfigUpdate,
    session: AsyncSession = Depends(get_session),
    principal: Principal = Depends(require_admin),
) -> BookingConfigRead:
    repos = build_repositories(session)
    async with session.begin():
        try:
            rules = await admin_usecase.update_rules(repos.config, rules=payload.to_rules())
        except DomainError as exc:
            raise to_http_exception(exc) from exc
        _audit("config.updated", principal, extra={"slot_minutes": rules.slot_minutes})
    return BookingConfigRead.from_rules(rules)


@router.put("/fields", response_model=list[FieldSchema])
async def replace_fields(
    payload: FieldsUpdate,
    session: AsyncSession = Depends(get_session),
    principal: Principal = Depends(require_admin),
) -> list[FieldSchema]:
    repos = build_repositories(session)
    async with session.begin():
        try:
            rows = await admin_usecase.replace_fields(
                repos.fields,
                entries=[(f.id, f.name) for f in payload.fields],
            )
        except DomainError as exc:
            raise to_http_exception(exc) from exc
        _audit("fields.updated", principal, extra={"count": len(rows)})
        return [FieldSchema.from_db(field=row) for row in rows]


@router.get("/users", response_model=UserList)
async def list_users(session: AsyncSession = Depends(get_session)) -> UserList:
    repos = build_repositories(session)
    rows = await admin_usecase.list_users(repos.users)
    return UserList(items=[UserRead.from_db(user=row) for row in rows])


@router.put("/users/credits", response_model=UserRead)
async def adjust_credits(
    payload: CreditAdjust,
    session: AsyncSession = Depends(get_session),
    principal: Principal = Depends(require_admin),
) -> UserRead:
    repos = build_repositories(session)
    async with session.begin():
        try:
            user = await admin_usecase.adjust_credits(repos.users, username=payload.username, delta=payload.delta)
        except DomainError as exc:
            raise to_http_exception(exc) from exc
        _audit("credits.adjusted", principal, username=user.username, extra={"delta": payload.delta})
        return UserRead.from_db(user=user)


@router.post("/users/add-credits-all", response_model=AddCreditsAllResult)
async def add_credits_to_all(
    payload: AddCreditsAll,
    session: AsyncSession = Depends(get_session),
    principal: Principal = Depends(require_admin),
) -> AddCreditsAllResult:
    repos = build_repositories(session)
    async with session.begin():
        updated = await admin_usecase.add_credits_to_all(repos.users, amount=payload.amount)
        _audit("credits.adjusted", principal, extra={"delta": payload.amount, "users": updated})
    return AddCreditsAllResult(updated=updated)


@router.post("/users/rename", response_model=UserRenameResult)
async def rename_user(
    payload: UserRename,
    session: AsyncSession = Depends(get_session),
    principal: Principal = Depends(require_admin),
) -> UserRenameResult:
    repos = build_repositories(session)
    async with session.begin():
        try:
            moved = await admin_usecase.rename_user(
                repos,
                old_username=payload.username,
                new_username=payload.new_username,
            )
        except DomainError as exc:
            raise to_http_exception(exc) from exc
        _audit(
            "user.renamed",
            principal,
            username=payload.new_username,
            extra={"previous_username": payload.username, "reservations_moved": moved},
        )
    return UserRenameResult(username=payload.new_username, reservations_moved=moved)


@router.put("/users/status", response_model=UserRead)
async def set_user_status(
    payload: UserStatusUpdate,
    session: AsyncSession = Depends(get_session),
    principal: Principal = Depends(require_admin),
) -> UserRead:
    repos = build_repositories(session)
    async with session.begin():
        try:
            user = await admin_usecase.set_user_disabled(
                repos.users,
                username=payload.username,
                disabled=payload.disabled,
            )
        except DomainError as exc:
            raise to_http_exception(exc) from exc
        _audit("user.status_changed", principal, username=user.username, extra={"disabled": user.disabled})
        return UserRead.from_db(user=user)


@router.get("/closed-days", response_model=ClosedDayList)
async def list_closed_days(session: AsyncSession = Depends(get_session)) -> ClosedDayList:
    repos = build_repositories(session)
    rows = await closure_usecase.list_closed_days(repos.closures)
    return ClosedDayList(days=[ClosedDayRead.from_db(closed_day=row) for row in rows])


@router.post("/closed-days", response_model=ClosedDayRead, status_code=status.HTTP_201_CREATED)
async def close_day(
    payload: ClosedDayCreate,
    session: AsyncSession = Depends(get_session),
    principal: Principal = Depends(require_admin),
) -> ClosedDayRead:
    repos = build_repositories(session)
    async with session.begin():
        closed_day = await closure_usecase.close_day(repos.closures, day=payload.date, reason=payload.reason)
        _audit("closure.created", principal, day=payload.date, message=payload.reason)
        return ClosedDayRead.from_db(closed_day=closed_day)


@router.post("/closed-days/range", response_model=ClosedDayList, status_code=status.HTTP_201_CREATED)
async def close_day_range(
    payload: ClosedDayRangeCreate,
    session: AsyncSession = Depends(get_session),
    principal: Principal = Depends(require_admin),
) -> ClosedDayList:
    repos = build_repositories(session)
    async with session.begin():
        try:
            rows = await closure_usecase.close_day_range(
                repos.closures,
                start_date=payload.start_date,
                end_date=payload.end_date,
                reason=payload.reason,
            )
        except DomainError as exc:
            raise to_http_exception(exc) from exc
        _audit(
            "closure.created",
            principal,
            message=payload.reason,
            extra={"start_date": payload.start_date, "end_date": payload.end_date},
        )
        return ClosedDayList(days=[ClosedDayRead.from_db(closed_day=row) for row in rows])


@router.delete("/closed-days/{day}", response_model=OkResponse)
async def reopen_day(
    day: dt.date = Path(...),
    session: AsyncSession = Depends(get_session),
    principal: Principal = Depends(require_admin),
) -> OkResponse:
    repos = build_repositories(session)
    async with session.begin():
        if await closure_usecase.reopen_day(repos.closures, day=day):
            _audit("closure.deleted", principal, day=day)
    return OkResponse()


@router.get("/closed-slots", response_model=ClosedSlotList)
async def list_closed_slots(session: AsyncSession = Depends(get_session)) -> ClosedSlotList:
    repos = build_repositories(session)
    rows = await closure_usecase.list_closed_slots(repos.closures)
    return ClosedSlotList(items=[ClosedSlotRead.from_db(closed_slot=row) for row in rows])


@router.post("/closed-slots", response_model=ClosedSlotRead, status_code=status.HTTP_201_CREATED)
async def create_closed_slot(
    payload: ClosedSlotCreate,
    session: AsyncSession = Depends(get_session),
    principal: Principal = Depends(require_admin),
) -> ClosedSlotRead:
    repos = build_repositories(session)
    async with session.begin():
        try:
            closed_slot = await closure_usecase.create_closed_slot(
                repos.closures,
                repos.fields,
                field_id=payload.field_id,
                start_date=payload.start_date,
                end_date=payload.end_date,
                start_time=payload.start_time,
                end_time=payload.end_time,
                reason=payload.reason,
            )
        except DomainError as exc:
            raise to_http_exception(exc) from exc
        _audit(
            "closure.created",
            principal,
            field_id=closed_slot.field_id,
            message=closed_slot.reason,
            extra={"closed_slot_id": closed_slot.id},
        )
        return ClosedSlotRead.from_db(closed_slot=closed_slot)


@router.delete("/closed-slots/{closed_slot_id}", response_model=OkResponse)
async def delete_closed_slot(
    closed_slot_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    principal: Principal = Depends(require_admin),
) -> OkResponse:
    repos = build_repositories(session)
    async with session.begin():
        try:
            await closure_usecase.delete_closed_slot(repos.closures, closed_slot_id=closed_slot_id)
        except DomainError as exc:
            raise to_http_exception(exc) from exc
        _audit("closure.deleted", principal, extra={"closed_slot_id": closed_slot_id})
    return OkResponse()
