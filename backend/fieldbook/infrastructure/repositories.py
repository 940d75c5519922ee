from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import Select, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.closures import ALL_FIELDS
from ..domain.errors import SlotConflictError
from ..domain.repositories import (
    ClosureRepository,
    ConfigRepository,
    FieldRepository,
    Repositories,
    ReservationRepository,
    UserRepository,
)
from ..domain.rules import DEFAULT_RULES, BookingRules, OpenRange
from ..models import BookingConfig, ClosedDay, ClosedSlot, Field, OpenRangeRow, Reservation, User

CONFIG_ID = 1
MYSQL_DUPLICATE_ENTRY = 1062


def _utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _is_duplicate_key(exc: IntegrityError) -> bool:
    """True only for unique-key violations on MySQL or SQLite."""
    orig = exc.orig
    if getattr(orig, "sqlite_errorname", None) == "SQLITE_CONSTRAINT_UNIQUE":
        return True
    args = getattr(orig, "args", ())
    return bool(args) and args[0] == MYSQL_DUPLICATE_ENTRY


class SqlAlchemyReservationRepository(ReservationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, reservation_id: int) -> Optional[Reservation]:
        return await self.session.get(Reservation, reservation_id)

    async def exists_at(self, field_id: str, day: date, slot_time: time) -> bool:
        stmt = select(Reservation.id).where(
            Reservation.field_id == field_id,
            Reservation.date == day,
            Reservation.time == slot_time,
        )
        return await self.session.scalar(stmt) is not None

    async def create(self, *, field_id: str, day: date, slot_time: time, username: str) -> Reservation:
        reservation = Reservation(
            field_id=field_id,
            date=day,
            time=slot_time,
            username=username,
            created_at=_utc_now_naive(),
        )
        # The unique constraint is the arbiter; the savepoint keeps the outer
        # transaction usable when a concurrent insert wins.
        try:
            async with self.session.begin_nested():
                self.session.add(reservation)
                await self.session.flush()
        except IntegrityError as exc:
            if not _is_duplicate_key(exc):
                raise
            raise SlotConflictError("slot already booked") from exc
        return reservation

    async def delete(self, reservation: Reservation) -> None:
        await self.session.delete(reservation)
        await self.session.flush()

    async def delete_many(self, reservation_ids: Sequence[int]) -> int:
        if not reservation_ids:
            return 0
        stmt = (
            delete(Reservation)
            .where(Reservation.id.in_(list(reservation_ids)))
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return int(result.rowcount or 0)

    async def list_for_date(self, day: date) -> List[Reservation]:
        stmt = (
            select(Reservation)
            .where(Reservation.date == day)
            .order_by(Reservation.time, Reservation.field_id)
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_for_user(self, username: str) -> List[Reservation]:
        stmt = (
            select(Reservation)
            .where(Reservation.username == username)
            .order_by(Reservation.date, Reservation.time)
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_on_or_before(self, day: date) -> List[Reservation]:
        stmt = select(Reservation).where(Reservation.date <= day)
        return list((await self.session.scalars(stmt)).all())

    async def count_for_user_between(self, username: str, start: date, end: date) -> int:
        stmt = select(func.count(Reservation.id)).where(
            Reservation.username == username,
            Reservation.date >= start,
            Reservation.date <= end,
        )
        return int(await self.session.scalar(stmt) or 0)

    async def count_for_user_after(self, username: str, day: date) -> int:
        stmt = select(func.count(Reservation.id)).where(
            Reservation.username == username,
            Reservation.date > day,
        )
        return int(await self.session.scalar(stmt) or 0)

    async def reassign_user(self, old_username: str, new_username: str) -> int:
        stmt = (
            update(Reservation)
            .where(Reservation.username == old_username)
            .values(username=new_username)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return int(result.rowcount or 0)


class SqlAlchemyUserRepository(UserRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, username: str) -> Optional[User]:
        return await self.session.get(User, username)

    async def list_all(self) -> List[User]:
        stmt = select(User).order_by(User.username)
        return list((await self.session.scalars(stmt)).all())

    async def debit_credit(self, username: str) -> bool:
        # Single UPDATE expression: no read-modify-write in application memory.
        stmt = (
            update(User)
            .where(User.username == username, User.credits > 0)
            .values(credits=User.credits - 1, updated_at=_utc_now_naive())
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def adjust_credits(self, username: str, delta: int) -> Optional[User]:
        stmt = (
            update(User)
            .where(User.username == username)
            .values(credits=User.credits + delta, updated_at=_utc_now_naive())
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.session.get(User, username, populate_existing=True)

    async def add_credits_all(self, amount: int) -> int:
        stmt = (
            update(User)
            .values(credits=User.credits + amount, updated_at=_utc_now_naive())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return int(result.rowcount or 0)

    async def rename(self, old_username: str, new_username: str) -> None:
        stmt = (
            update(User)
            .where(User.username == old_username)
            .values(username=new_username, updated_at=_utc_now_naive())
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
        self.session.expunge_all()

    async def set_disabled(self, username: str, disabled: bool) -> Optional[User]:
        user = await self.session.get(User, username)
        if user is None:
            return None
        user.disabled = disabled
        user.updated_at = _utc_now_naive()
        await self.session.flush()
        return user


class SqlAlchemyConfigRepository(ConfigRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_rules(self) -> BookingRules:
        config = await self.session.get(BookingConfig, CONFIG_ID)
        if config is None:
            return DEFAULT_RULES
        return BookingRules(
            slot_minutes=config.slot_minutes,
            open_ranges=tuple(OpenRange(start=row.starts_at, end=row.ends_at) for row in config.open_ranges),
            max_per_day=config.max_per_day,
            max_per_week=config.max_per_week,
            max_active=config.max_active,
        )

    async def save_rules(self, rules: BookingRules) -> BookingRules:
        config = await self.session.get(BookingConfig, CONFIG_ID)
        if config is None:
            config = BookingConfig(id=CONFIG_ID, open_ranges=[])
            self.session.add(config)
        config.slot_minutes = rules.slot_minutes
        config.max_per_day = rules.max_per_day
        config.max_per_week = rules.max_per_week
        config.max_active = rules.max_active
        config.updated_at = _utc_now_naive()
        config.open_ranges = [
            OpenRangeRow(position=index, starts_at=open_range.start, ends_at=open_range.end)
            for index, open_range in enumerate(rules.open_ranges)
        ]
        await self.session.flush()
        return rules


class SqlAlchemyFieldRepository(FieldRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_all(self) -> List[Field]:
        stmt = select(Field).order_by(Field.position, Field.id)
        return list((await self.session.scalars(stmt)).all())

    async def get(self, field_id: str) -> Optional[Field]:
        return await self.session.get(Field, field_id)

    async def replace_all(self, fields: Iterable[tuple[str, str]]) -> List[Field]:
        await self.session.execute(delete(Field).execution_options(synchronize_session=False))
        self.session.expunge_all()
        rows = [Field(id=field_id, name=name, position=index) for index, (field_id, name) in enumerate(fields)]
        self.session.add_all(rows)
        await self.session.flush()
        return rows


class SqlAlchemyClosureRepository(ClosureRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_closed_days(self) -> List[ClosedDay]:
        stmt = select(ClosedDay).order_by(ClosedDay.date)
        return list((await self.session.scalars(stmt)).all())

    async def get_closed_day(self, day: date) -> Optional[ClosedDay]:
        return await self.session.get(ClosedDay, day)

    async def add_closed_days(self, days: Iterable[date], reason: str | None) -> List[ClosedDay]:
        stored: List[ClosedDay] = []
        for day in days:
            stored.append(await self.session.merge(ClosedDay(date=day, reason=reason)))
        await self.session.flush()
        return stored

    async def delete_closed_day(self, day: date) -> bool:
        stmt = delete(ClosedDay).where(ClosedDay.date == day).execution_options(synchronize_session=False)
        result = await self.session.execute(stmt)
        return bool(result.rowcount)

    async def list_closed_slots(self) -> List[ClosedSlot]:
        stmt = select(ClosedSlot).order_by(ClosedSlot.start_date, ClosedSlot.start_time, ClosedSlot.id)
        return list((await self.session.scalars(stmt)).all())

    async def closed_slots_on(self, day: date, field_id: str | None = None) -> List[ClosedSlot]:
        stmt: Select[tuple[ClosedSlot]] = select(ClosedSlot).where(
            ClosedSlot.start_date <= day,
            ClosedSlot.end_date >= day,
        )
        if field_id is not None:
            stmt = stmt.where(or_(ClosedSlot.field_id == ALL_FIELDS, ClosedSlot.field_id == field_id))
        return list((await self.session.scalars(stmt)).all())

    async def create_closed_slot(
        self,
        *,
        field_id: str,
        start_date: date,
        end_date: date,
        start_time: time,
        end_time: time,
        reason: str | None,
    ) -> ClosedSlot:
        closed_slot = ClosedSlot(
            field_id=field_id,
            start_date=start_date,
            end_date=end_date,
            start_time=start_time,
            end_time=end_time,
            reason=reason,
            created_at=_utc_now_naive(),
        )
        self.session.add(closed_slot)
        await self.session.flush()
        return closed_slot

    async def delete_closed_slot(self, closed_slot_id: int) -> bool:
        stmt = (
            delete(ClosedSlot)
            .where(ClosedSlot.id == closed_slot_id)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return bool(result.rowcount)


def build_repositories(session: AsyncSession) -> Repositories:
    return Repositories(
        reservations=SqlAlchemyReservationRepository(session),
        users=SqlAlchemyUserRepository(session),
        config=SqlAlchemyConfigRepository(session),
        fields=SqlAlchemyFieldRepository(session),
        closures=SqlAlchemyClosureRepository(session),
    )
