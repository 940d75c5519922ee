import asyncio
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Optional, Sequence
from zoneinfo import ZoneInfo

import pytest
from fieldbook.domain.closures import ALL_FIELDS
from fieldbook.domain.errors import SlotConflictError
from fieldbook.domain.principal import Principal
from fieldbook.domain.repositories import Repositories
from fieldbook.domain.rules import BookingRules, OpenRange
from fieldbook.models import ClosedDay, ClosedSlot, Field, Reservation, User, UserRole

ROME = ZoneInfo("Europe/Rome")

# Wednesday 2026-10-14, 09:30 local time. Its ISO week runs 2026-10-12..2026-10-18.
NOW = datetime(2026, 10, 14, 9, 30, tzinfo=ROME)

# Hourly slots from 08:00 to 22:00 keep closure boundaries on the grid.
HOURLY_RULES = BookingRules(
    slot_minutes=60,
    open_ranges=(OpenRange(time(8, 0), time(22, 0)),),
    max_per_day=1,
    max_per_week=3,
    max_active=2,
)


def _utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class FixedClock:
    def __init__(self, current: datetime = NOW) -> None:
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current = self.current + timedelta(**kwargs)


class FakeReservationRepo:
    def __init__(self) -> None:
        self.rows: dict[int, Reservation] = {}
        self._next_id = 1
        self.delete_many_calls: list[list[int]] = []

    def add(self, *, field_id: str, day: date, slot_time: time, username: str) -> Reservation:
        reservation = Reservation(
            id=self._next_id,
            field_id=field_id,
            date=day,
            time=slot_time,
            username=username,
            created_at=_utc_now_naive(),
        )
        self.rows[reservation.id] = reservation
        self._next_id += 1
        return reservation

    async def get(self, reservation_id: int) -> Optional[Reservation]:
        return self.rows.get(reservation_id)

    async def exists_at(self, field_id: str, day: date, slot_time: time) -> bool:
        # Yield so concurrent bookings interleave between check and insert.
        await asyncio.sleep(0)
        return any(
            r.field_id == field_id and r.date == day and r.time == slot_time for r in self.rows.values()
        )

    async def create(self, *, field_id: str, day: date, slot_time: time, username: str) -> Reservation:
        await asyncio.sleep(0)
        # No await between the check and the insert: this is the atomic create-if-absent.
        if any(r.field_id == field_id and r.date == day and r.time == slot_time for r in self.rows.values()):
            raise SlotConflictError("slot already booked")
        return self.add(field_id=field_id, day=day, slot_time=slot_time, username=username)

    async def delete(self, reservation: Reservation) -> None:
        self.rows.pop(reservation.id, None)

    async def delete_many(self, reservation_ids: Sequence[int]) -> int:
        self.delete_many_calls.append(list(reservation_ids))
        deleted = 0
        for reservation_id in reservation_ids:
            if self.rows.pop(reservation_id, None) is not None:
                deleted += 1
        return deleted

    async def list_for_date(self, day: date) -> list[Reservation]:
        return sorted((r for r in self.rows.values() if r.date == day), key=lambda r: (r.time, r.field_id))

    async def list_for_user(self, username: str) -> list[Reservation]:
        return sorted((r for r in self.rows.values() if r.username == username), key=lambda r: (r.date, r.time))

    async def list_on_or_before(self, day: date) -> list[Reservation]:
        return [r for r in self.rows.values() if r.date <= day]

    async def count_for_user_between(self, username: str, start: date, end: date) -> int:
        await asyncio.sleep(0)
        return sum(1 for r in self.rows.values() if r.username == username and start <= r.date <= end)

    async def count_for_user_after(self, username: str, day: date) -> int:
        await asyncio.sleep(0)
        return sum(1 for r in self.rows.values() if r.username == username and r.date > day)

    async def reassign_user(self, old_username: str, new_username: str) -> int:
        moved = 0
        for reservation in self.rows.values():
            if reservation.username == old_username:
                reservation.username = new_username
                moved += 1
        return moved


class FakeUserRepo:
    def __init__(self) -> None:
        self.rows: dict[str, User] = {}

    def add(self, username: str, *, credits: int = 10, role: UserRole = UserRole.USER, disabled: bool = False) -> User:
        now = _utc_now_naive()
        user = User(username=username, role=role, credits=credits, disabled=disabled, created_at=now, updated_at=now)
        self.rows[username] = user
        return user

    async def get(self, username: str) -> Optional[User]:
        return self.rows.get(username)

    async def list_all(self) -> list[User]:
        return [self.rows[name] for name in sorted(self.rows)]

    async def debit_credit(self, username: str) -> bool:
        user = self.rows.get(username)
        if user is None or user.credits <= 0:
            return False
        user.credits -= 1
        return True

    async def adjust_credits(self, username: str, delta: int) -> Optional[User]:
        user = self.rows.get(username)
        if user is None:
            return None
        user.credits += delta
        return user

    async def add_credits_all(self, amount: int) -> int:
        for user in self.rows.values():
            user.credits += amount
        return len(self.rows)

    async def rename(self, old_username: str, new_username: str) -> None:
        user = self.rows.pop(old_username)
        user.username = new_username
        self.rows[new_username] = user

    async def set_disabled(self, username: str, disabled: bool) -> Optional[User]:
        user = self.rows.get(username)
        if user is None:
            return None
        user.disabled = disabled
        return user


class FakeConfigRepo:
    def __init__(self, rules: BookingRules = HOURLY_RULES) -> None:
        self.rules = rules

    async def get_rules(self) -> BookingRules:
        return self.rules

    async def save_rules(self, rules: BookingRules) -> BookingRules:
        self.rules = rules
        return rules


class FakeFieldRepo:
    def __init__(self) -> None:
        self.rows: list[Field] = [Field(id="f1", name="Field 1", position=0), Field(id="f2", name="Field 2", position=1)]

    async def list_all(self) -> list[Field]:
        return list(self.rows)

    async def get(self, field_id: str) -> Optional[Field]:
        return next((f for f in self.rows if f.id == field_id), None)

    async def replace_all(self, fields: Iterable[tuple[str, str]]) -> list[Field]:
        self.rows = [Field(id=field_id, name=name, position=i) for i, (field_id, name) in enumerate(fields)]
        return list(self.rows)


class FakeClosureRepo:
    def __init__(self) -> None:
        self.days: dict[date, ClosedDay] = {}
        self.slots: dict[int, ClosedSlot] = {}
        self._next_id = 1

    async def list_closed_days(self) -> list[ClosedDay]:
        return [self.days[d] for d in sorted(self.days)]

    async def get_closed_day(self, day: date) -> Optional[ClosedDay]:
        return self.days.get(day)

    async def add_closed_days(self, days: Iterable[date], reason: str | None) -> list[ClosedDay]:
        stored = []
        for day in days:
            self.days[day] = ClosedDay(date=day, reason=reason)
            stored.append(self.days[day])
        return stored

    async def delete_closed_day(self, day: date) -> bool:
        return self.days.pop(day, None) is not None

    async def list_closed_slots(self) -> list[ClosedSlot]:
        return list(self.slots.values())

    async def closed_slots_on(self, day: date, field_id: str | None = None) -> list[ClosedSlot]:
        return [
            s
            for s in self.slots.values()
            if s.start_date <= day <= s.end_date and (field_id is None or s.field_id in (ALL_FIELDS, field_id))
        ]

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
            id=self._next_id,
            field_id=field_id,
            start_date=start_date,
            end_date=end_date,
            start_time=start_time,
            end_time=end_time,
            reason=reason,
            created_at=_utc_now_naive(),
        )
        self.slots[closed_slot.id] = closed_slot
        self._next_id += 1
        return closed_slot

    async def delete_closed_slot(self, closed_slot_id: int) -> bool:
        return self.slots.pop(closed_slot_id, None) is not None


class InMemoryStore:
    def __init__(self) -> None:
        self.reservations = FakeReservationRepo()
        self.users = FakeUserRepo()
        self.config = FakeConfigRepo()
        self.fields = FakeFieldRepo()
        self.closures = FakeClosureRepo()

    @property
    def repos(self) -> Repositories:
        return Repositories(
            reservations=self.reservations,
            users=self.users,
            config=self.config,
            fields=self.fields,
            closures=self.closures,
        )


class DummySession:
    """Minimal async session stub that supports `async with session.begin()`."""

    def __init__(self) -> None:
        self.begin_calls = 0

    async def __aenter__(self) -> "DummySession":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False

    def begin(self) -> "DummySession":
        self.begin_calls += 1
        return self


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def alice() -> Principal:
    return Principal(username="alice", role=UserRole.USER)


@pytest.fixture
def admin() -> Principal:
    return Principal(username="root", role=UserRole.ADMIN)


@pytest.fixture
def dummy_session() -> DummySession:
    return DummySession()
