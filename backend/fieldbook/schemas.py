import datetime as dt
from typing import Optional

from pydantic import BaseModel, Field, field_serializer, model_validator

from .domain.closures import ALL_FIELDS
from .domain.rules import BookingRules, OpenRange
from .models import ClosedDay, ClosedSlot, Reservation, User, UserRole
from .models import Field as FieldRow
from .usecases.slots import DayAvailability
from .utils.time import format_hhmm

IDENTIFIER_PATTERN = r"^[A-Za-z0-9._-]+$"


class OkResponse(BaseModel):
    ok: bool = True


class ReservationCreate(BaseModel):
    field_id: str = Field(min_length=1, max_length=64)
    date: dt.date
    time: dt.time


class ReservationRead(BaseModel):
    reservation_id: int
    field_id: str
    date: dt.date
    time: dt.time
    username: str
    created_at: dt.datetime

    @field_serializer("time")
    def _ser_time(self, value: dt.time) -> str:
        return format_hhmm(value)

    @classmethod
    def from_db(cls, *, reservation: Reservation) -> "ReservationRead":
        return cls(
            reservation_id=reservation.id,
            field_id=reservation.field_id,
            date=reservation.date,
            time=reservation.time,
            username=reservation.username,
            created_at=reservation.created_at,
        )


class ReservationList(BaseModel):
    items: list[ReservationRead]


class SlotStateRead(BaseModel):
    time: dt.time
    taken: bool
    closed: bool
    reason: Optional[str] = None
    reservation_id: Optional[int] = None
    username: Optional[str] = None

    @field_serializer("time")
    def _ser_time(self, value: dt.time) -> str:
        return format_hhmm(value)


class DayAvailabilityRead(BaseModel):
    date: dt.date
    field_id: str
    day_closed: bool
    reason: Optional[str]
    slots: list[SlotStateRead]

    @classmethod
    def from_domain(cls, availability: DayAvailability) -> "DayAvailabilityRead":
        return cls(
            date=availability.day,
            field_id=availability.field_id,
            day_closed=availability.day_closed,
            reason=availability.reason,
            slots=[
                SlotStateRead(
                    time=slot.time,
                    taken=slot.taken,
                    closed=slot.closed,
                    reason=slot.reason,
                    reservation_id=slot.reservation_id,
                    username=slot.username,
                )
                for slot in availability.slots
            ],
        )


class UserRead(BaseModel):
    username: str
    role: UserRole
    credits: int
    disabled: bool

    @classmethod
    def from_db(cls, *, user: User) -> "UserRead":
        return cls(username=user.username, role=user.role, credits=user.credits, disabled=user.disabled)


class UserList(BaseModel):
    items: list[UserRead]


class CreditAdjust(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    delta: int = Field(ge=-10_000, le=10_000)


class AddCreditsAll(BaseModel):
    amount: int = Field(ge=1, le=1000)


class AddCreditsAllResult(BaseModel):
    updated: int


class UserRename(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    new_username: str = Field(min_length=1, max_length=64, pattern=IDENTIFIER_PATTERN)


class UserRenameResult(BaseModel):
    username: str
    reservations_moved: int


class UserStatusUpdate(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    disabled: bool


class OpenRangeSchema(BaseModel):
    start: dt.time
    end: dt.time

    @model_validator(mode="after")
    def _check_order(self) -> "OpenRangeSchema":
        if self.start >= self.end:
            raise ValueError("start must be earlier than end")
        return self

    @field_serializer("start", "end")
    def _ser_time(self, value: dt.time) -> str:
        return format_hhmm(value)


class BookingConfigRead(BaseModel):
    slot_minutes: int
    open_ranges: list[OpenRangeSchema]
    max_per_day: int
    max_per_week: int
    max_active: int

    @classmethod
    def from_rules(cls, rules: BookingRules) -> "BookingConfigRead":
        return cls(
            slot_minutes=rules.slot_minutes,
            open_ranges=[OpenRangeSchema(start=r.start, end=r.end) for r in rules.open_ranges],
            max_per_day=rules.max_per_day,
            max_per_week=rules.max_per_week,
            max_active=rules.max_active,
        )


class BookingConfigUpdate(BaseModel):
    slot_minutes: int = Field(ge=15, le=180)
    open_ranges: list[OpenRangeSchema] = Field(min_length=1, max_length=10)
    max_per_day: int = Field(ge=1, le=10)
    max_per_week: int = Field(ge=1, le=50)
    max_active: int = Field(ge=1, le=10)

    def to_rules(self) -> BookingRules:
        return BookingRules(
            slot_minutes=self.slot_minutes,
            open_ranges=tuple(OpenRange(start=r.start, end=r.end) for r in self.open_ranges),
            max_per_day=self.max_per_day,
            max_per_week=self.max_per_week,
            max_active=self.max_active,
        )


class FieldSchema(BaseModel):
    id: str = Field(min_length=1, max_length=64, pattern=IDENTIFIER_PATTERN)
    name: str = Field(min_length=1, max_length=255)

    @classmethod
    def from_db(cls, *, field: FieldRow) -> "FieldSchema":
        return cls(id=field.id, name=field.name)


class FieldsUpdate(BaseModel):
    fields: list[FieldSchema] = Field(max_length=50)


class PublicConfigRead(BookingConfigRead):
    fields: list[FieldSchema]


class ClosedDayRead(BaseModel):
    date: dt.date
    reason: Optional[str] = None

    @classmethod
    def from_db(cls, *, closed_day: ClosedDay) -> "ClosedDayRead":
        return cls(date=closed_day.date, reason=closed_day.reason)


class ClosedDayList(BaseModel):
    days: list[ClosedDayRead]


class ClosedDayCreate(BaseModel):
    date: dt.date
    reason: Optional[str] = Field(default=None, max_length=255)


class ClosedDayRangeCreate(BaseModel):
    start_date: dt.date
    end_date: dt.date
    reason: Optional[str] = Field(default=None, max_length=255)


class ClosedSlotCreate(BaseModel):
    field_id: str = Field(default=ALL_FIELDS, min_length=1, max_length=64)
    start_date: dt.date
    end_date: dt.date
    start_time: dt.time
    end_time: dt.time
    reason: Optional[str] = Field(default=None, max_length=255)


class ClosedSlotRead(BaseModel):
    id: int
    field_id: str
    start_date: dt.date
    end_date: dt.date
    start_time: dt.time
    end_time: dt.time
    reason: Optional[str] = None

    @field_serializer("start_time", "end_time")
    def _ser_time(self, value: dt.time) -> str:
        return format_hhmm(value)

    @classmethod
    def from_db(cls, *, closed_slot: ClosedSlot) -> "ClosedSlotRead":
        return cls(
            id=closed_slot.id,
            field_id=closed_slot.field_id,
            start_date=closed_slot.start_date,
            end_date=closed_slot.end_date,
            start_time=closed_slot.start_time,
            end_time=closed_slot.end_time,
            reason=closed_slot.reason,
        )


class ClosedSlotList(BaseModel):
    items: list[ClosedSlotRead]
