from __future__ import annotations

import datetime as dt
from enum import StrEnum
from typing import Optional

from sqlalchemy import CheckConstraint, Enum, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql.sqltypes import BigInteger, Boolean, Date, DateTime, Integer, String, Time

# SQLite only autoincrements INTEGER PRIMARY KEY columns.
ID_TYPE = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    pass


class UserRole(StrEnum):
    USER = "user"
    ADMIN = "admin"


class User(Base):
    __tablename__ = "users"
    __table_args__ = (Index("idx_users_role", "role"),)

    username: Mapped[str] = mapped_column(String(64), primary_key=True)
    role: Mapped[UserRole] = mapped_column(
        Enum(
            UserRole,
            values_callable=lambda enum_cls: [e.value for e in enum_cls],
            native_enum=False,
        ),
        nullable=False,
        default=UserRole.USER,
    )
    credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    disabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class Field(Base):
    __tablename__ = "fields"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        UniqueConstraint("field_id", "date", "time", name="uq_reservations_slot"),
        Index("idx_res_user_date", "username", "date"),
        Index("idx_res_date", "date"),
    )

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    field_id: Mapped[str] = mapped_column(String(64), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    username: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class BookingConfig(Base):
    __tablename__ = "booking_config"
    __table_args__ = (
        CheckConstraint("slot_minutes > 0", name="chk_cfg_slot_minutes"),
        CheckConstraint("max_per_day >= 1", name="chk_cfg_max_per_day"),
        CheckConstraint("max_per_week >= 1", name="chk_cfg_max_per_week"),
        CheckConstraint("max_active >= 1", name="chk_cfg_max_active"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    slot_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    max_per_day: Mapped[int] = mapped_column(Integer, nullable=False)
    max_per_week: Mapped[int] = mapped_column(Integer, nullable=False)
    max_active: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    open_ranges: Mapped[list["OpenRangeRow"]] = relationship(
        back_populates="config",
        order_by="OpenRangeRow.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class OpenRangeRow(Base):
    __tablename__ = "open_ranges"
    __table_args__ = (CheckConstraint("starts_at < ends_at", name="chk_open_range_time"),)

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    config_id: Mapped[int] = mapped_column(ForeignKey("booking_config.id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    starts_at: Mapped[dt.time] = mapped_column(Time, nullable=False)
    ends_at: Mapped[dt.time] = mapped_column(Time, nullable=False)

    config: Mapped["BookingConfig"] = relationship(back_populates="open_ranges")


class ClosedDay(Base):
    __tablename__ = "closed_days"

    date: Mapped[dt.date] = mapped_column(Date, primary_key=True)
    reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


class ClosedSlot(Base):
    __tablename__ = "closed_slots"
    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="chk_closed_slot_dates"),
        CheckConstraint("start_time < end_time", name="chk_closed_slot_times"),
        Index("idx_closed_slot_range", "start_date", "end_date"),
    )

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    field_id: Mapped[str] = mapped_column(String(64), nullable=False)
    start_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    end_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    start_time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    end_time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=False), nullable=False)
