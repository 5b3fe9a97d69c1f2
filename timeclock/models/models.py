import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Date,
    Boolean,
    Numeric,
    Text,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column

from ..db import Base


def str_pk() -> Mapped[str]:
    # Document-store ids are opaque strings, so keys are text rather than native UUIDs
    return mapped_column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))


class User(Base):
    """Employee profile as kept by the user management screens"""
    __tablename__ = "users"

    id: Mapped[str] = str_pk()
    name: Mapped[Optional[str]] = mapped_column(String(100))
    surname: Mapped[Optional[str]] = mapped_column(String(100))
    email: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    role: Mapped[str] = mapped_column(String(20), default="user")  # admin|user
    code: Mapped[Optional[str]] = mapped_column(String(4))  # tablet clock PIN
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


class ClockEntry(Base):
    """One clock action or leave-day marker"""
    __tablename__ = "clock_entries"

    id: Mapped[str] = str_pk()
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(10), nullable=False)  # in|out
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)  # stored in UTC
    location: Mapped[Optional[str]] = mapped_column(Text)  # reverse-geocoded place name
    latitude: Mapped[Optional[float]] = mapped_column(Numeric(10, 7))
    longitude: Mapped[Optional[float]] = mapped_column(Numeric(10, 7))
    is_leave_day: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    __table_args__ = (
        Index('idx_clock_entries_user_time', 'user_id', 'timestamp'),
    )


class LeaveRequest(Base):
    """Leave booked over a span of calendar days"""
    __tablename__ = "leave_requests"

    id: Mapped[str] = str_pk()
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending")  # approved|pending|rejected
    leave_type: Mapped[Optional[str]] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
