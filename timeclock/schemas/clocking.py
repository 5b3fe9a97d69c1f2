import math
from datetime import date, datetime, timezone
from typing import List, Optional, Dict, Any
from enum import Enum

from pydantic import BaseModel, AliasChoices, Field, computed_field, field_validator

from ..services.time_rules import ensure_utc


# Enums
class ClockAction(str, Enum):
    clock_in = "in"
    clock_out = "out"


class DoubleClockInPolicy(str, Enum):
    drop_previous = "drop_previous"  # stale clock-in is discarded
    auto_close = "auto_close"  # stale clock-in is closed at the next clock-in


class ShiftType(str, Enum):
    regular = "Regular"
    leave_day = "Leave Day"
    no_shift = "No Shift"


WINDOW_NAMES = ("today", "yesterday", "this_week", "this_month", "all_time")


# Event Schemas
class RawEvent(BaseModel):
    """One clock action or leave-day marker as stored by the clients."""

    id: Optional[str] = None
    user_id: str = Field(min_length=1, validation_alias=AliasChoices("user_id", "userId"))
    action: ClockAction
    timestamp: datetime
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_leave_day: bool = Field(default=False, validation_alias=AliasChoices("is_leave_day", "isLeaveDay"))

    class Config:
        populate_by_name = True
        extra = "ignore"

    @field_validator("id", "location", mode="before")
    @classmethod
    def _as_text(cls, v):
        if v is None:
            return None
        return str(v)

    @field_validator("user_id", mode="before")
    @classmethod
    def _user_id_text(cls, v):
        if v is None:
            return v
        return str(v).strip()

    @field_validator("action", mode="before")
    @classmethod
    def _action_lower(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("timestamp", mode="before")
    @classmethod
    def _parse_timestamp(cls, v):
        # Firestore Timestamp serialized as {"seconds": ..., "nanoseconds": ...}
        if isinstance(v, dict) and "seconds" in v:
            try:
                seconds = float(v["seconds"]) + float(v.get("nanoseconds") or 0) / 1e9
                return datetime.fromtimestamp(seconds, tz=timezone.utc)
            except (TypeError, ValueError, OverflowError, OSError):
                raise ValueError("invalid Firestore timestamp")
        if isinstance(v, str):
            text = v.strip()
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            try:
                return datetime.fromisoformat(text)
            except ValueError:
                return v
        return v

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, v: datetime) -> datetime:
        try:
            utc = ensure_utc(v)
        except OverflowError:
            raise ValueError("timestamp out of range")
        # Local-day conversions need a day of headroom at either end of datetime's range
        if utc.year <= 1 or utc.year >= 9999:
            raise ValueError("timestamp out of range")
        return utc

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _coordinate(cls, v):
        if v is None or v == "":
            return None
        try:
            value = float(v)
        except (TypeError, ValueError):
            return None
        return value if math.isfinite(value) else None

    @field_validator("is_leave_day", mode="before")
    @classmethod
    def _leave_flag(cls, v):
        return False if v is None else v


class NormalizedEvent(RawEvent):
    sequence: int = 0  # position in the caller's input, breaks timestamp ties


class Coordinates(BaseModel):
    latitude: float
    longitude: float


# Shift Schemas
class Shift(BaseModel):
    user_id: str
    clock_in: datetime
    clock_out: Optional[datetime] = None
    clock_in_location: Optional[str] = None
    clock_out_location: Optional[str] = None
    clock_in_coordinates: Optional[Coordinates] = None
    clock_out_coordinates: Optional[Coordinates] = None
    clock_in_id: Optional[str] = None
    clock_out_id: Optional[str] = None
    duration_hours: float = 0.0
    is_leave_day: bool = False
    multi_day_span: bool = False
    negative_duration: bool = False

    @computed_field  # type: ignore[misc]
    @property
    def is_open(self) -> bool:
        return self.clock_out is None


class AggregateBucket(BaseModel):
    today: float = 0.0
    yesterday: float = 0.0
    this_week: float = 0.0
    this_month: float = 0.0
    all_time: float = 0.0


class Anomalies(BaseModel):
    unclosed_shifts: List[Shift] = []
    long_shifts: List[Shift] = []
    multi_day_shifts: List[Shift] = []
    negative_duration_shifts: List[Shift] = []


class DateRange(BaseModel):
    start: date
    end: date


class ExportRow(BaseModel):
    user_id: str
    day: date
    clock_in: Optional[datetime] = None
    clock_out: Optional[datetime] = None
    duration_hours: float = 0.0
    shift_type: ShiftType = ShiftType.no_shift
    comment: str = ""
    is_leave_day: bool = False
    multi_day_span: bool = False
    is_placeholder: bool = True
    shift_count: int = 0


class UserProfile(BaseModel):
    id: str
    name: str = ""
    surname: str = ""
    email: str = ""
    role: str = "user"


# Diagnostics
class PipelineDiagnostics(BaseModel):
    missing_user_id: int = 0
    invalid_timestamp: int = 0
    invalid_action: int = 0
    malformed_records: int = 0
    duplicate_events: int = 0
    orphan_clock_outs: int = 0
    superseded_clock_ins: int = 0
    auto_closed_shifts: int = 0
    unpaired_leave_events: int = 0
    negative_durations: int = 0

    @computed_field  # type: ignore[misc]
    @property
    def dropped_total(self) -> int:
        return (
            self.missing_user_id
            + self.invalid_timestamp
            + self.invalid_action
            + self.malformed_records
            + self.duplicate_events
            + self.orphan_clock_outs
            + self.superseded_clock_ins
        )

    def merge(self, other: "PipelineDiagnostics") -> "PipelineDiagnostics":
        counts = {
            name: getattr(self, name) + getattr(other, name)
            for name in type(self).model_fields
        }
        return PipelineDiagnostics(**counts)


class NormalizationResult(BaseModel):
    events: List[NormalizedEvent] = []
    diagnostics: PipelineDiagnostics = Field(default_factory=PipelineDiagnostics)


class ReconstructionResult(BaseModel):
    shifts: Dict[str, List[Shift]] = {}
    diagnostics: PipelineDiagnostics = Field(default_factory=PipelineDiagnostics)


class ClockingReport(BaseModel):
    reference_instant: datetime
    timezone: str
    shifts: Dict[str, List[Shift]] = {}
    anomalies: Anomalies = Field(default_factory=Anomalies)
    totals_by_user: Dict[str, AggregateBucket] = {}
    totals_all_users: AggregateBucket = Field(default_factory=AggregateBucket)
    on_duty: List[str] = []
    diagnostics: PipelineDiagnostics = Field(default_factory=PipelineDiagnostics)


# Request bodies
class EventsRequest(BaseModel):
    events: List[Dict[str, Any]] = []
    reference_instant: Optional[datetime] = None
    timezone: Optional[str] = None


class ReportRequest(EventsRequest):
    long_shift_threshold_hours: Optional[float] = None


class ExportRequest(BaseModel):
    events: List[Dict[str, Any]] = []
    user_id: str
    start: date
    end: date
    profile: Optional[UserProfile] = None
    timezone: Optional[str] = None


# Leave Schemas
class LeaveRequestRecord(BaseModel):
    id: Optional[str] = None
    user_id: str = Field(min_length=1, validation_alias=AliasChoices("user_id", "userId"))
    start_date: date = Field(validation_alias=AliasChoices("start_date", "startDate"))
    end_date: date = Field(validation_alias=AliasChoices("end_date", "endDate"))
    status: str = "pending"  # approved|pending|rejected
    leave_type: Optional[str] = Field(default=None, validation_alias=AliasChoices("leave_type", "leaveType"))

    class Config:
        populate_by_name = True
        from_attributes = True
        extra = "ignore"

    @field_validator("id", "user_id", mode="before")
    @classmethod
    def _as_text(cls, v):
        if v is None:
            return None
        return str(v)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _calendar_day(cls, v):
        if isinstance(v, datetime):
            return v.date()
        if isinstance(v, str) and "T" in v:
            text = v.strip()
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            return datetime.fromisoformat(text).date()
        return v
