"""
Database models for Billtrack.

This module defines the Pydantic models for projects, time entries, the
running timer and the read-side timesheet and report records.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..core.errors import ValidationError
from ..core.money import duration_minutes, minutes_to_hours

DEFAULT_CURRENCY = "USD"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _require_aware(v: datetime) -> datetime:
    if v.tzinfo is None or v.utcoffset() is None:
        raise ValueError("Datetime must be timezone-aware")
    return v.astimezone(timezone.utc)


def normalize_tags(tags: Optional[List[str]]) -> List[str]:
    """Lower-case, strip, de-duplicate and sort tags."""
    return sorted({tag.lower().strip() for tag in tags or [] if tag and tag.strip()})


class Project(BaseModel):
    """Billing-relevant project metadata."""

    id: Optional[int] = Field(None, description="Store-assigned project id")
    name: str = Field(..., min_length=1, max_length=255, description="Project name")
    client: Optional[str] = Field(None, max_length=255, description="Client name")
    description: Optional[str] = Field(
        None, max_length=1000, description="Project description"
    )
    hourly_rate: Optional[Decimal] = Field(
        None, ge=0, description="Hourly rate in the project currency"
    )
    currency: str = Field(
        DEFAULT_CURRENCY, min_length=3, max_length=3, description="ISO 4217 code"
    )
    color: Optional[str] = Field(None, max_length=32, description="Display color")
    archived: bool = Field(default=False, description="Hidden from default listings")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Strip the name and reject blank names."""
        v = v.strip()
        if not v:
            raise ValueError("Project name cannot be empty")
        return v

    @field_validator("client", "description", "color")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        v = v.strip().upper()
        if len(v) != 3 or not v.isalpha():
            raise ValueError("Currency must be a three-letter code")
        return v

    @field_validator("created_at", "updated_at")
    @classmethod
    def validate_timestamps(cls, v: datetime) -> datetime:
        return _require_aware(v)


class TimeEntry(BaseModel):
    """A closed, immutable interval of work on a project."""

    id: Optional[int] = Field(None, description="Store-assigned entry id")
    project_id: int = Field(..., description="Referenced project id")
    description: Optional[str] = Field(None, max_length=1000)
    start_time: datetime
    end_time: datetime
    duration_minutes: int = Field(0, ge=0, description="Derived from start and end")
    billable: bool = True
    tags: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("start_time", "end_time", "created_at", "updated_at")
    @classmethod
    def validate_times(cls, v: datetime) -> datetime:
        return _require_aware(v)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: List[str]) -> List[str]:
        return normalize_tags(v)

    @model_validator(mode="after")
    def derive_duration(self) -> "TimeEntry":
        """Check the interval and derive duration_minutes from it."""
        if self.end_time <= self.start_time:
            raise ValueError("End time must be after start time")
        self.duration_minutes = duration_minutes(self.start_time, self.end_time)
        return self

    @property
    def hours(self) -> Decimal:
        return minutes_to_hours(self.duration_minutes)


class ActiveTimer(BaseModel):
    """The single running timer, if any."""

    project_id: int
    description: Optional[str] = Field(None, max_length=1000)
    start_time: datetime = Field(default_factory=utc_now)
    tags: List[str] = Field(default_factory=list)

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, v: datetime) -> datetime:
        return _require_aware(v)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: List[str]) -> List[str]:
        return normalize_tags(v)

    def elapsed(self, now: datetime) -> timedelta:
        """Time since the persisted start, never negative."""
        return max(now - self.start_time, timedelta(0))


class ById(BaseModel):
    """Project reference by numeric id."""

    model_config = ConfigDict(frozen=True)

    id: int

    def __str__(self) -> str:
        return f"#{self.id}"


class ByName(BaseModel):
    """Project reference by name."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)

    def __str__(self) -> str:
        return self.name


ProjectRef = Union[ById, ByName]


def parse_project_ref(value: Union[int, str, ById, ByName]) -> ProjectRef:
    """Turn an id, a digit string or a name into a tagged project reference."""
    if isinstance(value, (ById, ByName)):
        return value
    if isinstance(value, bool):
        raise ValidationError(f"Invalid project reference: {value!r}")
    if isinstance(value, int):
        return ById(id=value)
    text = str(value).strip()
    if not text:
        raise ValidationError("Project reference cannot be empty")
    if text.lstrip("#").isdigit():
        return ById(id=int(text.lstrip("#")))
    return ByName(name=text)


class LookupStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"


class ProjectLookup(BaseModel):
    """Outcome of resolving a project reference."""

    status: LookupStatus
    matches: List[Project] = Field(default_factory=list)

    @property
    def project(self) -> Optional[Project]:
        return self.matches[0] if self.status is LookupStatus.FOUND else None


class TimerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class TimerStatus(BaseModel):
    """Snapshot of the timer computed from the persisted record."""

    running: bool = False
    project: Optional[Project] = None
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    start_time: Optional[datetime] = None
    elapsed: Optional[timedelta] = None

    @property
    def state(self) -> TimerState:
        return TimerState.RUNNING if self.running else TimerState.IDLE

    @property
    def elapsed_minutes(self) -> Optional[int]:
        if self.elapsed is None:
            return None
        return int(self.elapsed.total_seconds() // 60)


class _HoursMixin(BaseModel):
    total_minutes: int = 0
    billable_minutes: int = 0

    @property
    def total_hours(self) -> Decimal:
        return minutes_to_hours(self.total_minutes)

    @property
    def billable_hours(self) -> Decimal:
        return minutes_to_hours(self.billable_minutes)


class TimesheetLine(BaseModel):
    """One entry as it appears on a timesheet."""

    entry: TimeEntry
    project_name: str
    client: Optional[str] = None
    hourly_rate: Optional[Decimal] = None
    currency: str = DEFAULT_CURRENCY
    amount: Decimal = Decimal("0.00")


class TimesheetDay(_HoursMixin):
    """Entries of one local calendar day."""

    day: date
    lines: List[TimesheetLine] = Field(default_factory=list)
    amounts: Dict[str, Decimal] = Field(default_factory=dict)


class Timesheet(_HoursMixin):
    """Day-grouped view of entries over a date range."""

    start_date: date
    end_date: date
    project: Optional[Project] = None
    days: List[TimesheetDay] = Field(default_factory=list)
    amounts: Dict[str, Decimal] = Field(default_factory=dict)
    entry_count: int = 0


class ProjectSummary(_HoursMixin):
    """Per-project totals over a date range."""

    project_id: int
    project_name: str
    client: Optional[str] = None
    hourly_rate: Optional[Decimal] = None
    currency: str = DEFAULT_CURRENCY
    earnings: Decimal = Decimal("0.00")
    entry_count: int = 0


class WeekBucket(_HoursMixin):
    """Totals for one ISO week."""

    iso_year: int
    iso_week: int
    week_start: date
    week_end: date
    entry_count: int = 0
    project_count: int = 0

    @property
    def label(self) -> str:
        return f"{self.iso_year}-W{self.iso_week:02d}"


class Report(_HoursMixin):
    """Project-grouped and week-grouped aggregates over a date range."""

    start_date: date
    end_date: date
    projects: List[ProjectSummary] = Field(default_factory=list)
    weeks: List[WeekBucket] = Field(default_factory=list)
    earnings: Dict[str, Decimal] = Field(default_factory=dict)
    entry_count: int = 0

    @property
    def is_empty(self) -> bool:
        return self.entry_count == 0
