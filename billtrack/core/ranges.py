"""
Date-range resolution for timesheets and reports.

Ranges are inclusive at day granularity. The core only understands the
closed set of presets in RangePreset plus explicit start/end dates; turning
free-form phrases into one of those is up to the caller.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from enum import Enum
from typing import Iterator, Tuple, Union

from .errors import InvalidRange, ValidationError


class RangePreset(str, Enum):
    """Named ranges relative to today."""

    TODAY = "today"
    THIS_WEEK = "this_week"
    LAST_WEEK = "last_week"
    THIS_MONTH = "this_month"
    LAST_MONTH = "last_month"


@dataclass(frozen=True)
class DateRange:
    """An inclusive range of calendar days."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise InvalidRange(
                f"Range end {self.end.isoformat()} is before start {self.start.isoformat()}"
            )

    @property
    def days(self) -> int:
        """Number of calendar days covered."""
        return (self.end - self.start).days + 1

    def __contains__(self, day: date) -> bool:
        return self.start <= day <= self.end

    def bounds(self, tz: tzinfo) -> Tuple[datetime, datetime]:
        """
        Half-open UTC interval covering the range in the given timezone.

        The upper bound is local midnight after the last day, so every
        instant of the last day is inside the range.
        """
        lower = datetime.combine(self.start, time.min, tzinfo=tz)
        upper = datetime.combine(self.end + timedelta(days=1), time.min, tzinfo=tz)
        return lower.astimezone(timezone.utc), upper.astimezone(timezone.utc)

    def iter_iso_weeks(self) -> Iterator[Tuple[int, int, date, date]]:
        """Yield (iso_year, iso_week, monday, sunday) for each week touching the range."""
        monday = self.start - timedelta(days=self.start.weekday())
        while monday <= self.end:
            iso_year, iso_week, _ = monday.isocalendar()
            yield iso_year, iso_week, monday, monday + timedelta(days=6)
            monday += timedelta(days=7)

    def __str__(self) -> str:
        return f"{self.start.isoformat()} to {self.end.isoformat()}"


RangeLike = Union[DateRange, RangePreset, str, Tuple[Union[date, str], Union[date, str]]]


def _parse_day(value: Union[date, str]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise InvalidRange(f"Invalid date: {value!r}. Use YYYY-MM-DD") from None


def _month_start(day: date) -> date:
    return day.replace(day=1)


def preset_range(preset: RangePreset, today: date) -> DateRange:
    """Resolve a preset against the given local 'today'."""
    if preset is RangePreset.TODAY:
        return DateRange(today, today)
    if preset is RangePreset.THIS_WEEK:
        return DateRange(today - timedelta(days=today.weekday()), today)
    if preset is RangePreset.LAST_WEEK:
        this_monday = today - timedelta(days=today.weekday())
        return DateRange(this_monday - timedelta(days=7), this_monday - timedelta(days=1))
    if preset is RangePreset.THIS_MONTH:
        return DateRange(_month_start(today), today)
    if preset is RangePreset.LAST_MONTH:
        last_day = _month_start(today) - timedelta(days=1)
        return DateRange(_month_start(last_day), last_day)
    raise ValidationError(f"Unknown range preset: {preset!r}")


def resolve_range(value: RangeLike, today: date) -> DateRange:
    """
    Resolve any accepted range form into a DateRange.

    Args:
        value: A DateRange, a RangePreset (or its string value), or a
            (start_date, end_date) pair of dates or ISO date strings
        today: The current calendar day in the installation timezone

    Returns:
        The resolved inclusive DateRange

    Raises:
        ValidationError: If a preset name is unknown
        InvalidRange: If the end date is before the start date
    """
    if isinstance(value, DateRange):
        return value
    if isinstance(value, RangePreset):
        return preset_range(value, today)
    if isinstance(value, str):
        try:
            preset = RangePreset(value.strip().lower())
        except ValueError:
            choices = ", ".join(p.value for p in RangePreset)
            raise ValidationError(
                f"Unknown range preset '{value}'. Choose one of: {choices}"
            ) from None
        return preset_range(preset, today)
    if isinstance(value, (tuple, list)) and len(value) == 2:
        return DateRange(_parse_day(value[0]), _parse_day(value[1]))
    raise ValidationError(f"Unsupported date range: {value!r}")
