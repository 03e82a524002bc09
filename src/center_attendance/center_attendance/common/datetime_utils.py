from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from typing import Iterator, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..core.constants import DEFAULT_TIMEZONE
from ..core.exceptions import ValidationError

TzLike = Union[str, ZoneInfo]


@dataclass(frozen=True)
class DayWindow:
    """Half-open interval [start, end) of UTC instants covering one local day."""

    day: date
    start: datetime
    end: datetime


@lru_cache(maxsize=32)
def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown timezone: {name!r}")


def get_zone(tz: TzLike) -> ZoneInfo:
    return tz if isinstance(tz, ZoneInfo) else _zone(str(tz))


def now_utc() -> datetime:
    """Current instant (timezone-aware, UTC).

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now(timezone.utc)


def ensure_aware(instant: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    try:
        return datetime.strptime((value or "").strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"Invalid date (YYYY-MM-DD): {value!r}")


def parse_iso_datetime(value: str, tz: TzLike = DEFAULT_TIMEZONE) -> datetime:
    """Parse an ISO-8601 timestamp; a value without offset is read in ``tz``."""
    raw = (value or "").strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        raise ValidationError(f"Invalid timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=get_zone(tz))
    return parsed.astimezone(timezone.utc)


def day_start(day: date, tz: TzLike = DEFAULT_TIMEZONE) -> datetime:
    """UTC instant of local midnight starting ``day``."""
    local_midnight = datetime.combine(day, time(0, 0), tzinfo=get_zone(tz))
    return local_midnight.astimezone(timezone.utc)


def day_key(instant: datetime, tz: TzLike = DEFAULT_TIMEZONE) -> date:
    """Local calendar day an instant falls on."""
    return ensure_aware(instant).astimezone(get_zone(tz)).date()


def local_day_window(instant: datetime, tz: TzLike = DEFAULT_TIMEZONE) -> DayWindow:
    day = day_key(instant, tz)
    return DayWindow(day=day, start=day_start(day, tz), end=day_start(day + timedelta(days=1), tz))


def date_range_window(start: date, end: date, tz: TzLike = DEFAULT_TIMEZONE) -> tuple[datetime, datetime]:
    """[local start of ``start``, local start of the day after ``end``)."""
    return day_start(start, tz), day_start(end + timedelta(days=1), tz)


def iter_days(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def format_display(instant: Optional[datetime], tz: TzLike = DEFAULT_TIMEZONE) -> str:
    """Human readable local timestamp, e.g. ``16 Oct 2026, 09:05 AM IST``."""
    if instant is None:
        return "-"
    local = ensure_aware(instant).astimezone(get_zone(tz))
    return local.strftime("%d %b %Y, %I:%M %p %Z")


def format_time(instant: Optional[datetime], tz: TzLike = DEFAULT_TIMEZONE) -> str:
    if instant is None:
        return "-"
    return ensure_aware(instant).astimezone(get_zone(tz)).strftime("%H:%M")


@dataclass(frozen=True)
class TimeWindowProvider:
    """Single timezone policy shared by every flow and report."""

    timezone: str = DEFAULT_TIMEZONE

    def __post_init__(self) -> None:
        get_zone(self.timezone)

    def window(self, instant: datetime) -> DayWindow:
        return local_day_window(instant, self.timezone)

    def window_for_day(self, day: date) -> DayWindow:
        return DayWindow(day=day, start=day_start(day, self.timezone), end=day_start(day + timedelta(days=1), self.timezone))

    def day_key(self, instant: datetime) -> date:
        return day_key(instant, self.timezone)

    def range(self, start: date, end: date) -> tuple[datetime, datetime]:
        return date_range_window(start, end, self.timezone)

    def format_display(self, instant: Optional[datetime]) -> str:
        return format_display(instant, self.timezone)

    def format_time(self, instant: Optional[datetime]) -> str:
        return format_time(instant, self.timezone)
