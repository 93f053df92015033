from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from zoneinfo import ZoneInfo

from fleetops.settings import get_overtime_timezone

MONTH_NAMES: tuple[str, ...] = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)
_MONTH_ORDINALS = {name: index for index, name in enumerate(MONTH_NAMES, start=1)}


@dataclass(frozen=True, order=True, slots=True)
class MonthKey:
    """Calendar month used to key overtime buckets.

    Ordering compares ``(year, month)``; ``label`` is the "May 2025" form kept
    for display and storage.
    """

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be in 1..12, got {self.month}")

    @property
    def label(self) -> str:
        return f"{MONTH_NAMES[self.month - 1]} {self.year}"

    @classmethod
    def from_date(cls, value: date) -> MonthKey:
        return cls(year=value.year, month=value.month)

    @classmethod
    def parse(cls, label: str) -> MonthKey:
        parts = (label or "").split()
        if len(parts) != 2 or parts[0] not in _MONTH_ORDINALS or not parts[1].isdigit():
            raise ValueError(f"Invalid month key: {label!r}")
        return cls(year=int(parts[1]), month=_MONTH_ORDINALS[parts[0]])

    def shift(self, months: int) -> MonthKey:
        index = self.year * 12 + (self.month - 1) + months
        return MonthKey(year=index // 12, month=index % 12 + 1)

    def __str__(self) -> str:
        return self.label


def to_local(ts: datetime, tz: ZoneInfo | None = None) -> datetime:
    zone = tz or get_overtime_timezone()
    if ts.tzinfo is None:
        return ts.replace(tzinfo=zone)
    return ts.astimezone(zone)


def parse_instant(value: datetime | date | str, tz: ZoneInfo | None = None) -> datetime:
    if isinstance(value, datetime):
        return to_local(value, tz)
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time(), tzinfo=tz or get_overtime_timezone())
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("Empty date/time value")
        return to_local(datetime.fromisoformat(text), tz)
    raise TypeError(f"Unsupported date/time value: {value!r}")


def local_day(value: datetime | date | str, tz: ZoneInfo | None = None) -> date:
    """Calendar day of ``value`` in the overtime timezone (time of day dropped)."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    return parse_instant(value, tz).date()


def minutes_between(start: datetime, end: datetime) -> int:
    if end <= start:
        return 0
    return int((end - start).total_seconds() // 60)


def subtract_break(total_minutes: int, break_start: datetime | None, break_end: datetime | None) -> int:
    if break_start is None or break_end is None:
        return max(0, total_minutes)
    return max(0, total_minutes - minutes_between(break_start, break_end))


def format_duration(total_minutes: int) -> str:
    minutes = max(0, int(total_minutes))
    return f"{minutes // 60}h {minutes % 60}m"


def format_date(value: date) -> str:
    return f"{value.day:02d}-{value.month:02d}-{value.year:04d}"


def month_key(value: date) -> str:
    return MonthKey.from_date(value).label
