from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Union

from fleetops.errors import ValidationError
from fleetops.services.durations import (
    MonthKey,
    format_date,
    format_duration,
    local_day,
    minutes_between,
    parse_instant,
)

EquipmentRef = Union[int, str]


@dataclass(frozen=True, slots=True)
class TimeWindow:
    clock_in: datetime
    clock_out: datetime | None = None

    @property
    def minutes(self) -> int:
        # Open windows and windows closed before they opened count as zero.
        if self.clock_out is None:
            return 0
        return minutes_between(self.clock_in, self.clock_out)


@dataclass(frozen=True, slots=True)
class OvertimeEntry:
    date: date
    formatted_date: str
    equipment_refs: tuple[EquipmentRef, ...] = ()
    time_windows: tuple[TimeWindow, ...] = ()
    work_details: tuple[str, ...] = ()
    total_minutes: int = 0
    formatted_time: str = "0h 0m"

    @property
    def month(self) -> MonthKey:
        return MonthKey.from_date(self.date)

    @property
    def month_key(self) -> str:
        return self.month.label


@dataclass(frozen=True, slots=True)
class OvertimeSubmission:
    """Raw overtime submitted for one mechanic, before normalization."""

    mechanic_id: int
    date: datetime | date | str
    time_windows: Sequence[Mapping[str, Any]] = ()
    work_details: Sequence[str] = ()
    equipment_refs: Sequence[EquipmentRef] = field(default_factory=tuple)


def total_window_minutes(windows: Iterable[TimeWindow]) -> int:
    return sum(window.minutes for window in windows)


def make_entry(
    *,
    day: date,
    time_windows: Iterable[TimeWindow],
    work_details: Iterable[str] = (),
    equipment_refs: Iterable[EquipmentRef] = (),
) -> OvertimeEntry:
    windows = tuple(time_windows)
    total_minutes = total_window_minutes(windows)
    return OvertimeEntry(
        date=day,
        formatted_date=format_date(day),
        equipment_refs=_unique_refs(equipment_refs),
        time_windows=windows,
        work_details=tuple(work_details),
        total_minutes=total_minutes,
        formatted_time=format_duration(total_minutes),
    )


def recompute_entry(entry: OvertimeEntry) -> OvertimeEntry:
    return make_entry(
        day=entry.date,
        time_windows=entry.time_windows,
        work_details=entry.work_details,
        equipment_refs=entry.equipment_refs,
    )


def _unique_refs(refs: Iterable[EquipmentRef]) -> tuple[EquipmentRef, ...]:
    unique: list[EquipmentRef] = []
    for ref in refs:
        if ref not in unique:
            unique.append(ref)
    return tuple(unique)


def _parse_window_instant(value: Any, *, field_name: str, position: int) -> datetime:
    try:
        return parse_instant(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"time_windows[{position}].{field_name} is not a valid date/time") from exc


def _parse_time_window(raw: Mapping[str, Any], position: int) -> TimeWindow:
    raw_in = raw.get("in")
    if raw_in is None or raw_in == "":
        raise ValidationError(f"time_windows[{position}].in is required")
    raw_out = raw.get("out")

    clock_in = _parse_window_instant(raw_in, field_name="in", position=position)
    clock_out = None
    if raw_out is not None and raw_out != "":
        clock_out = _parse_window_instant(raw_out, field_name="out", position=position)
    return TimeWindow(clock_in=clock_in, clock_out=clock_out)


def build_overtime_entry(submission: OvertimeSubmission) -> OvertimeEntry:
    """Normalize a submission into a detached, fully computed entry.

    The date is reduced to its calendar day in the overtime timezone before it
    is used for anything else. At least one time window is required and every
    window needs an ``in`` instant; ``out`` may be left open.
    """
    if submission.date is None or submission.date == "":
        raise ValidationError("date is required")
    try:
        day = local_day(submission.date)
    except (TypeError, ValueError) as exc:
        raise ValidationError("date is not a valid date/time") from exc

    if not submission.time_windows:
        raise ValidationError("At least one time window is required")
    windows = [_parse_time_window(raw, position) for position, raw in enumerate(submission.time_windows)]

    return make_entry(
        day=day,
        time_windows=windows,
        work_details=[str(item) for item in submission.work_details or ()],
        equipment_refs=submission.equipment_refs or (),
    )


def merge_entries(existing: OvertimeEntry, incoming: OvertimeEntry) -> OvertimeEntry:
    """Fold a same-day submission into an existing entry.

    Equipment references are unioned. Time windows and work details are
    appended as-is, so a repeated window is counted again.
    """
    return make_entry(
        day=existing.date,
        time_windows=existing.time_windows + incoming.time_windows,
        work_details=existing.work_details + incoming.work_details,
        equipment_refs=existing.equipment_refs + incoming.equipment_refs,
    )
