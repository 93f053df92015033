from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any
from uuid import uuid4

from fleetops.schemas import AttendanceCreate
from fleetops.services.durations import (
    format_duration,
    local_day,
    minutes_between,
    parse_instant,
    subtract_break,
)


@dataclass(frozen=True, slots=True)
class AttendanceRecord:
    work_date: date
    clock_in: datetime
    clock_out: datetime | None
    break_out: datetime | None
    break_in: datetime | None
    total_minutes: int


def attendance_minutes(
    clock_in: datetime,
    clock_out: datetime | None,
    break_out: datetime | None = None,
    break_in: datetime | None = None,
) -> int:
    if clock_out is None:
        return 0
    return subtract_break(minutes_between(clock_in, clock_out), break_out, break_in)


def build_attendance_record(payload: AttendanceCreate) -> AttendanceRecord:
    clock_in = parse_instant(payload.clock_in)
    clock_out = parse_instant(payload.clock_out) if payload.clock_out is not None else None
    break_out = parse_instant(payload.break_out) if payload.break_out is not None else None
    break_in = parse_instant(payload.break_in) if payload.break_in is not None else None

    return AttendanceRecord(
        work_date=payload.work_date or local_day(clock_in),
        clock_in=clock_in,
        clock_out=clock_out,
        break_out=break_out,
        break_in=break_in,
        total_minutes=attendance_minutes(clock_in, clock_out, break_out, break_in),
    )


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def encode_attendance_record(record: AttendanceRecord) -> dict[str, Any]:
    return {
        "id": uuid4().hex,
        "date": record.work_date.isoformat(),
        "in": record.clock_in.isoformat(),
        "out": _iso(record.clock_out),
        "break_out": _iso(record.break_out),
        "break_in": _iso(record.break_in),
        "total_minutes": record.total_minutes,
        "formatted_time": format_duration(record.total_minutes),
    }
