from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from fleetops.services.durations import MonthKey, format_date, format_duration, local_day, parse_instant
from fleetops.services.overtime_buckets import MonthlyOvertimeBucket
from fleetops.services.overtime_entries import OvertimeEntry, TimeWindow, total_window_minutes


def encode_time_window(window: TimeWindow) -> dict[str, Any]:
    return {
        "in": window.clock_in.isoformat(),
        "out": window.clock_out.isoformat() if window.clock_out is not None else None,
    }


def encode_entry(entry: OvertimeEntry) -> dict[str, Any]:
    return {
        "date": entry.date.isoformat(),
        "formatted_date": entry.formatted_date,
        "equipment_refs": list(entry.equipment_refs),
        "time_windows": [encode_time_window(window) for window in entry.time_windows],
        "work_details": list(entry.work_details),
        "total_minutes": entry.total_minutes,
        "formatted_time": entry.formatted_time,
    }


def encode_bucket(bucket: MonthlyOvertimeBucket) -> dict[str, Any]:
    return {
        "month": bucket.month_key,
        "entries": [encode_entry(entry) for entry in bucket.entries],
        "total_minutes": bucket.total_minutes,
        "formatted_total": bucket.formatted_total,
    }


def encode_buckets(buckets: Iterable[MonthlyOvertimeBucket]) -> list[dict[str, Any]]:
    return [encode_bucket(bucket) for bucket in buckets]


def decode_time_window(raw: Mapping[str, Any]) -> TimeWindow:
    raw_out = raw.get("out")
    return TimeWindow(
        clock_in=parse_instant(raw["in"]),
        clock_out=parse_instant(raw_out) if raw_out else None,
    )


def decode_entry(raw: Mapping[str, Any]) -> OvertimeEntry:
    day = local_day(raw["date"])
    windows = tuple(decode_time_window(item) for item in raw.get("time_windows") or [])
    # Stored totals are kept as-is; recalculation is a separate, explicit step.
    total_minutes = raw.get("total_minutes")
    if not isinstance(total_minutes, int):
        total_minutes = total_window_minutes(windows)
    return OvertimeEntry(
        date=day,
        formatted_date=raw.get("formatted_date") or format_date(day),
        equipment_refs=tuple(raw.get("equipment_refs") or []),
        time_windows=windows,
        work_details=tuple(str(item) for item in raw.get("work_details") or []),
        total_minutes=total_minutes,
        formatted_time=raw.get("formatted_time") or format_duration(total_minutes),
    )


def decode_bucket(raw: Mapping[str, Any]) -> MonthlyOvertimeBucket:
    entries = tuple(decode_entry(item) for item in raw.get("entries") or [])
    total_minutes = raw.get("total_minutes")
    if not isinstance(total_minutes, int):
        total_minutes = sum(entry.total_minutes for entry in entries)
    return MonthlyOvertimeBucket(
        month=MonthKey.parse(raw["month"]),
        entries=entries,
        total_minutes=total_minutes,
        formatted_total=raw.get("formatted_total") or format_duration(total_minutes),
    )


def decode_buckets(raw: Iterable[Mapping[str, Any]] | None) -> tuple[MonthlyOvertimeBucket, ...]:
    return tuple(decode_bucket(item) for item in raw or [])
