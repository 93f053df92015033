from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, replace
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from fleetops.db import SessionLocal
from fleetops.errors import ValidationError
from fleetops.models import Mechanic
from fleetops.services.durations import MonthKey
from fleetops.services.mechanics import get_mechanic
from fleetops.services.overtime_buckets import (
    BucketResolution,
    MonthlyOvertimeBucket,
    find_bucket,
    recompute_bucket,
    resolve_bucket,
)
from fleetops.services.overtime_documents import decode_buckets, encode_buckets
from fleetops.services.overtime_entries import (
    OvertimeEntry,
    OvertimeSubmission,
    build_overtime_entry,
    recompute_entry,
)

logger = logging.getLogger("fleetops.overtime")

SweepDispatcher = Callable[[int], None]


class MechanicOvertime:
    """Aggregate root over one mechanic's monthly overtime buckets.

    Every change goes through this class, which writes the whole bucket list
    back onto the mechanic row. Nothing is committed here.
    """

    def __init__(self, mechanic: Mechanic):
        self.mechanic = mechanic
        self._buckets = decode_buckets(mechanic.monthly_overtime)

    @property
    def buckets(self) -> tuple[MonthlyOvertimeBucket, ...]:
        return self._buckets

    def find_month(self, month: MonthKey) -> MonthlyOvertimeBucket | None:
        located = find_bucket(self._buckets, month)
        if located is None:
            return None
        return located[1]

    def record(self, entry: OvertimeEntry) -> BucketResolution:
        resolution = resolve_bucket(self._buckets, entry)
        self._store(resolution.buckets)
        return resolution

    def remove_months_before(self, cutoff: MonthKey) -> list[MonthKey]:
        kept: list[MonthlyOvertimeBucket] = []
        removed: list[MonthKey] = []
        for bucket in self._buckets:
            if bucket.month < cutoff:
                removed.append(bucket.month)
            else:
                kept.append(bucket)
        if removed:
            self._store(kept)
        return removed

    def recompute(self) -> bool:
        recomputed = tuple(
            recompute_bucket(replace(bucket, entries=tuple(recompute_entry(entry) for entry in bucket.entries)))
            for bucket in self._buckets
        )
        if recomputed == self._buckets:
            return False
        self._store(recomputed)
        return True

    def _store(self, buckets: Iterable[MonthlyOvertimeBucket]) -> None:
        self._buckets = tuple(buckets)
        self.mechanic.monthly_overtime = encode_buckets(self._buckets)


def _submission_from_raw(mechanic_id: int, raw: Mapping[str, Any]) -> OvertimeSubmission:
    return OvertimeSubmission(
        mechanic_id=mechanic_id,
        date=raw.get("date"),  # type: ignore[arg-type]
        time_windows=list(raw.get("time_windows") or []),
        work_details=list(raw.get("work_details") or []),
        equipment_refs=list(raw.get("equipment_refs") or []),
    )


def log_overtime(
    db: Session,
    mechanic_id: int,
    raw: Mapping[str, Any],
    *,
    dispatch_sweep: SweepDispatcher | None = None,
) -> MonthlyOvertimeBucket:
    mechanic = get_mechanic(db, mechanic_id)
    entry = build_overtime_entry(_submission_from_raw(mechanic.id, raw))

    aggregate = MechanicOvertime(mechanic)
    resolution = aggregate.record(entry)
    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(
            "overtime_persist_failed",
            extra={"mechanic_id": mechanic.id, "month": entry.month_key, "day": entry.date.isoformat()},
        )
        raise

    logger.info(
        "overtime_logged",
        extra={
            "mechanic_id": mechanic.id,
            "month": resolution.bucket.month_key,
            "day": entry.date.isoformat(),
            "outcome": resolution.outcome,
            "entry_minutes": entry.total_minutes,
            "bucket_minutes": resolution.bucket.total_minutes,
        },
    )

    if dispatch_sweep is not None:
        try:
            dispatch_sweep(mechanic.id)
        except Exception:
            logger.exception("overtime_sweep_dispatch_failed", extra={"mechanic_id": mechanic.id})

    return resolution.bucket


def get_monthly_overtime(
    db: Session,
    mechanic_id: int,
    *,
    month: int | None = None,
    year: int | None = None,
) -> MonthlyOvertimeBucket | list[MonthlyOvertimeBucket] | None:
    if month is None or year is None:
        return list_monthly_overtime(db, mechanic_id)
    return get_month_overtime(db, mechanic_id, month=month, year=year)


def list_monthly_overtime(db: Session, mechanic_id: int) -> list[MonthlyOvertimeBucket]:
    return list(MechanicOvertime(get_mechanic(db, mechanic_id)).buckets)


def get_month_overtime(db: Session, mechanic_id: int, *, month: int, year: int) -> MonthlyOvertimeBucket | None:
    aggregate = MechanicOvertime(get_mechanic(db, mechanic_id))
    try:
        month_key = MonthKey(year=year, month=month)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    return aggregate.find_month(month_key)


@dataclass
class RecalculationReport:
    mechanics_scanned: int = 0
    mechanics_updated: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "mechanics_scanned": self.mechanics_scanned,
            "mechanics_updated": self.mechanics_updated,
        }


def recalculate_monthly_totals(db: Session | None = None) -> RecalculationReport:
    if db is None:
        with SessionLocal() as managed_db:
            return recalculate_monthly_totals(db=managed_db)

    report = RecalculationReport()
    mechanics = list(db.scalars(select(Mechanic).order_by(Mechanic.id.asc())).all())
    for mechanic in mechanics:
        if not mechanic.monthly_overtime:
            continue
        report.mechanics_scanned += 1
        if MechanicOvertime(mechanic).recompute():
            report.mechanics_updated += 1

    if report.mechanics_updated:
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise

    logger.info("overtime_totals_recalculated", extra=report.to_dict())
    return report
