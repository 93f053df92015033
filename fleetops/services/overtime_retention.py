from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from fleetops.db import SessionLocal
from fleetops.errors import SweepFailure
from fleetops.models import Mechanic
from fleetops.services.durations import MonthKey, local_day
from fleetops.services.mechanics import get_mechanic
from fleetops.services.overtime import MechanicOvertime
from fleetops.settings import get_sweep_sample_rate

logger = logging.getLogger("fleetops.overtime")

# Buckets for the current month and the two before it survive a sweep.
RETENTION_MONTHS = 2

_background_sweeps: set[asyncio.Task[Any]] = set()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def cutoff_month(now: datetime | None = None) -> MonthKey:
    reference = MonthKey.from_date(local_day(now or _utcnow()))
    return reference.shift(-RETENTION_MONTHS)


def cutoff_month_key(now: datetime | None = None) -> str:
    return cutoff_month(now).label


@dataclass(frozen=True, slots=True)
class MechanicSweepResult:
    mechanic_id: int
    cutoff_month: str
    removed_months: list[str] = field(default_factory=list)

    @property
    def buckets_removed(self) -> int:
        return len(self.removed_months)

    def to_dict(self) -> dict[str, Any]:
        return {
            "mechanic_id": self.mechanic_id,
            "cutoff_month": self.cutoff_month,
            "removed_months": list(self.removed_months),
            "buckets_removed": self.buckets_removed,
        }


@dataclass
class SweepReport:
    cutoff_month: str
    mechanics_scanned: int = 0
    buckets_removed: int = 0
    failures: list[SweepFailure] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "cutoff_month": self.cutoff_month,
            "mechanics_scanned": self.mechanics_scanned,
            "buckets_removed": self.buckets_removed,
            "failed_mechanic_ids": [failure.mechanic_id for failure in self.failures],
        }


def sweep_mechanic(db: Session, mechanic_id: int, *, now: datetime | None = None) -> MechanicSweepResult:
    cutoff = cutoff_month(now)
    mechanic = get_mechanic(db, mechanic_id)
    removed = MechanicOvertime(mechanic).remove_months_before(cutoff)
    if removed:
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info(
            "overtime_sweep_mechanic",
            extra={
                "mechanic_id": mechanic.id,
                "cutoff_month": cutoff.label,
                "removed_months": [month.label for month in removed],
            },
        )
    return MechanicSweepResult(
        mechanic_id=mechanic.id,
        cutoff_month=cutoff.label,
        removed_months=[month.label for month in removed],
    )


def sweep_all(now: datetime | None = None, db: Session | None = None) -> SweepReport:
    """Sweep every mechanic. Best effort: logs failures, never raises."""
    if db is None:
        with SessionLocal() as managed_db:
            return sweep_all(now, db=managed_db)

    reference = now or _utcnow()
    report = SweepReport(cutoff_month=cutoff_month_key(reference))
    try:
        mechanic_ids = list(db.scalars(select(Mechanic.id).order_by(Mechanic.id.asc())).all())
    except Exception:
        db.rollback()
        logger.exception("overtime_sweep_failed", extra={"cutoff_month": report.cutoff_month})
        return report

    for mechanic_id in mechanic_ids:
        report.mechanics_scanned += 1
        try:
            result = sweep_mechanic(db, mechanic_id, now=reference)
        except Exception as exc:
            db.rollback()
            failure = SweepFailure(mechanic_id, exc)
            report.failures.append(failure)
            logger.error(
                "overtime_sweep_mechanic_failed",
                exc_info=exc,
                extra={"mechanic_id": mechanic_id, "error": str(failure)},
            )
            continue
        report.buckets_removed += result.buckets_removed

    logger.info("overtime_sweep_completed", extra=report.to_dict())
    return report


def run_detached_mechanic_sweep(mechanic_id: int, now: datetime | None = None) -> None:
    """Entry point for the post-commit sweep of a single mechanic."""
    try:
        with SessionLocal() as db:
            sweep_mechanic(db, mechanic_id, now=now)
    except Exception as exc:
        logger.warning(
            "overtime_sweep_mechanic_failed",
            exc_info=exc,
            extra={"mechanic_id": mechanic_id, "error": str(SweepFailure(mechanic_id, exc))},
        )


def should_sample_sweep(rand: Callable[[], float] = random.random) -> bool:
    return rand() < get_sweep_sample_rate()


def _finish_background_sweep(task: asyncio.Task[Any]) -> None:
    _background_sweeps.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("overtime_sweep_sampled_failed", exc_info=exc)


def spawn_sampled_sweep(rand: Callable[[], float] = random.random) -> asyncio.Task[Any] | None:
    """Occasionally start a sweep of all mechanics without waiting for it.

    Must be called from inside a running event loop.
    """
    if not should_sample_sweep(rand):
        return None
    logger.info("overtime_sweep_sampled")
    task = asyncio.get_running_loop().create_task(asyncio.to_thread(sweep_all))
    _background_sweeps.add(task)
    task.add_done_callback(_finish_background_sweep)
    return task
