from __future__ import annotations

import unittest
from datetime import datetime
from unittest.mock import MagicMock, patch
from zoneinfo import ZoneInfo

from fleetops.errors import NotFound
from fleetops.models import Mechanic
from fleetops.services.durations import MonthKey
from fleetops.services.overtime_retention import (
    MechanicSweepResult,
    cutoff_month,
    cutoff_month_key,
    run_detached_mechanic_sweep,
    should_sample_sweep,
    spawn_sampled_sweep,
    sweep_all,
    sweep_mechanic,
)

QATAR = ZoneInfo("Asia/Qatar")
NOW = datetime(2025, 6, 15, 12, 0, tzinfo=QATAR)


def _bucket_document(label: str, minutes: int = 60) -> dict:
    return {"month": label, "entries": [], "total_minutes": minutes, "formatted_total": f"{minutes // 60}h 0m"}


class _FakeScalars:
    def __init__(self, rows: list[object]):
        self._rows = rows

    def all(self) -> list[object]:
        return list(self._rows)


class _FakeDB:
    def __init__(self, mechanics: list[Mechanic] | None = None, *, ids_error: Exception | None = None):
        self._mechanics = {item.id: item for item in mechanics or []}
        self._ids_error = ids_error
        self.commits = 0
        self.rollbacks = 0

    def get(self, _model, pk):  # type: ignore[no-untyped-def]
        return self._mechanics.get(pk)

    def scalars(self, _statement):  # type: ignore[no-untyped-def]
        if self._ids_error is not None:
            raise self._ids_error
        return _FakeScalars(list(self._mechanics))

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1


def _mechanic(mechanic_id: int, labels: list[str]) -> Mechanic:
    return Mechanic(
        id=mechanic_id,
        user_id=mechanic_id,
        name=f"Mechanic {mechanic_id}",
        toolkits=[],
        attendance=[],
        monthly_overtime=[_bucket_document(label) for label in labels],
    )


class CutoffTests(unittest.TestCase):
    def test_cutoff_is_two_months_back(self) -> None:
        self.assertEqual(cutoff_month(NOW), MonthKey(2025, 4))
        self.assertEqual(cutoff_month_key(NOW), "April 2025")

    def test_cutoff_crosses_year(self) -> None:
        self.assertEqual(cutoff_month(datetime(2025, 1, 31, 9, 0, tzinfo=QATAR)), MonthKey(2024, 11))

    def test_cutoff_on_month_end_does_not_overflow(self) -> None:
        # 30 April minus two months has no matching day in February.
        self.assertEqual(cutoff_month(datetime(2025, 4, 30, 9, 0, tzinfo=QATAR)), MonthKey(2025, 2))


class SweepMechanicTests(unittest.TestCase):
    def test_only_months_before_cutoff_are_removed(self) -> None:
        mechanic = _mechanic(1, ["March 2025", "April 2025", "May 2025"])
        db = _FakeDB([mechanic])

        result = sweep_mechanic(db, 1, now=NOW)  # type: ignore[arg-type]

        self.assertEqual(result.removed_months, ["March 2025"])
        self.assertEqual(result.buckets_removed, 1)
        self.assertEqual([item["month"] for item in mechanic.monthly_overtime], ["April 2025", "May 2025"])
        self.assertEqual(db.commits, 1)

    def test_older_year_with_later_month_name_is_removed(self) -> None:
        mechanic = _mechanic(1, ["December 2024", "September 2024", "June 2025"])
        db = _FakeDB([mechanic])

        result = sweep_mechanic(db, 1, now=NOW)  # type: ignore[arg-type]

        self.assertEqual(result.removed_months, ["December 2024", "September 2024"])
        self.assertEqual([item["month"] for item in mechanic.monthly_overtime], ["June 2025"])

    def test_nothing_to_remove_skips_commit(self) -> None:
        mechanic = _mechanic(1, ["April 2025", "May 2025", "June 2025"])
        db = _FakeDB([mechanic])

        result = sweep_mechanic(db, 1, now=NOW)  # type: ignore[arg-type]

        self.assertEqual(result.buckets_removed, 0)
        self.assertEqual(db.commits, 0)
        self.assertEqual(len(mechanic.monthly_overtime), 3)

    def test_unknown_mechanic_raises(self) -> None:
        with self.assertRaises(NotFound):
            sweep_mechanic(_FakeDB([]), 99, now=NOW)  # type: ignore[arg-type]


class SweepAllTests(unittest.TestCase):
    def test_failure_for_one_mechanic_does_not_stop_the_rest(self) -> None:
        db = _FakeDB([_mechanic(1, []), _mechanic(2, []), _mechanic(3, [])])

        def _sweep(_db, mechanic_id, *, now):  # type: ignore[no-untyped-def]
            if mechanic_id == 2:
                raise RuntimeError("row locked")
            return MechanicSweepResult(mechanic_id=mechanic_id, cutoff_month="April 2025", removed_months=["March 2025"])

        with patch("fleetops.services.overtime_retention.sweep_mechanic", side_effect=_sweep) as sweep_mock:
            with self.assertLogs("fleetops.overtime", level="ERROR") as captured:
                report = sweep_all(NOW, db=db)  # type: ignore[arg-type]

        self.assertEqual(sweep_mock.call_count, 3)
        self.assertEqual(report.mechanics_scanned, 3)
        self.assertEqual(report.buckets_removed, 2)
        self.assertEqual([failure.mechanic_id for failure in report.failures], [2])
        self.assertEqual(report.to_dict()["failed_mechanic_ids"], [2])
        self.assertEqual(db.rollbacks, 1)
        self.assertTrue(any("overtime_sweep_mechanic_failed" in line for line in captured.output))

    def test_sweeps_real_documents(self) -> None:
        first = _mechanic(1, ["March 2025", "May 2025"])
        second = _mechanic(2, ["February 2025", "March 2025", "June 2025"])
        db = _FakeDB([first, second])

        report = sweep_all(NOW, db=db)  # type: ignore[arg-type]

        self.assertEqual(report.cutoff_month, "April 2025")
        self.assertEqual(report.buckets_removed, 3)
        self.assertEqual(report.failures, [])
        self.assertEqual([item["month"] for item in second.monthly_overtime], ["June 2025"])

    def test_listing_failure_is_logged_not_raised(self) -> None:
        db = _FakeDB(ids_error=RuntimeError("database unavailable"))

        with self.assertLogs("fleetops.overtime", level="ERROR"):
            report = sweep_all(NOW, db=db)  # type: ignore[arg-type]

        self.assertEqual(report.mechanics_scanned, 0)
        self.assertEqual(db.rollbacks, 1)


class DetachedSweepTests(unittest.TestCase):
    def test_detached_sweep_swallows_and_logs_failures(self) -> None:
        with patch("fleetops.services.overtime_retention.SessionLocal", MagicMock()), patch(
            "fleetops.services.overtime_retention.sweep_mechanic",
            side_effect=RuntimeError("deadlock detected"),
        ):
            with self.assertLogs("fleetops.overtime", level="WARNING") as captured:
                run_detached_mechanic_sweep(7, now=NOW)

        self.assertTrue(any("overtime_sweep_mechanic_failed" in line for line in captured.output))

    def test_detached_sweep_runs_for_mechanic(self) -> None:
        session_factory = MagicMock()
        with patch("fleetops.services.overtime_retention.SessionLocal", session_factory), patch(
            "fleetops.services.overtime_retention.sweep_mechanic"
        ) as sweep_mock:
            run_detached_mechanic_sweep(7, now=NOW)

        session = session_factory.return_value.__enter__.return_value
        sweep_mock.assert_called_once_with(session, 7, now=NOW)


class SampledSweepTests(unittest.IsolatedAsyncioTestCase):
    def test_sampling_threshold(self) -> None:
        with patch("fleetops.services.overtime_retention.get_sweep_sample_rate", return_value=0.01):
            self.assertTrue(should_sample_sweep(lambda: 0.005))
            self.assertFalse(should_sample_sweep(lambda: 0.01))
            self.assertFalse(should_sample_sweep(lambda: 0.5))

    async def test_sampled_request_spawns_background_sweep(self) -> None:
        with patch("fleetops.services.overtime_retention.get_sweep_sample_rate", return_value=0.01), patch(
            "fleetops.services.overtime_retention.sweep_all"
        ) as sweep_mock:
            task = spawn_sampled_sweep(lambda: 0.0)
            self.assertIsNotNone(task)
            await task  # type: ignore[misc]

        sweep_mock.assert_called_once_with()

    async def test_unsampled_request_spawns_nothing(self) -> None:
        with patch("fleetops.services.overtime_retention.get_sweep_sample_rate", return_value=0.01), patch(
            "fleetops.services.overtime_retention.sweep_all"
        ) as sweep_mock:
            self.assertIsNone(spawn_sampled_sweep(lambda: 0.99))

        sweep_mock.assert_not_called()


if __name__ == "__main__":
    unittest.main()
