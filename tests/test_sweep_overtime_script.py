from __future__ import annotations

import importlib.util
import io
import json
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest.mock import patch

from fleetops.errors import SweepFailure
from fleetops.models import Mechanic
from fleetops.services.overtime_retention import SweepReport

SCRIPT_PATH = Path(__file__).resolve().parents[1] / "scripts" / "sweep_overtime.py"


def _load_script():  # type: ignore[no-untyped-def]
    location = importlib.util.spec_from_file_location("sweep_overtime_script", SCRIPT_PATH)
    module = importlib.util.module_from_spec(location)  # type: ignore[arg-type]
    location.loader.exec_module(module)  # type: ignore[union-attr]
    return module


class _FakeSession:
    def __init__(self, mechanics: list[Mechanic] | None = None):
        self._mechanics = {item.id: item for item in mechanics or []}
        self.commits = 0

    def __enter__(self):  # type: ignore[no-untyped-def]
        return self

    def __exit__(self, exc_type, exc, tb):  # type: ignore[no-untyped-def]
        return False

    def get(self, _model, pk):  # type: ignore[no-untyped-def]
        return self._mechanics.get(pk)

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        return None


class SweepOvertimeScriptTests(unittest.TestCase):
    def setUp(self) -> None:
        self.cli = _load_script()
        logging_patch = patch.object(self.cli, "setup_json_logging")
        logging_patch.start()
        self.addCleanup(logging_patch.stop)

    def _main(self, argv: list[str]) -> tuple[int, dict]:
        buffer = io.StringIO()
        with redirect_stdout(buffer):
            exit_code = self.cli.main(argv)
        return exit_code, json.loads(buffer.getvalue())

    def test_sweep_all_prints_report(self) -> None:
        report = SweepReport(cutoff_month="April 2025", mechanics_scanned=4, buckets_removed=3)

        with patch.object(self.cli, "sweep_all", return_value=report) as sweep_mock:
            exit_code, output = self._main([])

        self.assertEqual(exit_code, 0)
        sweep_mock.assert_called_once()
        self.assertEqual(output["sweep"]["mechanics_scanned"], 4)
        self.assertEqual(output["sweep"]["failed_mechanic_ids"], [])
        self.assertNotIn("recalculation", output)

    def test_sweep_all_with_failures_exits_non_zero(self) -> None:
        report = SweepReport(
            cutoff_month="April 2025",
            mechanics_scanned=2,
            failures=[SweepFailure(2, RuntimeError("row locked"))],
        )

        with patch.object(self.cli, "sweep_all", return_value=report):
            exit_code, output = self._main([])

        self.assertEqual(exit_code, 1)
        self.assertEqual(output["sweep"]["failed_mechanic_ids"], [2])

    def test_single_mechanic_sweep(self) -> None:
        mechanic = Mechanic(
            id=7,
            user_id=1,
            name="Samir Haddad",
            toolkits=[],
            attendance=[],
            monthly_overtime=[{"month": "March 2025", "entries": [], "total_minutes": 0}],
        )
        session = _FakeSession([mechanic])

        with patch.object(self.cli, "SessionLocal", return_value=session), patch.object(
            self.cli, "sweep_all"
        ) as sweep_mock:
            exit_code, output = self._main(["--mechanic-id", "7"])

        self.assertEqual(exit_code, 0)
        sweep_mock.assert_not_called()
        self.assertEqual(output["sweep"]["mechanic_id"], 7)
        self.assertEqual(output["sweep"]["removed_months"], ["March 2025"])
        self.assertEqual(output["sweep"]["failed_mechanic_ids"], [])
        self.assertEqual(mechanic.monthly_overtime, [])
        self.assertEqual(session.commits, 1)

    def test_unknown_mechanic_is_reported_not_raised(self) -> None:
        with patch.object(self.cli, "SessionLocal", return_value=_FakeSession()):
            exit_code, output = self._main(["--mechanic-id", "999"])

        self.assertEqual(exit_code, 1)
        self.assertEqual(output["sweep"]["mechanic_id"], 999)
        self.assertEqual(output["sweep"]["failed_mechanic_ids"], [999])
        self.assertEqual(output["sweep"]["buckets_removed"], 0)
        self.assertEqual(output["sweep"]["error"], "Mechanic not found")

    def test_recalculate_flag_runs_recalculation(self) -> None:
        report = SweepReport(cutoff_month="April 2025")

        with patch.object(self.cli, "sweep_all", return_value=report), patch.object(
            self.cli,
            "recalculate_monthly_totals",
        ) as recalc_mock:
            recalc_mock.return_value.to_dict.return_value = {"mechanics_scanned": 1, "mechanics_updated": 1}
            exit_code, output = self._main(["--recalculate"])

        self.assertEqual(exit_code, 0)
        self.assertEqual(output["recalculation"], {"mechanics_scanned": 1, "mechanics_updated": 1})


if __name__ == "__main__":
    unittest.main()
