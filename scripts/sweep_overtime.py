#!/usr/bin/env python
from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from fleetops.db import SessionLocal
from fleetops.errors import NotFound
from fleetops.logging_utils import setup_json_logging
from fleetops.services.overtime import recalculate_monthly_totals
from fleetops.services.overtime_retention import cutoff_month_key, sweep_all, sweep_mechanic
from fleetops.settings import get_settings


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Drop overtime months older than the retention window.")
    parser.add_argument("--mechanic-id", type=int, default=None, help="Sweep a single mechanic only.")
    parser.add_argument(
        "--recalculate",
        action="store_true",
        help="Recompute stored monthly totals after the sweep.",
    )
    return parser.parse_args(argv)


def _sweep_one(mechanic_id: int, now_utc: datetime) -> dict[str, Any]:
    try:
        with SessionLocal() as db:
            result = sweep_mechanic(db, mechanic_id, now=now_utc)
    except NotFound as exc:
        return {
            "mechanic_id": mechanic_id,
            "cutoff_month": cutoff_month_key(now_utc),
            "removed_months": [],
            "buckets_removed": 0,
            "failed_mechanic_ids": [mechanic_id],
            "error": exc.message,
        }
    return {**result.to_dict(), "failed_mechanic_ids": []}


def run(argv: list[str] | None = None) -> dict[str, Any]:
    args = _parse_args(argv)
    now_utc = datetime.now(timezone.utc)
    report: dict[str, Any] = {"generated_at_utc": now_utc.isoformat()}

    if args.mechanic_id is not None:
        report["sweep"] = _sweep_one(args.mechanic_id, now_utc)
    else:
        report["sweep"] = sweep_all(now_utc).to_dict()

    if args.recalculate:
        report["recalculation"] = recalculate_monthly_totals().to_dict()
    return report


def main(argv: list[str] | None = None) -> int:
    setup_json_logging(get_settings().log_level)
    report = run(argv)
    print(json.dumps(report, ensure_ascii=False, indent=2))
    failed = report["sweep"].get("failed_mechanic_ids") or []
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
