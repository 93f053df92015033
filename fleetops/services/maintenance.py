from __future__ import annotations

from datetime import datetime
from typing import Any

from fleetops.services.overtime import recalculate_monthly_totals
from fleetops.services.overtime_retention import sweep_all


def run_overtime_maintenance(now_utc: datetime) -> dict[str, Any]:
    """One scheduled pass: retention sweep first, then monthly totals."""
    sweep_report = sweep_all(now_utc)
    recalculation_report = recalculate_monthly_totals()
    return {
        "sweep": sweep_report.to_dict(),
        "recalculation": recalculation_report.to_dict(),
    }
