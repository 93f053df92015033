from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from fleetops.models import ToolkitStatus
from fleetops.schemas import ToolkitCreate


def toolkit_status(stock_count: int, min_stock_level: int) -> ToolkitStatus:
    if stock_count <= 0:
        return ToolkitStatus.OUT
    if stock_count < min_stock_level:
        return ToolkitStatus.LOW
    return ToolkitStatus.AVAILABLE


def build_toolkit_document(payload: ToolkitCreate, *, now: datetime | None = None) -> dict[str, Any]:
    timestamp = (now or datetime.now(timezone.utc)).isoformat()
    return {
        "id": uuid4().hex,
        "name": payload.name,
        "type": payload.type.value,
        "size": payload.size,
        "color": payload.color,
        "stock_count": payload.stock_count,
        "min_stock_level": payload.min_stock_level,
        "status": toolkit_status(payload.stock_count, payload.min_stock_level).value,
        "in_use": False,
        "created_at": timestamp,
        "updated_at": timestamp,
    }
