from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from fleetops.db import Base

# Embedded documents live in JSONB on PostgreSQL and plain JSON elsewhere.
DocumentList = JSON().with_variant(JSONB(), "postgresql")


class ToolkitType(str, enum.Enum):
    HEAD_PROTECTION = "Head Protection"
    EYE_PROTECTION = "Eye Protection"
    HAND_PROTECTION = "Hand Protection"
    FOOT_PROTECTION = "Foot Protection"
    BODY_PROTECTION = "Body Protection"
    FALL_PROTECTION = "Fall Protection"
    RESPIRATORY_PROTECTION = "Respiratory Protection"


class ToolkitStatus(str, enum.Enum):
    AVAILABLE = "available"
    LOW = "low"
    OUT = "out"


class Mechanic(Base):
    __tablename__ = "mechanics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    auth_mail: Mapped[str] = mapped_column(String(255), nullable=False, default="", server_default=text("''"))
    unique_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    tag: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    user_type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default="mechanic",
        server_default=text("'mechanic'"),
    )
    toolkits: Mapped[list[dict[str, Any]]] = mapped_column(DocumentList, nullable=False, default=list)
    attendance: Mapped[list[dict[str, Any]]] = mapped_column(DocumentList, nullable=False, default=list)
    monthly_overtime: Mapped[list[dict[str, Any]]] = mapped_column(DocumentList, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )
