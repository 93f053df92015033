from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fleetops.errors import ApiError, NotFound
from fleetops.models import Mechanic
from fleetops.schemas import AttendanceCreate, MechanicCreate, MechanicUpdate, ToolkitCreate
from fleetops.security import hash_password
from fleetops.services.attendance import build_attendance_record, encode_attendance_record
from fleetops.services.toolkits import build_toolkit_document
from fleetops.settings import get_settings

logger = logging.getLogger("fleetops.mechanics")


def get_mechanic(db: Session, mechanic_id: int) -> Mechanic:
    mechanic = db.get(Mechanic, mechanic_id)
    if mechanic is None:
        raise NotFound()
    return mechanic


def _normalize_email(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip().lower()
    return normalized or None


def _commit(db: Session, *, conflict_message: str) -> None:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ApiError(status_code=409, code="MECHANIC_CONFLICT", message=conflict_message)


def create_mechanic(db: Session, payload: MechanicCreate) -> Mechanic:
    highest_user_id = db.scalar(select(func.max(Mechanic.user_id)))
    mechanic = Mechanic(
        user_id=(highest_user_id or 0) + 1,
        name=payload.name.strip(),
        email=_normalize_email(payload.email),
        password_hash=hash_password(payload.password) if payload.password else None,
        auth_mail=_normalize_email(payload.auth_mail) or "",
        unique_code=payload.unique_code,
        tag=payload.tag or get_settings().mechanic_tag_code or None,
        is_active=payload.is_active,
        user_type="mechanic",
        toolkits=[],
        attendance=[],
        monthly_overtime=[],
    )
    db.add(mechanic)
    _commit(db, conflict_message="Mechanic user id already taken, retry the request")
    db.refresh(mechanic)
    logger.info("mechanic_created", extra={"mechanic_id": mechanic.id, "user_id": mechanic.user_id})
    return mechanic


def list_mechanics(db: Session) -> list[Mechanic]:
    return list(db.scalars(select(Mechanic).order_by(Mechanic.user_id.asc())).all())


def update_mechanic(db: Session, mechanic_id: int, payload: MechanicUpdate) -> Mechanic:
    mechanic = get_mechanic(db, mechanic_id)
    changes: dict[str, Any] = payload.model_dump(exclude_unset=True)

    if "name" in changes and changes["name"] is not None:
        mechanic.name = changes["name"].strip()
    if "email" in changes:
        mechanic.email = _normalize_email(changes["email"])
    if "auth_mail" in changes:
        mechanic.auth_mail = _normalize_email(changes["auth_mail"]) or ""
    if changes.get("password"):
        mechanic.password_hash = hash_password(changes["password"])
    for field_name in ("unique_code", "tag"):
        if field_name in changes:
            setattr(mechanic, field_name, changes[field_name])
    if changes.get("is_active") is not None:
        mechanic.is_active = changes["is_active"]

    _commit(db, conflict_message="Mechanic update conflicts with existing data")
    db.refresh(mechanic)
    return mechanic


def delete_mechanic(db: Session, mechanic_id: int) -> None:
    mechanic = get_mechanic(db, mechanic_id)
    db.delete(mechanic)
    db.commit()
    logger.info("mechanic_deleted", extra={"mechanic_id": mechanic_id})


def add_toolkit(db: Session, mechanic_id: int, payload: ToolkitCreate) -> Mechanic:
    mechanic = get_mechanic(db, mechanic_id)
    mechanic.toolkits = [*(mechanic.toolkits or []), build_toolkit_document(payload)]
    db.commit()
    db.refresh(mechanic)
    return mechanic


def record_attendance(db: Session, mechanic_id: int, payload: AttendanceCreate) -> dict[str, Any]:
    mechanic = get_mechanic(db, mechanic_id)
    document = encode_attendance_record(build_attendance_record(payload))
    mechanic.attendance = [*(mechanic.attendance or []), document]
    db.commit()
    return document
