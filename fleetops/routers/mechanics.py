from dataclasses import replace

from fastapi import APIRouter, BackgroundTasks, Depends, Path, Response, status
from sqlalchemy.orm import Session

from fleetops.db import get_db
from fleetops.schemas import (
    AttendanceCreate,
    AttendanceRead,
    MechanicCreate,
    MechanicRead,
    MechanicSweepResponse,
    MechanicUpdate,
    MonthlyOvertimeRead,
    OvertimeLogRequest,
    RecalculationResponse,
    SweepAllResponse,
    ToolkitCreate,
)
from fleetops.services.mechanics import (
    add_toolkit,
    create_mechanic,
    delete_mechanic,
    get_mechanic,
    list_mechanics,
    record_attendance,
    update_mechanic,
)
from fleetops.services.overtime import (
    get_month_overtime,
    list_monthly_overtime,
    log_overtime,
    recalculate_monthly_totals,
)
from fleetops.services.overtime_buckets import MonthlyOvertimeBucket
from fleetops.services.overtime_documents import encode_bucket
from fleetops.services.overtime_retention import run_detached_mechanic_sweep, sweep_all, sweep_mechanic

router = APIRouter(prefix="/api/mechanics", tags=["mechanics"])


def _to_bucket_read(bucket: MonthlyOvertimeBucket) -> MonthlyOvertimeRead:
    ordered = replace(bucket, entries=tuple(bucket.sorted_entries()))
    return MonthlyOvertimeRead.model_validate(encode_bucket(ordered))


@router.delete("/overtime/cleanup-all", response_model=SweepAllResponse)
def cleanup_all_overtime(db: Session = Depends(get_db)) -> SweepAllResponse:
    report = sweep_all(db=db)
    return SweepAllResponse(**report.to_dict())


@router.post("/overtime/recalculate", response_model=RecalculationResponse)
def recalculate_overtime_totals(db: Session = Depends(get_db)) -> RecalculationResponse:
    report = recalculate_monthly_totals(db=db)
    return RecalculationResponse(**report.to_dict())


@router.post("", response_model=MechanicRead, status_code=status.HTTP_201_CREATED)
def create_mechanic_endpoint(payload: MechanicCreate, db: Session = Depends(get_db)) -> MechanicRead:
    return MechanicRead.model_validate(create_mechanic(db, payload))


@router.get("", response_model=list[MechanicRead])
def list_mechanics_endpoint(db: Session = Depends(get_db)) -> list[MechanicRead]:
    return [MechanicRead.model_validate(item) for item in list_mechanics(db)]


@router.get("/{mechanic_id}", response_model=MechanicRead)
def get_mechanic_endpoint(mechanic_id: int, db: Session = Depends(get_db)) -> MechanicRead:
    return MechanicRead.model_validate(get_mechanic(db, mechanic_id))


@router.patch("/{mechanic_id}", response_model=MechanicRead)
def update_mechanic_endpoint(
    mechanic_id: int,
    payload: MechanicUpdate,
    db: Session = Depends(get_db),
) -> MechanicRead:
    return MechanicRead.model_validate(update_mechanic(db, mechanic_id, payload))


@router.delete("/{mechanic_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_mechanic_endpoint(mechanic_id: int, db: Session = Depends(get_db)) -> Response:
    delete_mechanic(db, mechanic_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{mechanic_id}/toolkits", response_model=MechanicRead, status_code=status.HTTP_201_CREATED)
def add_toolkit_endpoint(
    mechanic_id: int,
    payload: ToolkitCreate,
    db: Session = Depends(get_db),
) -> MechanicRead:
    return MechanicRead.model_validate(add_toolkit(db, mechanic_id, payload))


@router.post("/{mechanic_id}/attendance", response_model=AttendanceRead, status_code=status.HTTP_201_CREATED)
def record_attendance_endpoint(
    mechanic_id: int,
    payload: AttendanceCreate,
    db: Session = Depends(get_db),
) -> AttendanceRead:
    return AttendanceRead.model_validate(record_attendance(db, mechanic_id, payload))


@router.post("/{mechanic_id}/overtime", response_model=MonthlyOvertimeRead, status_code=status.HTTP_201_CREATED)
def log_overtime_endpoint(
    mechanic_id: int,
    payload: OvertimeLogRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
) -> MonthlyOvertimeRead:
    bucket = log_overtime(
        db,
        mechanic_id,
        payload.to_raw(),
        dispatch_sweep=lambda target_id: background_tasks.add_task(run_detached_mechanic_sweep, target_id),
    )
    return _to_bucket_read(bucket)


@router.get("/{mechanic_id}/monthly-overtime", response_model=list[MonthlyOvertimeRead])
def list_monthly_overtime_endpoint(mechanic_id: int, db: Session = Depends(get_db)) -> list[MonthlyOvertimeRead]:
    buckets = sorted(list_monthly_overtime(db, mechanic_id), key=lambda bucket: bucket.month)
    return [_to_bucket_read(bucket) for bucket in buckets]


@router.get("/{mechanic_id}/monthly-overtime/{month}/{year}", response_model=MonthlyOvertimeRead | None)
def get_month_overtime_endpoint(
    mechanic_id: int,
    month: int = Path(ge=1, le=12),
    year: int = Path(ge=1970, le=9999),
    db: Session = Depends(get_db),
) -> MonthlyOvertimeRead | None:
    bucket = get_month_overtime(db, mechanic_id, month=month, year=year)
    if bucket is None:
        return None
    return _to_bucket_read(bucket)


@router.delete("/{mechanic_id}/overtime/cleanup", response_model=MechanicSweepResponse)
def cleanup_mechanic_overtime(mechanic_id: int, db: Session = Depends(get_db)) -> MechanicSweepResponse:
    result = sweep_mechanic(db, mechanic_id)
    return MechanicSweepResponse(**result.to_dict())
