from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fleetops.models import ToolkitStatus, ToolkitType

EMAIL_PATTERN = r"^\S+@\S+\.\S+$"


class TimeWindowPayload(BaseModel):
    clock_in: datetime | None = Field(default=None, alias="in")
    clock_out: datetime | None = Field(default=None, alias="out")

    model_config = ConfigDict(populate_by_name=True)


class OvertimeLogRequest(BaseModel):
    date: str = Field(min_length=1)
    time_windows: list[TimeWindowPayload] = Field(default_factory=list)
    work_details: list[str] = Field(default_factory=list)
    equipment_refs: list[int | str] = Field(default_factory=list)

    def to_raw(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class TimeWindowRead(BaseModel):
    clock_in: datetime = Field(alias="in")
    clock_out: datetime | None = Field(default=None, alias="out")

    model_config = ConfigDict(populate_by_name=True)


class OvertimeEntryRead(BaseModel):
    date: date
    formatted_date: str
    equipment_refs: list[int | str]
    time_windows: list[TimeWindowRead]
    work_details: list[str]
    total_minutes: int
    formatted_time: str


class MonthlyOvertimeRead(BaseModel):
    month: str
    entries: list[OvertimeEntryRead]
    total_minutes: int
    formatted_total: str


class ToolkitCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    type: ToolkitType
    size: str = Field(min_length=1, max_length=64)
    color: str = Field(min_length=1, max_length=64)
    stock_count: int = Field(default=0, ge=0)
    min_stock_level: int = Field(default=5, ge=1)

    @field_validator("name", "size", "color")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()


class ToolkitRead(BaseModel):
    id: str
    name: str
    type: ToolkitType
    size: str
    color: str
    stock_count: int
    min_stock_level: int
    status: ToolkitStatus
    in_use: bool = False
    created_at: datetime
    updated_at: datetime


class AttendanceCreate(BaseModel):
    work_date: date | None = Field(default=None, alias="date")
    clock_in: datetime = Field(alias="in")
    clock_out: datetime | None = Field(default=None, alias="out")
    break_out: datetime | None = None
    break_in: datetime | None = None

    model_config = ConfigDict(populate_by_name=True)


class AttendanceRead(BaseModel):
    id: str
    date: date
    clock_in: datetime = Field(alias="in")
    clock_out: datetime | None = Field(default=None, alias="out")
    break_out: datetime | None = None
    break_in: datetime | None = None
    total_minutes: int
    formatted_time: str

    model_config = ConfigDict(populate_by_name=True)


class MechanicCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: str | None = Field(default=None, pattern=EMAIL_PATTERN, max_length=255)
    password: str | None = Field(default=None, min_length=6, max_length=128)
    auth_mail: str | None = Field(default=None, pattern=EMAIL_PATTERN, max_length=255)
    unique_code: str | None = Field(default=None, max_length=64)
    tag: str | None = Field(default=None, max_length=64)
    is_active: bool = False


class MechanicUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: str | None = Field(default=None, pattern=EMAIL_PATTERN, max_length=255)
    password: str | None = Field(default=None, min_length=6, max_length=128)
    auth_mail: str | None = Field(default=None, pattern=EMAIL_PATTERN, max_length=255)
    unique_code: str | None = Field(default=None, max_length=64)
    tag: str | None = Field(default=None, max_length=64)
    is_active: bool | None = None


class MechanicRead(BaseModel):
    id: int
    user_id: int
    name: str
    email: str | None
    auth_mail: str
    unique_code: str | None
    tag: str | None
    is_active: bool
    user_type: str
    toolkits: list[ToolkitRead] = Field(default_factory=list)
    attendance: list[AttendanceRead] = Field(default_factory=list)
    monthly_overtime: list[MonthlyOvertimeRead] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class MechanicSweepResponse(BaseModel):
    mechanic_id: int
    cutoff_month: str
    removed_months: list[str]
    buckets_removed: int


class SweepAllResponse(BaseModel):
    cutoff_month: str
    mechanics_scanned: int
    buckets_removed: int
    failed_mechanic_ids: list[int]


class RecalculationResponse(BaseModel):
    mechanics_scanned: int
    mechanics_updated: int
