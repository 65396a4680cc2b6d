"""Schemas ordres de travail / Work order schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from fleetmaint.models.work_order import (
    SignatureType,
    WorkOrderItemStatus,
    WorkOrderStatus,
    WorkOrderType,
)
from fleetmaint.schemas.maintenance_plan import ActivitySummaryRead


class WorkOrderCreate(BaseModel):
    vehicle_id: int
    type: WorkOrderType
    scheduled_date: datetime | None = None
    odometer_at_start: float | None = Field(default=None, ge=0)
    hourmeter_at_start: float | None = Field(default=None, ge=0)
    operator_id: int | None = None
    supervisor_id: int | None = None
    is_internal: bool = True
    workshop_id: int | None = None
    notes: str | None = None


class WorkOrderItemCreate(BaseModel):
    activity_id: int | None = None
    description: str | None = None
    cost: float | None = Field(default=None, ge=0)


class WorkOrderItemUpdate(BaseModel):
    status: WorkOrderItemStatus | None = None
    observations: str | None = None
    parts_used: str | None = None
    labor_hours: float | None = Field(default=None, ge=0)
    cost: float | None = Field(default=None, ge=0)
    evidence_urls: list[str] | None = None


class WorkOrderClose(BaseModel):
    notes: str | None = None


class WorkOrderCancel(BaseModel):
    reason: str | None = None


class WorkOrderItemRead(BaseModel):
    id: int
    work_order_id: int
    activity_id: int | None = None
    description: str | None = None
    status: WorkOrderItemStatus
    observations: str | None = None
    parts_used: str | None = None
    labor_hours: float | None = None
    cost: float | None = None
    evidence_urls: list[str] | None = None
    completed_at: datetime | None = None
    activity: ActivitySummaryRead | None = None

    model_config = {"from_attributes": True}


class WorkOrderSignatureRead(BaseModel):
    id: int
    user_id: int
    role: str
    signature_type: SignatureType
    ip_address: str | None = None
    user_agent: str | None = None
    signed_at: datetime

    model_config = {"from_attributes": True}


class WorkOrderRead(BaseModel):
    id: int
    company_id: int
    vehicle_id: int
    number: str
    type: WorkOrderType
    status: WorkOrderStatus
    scheduled_date: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    odometer_at_start: float | None = None
    hourmeter_at_start: float | None = None
    operator_id: int | None = None
    supervisor_id: int | None = None
    is_internal: bool
    workshop_id: int | None = None
    total_cost: float | None = None
    notes: str | None = None
    created_at: datetime | None = None
    items: list[WorkOrderItemRead] = []
    signatures: list[WorkOrderSignatureRead] = []

    model_config = {"from_attributes": True}


class WorkOrderListRead(BaseModel):
    id: int
    vehicle_id: int
    number: str
    type: WorkOrderType
    status: WorkOrderStatus
    scheduled_date: datetime | None = None
    completed_at: datetime | None = None
    is_internal: bool
    workshop_id: int | None = None
    total_cost: float | None = None
    created_at: datetime | None = None
    item_count: int = 0


class PageMeta(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class WorkOrderPage(BaseModel):
    data: list[WorkOrderListRead]
    meta: PageMeta
