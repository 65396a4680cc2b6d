"""Schemas prevision d'entretien / Next-maintenance prediction schemas."""

from pydantic import BaseModel

from fleetmaint.schemas.maintenance_plan import ActivitySummaryRead, IntervalRead


class IntervalForecastRead(BaseModel):
    interval: IntervalRead
    km_until_next: float
    hours_until_next: float
    is_due: bool
    is_upcoming: bool

    model_config = {"from_attributes": True}


class NextMaintenanceRead(BaseModel):
    vehicle_id: int
    plan_id: int | None = None
    plan_name: str | None = None
    has_plan: bool
    last_work_order_id: int | None = None
    last_km: float = 0
    last_hours: float = 0
    intervals: list[IntervalForecastRead] = []
    applicable_activities: list[ActivitySummaryRead] = []

    model_config = {"from_attributes": True}
