"""Schemas plans de maintenance / Maintenance plan schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


# --- Creation (brouillon client) / Creation (client draft) ---

class IntervalCreate(BaseModel):
    hours: float = Field(ge=0)
    kilometers: float = Field(ge=0)
    # Par defaut : position dans la liste + 1 / Defaults to list position + 1
    sequence_order: int | None = Field(default=None, gt=0)
    # Identifiant brouillon client, jamais persiste / Client draft id, never persisted
    ref: str | None = None


class ActivityCreate(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    description: str
    category: str | None = None
    is_active: bool = True
    # References d'intervalles / Interval references
    interval_refs: list[str] = []
    interval_sequences: list[int] = []
    interval_ids: list[int] = []


class PlanCreate(BaseModel):
    name: str = Field(min_length=1, max_length=150)
    description: str | None = None
    vehicle_type: str | None = None
    is_active: bool = True
    intervals: list[IntervalCreate] = []
    activities: list[ActivityCreate] = []


class PlanUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=150)
    description: str | None = None
    vehicle_type: str | None = None
    is_active: bool | None = None
    intervals: list[IntervalCreate] | None = None
    activities: list[ActivityCreate] | None = None


class PlanDuplicate(BaseModel):
    name: str | None = None


class MatrixCellUpdate(BaseModel):
    activity_id: int
    interval_id: int
    applies: bool


# --- Lecture / Read ---

class IntervalRead(BaseModel):
    id: int
    hours: float
    kilometers: float
    sequence_order: int

    model_config = {"from_attributes": True}


class MatrixRowRead(BaseModel):
    id: int
    interval_id: int
    applies: bool

    model_config = {"from_attributes": True}


class ActivitySummaryRead(BaseModel):
    id: int
    code: str
    description: str
    category: str | None = None

    model_config = {"from_attributes": True}


class ActivityRead(BaseModel):
    id: int
    code: str
    description: str
    category: str | None = None
    is_active: bool
    matrix_rows: list[MatrixRowRead] = []

    model_config = {"from_attributes": True}


class PlanRead(BaseModel):
    id: int
    company_id: int
    name: str
    description: str | None = None
    vehicle_type: str | None = None
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None
    intervals: list[IntervalRead] = []
    activities: list[ActivityRead] = []

    model_config = {"from_attributes": True}


class PlanSummaryRead(BaseModel):
    id: int
    name: str
    description: str | None = None
    vehicle_type: str | None = None
    is_active: bool
    created_at: datetime | None = None
    interval_count: int = 0
    activity_count: int = 0
