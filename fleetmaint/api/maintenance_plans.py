"""Routes Plans de maintenance / Maintenance plan API routes."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fleetmaint.api.deps import get_current_user
from fleetmaint.database import get_db
from fleetmaint.models.user import User
from fleetmaint.schemas.maintenance_plan import (
    MatrixCellUpdate,
    PlanCreate,
    PlanDuplicate,
    PlanRead,
    PlanSummaryRead,
    PlanUpdate,
)
from fleetmaint.services import plan_catalog, plan_versioning

router = APIRouter()


@router.get("/", response_model=list[PlanSummaryRead])
async def list_plans(
    vehicle_type: str | None = None,
    is_active: bool | None = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Lister les plans / List plans."""
    return await plan_catalog.list_plans(db, user.company_id, vehicle_type, is_active)


@router.get("/active", response_model=PlanRead | None)
async def get_active_plan(
    vehicle_type: str | None = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Premier plan actif / First active plan."""
    return await plan_catalog.get_active_plan(db, user.company_id, vehicle_type)


@router.get("/{plan_id}", response_model=PlanRead)
async def get_plan(
    plan_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await plan_catalog.get_plan(db, plan_id, user.company_id)


@router.post("/", response_model=PlanRead, status_code=201)
async def create_plan(
    data: PlanCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Creer un plan complet / Create a full plan."""
    return await plan_catalog.create_plan(db, data, user.company_id, user.id)


@router.put("/{plan_id}", response_model=PlanRead)
async def update_plan(
    plan_id: int,
    data: PlanUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Remplacer un plan / Replace a plan."""
    return await plan_versioning.update_plan(db, plan_id, data, user.company_id, user.id)


@router.post("/{plan_id}/duplicate", response_model=PlanRead, status_code=201)
async def duplicate_plan(
    plan_id: int,
    data: PlanDuplicate | None = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Dupliquer un plan (copie inactive) / Duplicate a plan (inactive copy)."""
    new_name = data.name if data else None
    return await plan_versioning.duplicate_plan(db, plan_id, user.company_id, new_name, user.id)


@router.post("/{plan_id}/activate", response_model=PlanRead)
async def activate_plan(
    plan_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await plan_catalog.activate_plan(db, plan_id, user.company_id, user.id)


@router.post("/{plan_id}/deactivate", response_model=PlanRead)
async def deactivate_plan(
    plan_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await plan_catalog.deactivate_plan(db, plan_id, user.company_id, user.id)


@router.put("/{plan_id}/matrix", response_model=PlanRead)
async def set_matrix_cell(
    plan_id: int,
    data: MatrixCellUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Basculer une cellule de la matrice / Toggle one matrix cell."""
    return await plan_catalog.set_matrix_cell(
        db, plan_id, data.activity_id, data.interval_id, data.applies, user.company_id, user.id
    )


@router.delete("/{plan_id}", status_code=204)
async def delete_plan(
    plan_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Supprimer un plan inactif / Delete an inactive plan."""
    await plan_catalog.delete_plan(db, plan_id, user.company_id, user.id)
