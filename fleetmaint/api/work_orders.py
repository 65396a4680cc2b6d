"""Routes Ordres de travail / Work order API routes."""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from fleetmaint.api.deps import client_metadata, get_current_user
from fleetmaint.database import get_db
from fleetmaint.models.user import User
from fleetmaint.models.work_order import WorkOrderStatus, WorkOrderType
from fleetmaint.schemas.work_order import (
    WorkOrderCancel,
    WorkOrderClose,
    WorkOrderCreate,
    WorkOrderItemCreate,
    WorkOrderItemRead,
    WorkOrderItemUpdate,
    WorkOrderPage,
    WorkOrderRead,
)
from fleetmaint.services import work_orders

router = APIRouter()


@router.get("/", response_model=WorkOrderPage)
async def list_work_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    vehicle_id: int | None = None,
    status: WorkOrderStatus | None = None,
    type: WorkOrderType | None = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Lister les ordres (pagine) / List work orders (paginated)."""
    return await work_orders.list_work_orders(db, user.company_id, page, limit, vehicle_id, status, type)


@router.get("/{work_order_id}", response_model=WorkOrderRead)
async def get_work_order(
    work_order_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await work_orders.get_work_order(db, work_order_id, user.company_id)


@router.post("/", response_model=WorkOrderRead, status_code=201)
async def create_work_order(
    data: WorkOrderCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Creer un ordre ; preventif pre-rempli / Create an order; preventive is pre-filled."""
    return await work_orders.create_work_order(db, data, user.company_id, user.id)


@router.post("/{work_order_id}/items", response_model=WorkOrderRead, status_code=201)
async def add_work_order_item(
    work_order_id: int,
    data: WorkOrderItemCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await work_orders.add_work_order_item(db, work_order_id, data, user.company_id, user.id)


@router.post("/{work_order_id}/start", response_model=WorkOrderRead)
async def start_work_order(
    work_order_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Demarrer (l'appelant devient l'operateur) / Start (caller becomes the operator)."""
    return await work_orders.start_work_order(db, work_order_id, user.company_id, user.id)


@router.put("/{work_order_id}/items/{item_id}", response_model=WorkOrderItemRead)
async def update_work_order_item(
    work_order_id: int,
    item_id: int,
    data: WorkOrderItemUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await work_orders.update_work_order_item(db, work_order_id, item_id, data, user.company_id, user.id)


@router.post("/{work_order_id}/close", response_model=WorkOrderRead)
async def close_work_order(
    work_order_id: int,
    request: Request,
    data: WorkOrderClose | None = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Cloturer et signer / Close and sign."""
    ip_address, user_agent = client_metadata(request)
    return await work_orders.close_work_order(
        db,
        work_order_id,
        user.company_id,
        user.id,
        ip_address=ip_address,
        user_agent=user_agent,
        notes=data.notes if data else None,
    )


@router.post("/{work_order_id}/cancel", response_model=WorkOrderRead)
async def cancel_work_order(
    work_order_id: int,
    data: WorkOrderCancel | None = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await work_orders.cancel_work_order(
        db, work_order_id, user.company_id, data.reason if data else None, user.id
    )


@router.delete("/{work_order_id}", status_code=204)
async def delete_work_order(
    work_order_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Supprimer (PENDING ou CANCELLED) / Delete (PENDING or CANCELLED)."""
    await work_orders.delete_work_order(db, work_order_id, user.company_id, user.id)
