"""
Acces aux collaborateurs externes / External collaborator lookups.
Vehicules, ateliers, utilisateurs et dernier ordre termine, toujours dans le perimetre du tenant.
Vehicles, workshops, users and last completed order, always within the tenant scope.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fleetmaint.config import settings
from fleetmaint.errors import NotFoundError
from fleetmaint.models.user import User
from fleetmaint.models.vehicle import Vehicle
from fleetmaint.models.work_order import SignatureType, WorkOrder, WorkOrderItem, WorkOrderStatus
from fleetmaint.models.workshop import Workshop


async def get_vehicle(db: AsyncSession, vehicle_id: int, company_id: int) -> Vehicle:
    result = await db.execute(
        select(Vehicle)
        .where(Vehicle.id == vehicle_id, Vehicle.company_id == company_id)
        .execution_options(populate_existing=True)
    )
    vehicle = result.scalar_one_or_none()
    if vehicle is None:
        raise NotFoundError("Vehicle not found")
    return vehicle


async def get_active_workshop(db: AsyncSession, workshop_id: int, company_id: int) -> Workshop:
    result = await db.execute(
        select(Workshop).where(
            Workshop.id == workshop_id,
            Workshop.company_id == company_id,
            Workshop.is_active.is_(True),
        )
    )
    workshop = result.scalar_one_or_none()
    if workshop is None:
        raise NotFoundError("Workshop not found or inactive")
    return workshop


async def get_user(db: AsyncSession, user_id: int, company_id: int) -> User:
    result = await db.execute(
        select(User).where(User.id == user_id, User.company_id == company_id)
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found")
    return user


async def get_last_completed_order(db: AsyncSession, vehicle_id: int) -> WorkOrder | None:
    """Dernier ordre termine du vehicule, avec ses lignes / Latest completed order of the vehicle, with items."""
    result = await db.execute(
        select(WorkOrder)
        .where(WorkOrder.vehicle_id == vehicle_id, WorkOrder.status == WorkOrderStatus.COMPLETED)
        .options(selectinload(WorkOrder.items).selectinload(WorkOrderItem.activity))
        .order_by(WorkOrder.completed_at.desc(), WorkOrder.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


def signature_type_for(role_codes: list[str]) -> SignatureType:
    """SUPERVISOR si le signataire a un role superviseur / SUPERVISOR if the closer holds a supervisor role."""
    if any(code in settings.SUPERVISOR_ROLE_CODES for code in role_codes):
        return SignatureType.SUPERVISOR
    return SignatureType.OPERATOR
