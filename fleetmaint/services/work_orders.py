"""
Service ordres de travail / Work order service.
Cycle de vie PENDING -> IN_PROGRESS -> COMPLETED (ou CANCELLED), lignes, cloture signee.
Lifecycle PENDING -> IN_PROGRESS -> COMPLETED (or CANCELLED), items, signed closure.
"""

import asyncio
import logging
import math
from collections import defaultdict
from decimal import Decimal

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fleetmaint.config import settings
from fleetmaint.database import atomic
from fleetmaint.errors import ConflictError, NotFoundError, ValidationError
from fleetmaint.models.maintenance_plan import MaintenanceActivity, MaintenancePlan
from fleetmaint.models.work_order import (
    DELETABLE_STATUSES,
    WorkOrder,
    WorkOrderItem,
    WorkOrderItemStatus,
    WorkOrderSequence,
    WorkOrderSignature,
    WorkOrderStatus,
    WorkOrderType,
    can_transition,
    can_transition_item,
)
from fleetmaint.schemas.work_order import (
    PageMeta,
    WorkOrderCreate,
    WorkOrderItemCreate,
    WorkOrderItemUpdate,
    WorkOrderListRead,
    WorkOrderPage,
)
from fleetmaint.services.audit import log_audit
from fleetmaint.services.fleet_lookup import (
    get_active_workshop,
    get_last_completed_order,
    get_user,
    get_vehicle,
    signature_type_for,
)
from fleetmaint.services.predictor import UsageSnapshot, predict, resolve_plan
from fleetmaint.utils.clock import utcnow

log = logging.getLogger(__name__)

# Serialisation en processus de la numerotation, par tenant / In-process numbering serialisation, per tenant
_numbering_locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)


# ─── Numerotation / Numbering ───

def format_number(value: int) -> str:
    """WO-000001"""
    return f"{settings.WORK_ORDER_NUMBER_PREFIX}{value:0{settings.WORK_ORDER_NUMBER_WIDTH}d}"


async def _next_number(db: AsyncSession, company_id: int) -> str:
    """Incrementer le compteur du tenant dans la transaction courante / Bump the tenant counter in the current transaction.

    Premier usage : initialise au nombre d'ordres existants / First use: seeded from the existing order count.
    """
    result = await db.execute(
        select(WorkOrderSequence)
        .where(WorkOrderSequence.company_id == company_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    sequence = result.scalar_one_or_none()
    if sequence is None:
        existing = await db.scalar(select(func.count(WorkOrder.id)).where(WorkOrder.company_id == company_id))
        sequence = WorkOrderSequence(company_id=company_id, last_value=existing or 0)
        db.add(sequence)
    sequence.last_value += 1
    await db.flush()
    return format_number(sequence.last_value)


# ─── Transitions ───

def ensure_transition(order: WorkOrder, target: WorkOrderStatus) -> None:
    if not can_transition(order.status, target):
        raise ConflictError(
            f"Work order {order.number} cannot go from {order.status.value} to {target.value}"
        )


def ensure_item_transition(item: WorkOrderItem, target: WorkOrderItemStatus) -> None:
    if not can_transition_item(item.status, target):
        raise ConflictError(f"Work order item cannot go from {item.status.value} to {target.value}")


def _ensure_open(order: WorkOrder) -> None:
    if order.is_terminal:
        raise ConflictError(f"Work order {order.number} is {order.status.value} and can no longer be modified")


# ─── Lecture / Reads ───

def _order_query():
    return (
        select(WorkOrder)
        .options(
            selectinload(WorkOrder.items).selectinload(WorkOrderItem.activity),
            selectinload(WorkOrder.signatures),
        )
        .execution_options(populate_existing=True)
    )


async def get_work_order(db: AsyncSession, work_order_id: int, company_id: int) -> WorkOrder:
    result = await db.execute(
        _order_query().where(WorkOrder.id == work_order_id, WorkOrder.company_id == company_id)
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Work order not found")
    return order


async def list_work_orders(
    db: AsyncSession,
    company_id: int,
    page: int = 1,
    limit: int = 10,
    vehicle_id: int | None = None,
    status: WorkOrderStatus | None = None,
    type: WorkOrderType | None = None,
) -> WorkOrderPage:
    """Liste paginee, plus recents d'abord / Paginated list, newest first."""
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive")

    filters = [WorkOrder.company_id == company_id]
    if vehicle_id is not None:
        filters.append(WorkOrder.vehicle_id == vehicle_id)
    if status is not None:
        filters.append(WorkOrder.status == status)
    if type is not None:
        filters.append(WorkOrder.type == type)

    total = await db.scalar(select(func.count(WorkOrder.id)).where(*filters)) or 0
    item_count = (
        select(func.count(WorkOrderItem.id))
        .where(WorkOrderItem.work_order_id == WorkOrder.id)
        .correlate(WorkOrder)
        .scalar_subquery()
    )
    result = await db.execute(
        select(WorkOrder, item_count)
        .where(*filters)
        .order_by(WorkOrder.created_at.desc(), WorkOrder.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    data = [
        WorkOrderListRead(
            id=order.id,
            vehicle_id=order.vehicle_id,
            number=order.number,
            type=order.type,
            status=order.status,
            scheduled_date=order.scheduled_date,
            completed_at=order.completed_at,
            is_internal=order.is_internal,
            workshop_id=order.workshop_id,
            total_cost=order.total_cost,
            created_at=order.created_at,
            item_count=count or 0,
        )
        for order, count in result.all()
    ]
    return WorkOrderPage(
        data=data,
        meta=PageMeta(total=total, page=page, limit=limit, total_pages=math.ceil(total / limit)),
    )


# ─── Creation ───

async def create_work_order(
    db: AsyncSession, data: WorkOrderCreate, company_id: int, user_id: int | None = None
) -> WorkOrder:
    """Creer un ordre PENDING ; un preventif est pre-rempli depuis la prevision /
    Create a PENDING order; a preventive one is seeded from the prediction."""
    vehicle = await get_vehicle(db, data.vehicle_id, company_id)

    if not data.is_internal and data.workshop_id is None:
        raise ValidationError("Workshop ID is required for external maintenance")
    if data.workshop_id is not None:
        await get_active_workshop(db, data.workshop_id, company_id)
    for person_id in (data.operator_id, data.supervisor_id):
        if person_id is not None:
            await get_user(db, person_id, company_id)

    activities: list[MaintenanceActivity] = []
    if data.type == WorkOrderType.PREVENTIVE:
        plan = await resolve_plan(db, vehicle, company_id)
        if plan is None:
            log.warning(
                "No active maintenance plan for vehicle %s, creating work order without items", vehicle.id
            )
        else:
            last_order = await get_last_completed_order(db, vehicle.id)
            activities = predict(UsageSnapshot.from_vehicle(vehicle), plan, last_order).activities

    # Le verrou se libere avant le commit de get_db ; la contrainte unique tranche /
    # The lock is released before get_db commits; the unique constraint decides
    async with _numbering_locks[company_id]:
        async with atomic(db):
            number = await _next_number(db, company_id)
            order = WorkOrder(
                company_id=company_id,
                vehicle_id=vehicle.id,
                number=number,
                type=data.type,
                status=WorkOrderStatus.PENDING,
                scheduled_date=data.scheduled_date,
                odometer_at_start=data.odometer_at_start,
                hourmeter_at_start=data.hourmeter_at_start,
                operator_id=data.operator_id,
                supervisor_id=data.supervisor_id,
                is_internal=data.is_internal,
                workshop_id=data.workshop_id,
                notes=data.notes,
            )
            db.add(order)
            await db.flush()

            db.add_all([
                WorkOrderItem(
                    work_order_id=order.id,
                    activity_id=activity.id,
                    description=activity.description,
                    status=WorkOrderItemStatus.PENDING,
                )
                for activity in activities
            ])
            await log_audit(db, company_id, "work_order", order.id, "CREATE", user_id, {
                "number": number,
                "type": data.type.value,
                "items": len(activities),
            })

    log.info("Work order %s created for vehicle %s (%d items)", number, vehicle.id, len(activities))
    return await get_work_order(db, order.id, company_id)


async def add_work_order_item(
    db: AsyncSession,
    work_order_id: int,
    data: WorkOrderItemCreate,
    company_id: int,
    user_id: int | None = None,
) -> WorkOrder:
    """Ligne libre ou rattachee a une activite du tenant / Ad-hoc item or one tied to a tenant activity."""
    order = await get_work_order(db, work_order_id, company_id)
    _ensure_open(order)

    description = data.description
    if data.activity_id is not None:
        result = await db.execute(
            select(MaintenanceActivity)
            .join(MaintenancePlan, MaintenancePlan.id == MaintenanceActivity.plan_id)
            .where(MaintenanceActivity.id == data.activity_id, MaintenancePlan.company_id == company_id)
        )
        activity = result.scalar_one_or_none()
        if activity is None:
            raise NotFoundError("Maintenance activity not found")
        description = description or activity.description
    elif not description:
        raise ValidationError("An item needs an activity or a description")

    db.add(WorkOrderItem(
        work_order_id=order.id,
        activity_id=data.activity_id,
        description=description,
        status=WorkOrderItemStatus.PENDING,
        cost=Decimal(str(data.cost)) if data.cost is not None else None,
    ))
    await log_audit(db, company_id, "work_order", order.id, "ADD_ITEM", user_id, {
        "activity_id": data.activity_id,
    })
    await db.flush()
    return await get_work_order(db, order.id, company_id)


# ─── Transitions d'etat / State transitions ───

async def start_work_order(
    db: AsyncSession, work_order_id: int, company_id: int, operator_id: int
) -> WorkOrder:
    order = await get_work_order(db, work_order_id, company_id)
    ensure_transition(order, WorkOrderStatus.IN_PROGRESS)
    await get_user(db, operator_id, company_id)

    order.status = WorkOrderStatus.IN_PROGRESS
    order.started_at = utcnow()
    order.operator_id = operator_id
    await log_audit(db, company_id, "work_order", order.id, "START", operator_id)
    await db.flush()

    log.info("Work order %s started by user %s", order.number, operator_id)
    return await get_work_order(db, order.id, company_id)


async def update_work_order_item(
    db: AsyncSession,
    work_order_id: int,
    item_id: int,
    data: WorkOrderItemUpdate,
    company_id: int,
    user_id: int | None = None,
) -> WorkOrderItem:
    order = await get_work_order(db, work_order_id, company_id)
    _ensure_open(order)

    item = next((item for item in order.items if item.id == item_id), None)
    if item is None:
        raise NotFoundError("Work order item not found")

    changes = data.model_dump(exclude_unset=True)
    target = changes.pop("status", None)
    if target is not None:
        ensure_item_transition(item, target)
        item.status = target
        # Date de fin posee une seule fois / Completion date set only once
        if target == WorkOrderItemStatus.COMPLETED and item.completed_at is None:
            item.completed_at = utcnow()

    if "cost" in changes:
        cost = changes.pop("cost")
        item.cost = Decimal(str(cost)) if cost is not None else None
    for key, value in changes.items():
        setattr(item, key, value)

    await log_audit(db, company_id, "work_order_item", item.id, "UPDATE", user_id, {
        "work_order_id": order.id,
        "status": target.value if target is not None else None,
    })
    await db.flush()

    refreshed = await get_work_order(db, order.id, company_id)
    return next(i for i in refreshed.items if i.id == item_id)


async def close_work_order(
    db: AsyncSession,
    work_order_id: int,
    company_id: int,
    user_id: int,
    ip_address: str | None = None,
    user_agent: str | None = None,
    notes: str | None = None,
) -> WorkOrder:
    """
    Cloturer un ordre en cours / Close an in-progress order.
    - aucune ligne PENDING (IN_PROGRESS / SKIPPED ne bloquent pas)
    - cout total = somme exacte des couts de lignes
    - signature du cloturant, type selon ses roles
    - vehicule : date de dernier entretien et compteurs de debut d'ordre
    """
    order = await get_work_order(db, work_order_id, company_id)
    ensure_transition(order, WorkOrderStatus.COMPLETED)

    pending = sum(1 for item in order.items if item.status == WorkOrderItemStatus.PENDING)
    if pending:
        raise ConflictError(f"All work order items must be completed or skipped ({pending} pending)")

    closer = await get_user(db, user_id, company_id)
    vehicle = await get_vehicle(db, order.vehicle_id, company_id)
    role_codes = closer.role_codes
    now = utcnow()

    async with atomic(db):
        order.status = WorkOrderStatus.COMPLETED
        order.completed_at = now
        order.total_cost = sum(
            (Decimal(str(item.cost)) for item in order.items if item.cost is not None), Decimal("0")
        )
        if notes is not None:
            order.notes = notes

        db.add(WorkOrderSignature(
            work_order_id=order.id,
            user_id=closer.id,
            role=role_codes[0] if role_codes else settings.DEFAULT_SIGNATURE_ROLE,
            signature_type=signature_type_for(role_codes),
            ip_address=ip_address,
            user_agent=user_agent[:255] if user_agent else None,
            signed_at=now,
        ))

        vehicle.last_maintenance_date = now
        if order.odometer_at_start is not None:
            vehicle.odometer = order.odometer_at_start
        if order.hourmeter_at_start is not None:
            vehicle.hourmeter = order.hourmeter_at_start

        await log_audit(db, company_id, "work_order", order.id, "CLOSE", closer.id, {
            "total_cost": order.total_cost,
        })

    log.info("Work order %s closed by user %s, total cost %s", order.number, closer.id, order.total_cost)
    return await get_work_order(db, order.id, company_id)


async def cancel_work_order(
    db: AsyncSession,
    work_order_id: int,
    company_id: int,
    reason: str | None = None,
    user_id: int | None = None,
) -> WorkOrder:
    order = await get_work_order(db, work_order_id, company_id)
    if order.status == WorkOrderStatus.CANCELLED:
        return order
    if order.status == WorkOrderStatus.COMPLETED:
        raise ConflictError("Cannot cancel a completed work order")
    ensure_transition(order, WorkOrderStatus.CANCELLED)

    order.status = WorkOrderStatus.CANCELLED
    order.completed_at = utcnow()
    if reason:
        order.notes = f"{order.notes or ''}\n\n{settings.CANCEL_NOTE_PREFIX}: {reason}".strip()
    await log_audit(db, company_id, "work_order", order.id, "CANCEL", user_id, {"reason": reason})
    await db.flush()

    log.info("Work order %s cancelled", order.number)
    return await get_work_order(db, order.id, company_id)


async def delete_work_order(
    db: AsyncSession, work_order_id: int, company_id: int, user_id: int | None = None
) -> None:
    order = await get_work_order(db, work_order_id, company_id)
    if order.status not in DELETABLE_STATUSES:
        raise ConflictError(
            "Only work orders in PENDING or CANCELLED status can be deleted. Cancel the work order first."
        )

    async with atomic(db):
        await db.execute(delete(WorkOrderItem).where(WorkOrderItem.work_order_id == order.id))
        await db.execute(delete(WorkOrderSignature).where(WorkOrderSignature.work_order_id == order.id))
        await db.execute(delete(WorkOrder).where(WorkOrder.id == order.id))
        await log_audit(db, company_id, "work_order", work_order_id, "DELETE", user_id, {"number": order.number})

    log.info("Work order %s deleted", order.number)
