"""
Service catalogue des plans / Plan catalog service.
Creation, lecture, activation et suppression des plans, et construction de la matrice
activite x intervalle a partir des references brouillon du client.
Plan creation, reads, activation and deletion, and construction of the activity x
interval matrix from the client's draft references.
"""

import logging

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fleetmaint.database import atomic
from fleetmaint.errors import ConflictError, NotFoundError, ValidationError
from fleetmaint.models.maintenance_plan import (
    ActivityIntervalMatrix,
    MaintenanceActivity,
    MaintenanceInterval,
    MaintenancePlan,
)
from fleetmaint.models.vehicle import Vehicle
from fleetmaint.models.work_order import WorkOrderItem
from fleetmaint.schemas.maintenance_plan import (
    ActivityCreate,
    IntervalCreate,
    PlanCreate,
    PlanSummaryRead,
)
from fleetmaint.services.audit import log_audit

log = logging.getLogger(__name__)


def plan_query():
    """Plan complet : intervalles, activites et matrice / Full plan: intervals, activities and matrix."""
    return (
        select(MaintenancePlan)
        .options(
            selectinload(MaintenancePlan.intervals),
            selectinload(MaintenancePlan.activities).selectinload(MaintenanceActivity.matrix_rows),
        )
        .execution_options(populate_existing=True)
    )


# ─── Validation du brouillon / Draft validation ───

def assign_sequence_orders(intervals: list[IntervalCreate]) -> list[int]:
    """Ordre de sequence explicite ou position + 1 / Explicit sequence order or position + 1."""
    orders = [interval.sequence_order or index + 1 for index, interval in enumerate(intervals)]
    duplicates = sorted({order for order in orders if orders.count(order) > 1})
    if duplicates:
        raise ConflictError(f"Duplicate interval sequence order(s) in plan: {duplicates}")
    refs = [interval.ref for interval in intervals if interval.ref]
    if len(refs) != len(set(refs)):
        raise ValidationError("Interval draft references must be unique within the payload")
    return orders


def check_activity_codes(activities: list[ActivityCreate]) -> None:
    codes = [activity.code for activity in activities]
    duplicates = sorted({code for code in codes if codes.count(code) > 1})
    if duplicates:
        raise ConflictError(f"Duplicate activity code(s) in plan: {duplicates}")


# ─── Ecritures partagees avec le versionnage / Writes shared with versioning ───

async def create_intervals(
    db: AsyncSession,
    plan_id: int,
    intervals: list[IntervalCreate],
    orders: list[int],
) -> tuple[list[MaintenanceInterval], dict[str, MaintenanceInterval]]:
    """Creer les intervalles et la table brouillon -> intervalle reel /
    Create intervals and the draft -> real interval table."""
    created = [
        MaintenanceInterval(
            plan_id=plan_id,
            hours=data.hours,
            kilometers=data.kilometers,
            sequence_order=order,
        )
        for data, order in zip(intervals, orders)
    ]
    db.add_all(created)
    await db.flush()
    drafts = {data.ref: interval for data, interval in zip(intervals, created) if data.ref}
    return created, drafts


def resolve_interval_ids(
    activity: ActivityCreate,
    intervals: list[MaintenanceInterval],
    drafts: dict[str, MaintenanceInterval],
) -> list[int]:
    """Resoudre les references d'intervalles d'une activite / Resolve an activity's interval references.

    - refs brouillon inconnues : ignorees / unknown draft refs: dropped
    - ordre de sequence ou id hors du plan : rejetes / sequence order or id outside the plan: rejected
    """
    by_sequence = {interval.sequence_order: interval.id for interval in intervals}
    known_ids = {interval.id for interval in intervals}
    resolved: list[int] = []

    for ref in activity.interval_refs:
        interval = drafts.get(ref)
        if interval is None:
            log.debug("Dropping unknown draft interval ref %r for activity %s", ref, activity.code)
            continue
        resolved.append(interval.id)

    for sequence in activity.interval_sequences:
        if sequence not in by_sequence:
            raise ValidationError(
                f"Activity {activity.code}: no interval with sequence order {sequence} in this plan"
            )
        resolved.append(by_sequence[sequence])

    for interval_id in activity.interval_ids:
        if interval_id not in known_ids:
            raise ValidationError(
                f"Activity {activity.code}: interval {interval_id} does not belong to this plan"
            )
        resolved.append(interval_id)

    return list(dict.fromkeys(resolved))


def matrix_rows_for(activity_id: int, interval_ids: list[int]) -> list[ActivityIntervalMatrix]:
    return [
        ActivityIntervalMatrix(activity_id=activity_id, interval_id=interval_id, applies=True)
        for interval_id in interval_ids
    ]


async def create_activities(
    db: AsyncSession,
    plan_id: int,
    activities: list[ActivityCreate],
    intervals: list[MaintenanceInterval],
    drafts: dict[str, MaintenanceInterval],
) -> list[MaintenanceActivity]:
    created = [
        MaintenanceActivity(
            plan_id=plan_id,
            code=data.code,
            description=data.description,
            category=data.category,
            is_active=data.is_active,
        )
        for data in activities
    ]
    db.add_all(created)
    await db.flush()

    for data, activity in zip(activities, created):
        db.add_all(matrix_rows_for(activity.id, resolve_interval_ids(data, intervals, drafts)))
    await db.flush()
    return created


# ─── Operations ───

async def get_plan(db: AsyncSession, plan_id: int, company_id: int) -> MaintenancePlan:
    result = await db.execute(
        plan_query().where(MaintenancePlan.id == plan_id, MaintenancePlan.company_id == company_id)
    )
    plan = result.scalar_one_or_none()
    if plan is None:
        raise NotFoundError("Maintenance plan not found")
    return plan


async def get_active_plan(
    db: AsyncSession, company_id: int, vehicle_type: str | None = None
) -> MaintenancePlan | None:
    """Premier plan actif du tenant (le plus ancien) / First active plan of the tenant (oldest).

    Plusieurs plans actifs peuvent coexister : aucun n'est garanti unique.
    Several active plans may coexist: none is guaranteed to be unique.
    """
    query = plan_query().where(
        MaintenancePlan.company_id == company_id,
        MaintenancePlan.is_active.is_(True),
    )
    if vehicle_type is not None:
        query = query.where(MaintenancePlan.vehicle_type == vehicle_type)
    result = await db.execute(query.order_by(MaintenancePlan.id).limit(1))
    return result.scalar_one_or_none()


async def list_plans(
    db: AsyncSession,
    company_id: int,
    vehicle_type: str | None = None,
    is_active: bool | None = None,
) -> list[PlanSummaryRead]:
    interval_count = (
        select(func.count(MaintenanceInterval.id))
        .where(MaintenanceInterval.plan_id == MaintenancePlan.id)
        .correlate(MaintenancePlan)
        .scalar_subquery()
    )
    activity_count = (
        select(func.count(MaintenanceActivity.id))
        .where(MaintenanceActivity.plan_id == MaintenancePlan.id)
        .correlate(MaintenancePlan)
        .scalar_subquery()
    )
    query = (
        select(MaintenancePlan, interval_count, activity_count)
        .where(MaintenancePlan.company_id == company_id)
        .order_by(MaintenancePlan.created_at.desc(), MaintenancePlan.id.desc())
    )
    if vehicle_type is not None:
        query = query.where(MaintenancePlan.vehicle_type == vehicle_type)
    if is_active is not None:
        query = query.where(MaintenancePlan.is_active.is_(is_active))

    result = await db.execute(query)
    return [
        PlanSummaryRead(
            id=plan.id,
            name=plan.name,
            description=plan.description,
            vehicle_type=plan.vehicle_type,
            is_active=plan.is_active,
            created_at=plan.created_at,
            interval_count=intervals or 0,
            activity_count=activities or 0,
        )
        for plan, intervals, activities in result.all()
    ]


async def create_plan(
    db: AsyncSession, data: PlanCreate, company_id: int, user_id: int | None = None
) -> MaintenancePlan:
    """Creer un plan avec intervalles, activites et matrice / Create a plan with intervals, activities and matrix."""
    if not data.intervals:
        raise ValidationError("At least one interval is required")
    if not data.activities:
        raise ValidationError("At least one activity is required")
    orders = assign_sequence_orders(data.intervals)
    check_activity_codes(data.activities)

    # Plusieurs plans actifs par type de vehicule sont permis : aucun autre plan n'est desactive.
    # Several active plans per vehicle type are allowed: no other plan is deactivated.
    async with atomic(db):
        plan = MaintenancePlan(
            company_id=company_id,
            name=data.name,
            description=data.description,
            vehicle_type=data.vehicle_type,
            is_active=data.is_active,
        )
        db.add(plan)
        await db.flush()

        intervals, drafts = await create_intervals(db, plan.id, data.intervals, orders)
        await create_activities(db, plan.id, data.activities, intervals, drafts)
        await log_audit(db, company_id, "maintenance_plan", plan.id, "CREATE", user_id, {
            "name": plan.name,
            "intervals": len(data.intervals),
            "activities": len(data.activities),
        })

    log.info("Maintenance plan %s created for company %s", plan.id, company_id)
    return await get_plan(db, plan.id, company_id)


async def set_plan_active(
    db: AsyncSession, plan_id: int, company_id: int, is_active: bool, user_id: int | None = None
) -> MaintenancePlan:
    """Activer / desactiver ce plan seulement / Toggle this plan only."""
    plan = await get_plan(db, plan_id, company_id)
    plan.is_active = is_active
    await log_audit(
        db, company_id, "maintenance_plan", plan.id,
        "ACTIVATE" if is_active else "DEACTIVATE", user_id,
    )
    await db.flush()
    return await get_plan(db, plan_id, company_id)


async def activate_plan(db: AsyncSession, plan_id: int, company_id: int, user_id: int | None = None):
    return await set_plan_active(db, plan_id, company_id, True, user_id)


async def deactivate_plan(db: AsyncSession, plan_id: int, company_id: int, user_id: int | None = None):
    return await set_plan_active(db, plan_id, company_id, False, user_id)


async def delete_plan(db: AsyncSession, plan_id: int, company_id: int, user_id: int | None = None) -> None:
    """Supprimer un plan inactif et tout son contenu / Delete an inactive plan and all its content."""
    plan = await get_plan(db, plan_id, company_id)
    if plan.is_active:
        raise ConflictError("Cannot delete an active plan. Deactivate it first.")

    activity_ids = [activity.id for activity in plan.activities]
    async with atomic(db):
        if activity_ids:
            await db.execute(
                delete(ActivityIntervalMatrix).where(ActivityIntervalMatrix.activity_id.in_(activity_ids))
            )
            # Les lignes d'ordres gardent leur description, pas le lien / Items keep their description, not the link
            await db.execute(
                update(WorkOrderItem)
                .where(WorkOrderItem.activity_id.in_(activity_ids))
                .values(activity_id=None)
            )
        await db.execute(delete(MaintenanceInterval).where(MaintenanceInterval.plan_id == plan_id))
        await db.execute(delete(MaintenanceActivity).where(MaintenanceActivity.plan_id == plan_id))
        await db.execute(
            update(Vehicle).where(Vehicle.maintenance_plan_id == plan_id).values(maintenance_plan_id=None)
        )
        await db.execute(delete(MaintenancePlan).where(MaintenancePlan.id == plan_id))
        await log_audit(db, company_id, "maintenance_plan", plan_id, "DELETE", user_id, {"name": plan.name})

    log.info("Maintenance plan %s deleted for company %s", plan_id, company_id)


async def set_matrix_cell(
    db: AsyncSession,
    plan_id: int,
    activity_id: int,
    interval_id: int,
    applies: bool,
    company_id: int,
    user_id: int | None = None,
) -> MaintenancePlan:
    """Basculer une cellule de la matrice / Toggle one matrix cell.

    Seules les cellules applicables sont stockees / Only applicable cells are stored.
    """
    plan = await get_plan(db, plan_id, company_id)
    # Hors tenant = absent / Outside the tenant = absent
    activity = await db.scalar(
        select(MaintenanceActivity)
        .join(MaintenancePlan, MaintenancePlan.id == MaintenanceActivity.plan_id)
        .where(MaintenanceActivity.id == activity_id, MaintenancePlan.company_id == company_id)
    )
    interval = await db.scalar(
        select(MaintenanceInterval)
        .join(MaintenancePlan, MaintenancePlan.id == MaintenanceInterval.plan_id)
        .where(MaintenanceInterval.id == interval_id, MaintenancePlan.company_id == company_id)
    )
    if activity is None:
        raise NotFoundError("Maintenance activity not found")
    if interval is None:
        raise NotFoundError("Maintenance interval not found")
    if activity.plan_id != plan.id or interval.plan_id != plan.id:
        raise ValidationError("Activity and interval must belong to the same plan")

    result = await db.execute(
        select(ActivityIntervalMatrix).where(
            ActivityIntervalMatrix.activity_id == activity_id,
            ActivityIntervalMatrix.interval_id == interval_id,
        )
    )
    row = result.scalar_one_or_none()
    if applies and row is None:
        db.add(ActivityIntervalMatrix(activity_id=activity_id, interval_id=interval_id, applies=True))
    elif not applies and row is not None:
        await db.delete(row)

    await log_audit(db, company_id, "maintenance_plan", plan.id, "MATRIX", user_id, {
        "activity_id": activity_id,
        "interval_id": interval_id,
        "applies": applies,
    })
    await db.flush()
    return await get_plan(db, plan_id, company_id)
