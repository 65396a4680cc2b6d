"""
Service versionnage des plans / Plan versioning service.

Remplacement complet (mise a jour) et duplication. Les ids d'intervalles sont
regeneres dans les deux cas ; la matrice est toujours remappee par `sequence_order`.
Full replace (update) and duplicate. Interval ids are reissued in both cases;
the matrix is always remapped through `sequence_order`.
"""

import logging

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from fleetmaint.database import atomic
from fleetmaint.errors import ValidationError
from fleetmaint.models.maintenance_plan import (
    ActivityIntervalMatrix,
    MaintenanceActivity,
    MaintenanceInterval,
    MaintenancePlan,
)
from fleetmaint.schemas.maintenance_plan import ActivityCreate, PlanUpdate
from fleetmaint.services.audit import log_audit
from fleetmaint.services.plan_catalog import (
    assign_sequence_orders,
    check_activity_codes,
    create_intervals,
    get_plan,
    matrix_rows_for,
    resolve_interval_ids,
)

log = logging.getLogger(__name__)

_SCALAR_FIELDS = {"name", "description", "vehicle_type", "is_active"}
_REQUIRED_FIELDS = {"name", "is_active"}


def _applicability_by_sequence(plan: MaintenancePlan) -> dict[int, set[int]]:
    """activite -> ordres de sequence applicables / activity -> applicable sequence orders."""
    sequence_of = {interval.id: interval.sequence_order for interval in plan.intervals}
    return {
        activity.id: {
            sequence_of[row.interval_id]
            for row in activity.matrix_rows
            if row.applies and row.interval_id in sequence_of
        }
        for activity in plan.activities
    }


async def _replace_activities(
    db: AsyncSession,
    plan: MaintenancePlan,
    activities: list[ActivityCreate],
    intervals: list[MaintenanceInterval],
    drafts: dict[str, MaintenanceInterval],
) -> None:
    """Correspondance par code : mise a jour sur place ou creation ; les absentes sont desactivees.
    Matched by code: updated in place or created; missing ones are deactivated."""
    existing = {activity.code: activity for activity in plan.activities}
    if existing:
        await db.execute(
            delete(ActivityIntervalMatrix).where(
                ActivityIntervalMatrix.activity_id.in_([a.id for a in existing.values()])
            )
        )
        await db.execute(
            update(MaintenanceActivity)
            .where(MaintenanceActivity.plan_id == plan.id)
            .values(is_active=False)
        )

    resolved: list[tuple[MaintenanceActivity, ActivityCreate]] = []
    for data in activities:
        activity = existing.get(data.code)
        if activity is not None:
            activity.description = data.description
            activity.category = data.category
            activity.is_active = data.is_active
        else:
            activity = MaintenanceActivity(
                plan_id=plan.id,
                code=data.code,
                description=data.description,
                category=data.category,
                is_active=data.is_active,
            )
            db.add(activity)
        resolved.append((activity, data))
    await db.flush()

    for activity, data in resolved:
        db.add_all(matrix_rows_for(activity.id, resolve_interval_ids(data, intervals, drafts)))


async def update_plan(
    db: AsyncSession,
    plan_id: int,
    data: PlanUpdate,
    company_id: int,
    user_id: int | None = None,
) -> MaintenancePlan:
    """Remplacement complet, dernier ecrivain gagnant / Full replace, last writer wins."""
    plan = await get_plan(db, plan_id, company_id)

    orders: list[int] = []
    if data.intervals is not None:
        if not data.intervals:
            raise ValidationError("At least one interval is required")
        orders = assign_sequence_orders(data.intervals)
    if data.activities is not None:
        if not data.activities:
            raise ValidationError("At least one activity is required")
        check_activity_codes(data.activities)

    async with atomic(db):
        for key, value in data.model_dump(exclude_unset=True, include=_SCALAR_FIELDS).items():
            if value is None and key in _REQUIRED_FIELDS:
                continue
            setattr(plan, key, value)

        if data.intervals is not None:
            previous = _applicability_by_sequence(plan)
            old_ids = [interval.id for interval in plan.intervals]
            if old_ids:
                await db.execute(
                    delete(ActivityIntervalMatrix).where(ActivityIntervalMatrix.interval_id.in_(old_ids))
                )
            await db.execute(delete(MaintenanceInterval).where(MaintenanceInterval.plan_id == plan.id))
            intervals, drafts = await create_intervals(db, plan.id, data.intervals, orders)
        else:
            previous = {}
            intervals, drafts = list(plan.intervals), {}

        if data.activities is not None:
            await _replace_activities(db, plan, data.activities, intervals, drafts)
        elif data.intervals is not None:
            # Intervalles seuls : l'applicabilite suit l'ordre de sequence /
            # Intervals only: applicability follows the sequence order
            new_by_sequence = {interval.sequence_order: interval.id for interval in intervals}
            for activity_id, sequences in previous.items():
                db.add_all(matrix_rows_for(
                    activity_id,
                    [new_by_sequence[s] for s in sorted(sequences) if s in new_by_sequence],
                ))

        await log_audit(db, company_id, "maintenance_plan", plan.id, "UPDATE", user_id, {
            "fields": sorted(data.model_dump(exclude_unset=True, include=_SCALAR_FIELDS)),
            "intervals": len(data.intervals) if data.intervals is not None else None,
            "activities": len(data.activities) if data.activities is not None else None,
        })

    log.info("Maintenance plan %s replaced for company %s", plan_id, company_id)
    return await get_plan(db, plan_id, company_id)


async def duplicate_plan(
    db: AsyncSession,
    plan_id: int,
    company_id: int,
    new_name: str | None = None,
    user_id: int | None = None,
) -> MaintenancePlan:
    """Dupliquer un plan ; la copie est toujours inactive / Duplicate a plan; the copy is always inactive."""
    original = await get_plan(db, plan_id, company_id)
    old_intervals = sorted(original.intervals, key=lambda interval: interval.sequence_order)

    async with atomic(db):
        copy = MaintenancePlan(
            company_id=company_id,
            name=new_name or f"{original.name} (Copia)",
            description=original.description,
            vehicle_type=original.vehicle_type,
            is_active=False,
        )
        db.add(copy)
        await db.flush()

        new_intervals = [
            MaintenanceInterval(
                plan_id=copy.id,
                hours=interval.hours,
                kilometers=interval.kilometers,
                sequence_order=interval.sequence_order,
            )
            for interval in old_intervals
        ]
        db.add_all(new_intervals)
        await db.flush()

        # ancien id -> ordre de sequence -> nouvel id / old id -> sequence order -> new id
        old_sequence = {interval.id: interval.sequence_order for interval in old_intervals}
        new_by_sequence = {interval.sequence_order: interval.id for interval in new_intervals}

        clones = [
            (activity, MaintenanceActivity(
                plan_id=copy.id,
                code=activity.code,
                description=activity.description,
                category=activity.category,
                is_active=activity.is_active,
            ))
            for activity in original.activities
        ]
        db.add_all([clone for _, clone in clones])
        await db.flush()

        for activity, clone in clones:
            interval_ids = []
            for row in activity.matrix_rows:
                if not row.applies:
                    continue
                new_id = new_by_sequence.get(old_sequence.get(row.interval_id))
                if new_id is not None:
                    interval_ids.append(new_id)
            db.add_all(matrix_rows_for(clone.id, interval_ids))

        await log_audit(db, company_id, "maintenance_plan", copy.id, "DUPLICATE", user_id, {
            "source_plan_id": original.id,
        })

    log.info("Maintenance plan %s duplicated as %s for company %s", plan_id, copy.id, company_id)
    return await get_plan(db, copy.id, company_id)
