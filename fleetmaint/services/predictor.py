"""
Service prevision d'entretien / Maintenance predictor service.
Calcul pur : compteurs actuels + plan + dernier ordre termine -> intervalles dus / proches.
Pure computation: current counters + plan + last completed order -> due / upcoming intervals.

Regle "du" : km OU heures epuises (un intervalle a 0 km est donc toujours du).
Due rule: km OR hours exhausted (an interval with 0 km is therefore always due).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from fleetmaint.config import settings
from fleetmaint.models.maintenance_plan import MaintenanceActivity, MaintenanceInterval, MaintenancePlan
from fleetmaint.models.vehicle import Vehicle
from fleetmaint.models.work_order import WorkOrder
from fleetmaint.services.fleet_lookup import get_last_completed_order, get_vehicle
from fleetmaint.services.plan_catalog import get_active_plan, plan_query

log = logging.getLogger(__name__)


# ── Dataclasses d'entree/sortie ──────────────────────────────────────


@dataclass(frozen=True)
class UsageSnapshot:
    """Compteurs actuels du vehicule / Current vehicle counters."""
    odometer: float = 0.0
    hourmeter: float = 0.0

    @classmethod
    def from_vehicle(cls, vehicle: Vehicle) -> UsageSnapshot:
        return cls(odometer=float(vehicle.odometer or 0), hourmeter=float(vehicle.hourmeter or 0))


@dataclass
class IntervalForecast:
    interval: MaintenanceInterval
    km_until_next: float
    hours_until_next: float
    is_due: bool
    is_upcoming: bool


@dataclass
class Prediction:
    last_km: float = 0.0
    last_hours: float = 0.0
    intervals: list[IntervalForecast] = field(default_factory=list)
    activities: list[MaintenanceActivity] = field(default_factory=list)


@dataclass
class NextMaintenance:
    """Resultat expose par le service / Result exposed by the service."""
    vehicle_id: int
    plan: MaintenancePlan | None
    last_order: WorkOrder | None
    prediction: Prediction

    @property
    def has_plan(self) -> bool:
        return self.plan is not None


# ── Calcul pur ───────────────────────────────────────────────────────


def predict(
    usage: UsageSnapshot,
    plan: MaintenancePlan,
    last_order: WorkOrder | None = None,
    *,
    upcoming_ratio: float | None = None,
    limit: int | None = None,
) -> Prediction:
    """
    Intervalles dus / proches et activites a realiser / Due / upcoming intervals and activities to perform.
    - du : km restants <= 0 OU heures restantes <= 0 ; les restes sont rapportes a 0
    - proche : km restants <= ratio x km de l'intervalle OU idem en heures
    - seuls les `limit` premiers intervalles (ordre de sequence) sont retournes ;
      les activites des intervalles dus sont toutes collectees, sans doublon
    """
    ratio = settings.UPCOMING_THRESHOLD_RATIO if upcoming_ratio is None else upcoming_ratio
    limit = settings.MAX_FORECAST_INTERVALS if limit is None else limit

    last_km = float(last_order.odometer_at_start or 0) if last_order else 0.0
    last_hours = float(last_order.hourmeter_at_start or 0) if last_order else 0.0
    driven_km = usage.odometer - last_km
    driven_hours = usage.hourmeter - last_hours

    active = [activity for activity in plan.activities if activity.is_active]
    forecasts: list[IntervalForecast] = []
    collected: dict[int, MaintenanceActivity] = {}

    for interval in sorted(plan.intervals, key=lambda i: i.sequence_order):
        km_until_next = interval.kilometers - driven_km
        hours_until_next = interval.hours - driven_hours

        if km_until_next <= 0 or hours_until_next <= 0:
            forecasts.append(IntervalForecast(interval, 0.0, 0.0, is_due=True, is_upcoming=False))
            for activity in active:
                if interval.id in activity.applicable_interval_ids:
                    collected.setdefault(activity.id, activity)
        elif (
            km_until_next <= ratio * interval.kilometers
            or hours_until_next <= ratio * interval.hours
        ):
            forecasts.append(
                IntervalForecast(interval, km_until_next, hours_until_next, is_due=False, is_upcoming=True)
            )

    return Prediction(
        last_km=last_km,
        last_hours=last_hours,
        intervals=forecasts[:limit],
        activities=list(collected.values()),
    )


# ── Acces base ───────────────────────────────────────────────────────


async def resolve_plan(db: AsyncSession, vehicle: Vehicle, company_id: int) -> MaintenancePlan | None:
    """
    Plan applicable au vehicule / Plan that applies to the vehicle.
    1. plan impose au vehicule, meme inactif / vehicle's direct plan, even if inactive
    2. premier plan actif du type du vehicule / first active plan for the vehicle type
    3. premier plan actif du tenant / first active plan of the tenant
    """
    if vehicle.maintenance_plan_id is not None:
        result = await db.execute(
            plan_query().where(
                MaintenancePlan.id == vehicle.maintenance_plan_id,
                MaintenancePlan.company_id == company_id,
            )
        )
        plan = result.scalar_one_or_none()
        if plan is not None:
            return plan
        log.warning("Vehicle %s references missing plan %s", vehicle.id, vehicle.maintenance_plan_id)

    if vehicle.vehicle_type:
        plan = await get_active_plan(db, company_id, vehicle.vehicle_type)
        if plan is not None:
            return plan

    return await get_active_plan(db, company_id)


async def predict_next_maintenance(db: AsyncSession, vehicle_id: int, company_id: int) -> NextMaintenance:
    vehicle = await get_vehicle(db, vehicle_id, company_id)
    plan = await resolve_plan(db, vehicle, company_id)
    last_order = await get_last_completed_order(db, vehicle.id)

    if plan is None:
        log.info("No active maintenance plan for vehicle %s", vehicle.id)
        return NextMaintenance(vehicle_id=vehicle.id, plan=None, last_order=last_order, prediction=Prediction())

    prediction = predict(UsageSnapshot.from_vehicle(vehicle), plan, last_order)
    log.debug(
        "Vehicle %s: %d interval(s) due/upcoming, %d activity(ies) on plan %s",
        vehicle.id, len(prediction.intervals), len(prediction.activities), plan.id,
    )
    return NextMaintenance(vehicle_id=vehicle.id, plan=plan, last_order=last_order, prediction=prediction)


def to_read(result: NextMaintenance) -> dict:
    """Forme de reponse API / API response shape."""
    prediction = result.prediction
    return {
        "vehicle_id": result.vehicle_id,
        "plan_id": result.plan.id if result.plan else None,
        "plan_name": result.plan.name if result.plan else None,
        "has_plan": result.has_plan,
        "last_work_order_id": result.last_order.id if result.last_order else None,
        "last_km": prediction.last_km,
        "last_hours": prediction.last_hours,
        "intervals": prediction.intervals,
        "applicable_activities": prediction.activities,
    }
