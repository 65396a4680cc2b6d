"""Routes API / API routes."""

from fastapi import APIRouter

from fleetmaint.api import (
    maintenance_plans,
    vehicles,
    work_orders,
)

api_router = APIRouter(prefix="/api/maintenance")

api_router.include_router(maintenance_plans.router, prefix="/plans", tags=["maintenance-plans"])
api_router.include_router(work_orders.router, prefix="/work-orders", tags=["work-orders"])
api_router.include_router(vehicles.router, prefix="/vehicles", tags=["vehicles"])
