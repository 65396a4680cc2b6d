"""Routes Vehicules (prevision) / Vehicle API routes (prediction)."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fleetmaint.api.deps import get_current_user
from fleetmaint.database import get_db
from fleetmaint.models.user import User
from fleetmaint.schemas.prediction import NextMaintenanceRead
from fleetmaint.services import predictor

router = APIRouter()


@router.get("/{vehicle_id}/next-maintenance", response_model=NextMaintenanceRead)
async def next_maintenance(
    vehicle_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Prochain entretien du vehicule / Vehicle's next maintenance."""
    result = await predictor.predict_next_maintenance(db, vehicle_id, user.company_id)
    return NextMaintenanceRead.model_validate(predictor.to_read(result))
