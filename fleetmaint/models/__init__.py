"""
Modèles SQLAlchemy / SQLAlchemy models.
Importer tous les modèles ici pour que create_all les détecte.
Import all models here so create_all can detect them.
"""

from fleetmaint.models.company import Company
from fleetmaint.models.user import User, Role, user_roles
from fleetmaint.models.workshop import Workshop
from fleetmaint.models.maintenance_plan import (
    ActivityIntervalMatrix,
    MaintenanceActivity,
    MaintenanceInterval,
    MaintenancePlan,
)
from fleetmaint.models.vehicle import Vehicle
from fleetmaint.models.work_order import (
    SignatureType,
    WorkOrder,
    WorkOrderItem,
    WorkOrderItemStatus,
    WorkOrderSequence,
    WorkOrderSignature,
    WorkOrderStatus,
    WorkOrderType,
)
from fleetmaint.models.audit import AuditLog

__all__ = [
    "Company",
    "User",
    "Role",
    "user_roles",
    "Workshop",
    "MaintenancePlan",
    "MaintenanceInterval",
    "MaintenanceActivity",
    "ActivityIntervalMatrix",
    "Vehicle",
    "WorkOrder",
    "WorkOrderItem",
    "WorkOrderSignature",
    "WorkOrderSequence",
    "WorkOrderType",
    "WorkOrderStatus",
    "WorkOrderItemStatus",
    "SignatureType",
    "AuditLog",
]
