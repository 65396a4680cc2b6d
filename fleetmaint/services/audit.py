"""
Service historique / Audit trail service.
Chaque changement d'etat d'un plan ou d'un ordre de travail laisse une trace.
"""

import json

from sqlalchemy.ext.asyncio import AsyncSession

from fleetmaint.models.audit import AuditLog
from fleetmaint.utils.clock import utcnow


async def log_audit(
    db: AsyncSession,
    company_id: int,
    entity_type: str,
    entity_id: int,
    action: str,
    user_id: int | None = None,
    changes: dict | None = None,
) -> None:
    """Enregistrer une action dans l'historique / Log an action to audit_logs."""
    db.add(AuditLog(
        company_id=company_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        changes=json.dumps(changes, ensure_ascii=False, default=str) if changes else None,
        user_id=user_id,
        timestamp=utcnow().isoformat(timespec="seconds"),
    ))
