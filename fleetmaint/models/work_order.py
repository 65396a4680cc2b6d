"""Modeles Ordre de travail / Work order models.

Machine a etats explicite : chaque mutation de statut passe par les tables
de transitions ci-dessous.
Explicit state machine: every status mutation goes through the transition
tables below.
"""

import enum
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fleetmaint.database import Base
from fleetmaint.utils.clock import utcnow


class WorkOrderType(str, enum.Enum):
    """Type d'ordre / Work order type."""
    PREVENTIVE = "PREVENTIVE"
    CORRECTIVE = "CORRECTIVE"


class WorkOrderStatus(str, enum.Enum):
    """Statut de l'ordre / Work order status."""
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class WorkOrderItemStatus(str, enum.Enum):
    """Statut d'une ligne / Item status. SKIPPED est un etat final valide / is a valid final state."""
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    SKIPPED = "SKIPPED"


class SignatureType(str, enum.Enum):
    """Type de signature de cloture / Closing signature type."""
    OPERATOR = "OPERATOR"
    SUPERVISOR = "SUPERVISOR"


WORK_ORDER_TRANSITIONS: dict[WorkOrderStatus, set[WorkOrderStatus]] = {
    WorkOrderStatus.PENDING: {WorkOrderStatus.IN_PROGRESS, WorkOrderStatus.CANCELLED},
    WorkOrderStatus.IN_PROGRESS: {WorkOrderStatus.COMPLETED, WorkOrderStatus.CANCELLED},
    WorkOrderStatus.COMPLETED: set(),
    WorkOrderStatus.CANCELLED: set(),
}

# Une ligne terminee se rouvre via IN_PROGRESS / A completed item is reopened through IN_PROGRESS
WORK_ORDER_ITEM_TRANSITIONS: dict[WorkOrderItemStatus, set[WorkOrderItemStatus]] = {
    WorkOrderItemStatus.PENDING: {
        WorkOrderItemStatus.IN_PROGRESS,
        WorkOrderItemStatus.COMPLETED,
        WorkOrderItemStatus.SKIPPED,
    },
    WorkOrderItemStatus.IN_PROGRESS: {
        WorkOrderItemStatus.PENDING,
        WorkOrderItemStatus.COMPLETED,
        WorkOrderItemStatus.SKIPPED,
    },
    WorkOrderItemStatus.COMPLETED: {WorkOrderItemStatus.IN_PROGRESS},
    WorkOrderItemStatus.SKIPPED: {WorkOrderItemStatus.PENDING, WorkOrderItemStatus.IN_PROGRESS},
}

TERMINAL_STATUSES = {WorkOrderStatus.COMPLETED, WorkOrderStatus.CANCELLED}
DELETABLE_STATUSES = {WorkOrderStatus.PENDING, WorkOrderStatus.CANCELLED}


def can_transition(current: WorkOrderStatus, target: WorkOrderStatus) -> bool:
    return target in WORK_ORDER_TRANSITIONS.get(current, set())


def can_transition_item(current: WorkOrderItemStatus, target: WorkOrderItemStatus) -> bool:
    return current == target or target in WORK_ORDER_ITEM_TRANSITIONS.get(current, set())


class WorkOrder(Base):
    """Ordre de travail sur un vehicule / Work order against one vehicle."""
    __tablename__ = "work_orders"
    __table_args__ = (UniqueConstraint("company_id", "number", name="uq_work_order_company_number"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False, index=True)
    vehicle_id: Mapped[int] = mapped_column(ForeignKey("vehicles.id"), nullable=False, index=True)
    number: Mapped[str] = mapped_column(String(20), nullable=False)
    type: Mapped[WorkOrderType] = mapped_column(Enum(WorkOrderType), nullable=False)
    status: Mapped[WorkOrderStatus] = mapped_column(
        Enum(WorkOrderStatus), nullable=False, default=WorkOrderStatus.PENDING
    )

    # Planning
    scheduled_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Instantane des compteurs / Counter snapshot
    odometer_at_start: Mapped[float | None] = mapped_column(Float)
    hourmeter_at_start: Mapped[float | None] = mapped_column(Float)

    # Intervenants / People
    operator_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    supervisor_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"))

    # Interne ou atelier externe / Internal or external workshop
    is_internal: Mapped[bool] = mapped_column(Boolean, default=True)
    workshop_id: Mapped[int | None] = mapped_column(ForeignKey("workshops.id"))

    total_cost: Mapped[float | None] = mapped_column(Numeric(12, 2))
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=utcnow)

    # Relations
    items: Mapped[list["WorkOrderItem"]] = relationship(
        back_populates="work_order", order_by="WorkOrderItem.id", passive_deletes=True
    )
    signatures: Mapped[list["WorkOrderSignature"]] = relationship(
        back_populates="work_order", order_by=lambda: WorkOrderSignature.signed_at.desc(), passive_deletes=True
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self) -> str:
        return f"<WorkOrder {self.number} {self.status.value}>"


class WorkOrderItem(Base):
    """Ligne d'ordre de travail / Work order item."""
    __tablename__ = "work_order_items"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    work_order_id: Mapped[int] = mapped_column(
        ForeignKey("work_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Optionnel : les correctifs ajoutent des lignes libres / Optional: correctives add ad-hoc items
    activity_id: Mapped[int | None] = mapped_column(
        ForeignKey("maintenance_activities.id", ondelete="SET NULL")
    )
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[WorkOrderItemStatus] = mapped_column(
        Enum(WorkOrderItemStatus), nullable=False, default=WorkOrderItemStatus.PENDING
    )
    observations: Mapped[str | None] = mapped_column(Text)
    parts_used: Mapped[str | None] = mapped_column(Text)
    labor_hours: Mapped[float | None] = mapped_column(Float)
    cost: Mapped[float | None] = mapped_column(Numeric(12, 2))
    evidence_urls: Mapped[list | None] = mapped_column(JSON)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    # Relations
    work_order: Mapped["WorkOrder"] = relationship(back_populates="items")
    activity: Mapped["MaintenanceActivity | None"] = relationship()

    def __repr__(self) -> str:
        return f"<WorkOrderItem {self.id} {self.status.value}>"


class WorkOrderSignature(Base):
    """Signature de cloture, une par evenement (ajout seul) / Closing signature, one per event (append-only)."""
    __tablename__ = "work_order_signatures"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    work_order_id: Mapped[int] = mapped_column(
        ForeignKey("work_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False)
    signature_type: Mapped[SignatureType] = mapped_column(Enum(SignatureType), nullable=False)
    ip_address: Mapped[str | None] = mapped_column(String(45))
    user_agent: Mapped[str | None] = mapped_column(String(255))
    signed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    # Relations
    work_order: Mapped["WorkOrder"] = relationship(back_populates="signatures")

    def __repr__(self) -> str:
        return f"<WorkOrderSignature {self.signature_type.value} by user {self.user_id}>"


class WorkOrderSequence(Base):
    """Compteur de numerotation par tenant / Per-tenant numbering counter.

    Initialise au nombre d'ordres existants, jamais decremente : un numero supprime n'est pas reutilise.
    Seeded from the existing order count, never decremented: a deleted number is not reused.
    """
    __tablename__ = "work_order_sequences"

    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
