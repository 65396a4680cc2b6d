"""Modeles Plan de maintenance / Maintenance plan models.

Un plan = intervalles (seuils heures/km) x activites, relies par la matrice d'application.
A plan = intervals (hour/km thresholds) x activities, linked by the applicability matrix.

`sequence_order` est l'identite durable d'un intervalle : les ids sont regeneres
a chaque remplacement ou duplication du plan, l'ordre de sequence jamais.
`sequence_order` is an interval's durable identity: ids are reissued on every plan
replace or duplicate, the sequence order never is.
"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fleetmaint.database import Base
from fleetmaint.utils.clock import utcnow


class MaintenancePlan(Base):
    """Plan de maintenance preventive / Preventive maintenance plan."""
    __tablename__ = "maintenance_plans"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    # Filtre optionnel par type de vehicule / Optional vehicle-type filter
    vehicle_type: Mapped[str | None] = mapped_column(String(50))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=utcnow)

    # Relations
    intervals: Mapped[list["MaintenanceInterval"]] = relationship(
        back_populates="plan",
        order_by="MaintenanceInterval.sequence_order",
        passive_deletes=True,
    )
    activities: Mapped[list["MaintenanceActivity"]] = relationship(
        back_populates="plan",
        order_by=lambda: [MaintenanceActivity.category, MaintenanceActivity.code],
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<MaintenancePlan {self.name} ({'active' if self.is_active else 'inactive'})>"


class MaintenanceInterval(Base):
    """Seuil d'intervention heures / km / Hour / km maintenance threshold."""
    __tablename__ = "maintenance_intervals"
    __table_args__ = (
        UniqueConstraint("plan_id", "sequence_order", name="uq_interval_plan_sequence"),
        CheckConstraint("hours >= 0", name="ck_interval_hours_positive"),
        CheckConstraint("kilometers >= 0", name="ck_interval_km_positive"),
        CheckConstraint("sequence_order > 0", name="ck_interval_sequence_positive"),
        # ids jamais reutilises apres un remplacement / ids never reused after a replace
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    plan_id: Mapped[int] = mapped_column(
        ForeignKey("maintenance_plans.id", ondelete="CASCADE"), nullable=False, index=True
    )
    hours: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    kilometers: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    sequence_order: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relations
    plan: Mapped["MaintenancePlan"] = relationship(back_populates="intervals")

    def __repr__(self) -> str:
        return f"<MaintenanceInterval #{self.sequence_order} {self.hours}h / {self.kilometers}km>"


class MaintenanceActivity(Base):
    """Tache cataloguee dans un plan / Task catalogued within a plan."""
    __tablename__ = "maintenance_activities"
    __table_args__ = (
        UniqueConstraint("plan_id", "code", name="uq_activity_plan_code"),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    plan_id: Mapped[int] = mapped_column(
        ForeignKey("maintenance_plans.id", ondelete="CASCADE"), nullable=False, index=True
    )
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str | None] = mapped_column(String(100))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Relations
    plan: Mapped["MaintenancePlan"] = relationship(back_populates="activities")
    matrix_rows: Mapped[list["ActivityIntervalMatrix"]] = relationship(
        back_populates="activity", passive_deletes=True
    )

    @property
    def applicable_interval_ids(self) -> set[int]:
        return {row.interval_id for row in self.matrix_rows if row.applies}

    def __repr__(self) -> str:
        return f"<MaintenanceActivity {self.code}>"


class ActivityIntervalMatrix(Base):
    """Cellule de la matrice activite x intervalle / Activity x interval matrix cell.

    Seules les cellules `applies=True` sont persistees ; l'absence vaut "ne s'applique pas".
    Only `applies=True` cells are persisted; absence means "does not apply".
    """
    __tablename__ = "activity_interval_matrix"
    __table_args__ = (
        UniqueConstraint("activity_id", "interval_id", name="uq_matrix_activity_interval"),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    activity_id: Mapped[int] = mapped_column(
        ForeignKey("maintenance_activities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    interval_id: Mapped[int] = mapped_column(
        ForeignKey("maintenance_intervals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    applies: Mapped[bool] = mapped_column(Boolean, default=True)

    # Relations
    activity: Mapped["MaintenanceActivity"] = relationship(back_populates="matrix_rows")
    interval: Mapped["MaintenanceInterval"] = relationship()

    def __repr__(self) -> str:
        return f"<Matrix activity {self.activity_id} x interval {self.interval_id}>"
