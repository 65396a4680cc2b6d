"""Modele Vehicule / Vehicle model.

Entite geree par le module flotte externe ; le coeur maintenance lit ses compteurs
et ecrit l'instantane d'usage a la cloture d'un ordre de travail.
Entity owned by the external fleet module; the maintenance core reads its counters
and writes the usage snapshot back when a work order is closed.
"""

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fleetmaint.database import Base


class Vehicle(Base):
    """Vehicule du parc / Fleet vehicle."""
    __tablename__ = "vehicles"
    __table_args__ = (UniqueConstraint("company_id", "code", name="uq_vehicle_company_code"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False)

    # --- Identification ---
    code: Mapped[str] = mapped_column(String(20), nullable=False)
    license_plate: Mapped[str | None] = mapped_column(String(20))
    name: Mapped[str | None] = mapped_column(String(150))

    # --- Classification (sert a choisir le plan / used for plan matching) ---
    vehicle_type: Mapped[str | None] = mapped_column(String(50))

    # --- Compteurs / Counters ---
    odometer: Mapped[float] = mapped_column(Float, default=0)
    hourmeter: Mapped[float] = mapped_column(Float, default=0)

    # --- Plan impose (prioritaire sur le type) / Direct plan override ---
    maintenance_plan_id: Mapped[int | None] = mapped_column(
        ForeignKey("maintenance_plans.id", ondelete="SET NULL")
    )
    last_maintenance_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    notes: Mapped[str | None] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<Vehicle {self.code} - {self.license_plate or self.name}>"
