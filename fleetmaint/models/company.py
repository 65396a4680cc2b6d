"""Modele Entreprise (tenant) / Company (tenant) model."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from fleetmaint.database import Base


class Company(Base):
    __tablename__ = "companies"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Company {self.code} - {self.name}>"
