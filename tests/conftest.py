"""Fixtures communes / Shared fixtures.

Base SQLite en memoire par test ; les donnees de depart sont commitees pour
survivre aux rollbacks des operations qui echouent.
In-memory SQLite per test; seed data is committed so it survives the rollback
of failing operations.
"""

from types import SimpleNamespace

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import fleetmaint.models  # noqa: F401  (enregistre les tables / registers tables)
from fleetmaint.database import Base
from fleetmaint.models import Company, Role, User, Vehicle, Workshop
from fleetmaint.schemas.maintenance_plan import ActivityCreate, IntervalCreate, PlanCreate
from fleetmaint.services import plan_catalog


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seed(db):
    """Deux tenants, roles, utilisateurs, atelier, vehicules / Two tenants, roles, users, workshop, vehicles.

    Retourne des ids seulement / Returns ids only.
    """
    acme = Company(name="Transportes Acme", code="ACME")
    other = Company(name="Otra Flota", code="OTRA")
    db.add_all([acme, other])
    await db.flush()

    jefe = Role(code="JEFE_TALLER", name="Jefe de taller")
    operador = Role(code="OPERADOR_TALLER", name="Operador de taller")
    db.add_all([jefe, operador])
    await db.flush()

    supervisor = User(company_id=acme.id, username="jefe", first_name="Ana", roles=[jefe])
    operator = User(company_id=acme.id, username="operador", first_name="Luis", roles=[operador])
    plain = User(company_id=acme.id, username="sinrol")
    outsider = User(company_id=other.id, username="externo")
    db.add_all([supervisor, operator, plain, outsider])

    workshop = Workshop(company_id=acme.id, name="Taller Norte")
    closed_workshop = Workshop(company_id=acme.id, name="Taller Cerrado", is_active=False)
    db.add_all([workshop, closed_workshop])

    truck = Vehicle(company_id=acme.id, code="CAM-01", vehicle_type="CAMION", odometer=20500, hourmeter=480)
    van = Vehicle(company_id=acme.id, code="FUR-01", vehicle_type="FURGON", odometer=1000, hourmeter=10)
    foreign = Vehicle(company_id=other.id, code="CAM-99", vehicle_type="CAMION")
    db.add_all([truck, van, foreign])
    await db.commit()

    return SimpleNamespace(
        company_id=acme.id,
        other_company_id=other.id,
        supervisor_id=supervisor.id,
        operator_id=operator.id,
        plain_user_id=plain.id,
        outsider_id=outsider.id,
        workshop_id=workshop.id,
        closed_workshop_id=closed_workshop.id,
        truck_id=truck.id,
        van_id=van.id,
        foreign_vehicle_id=foreign.id,
    )


def truck_plan_payload(**overrides) -> PlanCreate:
    """Plan camion : 3 intervalles, 3 activites / Truck plan: 3 intervals, 3 activities."""
    payload = dict(
        name="Plan Camion",
        vehicle_type="CAMION",
        intervals=[
            IntervalCreate(hours=500, kilometers=20000, ref="i1"),
            IntervalCreate(hours=1000, kilometers=40000, ref="i2"),
            IntervalCreate(hours=2000, kilometers=80000, ref="i3"),
        ],
        activities=[
            ActivityCreate(code="ACE-01", description="Cambio de aceite", category="Motor",
                           interval_refs=["i1", "i2", "i3"]),
            ActivityCreate(code="FIL-01", description="Cambio de filtro de aire", category="Motor",
                           interval_refs=["i2", "i3"]),
            ActivityCreate(code="FRE-01", description="Revision de frenos", category="Frenos",
                           interval_sequences=[1, 3]),
        ],
    )
    payload.update(overrides)
    return PlanCreate(**payload)


@pytest.fixture
def make_plan(db, seed):
    async def _make(**overrides):
        plan = await plan_catalog.create_plan(db, truck_plan_payload(**overrides), seed.company_id)
        await db.commit()
        return plan.id

    return _make


@pytest.fixture
def plan_payload():
    return truck_plan_payload
