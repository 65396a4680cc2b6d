"""
Connexion a la base de donnees / Database connection.
Supporte SQLite (dev) et PostgreSQL (prod) via SQLAlchemy 2.0 async.
"""

import logging
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from fleetmaint.config import settings
from fleetmaint.errors import IntegrityError, MaintenanceError

log = logging.getLogger(__name__)

_is_sqlite = settings.DATABASE_URL.startswith("sqlite")

# Configuration moteur / Engine configuration
_engine_kwargs: dict = {
    "echo": settings.DEBUG and not _is_sqlite,
}

# PostgreSQL : connection pooling
if not _is_sqlite:
    _engine_kwargs.update({
        "pool_size": 20,
        "max_overflow": 30,
        "pool_timeout": 30,
        "pool_recycle": 1800,
        "pool_pre_ping": True,
    })

engine = create_async_engine(settings.DATABASE_URL, **_engine_kwargs)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncSession:
    """Dependance FastAPI pour obtenir une session DB / FastAPI dependency for DB session."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def atomic(db: AsyncSession):
    """Bloc d'ecritures dependantes tout-ou-rien / All-or-nothing block of dependent writes.

    Toute erreur annule la transaction de la session ; les erreurs SQL deviennent IntegrityError.
    Any error rolls back the session transaction; SQL errors become IntegrityError.
    """
    try:
        yield db
        await db.flush()
    except MaintenanceError:
        await db.rollback()
        raise
    except SQLAlchemyError as exc:
        await db.rollback()
        log.exception("Transaction rolled back")
        raise IntegrityError("Storage failure, the operation was rolled back; retry later") from exc


async def init_db():
    """Creer les tables au demarrage / Create tables on startup."""
    import fleetmaint.models  # noqa: F401  (enregistre les tables / registers tables)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
