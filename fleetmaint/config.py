"""
Configuration de l'application / Application configuration.
Utilise pydantic-settings pour charger depuis .env ou variables d'environnement.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Fleet Maintenance"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = True

    # Database - SQLite par défaut pour le développement
    # Database - SQLite by default for development
    DATABASE_URL: str = "sqlite+aiosqlite:///./fleetmaint.db"

    # CORS - origines autorisées / allowed origins
    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    # Numerotation des ordres de travail / Work order numbering (WO-000001)
    WORK_ORDER_NUMBER_PREFIX: str = "WO-"
    WORK_ORDER_NUMBER_WIDTH: int = 6

    # Prediction / Predictor
    UPCOMING_THRESHOLD_RATIO: float = 0.10
    MAX_FORECAST_INTERVALS: int = 3

    # Roles signant comme superviseur / Roles that sign as supervisor
    SUPERVISOR_ROLE_CODES: list[str] = ["JEFE_TALLER"]
    DEFAULT_SIGNATURE_ROLE: str = "OPERATOR"

    # Libelle ajoute aux notes a l'annulation / Label appended to notes on cancel
    CANCEL_NOTE_PREFIX: str = "CANCELADO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
