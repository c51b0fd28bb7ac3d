# backend/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

DEFAULT_SECRET_KEY = "dev-secret-change-me"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=str(env_path), extra="ignore")

    SECRET_KEY: str = DEFAULT_SECRET_KEY
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite:///./book_portal.db"

    # Comma separated list of allowed frontend origins
    CORS_ORIGINS: str = "http://localhost:3000"
    LOG_LEVEL: str = "INFO"
    ENV: str = "development"

    @property
    def database_url(self) -> str:
        # SQLAlchemy requires postgresql:// (hosting providers still hand out postgres://)
        url = self.DATABASE_URL
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql://", 1)
        return url

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.ENV.strip().lower() in ("prod", "production")


def validate_runtime_config(settings: Settings) -> None:
    """Fail fast on settings that must never reach production."""
    if not settings.is_production:
        return
    if settings.SECRET_KEY in ("", DEFAULT_SECRET_KEY):
        raise RuntimeError("SECRET_KEY must be set to a strong value in production.")
    if settings.database_url.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must point to Postgres in production (not sqlite).")
