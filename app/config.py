import os
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "friendtime"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = "postgres"
    DATABASE_URL: Optional[str] = None

    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0

    LOG_LEVEL: str = "INFO"

    # Proximity (meters)
    PROXIMITY_ENTER_METERS: float = 50.0
    PROXIMITY_EXIT_METERS: float = 60.0

    # Ingest
    MAX_ACCURACY_METERS: float = 100.0
    FIX_MIN_INTERVAL_SECONDS: int = 120
    FIX_MIN_DISTANCE_METERS: float = 5.0
    TRACKING_STATE_TTL_SECONDS: int = 3600
    UPSERT_RETRIES: int = 3
    UPSERT_BACKOFF_SECONDS: float = 0.5

    # Staleness / reaper
    STALE_AFTER_SECONDS: int = 180
    REAPER_INTERVAL_SECONDS: int = 300

    STORAGE_TIMEOUT_SECONDS: float = 5.0

    model_config = SettingsConfigDict(
        env_file=os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", ".env"),
        extra="ignore",
    )

    @model_validator(mode="after")
    def check_thresholds(self) -> "Settings":
        if self.PROXIMITY_ENTER_METERS <= 0:
            raise ValueError("PROXIMITY_ENTER_METERS must be positive")
        if self.PROXIMITY_EXIT_METERS < self.PROXIMITY_ENTER_METERS:
            raise ValueError("PROXIMITY_EXIT_METERS must be >= PROXIMITY_ENTER_METERS")
        for name in ("MAX_ACCURACY_METERS", "FIX_MIN_INTERVAL_SECONDS", "STALE_AFTER_SECONDS",
                     "REAPER_INTERVAL_SECONDS", "STORAGE_TIMEOUT_SECONDS", "TRACKING_STATE_TTL_SECONDS"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.UPSERT_RETRIES < 1:
            raise ValueError("UPSERT_RETRIES must be at least 1")
        return self

    def get_db_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASSWORD}@"
                f"{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}")


settings = Settings()
database_url = settings.get_db_url()
