from pathlib import Path
from typing import Optional

from croniter import croniter
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

IMAGE_PROVIDERS = ("unsplash", "freepik")


class Settings(BaseSettings):
    # Database
    DB_URL: str = "sqlite:///./wanderpost.db"
    DB_ECHO: bool = False  # Set to True for SQL query logging in development

    # Connection Pool Settings (PostgreSQL only)
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 3600

    # Journey policy
    MIN_DAYS_PER_LOCATION: int = 7
    MAX_DAYS_PER_LOCATION: int = 21
    FIRST_LOCATION_DURATION_DAYS: int = 14
    PLANNED_DURATION_MIN_DAYS: int = 10
    PLANNED_DURATION_MAX_DAYS: int = 14
    START_COUNTRY: str = "Serbia"
    CITY_CANDIDATE_COUNT: int = 5
    CITY_RETRY_MULTIPLIER: float = 1.6
    POI_BATCH_SIZE: int = 5
    DETOUR_FACTOR: float = 1.3
    PERSONA_NAME: str = "Giovanni"

    # Scheduling
    POST_GENERATION_SCHEDULE: str = "0 8 * * *"
    SCHEDULER_TIMEZONE: str = "Europe/Belgrade"
    ENABLE_SCHEDULER: bool = True

    # Text generation
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-3.5-turbo"
    OPENAI_RATE_LIMIT_PER_MINUTE: int = 5
    REQUEST_TIMEOUT_SECONDS: float = 30.0

    # Data providers
    OPENWEATHER_API_KEY: str = ""
    GOOGLE_PLACES_API_KEY: str = ""
    DEFAULT_NIGHTLY_PRICE: int = 70
    IMAGE_PROVIDER: str = "unsplash"
    UNSPLASH_API_KEY: str = ""
    FREEPIK_API_KEY: str = ""
    FREEPIK_ENGINE: str = "magnific_sharpy"
    IMAGE_STORAGE_PATH: str = "./temp/images"
    IMAGE_DEDUP_MAX_ATTEMPTS: int = 3

    # Publication gateway
    WORDPRESS_URL: str = ""
    WORDPRESS_USERNAME: str = ""
    WORDPRESS_APP_PASSWORD: str = ""

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = "wanderpost.log"

    @field_validator("IMAGE_PROVIDER", mode="before")
    @classmethod
    def normalize_image_provider(cls, v):
        """Accept provider names case-insensitively"""
        value = str(v or "").strip().lower()
        if value not in IMAGE_PROVIDERS:
            raise ValueError(f"IMAGE_PROVIDER must be one of {', '.join(IMAGE_PROVIDERS)}")
        return value

    @field_validator("POST_GENERATION_SCHEDULE")
    @classmethod
    def validate_schedule(cls, v: str) -> str:
        if not croniter.is_valid(v):
            raise ValueError(f"Invalid cron expression: {v!r}")
        return v

    @model_validator(mode="after")
    def check_day_bounds(self):
        if self.MIN_DAYS_PER_LOCATION > self.MAX_DAYS_PER_LOCATION:
            raise ValueError("MIN_DAYS_PER_LOCATION cannot exceed MAX_DAYS_PER_LOCATION")
        if self.PLANNED_DURATION_MIN_DAYS > self.PLANNED_DURATION_MAX_DAYS:
            raise ValueError("PLANNED_DURATION_MIN_DAYS cannot exceed PLANNED_DURATION_MAX_DAYS")
        return self

    @property
    def fallback_image_provider(self) -> str:
        return "freepik" if self.IMAGE_PROVIDER == "unsplash" else "unsplash"

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).parents[3] / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )
