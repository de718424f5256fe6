from pydantic_settings import BaseSettings
from pydantic import Field, field_validator, model_validator
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # Database - PostgreSQL for production, SQLite for development
    database_url: str = Field(
        default="sqlite:///./oxyspa.db",
        alias="DATABASE_URL"
    )

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")

    # CORS - Frontend URLs from environment (comma-separated)
    allowed_origins: str = Field(
        default="http://localhost:5173,http://127.0.0.1:5173,http://localhost:8000",
        alias="ALLOWED_ORIGINS"
    )

    # ==============================================
    # Venue calendar
    # ==============================================
    # All instants are stored as naive UTC; the business window of a day
    # schedule is expressed in the venue's local time.
    venue_timezone: str = Field(default="Asia/Colombo", alias="VENUE_TIMEZONE")
    business_open_hour: int = Field(default=8, alias="BUSINESS_OPEN_HOUR")
    business_close_hour: int = Field(default=22, alias="BUSINESS_CLOSE_HOUR")
    slot_minutes: int = Field(default=30, alias="SLOT_MINUTES")

    # ==============================================
    # Bed status / booking lifecycle
    # ==============================================
    # A paid booking starting within this horizon marks the bed "booked_soon"
    booked_soon_minutes: int = Field(default=30, alias="BOOKED_SOON_MINUTES")

    # Unpaid confirmed bookings are cancelled this long after their start
    auto_cancel_grace_minutes: int = Field(default=15, alias="AUTO_CANCEL_GRACE_MINUTES")

    # Reconciler settings (runs inside FastAPI process)
    reconciler_enabled: bool = Field(default=True, alias="RECONCILER_ENABLED")
    reconcile_interval_seconds: int = Field(default=60, alias="RECONCILE_INTERVAL_SECONDS")

    # Create the default floor layout (S1-S3) on an empty database
    seed_default_beds: bool = Field(default=True, alias="SEED_DEFAULT_BEDS")

    @field_validator('business_open_hour', 'business_close_hour')
    @classmethod
    def validate_hour(cls, v: int) -> int:
        if not 0 <= v <= 24:
            raise ValueError("business hours must be between 0 and 24")
        return v

    @field_validator('slot_minutes', 'booked_soon_minutes', 'auto_cancel_grace_minutes', 'reconcile_interval_seconds')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("value must be greater than zero")
        return v

    @model_validator(mode='after')
    def validate_business_window(self):
        if self.business_close_hour <= self.business_open_hour:
            raise ValueError("BUSINESS_CLOSE_HOUR must be after BUSINESS_OPEN_HOUR")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def normalized_database_url(self) -> str:
        """SQLAlchemy needs postgresql:// where hosting providers hand out postgres://"""
        if self.database_url.startswith("postgres://"):
            return self.database_url.replace("postgres://", "postgresql://", 1)
        return self.database_url

    @property
    def cors_origins(self) -> List[str]:
        """
        Parse allowed origins from comma-separated string.
        Returns a list suitable for CORSMiddleware.
        """
        if not self.allowed_origins:
            return ["http://localhost:5173"]

        origins = []
        for origin in self.allowed_origins.split(","):
            origin = origin.strip().rstrip("/")
            if origin and origin not in origins:
                origins.append(origin)

        return origins if origins else ["http://localhost:5173"]

    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Initialize settings on module load
settings = get_settings()
