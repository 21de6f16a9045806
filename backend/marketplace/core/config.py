"""
Marketplace settings.

WHAT: Every tunable of the backend in one Settings object
WHY: Storage backend, listing defaults and logging change between dev,
     tests and deployment without code edits
HOW: pydantic-settings model read from the environment and .env files
"""

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_BACKEND_DIR = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Backend settings; field names match the environment variables."""

    model_config = SettingsConfigDict(
        # Repo root .env first, backend/.env overrides it
        env_file=(str(_BACKEND_DIR.parent / ".env"), str(_BACKEND_DIR / ".env")),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # App metadata
    APP_NAME: str = "Vendor Marketplace"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # Document store
    STORAGE_BACKEND: Literal["memory", "sql"] = "memory"
    DATABASE_URL: str = "sqlite:///./data/marketplace.db"
    SEED_SAMPLE_DATA: bool = False  # One demo vendor on startup

    # Listing defaults
    DEFAULT_LIST_LIMIT: int = 50
    MAX_LIST_LIMIT: int = 200
    DEFAULT_DISCOUNT_RATE: float = 0.8  # Surplus price when no discount given
    DEFAULT_UNIT: str = "kg"

    # Price posting
    PRICE_AUTO_VERIFY_CONFIDENCE: float = 0.7  # Proof confidence above this verifies on post
    PRICE_TREND_DAYS: int = 30
    DEFAULT_MARKET_NAME: str = "Local Market"

    # Comma-separated; kept as str so env values are not parsed as JSON
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "./data/logs/app.log"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def join_origin_list(cls, v):
        if isinstance(v, (list, tuple)):
            return ",".join(v)
        return v

    @field_validator("DEFAULT_DISCOUNT_RATE")
    @classmethod
    def check_discount_rate(cls, v):
        """Discount rate is a fraction of the original price, 1 meaning no discount."""
        if not 0 < v <= 1:
            raise ValueError(f"DEFAULT_DISCOUNT_RATE must be in (0, 1], got {v}")
        return v

    @field_validator("PRICE_AUTO_VERIFY_CONFIDENCE")
    @classmethod
    def check_confidence(cls, v):
        if not 0 <= v <= 1:
            raise ValueError(f"PRICE_AUTO_VERIFY_CONFIDENCE must be in [0, 1], got {v}")
        return v

    @field_validator("PRICE_TREND_DAYS")
    @classmethod
    def check_trend_days(cls, v):
        if v < 1:
            raise ValueError(f"PRICE_TREND_DAYS must be positive, got {v}")
        return v

    @model_validator(mode="after")
    def check_list_limits(self):
        if not 1 <= self.DEFAULT_LIST_LIMIT <= self.MAX_LIST_LIMIT:
            raise ValueError(
                f"DEFAULT_LIST_LIMIT must be between 1 and MAX_LIST_LIMIT ({self.MAX_LIST_LIMIT})"
            )
        return self

    def get_cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


# Default for create_app; tests build their own Settings
settings = Settings()
