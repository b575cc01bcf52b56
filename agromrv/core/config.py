"""
Application configuration loaded from environment variables.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from pathlib import Path
from typing import Optional


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(
        env_file = ".env",
        env_file_encoding = "utf-8",
        populate_by_name = True,
        extra = "ignore"
    )

    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///./agromrv.db", alias="DATABASE_URL")

    # Artifact storage
    storage_root: Path = Field(default=Path("./storage"), alias="STORAGE_ROOT")

    # Application
    app_name: str = Field(default="Agro MRV Engine", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    environment: str = Field(default="development", alias="APP_ENV")
    code_commit: str = Field(default="unknown", alias="CODE_COMMIT")
    model_version: str = Field(default="v0.1", alias="MODEL_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    port: int = Field(default=8000, alias="PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Fallback market price when no price row has been recorded
    default_price_usd: float = Field(default=8.50, alias="DEFAULT_PRICE_USD")
    default_price_inr: float = Field(default=700.0, alias="DEFAULT_PRICE_INR")

    # Ledger anchoring
    ledger_mode: str = Field(default="simulated", alias="LEDGER_MODE")
    ledger_gateway_url: Optional[str] = Field(default=None, alias="LEDGER_GATEWAY_URL")
    ledger_api_key: Optional[str] = Field(default=None, alias="LEDGER_API_KEY")
    ledger_timeout_seconds: float = Field(default=30.0, alias="LEDGER_TIMEOUT_SECONDS")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
