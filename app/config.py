"""Configuration management using Pydantic Settings."""
from functools import lru_cache
from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

CATALOG_DIR = Path(__file__).resolve().parent / "catalog" / "data"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "Full Diagnostic API"
    app_version: str = "1.0.0"
    debug: bool = False

    # Database (any SQLAlchemy URL; Postgres in production)
    database_url: str = Field(
        default="sqlite:///./full_diagnostic.db",
        validation_alias="DATABASE_URL",
    )

    # Redis
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0

    # Cache TTLs (seconds)
    cache_ttl_results: int = 120  # 2 minutes
    cache_ttl_snapshot: int = 3600  # 1 hour

    # Catalog files (static, versioned configuration)
    full_catalog_path: Path = CATALOG_DIR / "full_catalog.v1.json"
    cause_catalog_path: Path = CATALOG_DIR / "cause_engine.v1.json"

    # Plan lifecycle
    max_plan_actions: int = 3
    drop_reason_min_length: int = 20


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
