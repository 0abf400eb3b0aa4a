# parcel_router/app/config.py
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[2]
DB_PATH = PROJECT_ROOT / "parcel_router.db"


class Settings(BaseSettings):
    """Runtime settings, read from PARCEL_ROUTER_* environment variables or .env."""

    model_config = SettingsConfigDict(env_prefix="PARCEL_ROUTER_", env_file=".env", extra="ignore")

    storage: Literal["memory", "sql"] = "memory"
    database_url: str = f"sqlite:///{DB_PATH}"
    seed_rules: bool = False

    log_level: str = "info"
    json_logs: bool = False

    host: str = "0.0.0.0"
    port: int = 8000


@lru_cache
def get_settings() -> Settings:
    return Settings()
