"""
Donation service settings.

Built once at process start (see main.py) and passed to the store and router
constructors. Business logic never reads the environment directly.
"""
from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # MongoDB
    database_url: str = "mongodb://localhost:27017"
    database_name: str = "donation_system"
    collection_name: str = "donations"
    mongo_max_pool_size: int = 10
    mongo_server_selection_timeout_ms: int = 5000

    # Delete secret; when unset every delete is rejected
    admin_password: Optional[str] = None

    service_name: str = "donation-collection-system"

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    port: int = 8000

    @field_validator("admin_password", mode="before")
    @classmethod
    def blank_password_is_unset(cls, v):
        if isinstance(v, str) and not v:
            return None
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
