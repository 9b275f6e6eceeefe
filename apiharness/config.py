# apiharness/config.py
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class HarnessSettings(BaseSettings):
    """
    Centralized, env-driven configuration.
    Override via HARNESS_* environment variables or a .env file at repo root.
    """
    base_url: str = Field(default="https://api.example.com")
    timeout_sec: float = Field(default=30.0, gt=0)
    verify_ssl: bool = Field(default=True)
    follow_redirects: bool = Field(default=True)
    log_level: str = Field(default="INFO")
    store_dir: str = Field(default=".apiharness")
    store_key: str | None = Field(default=None)  # Fernet key; tokens encrypted at rest when set
    export_dir: str = Field(default="reports")
    sample_seed: int | None = Field(default=None)

    model_config = SettingsConfigDict(
        env_prefix="HARNESS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> HarnessSettings:
    return HarnessSettings()
