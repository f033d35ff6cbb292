"""Kernel configuration — environment-driven settings via pydantic-settings.

Every field can be overridden with a COGNITION_-prefixed environment
variable or a .env file. get_settings() is cached: one instance per process.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Kernel settings from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="COGNITION_", env_file=".env", case_sensitive=False
    )

    # Storage
    ledger_db_path: str = ":memory:"
    snapshot_db_path: str = ":memory:"

    # Decision
    default_max_autonomy: int = Field(default=3, ge=0, le=3)
    agent_id: str = "cognition_agent"

    # Action
    plan_base_timeout_ms: int = 30_000
    plan_per_step_timeout_ms: int = 10_000

    # World model
    anomaly_min_history: int = 5

    # Learning
    learning_window: int = 50

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
