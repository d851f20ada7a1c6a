"""Orchestration settings for stackpilot.

Provides centralized defaults using Pydantic BaseSettings with environment
variable support for operational tuning. Command line flags override these.
"""

from datetime import timedelta

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..constants import (
    DEFAULT_LOG_LEVEL,
    DEFAULT_MANIFEST_PATH,
    DEFAULT_POLLING_INTERVAL_SECONDS,
    DEFAULT_TIMEOUT_MINUTES,
)


class OrchestratorSettings(BaseSettings):
    """Environment-driven defaults for a run."""

    timeout_minutes: int = Field(
        DEFAULT_TIMEOUT_MINUTES,
        alias="STACKPILOT_TIMEOUT_MINUTES",
        description="Health convergence deadline in minutes",
    )

    polling_interval_seconds: int = Field(
        DEFAULT_POLLING_INTERVAL_SECONDS,
        alias="STACKPILOT_POLLING_INTERVAL_SECONDS",
        description="Sleep between convergence rounds in seconds",
    )

    log_level: str = Field(DEFAULT_LOG_LEVEL, alias="STACKPILOT_LOG_LEVEL")

    log_file: str | None = Field(None, alias="STACKPILOT_LOG_FILE")

    manifest: str = Field(DEFAULT_MANIFEST_PATH, alias="STACKPILOT_MANIFEST")

    backend: str | None = Field(
        None,
        alias="STACKPILOT_BACKEND",
        description="Import path 'module:factory' returning a StackBackend",
    )

    auto_apply: bool = Field(False, alias="STACKPILOT_AUTO_APPLY")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def timeout(self) -> timedelta:
        return timedelta(minutes=self.timeout_minutes)

    @property
    def polling_interval(self) -> timedelta:
        return timedelta(seconds=self.polling_interval_seconds)
