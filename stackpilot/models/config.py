"""Run configuration model."""

from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, Field

from ..constants import CAPACITY_NOT_SET


class RunConfig(BaseModel):
    """Process-wide parameters for one invocation.

    Created once at invocation start. The update flow sets
    ``down_sizing_update`` and ``target_autoscaling_group`` once before the
    health poller runs; nothing else mutates it after start, except the delete
    flow forcing ``slack_off``.
    """

    manifest: str = ""
    stack: str | None = None  # single-stack filter
    application: str | None = None
    region: str = ""
    start_timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    timeout: timedelta = timedelta(minutes=60)
    polling_interval: timedelta = timedelta(seconds=60)

    # Capacity overrides; negative means "keep the current value"
    min: int = CAPACITY_NOT_SET
    max: int = CAPACITY_NOT_SET
    desired: int = CAPACITY_NOT_SET
    force_manifest_capacity: bool = False

    auto_apply: bool = False
    slack_off: bool = False
    disable_metrics: bool = False
    log_level: str = "INFO"

    # Set by the update flow
    down_sizing_update: bool = False
    target_autoscaling_group: str | None = None
