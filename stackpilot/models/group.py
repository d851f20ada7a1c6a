"""Live autoscaling group models returned by backends."""

from pydantic import BaseModel, Field

from ..constants import HEALTH_HEALTHY, LIFECYCLE_IN_SERVICE
from .stack import Capacity


class InstanceState(BaseModel):
    """One instance of a group."""

    instance_id: str
    lifecycle_state: str = LIFECYCLE_IN_SERVICE
    health_status: str = HEALTH_HEALTHY

    @property
    def is_healthy(self) -> bool:
        return (
            self.lifecycle_state == LIFECYCLE_IN_SERVICE
            and self.health_status == HEALTH_HEALTHY
        )


class GroupDescriptor(BaseModel):
    """Snapshot of a live autoscaling group."""

    name: str
    region: str = ""
    capacity: Capacity = Field(default_factory=Capacity)
    instances: list[InstanceState] = Field(default_factory=list)
    instance_type: str = ""
    ami: str = ""
    tags: dict[str, str] = Field(default_factory=dict)

    @property
    def healthy_count(self) -> int:
        return sum(1 for instance in self.instances if instance.is_healthy)
