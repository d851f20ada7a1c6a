"""Live group inspection used by the status and update flows."""

from typing import Protocol, TextIO

import structlog

from ..constants import VERSION_SEPARATOR
from ..core.capacity import build_update_stack
from ..core.exceptions import BackendError, ConfigurationError
from ..deployer.backend import StackBackend
from ..models.group import GroupDescriptor
from ..models.stack import Capacity, Stack


class Inspector(Protocol):
    """Read and resize the live group of an application."""

    async def select_stack(self, application: str) -> str: ...

    async def get_stack_information(self, name: str) -> GroupDescriptor: ...

    async def update(self, name: str, capacity: Capacity) -> None: ...

    def generate_stack(self, region: str, group: GroupDescriptor) -> Stack: ...

    def print_status(self, group: GroupDescriptor, out: TextIO) -> None: ...


def _version_of(application: str, group_name: str) -> int | None:
    """Version of ``<application>_vNNN``; None for groups of any other stack."""
    prefix = f"{application}{VERSION_SEPARATOR}"
    if not group_name.startswith(prefix):
        return None
    version = group_name[len(prefix):]
    return int(version) if version.isdigit() else None


class BackendInspector:
    """Inspector implemented on top of a StackBackend."""

    def __init__(self, backend: StackBackend, region: str):
        self.backend = backend
        self.region = region
        self.logger = structlog.get_logger().bind(component="inspector")

    async def select_stack(self, application: str) -> str:
        """Return the newest live ``<application>_vNNN`` group."""
        if not application:
            raise ConfigurationError("application name is required")

        groups = await self.backend.list_groups(f"{application}{VERSION_SEPARATOR}", self.region)
        versioned = [
            (version, group.name)
            for group in groups
            if (version := _version_of(application, group.name)) is not None
        ]
        if not versioned:
            raise BackendError(f"no autoscaling group exists for application: {application}")

        _, latest = max(versioned, key=lambda item: item[0])
        self.logger.debug("Selected group", application=application, group=latest)
        return latest

    async def get_stack_information(self, name: str) -> GroupDescriptor:
        group = await self.backend.describe_group(name, self.region)
        if group is None:
            raise BackendError(f"autoscaling group does not exist: {name}")
        return group

    async def update(self, name: str, capacity: Capacity) -> None:
        self.logger.debug("Updating group capacity", group=name, capacity=capacity.describe())
        await self.backend.update_capacity(name, self.region, capacity)

    def generate_stack(self, region: str, group: GroupDescriptor) -> Stack:
        return build_update_stack(region, group)

    def print_status(self, group: GroupDescriptor, out: TextIO) -> None:
        out.write(f"Name:          {group.name}\n")
        out.write(f"Region:        {group.region or self.region}\n")
        out.write(f"Instance type: {group.instance_type}\n")
        out.write(f"AMI:           {group.ami}\n")
        out.write(f"Capacity:      {group.capacity.describe()}\n")
        out.write(f"Healthy:       {group.healthy_count}/{len(group.instances)}\n")
        for instance in group.instances:
            out.write(
                f"  - {instance.instance_id} {instance.lifecycle_state} {instance.health_status}\n"
            )
        for key, value in sorted(group.tags.items()):
            out.write(f"  tag {key}={value}\n")
