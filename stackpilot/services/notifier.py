"""Notification collaborators."""

from typing import Protocol

import structlog

from ..models.config import RunConfig
from ..models.stack import Stack


class Notifier(Protocol):
    """Delivers run notifications to operators."""

    def valid_client(self) -> bool: ...

    async def send_simple_message(self, text: str) -> None: ...

    async def send_summary_message(self, config: RunConfig, stacks: list[Stack], name: str) -> None: ...


class LogNotifier:
    """Notifier that writes messages to the run log."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.logger = structlog.get_logger().bind(component="notifier")

    def valid_client(self) -> bool:
        return self.enabled

    async def send_simple_message(self, text: str) -> None:
        if self.enabled:
            self.logger.info("Notification", message=text)

    async def send_summary_message(self, config: RunConfig, stacks: list[Stack], name: str) -> None:
        if not self.enabled:
            return
        self.logger.info(
            "Deployment summary",
            application=name,
            region=config.region,
            stacks=[stack.stack for stack in stacks],
            timeout_minutes=round(config.timeout.total_seconds() / 60),
        )
