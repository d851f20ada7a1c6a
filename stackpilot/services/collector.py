"""Metrics collection collaborators."""

from typing import Protocol

import structlog

from ..core.exceptions import ConfigurationError
from ..models.stack import MetricConfig


class MetricsCollector(Protocol):
    """Forwards deployment metrics to a storage backend."""

    async def check_storage(self) -> None:
        """Raise if the storage backend is not usable."""
        ...

    async def gather(self, stack: str, groups: list[str]) -> None: ...


class NullCollector:
    """Collector used when metrics are disabled."""

    async def check_storage(self) -> None:
        return None

    async def gather(self, stack: str, groups: list[str]) -> None:
        return None


class LogCollector:
    """Collector that records gathered groups as structured log events."""

    def __init__(self, metric_config: MetricConfig):
        self.metric_config = metric_config
        self.logger = structlog.get_logger().bind(component="metrics")

    async def check_storage(self) -> None:
        storage = self.metric_config.storage
        if not storage.get("name"):
            raise ConfigurationError("metrics are enabled but no storage name is configured")
        self.logger.debug("Metric storage configured", storage=storage["name"])

    async def gather(self, stack: str, groups: list[str]) -> None:
        self.logger.info(
            "Deployment metrics gathered",
            storage=self.metric_config.storage.get("name"),
            stack=stack,
            groups=groups,
        )
