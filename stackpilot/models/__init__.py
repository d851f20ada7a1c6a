"""Data models for stackpilot."""

from .config import RunConfig  # noqa: F401
from .enums import Mode  # noqa: F401
from .group import GroupDescriptor, InstanceState  # noqa: F401
from .stack import (  # noqa: F401
    APIEndpoint,
    APITestTemplate,
    Capacity,
    LifecycleCallbacks,
    Manifest,
    MetricConfig,
    Stack,
)

__all__ = [
    # Run models
    "RunConfig",
    "Mode",
    # Stack models
    "APIEndpoint",
    "APITestTemplate",
    "Capacity",
    "LifecycleCallbacks",
    "Manifest",
    "MetricConfig",
    "Stack",
    # Live group models
    "GroupDescriptor",
    "InstanceState",
]
