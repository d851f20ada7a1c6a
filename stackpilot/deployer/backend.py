"""Cloud backend protocol used by the blue/green deployer and the inspector.

The engine never talks to a cloud API directly. A backend is selected at run
time with an import path ``package.module:factory``; the factory receives the
``RunConfig`` and returns an object implementing ``StackBackend``.
"""

import importlib
from collections.abc import Callable
from typing import Protocol, runtime_checkable

from ..core.exceptions import ConfigurationError
from ..models.config import RunConfig
from ..models.group import GroupDescriptor
from ..models.stack import Capacity, Stack


@runtime_checkable
class StackBackend(Protocol):
    """Autoscaling group operations needed by the engine.

    Methods raise ``BackendError`` when the provider call fails.
    """

    async def list_groups(self, prefix: str, region: str) -> list[GroupDescriptor]: ...

    async def describe_group(self, name: str, region: str) -> GroupDescriptor | None: ...

    async def create_group(
        self, name: str, region: str, stack: Stack, capacity: Capacity
    ) -> GroupDescriptor: ...

    async def update_capacity(self, name: str, region: str, capacity: Capacity) -> None: ...

    async def delete_group(self, name: str, region: str) -> None: ...

    async def attach_scaling_policies(self, name: str, region: str, policies: list[str]) -> None: ...

    async def run_lifecycle_callbacks(self, name: str, region: str, commands: list[str]) -> None: ...


BackendFactory = Callable[[RunConfig], StackBackend]


def load_backend(import_path: str, config: RunConfig) -> StackBackend:
    """Instantiate a backend from ``module:factory``.

    Raises:
        ConfigurationError: If the path is malformed, cannot be imported, or the
            factory does not return a StackBackend
    """
    module_name, _, attr = import_path.partition(":")
    if not module_name or not attr:
        raise ConfigurationError(
            f"backend must be given as 'module:factory', got '{import_path}'"
        )

    try:
        module = importlib.import_module(module_name)
        factory: BackendFactory = getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"failed to load backend {import_path}: {e}") from e

    backend = factory(config)
    if not isinstance(backend, StackBackend):
        raise ConfigurationError(f"{import_path} did not return a StackBackend")
    return backend
