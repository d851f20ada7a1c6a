"""Stack deployer contract consumed by the runner."""

from abc import ABC, abstractmethod

from ..models.config import RunConfig


class DeployManager(ABC):
    """Lifecycle operations for exactly one stack.

    Implementations hold no state shared with other instances, so the same
    operation may run concurrently on different deployers. Failing operations
    raise ``StackPilotError`` subclasses; the runner logs them and carries on.
    """

    @abstractmethod
    def get_stack_name(self) -> str:
        """Stable identifier used by the convergence pollers."""

    @abstractmethod
    async def check_previous(self, config: RunConfig) -> None:
        """Discover the currently live versions of the stack."""

    @abstractmethod
    async def deploy(self, config: RunConfig) -> None:
        """Provision the new version."""

    @abstractmethod
    def skip_deploy_step(self) -> None:
        """Mark the deploy step as intentionally bypassed (delete runs)."""

    @abstractmethod
    async def finish_additional_work(self, config: RunConfig) -> None:
        """Post-healthy work on the new version, e.g. scaling policies."""

    @abstractmethod
    async def trigger_lifecycle_callbacks(self, config: RunConfig) -> None:
        """Run lifecycle hooks against previous versions."""

    @abstractmethod
    async def clean_previous_version(self, config: RunConfig) -> None:
        """Start decommissioning previous versions."""

    @abstractmethod
    async def gather_metrics(self, config: RunConfig) -> None:
        """Forward metrics for the acted-on versions."""

    @abstractmethod
    async def run_api_test(self, config: RunConfig) -> None:
        """Run the stack's acceptance test; no-op when none is configured."""

    @abstractmethod
    async def health_checking(self, config: RunConfig) -> dict[str, bool]:
        """Probe the new version.

        Returns ``{stack_name: healthy}``, or ``{"error": True}`` when the probe
        cannot recover.
        """

    @abstractmethod
    async def terminate_checking(self, config: RunConfig) -> dict[str, bool]:
        """Probe whether previous versions are gone: ``{stack_name: done}``."""
