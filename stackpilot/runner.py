"""Phase runner and mode flows.

Each phase runs its steps for every deployer concurrently and joins all of
them before the next phase starts. A failing step is logged with its phase
and stack and never stops sibling stacks or later steps. Only validation,
convergence and confirmation errors abort a run.
"""

import asyncio
import inspect
import sys
import time
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any, TextIO

import structlog

from .constants import (
    STEP_ADDITIONAL_WORK,
    STEP_API_TEST,
    STEP_CHECK_PREVIOUS,
    STEP_CLEAN_PREVIOUS,
    STEP_DEPLOY,
    STEP_GATHER_METRICS,
    STEP_TRIGGER_LIFECYCLE,
)
from .core.capacity import check_update_information, is_downsizing, plan_capacity
from .core.convergence import Clock, Sleep, health_poller, termination_poller
from .core.exceptions import ConfigurationError, DeclinedError, UnknownModeError
from .core.prompt import ask_continue, is_interactive
from .deployer.backend import StackBackend
from .deployer.base import DeployManager
from .deployer.blue_green import BlueGreenDeployer
from .models.config import RunConfig
from .models.enums import Mode
from .models.stack import Manifest, Stack
from .services.collector import MetricsCollector, NullCollector
from .services.inspector import BackendInspector, Inspector
from .services.notifier import LogNotifier, Notifier

Step = tuple[str, Callable[[DeployManager], Any]]
DeployerFactory = Callable[[Stack], DeployManager]


class Runner:
    """Drives deployers through the phases of a mode."""

    def __init__(
        self,
        config: RunConfig,
        manifest: Manifest | None = None,
        backend: StackBackend | None = None,
        collector: MetricsCollector | None = None,
        notifier: Notifier | None = None,
        inspector: Inspector | None = None,
        deployer_factory: DeployerFactory | None = None,
        confirm: Callable[[str], bool] = ask_continue,
        interactive: Callable[[], bool] = is_interactive,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        out: TextIO = sys.stdout,
    ):
        self.config = config
        self.manifest = manifest
        self.backend = backend
        self.collector = collector or NullCollector()
        self.notifier = notifier or LogNotifier(enabled=not config.slack_off)
        self._inspector = inspector
        self.deployer_factory = deployer_factory or self._blue_green_factory
        self.confirm = confirm
        self.interactive = interactive
        self.clock = clock
        self.sleep = sleep
        self.out = out
        self.logger = structlog.get_logger().bind(component="runner")

        self._handlers: dict[Mode, Callable[[], Awaitable[None]]] = {
            Mode.DEPLOY: self.deploy,
            Mode.DELETE: self.delete,
            Mode.STATUS: self.status,
            Mode.UPDATE: self.update,
        }

    @property
    def application(self) -> str:
        if self.manifest is not None:
            return self.manifest.name
        return self.config.application or ""

    @property
    def metrics_enabled(self) -> bool:
        return (
            self.manifest is not None
            and self.manifest.metrics.enabled
            and not self.config.disable_metrics
        )

    @property
    def inspector(self) -> Inspector:
        if self._inspector is None:
            self._inspector = BackendInspector(self._require_backend(), self.config.region)
        return self._inspector

    async def run(self, mode: Mode | str) -> None:
        """Dispatch to the flow of ``mode``."""
        try:
            mode = Mode(mode)
        except ValueError:
            raise UnknownModeError(f"no function exists to run for {mode}") from None
        await self._handlers[mode]()

    # Deployers

    def _require_backend(self) -> StackBackend:
        if self.backend is None:
            raise ConfigurationError(
                "no backend configured, set --backend or STACKPILOT_BACKEND"
            )
        return self.backend

    def _blue_green_factory(self, stack: Stack) -> DeployManager:
        template = None
        if stack.api_test_enabled and self.manifest is not None:
            template = self.manifest.find_template(stack.api_test_template)

        return BlueGreenDeployer(
            self.application,
            stack,
            self._require_backend(),
            region=self.config.region,
            api_test_template=template,
            collector=self.collector,
            notifier=self.notifier,
        )

    def target_stacks(self) -> list[Stack]:
        if self.manifest is None:
            return []
        return self.manifest.select_stacks(self.config.stack)

    def build_deployers(self) -> list[DeployManager]:
        """One deployer per stack selected by the stack filter."""
        deployers = []
        for stack in self.target_stacks():
            self.logger.debug("Add deployer", stack=stack.stack)
            deployers.append(self.deployer_factory(stack))
        self.logger.debug("Deployers assigned to stacks", count=len(deployers))
        return deployers

    # Phases

    async def run_phase(self, phase: str, deployers: Sequence[DeployManager], *steps: Step) -> None:
        """Run ``steps`` in order for every deployer, concurrently across deployers."""
        self.logger.debug("Phase started", phase=phase, stacks=len(deployers))
        await asyncio.gather(*(self._run_steps(phase, d, steps) for d in deployers))
        self.logger.debug("Phase finished", phase=phase)

    async def _run_steps(self, phase: str, deployer: DeployManager, steps: Sequence[Step]) -> None:
        for step_name, action in steps:
            try:
                result = action(deployer)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self.logger.error(
                    "Step error occurred",
                    phase=phase,
                    step=step_name,
                    stack=deployer.get_stack_name(),
                    error=str(e),
                )

    async def wait_healthy(self, deployers: Sequence[DeployManager]) -> None:
        await health_poller(self.config, clock=self.clock, sleep=self.sleep).run(
            deployers, self.config
        )

    async def wait_terminated(self, deployers: Sequence[DeployManager]) -> None:
        await termination_poller(self.config, clock=self.clock, sleep=self.sleep).run(
            deployers, self.config
        )

    # Checks

    async def local_check(self, message: str) -> None:
        """Ask the operator to confirm a mutating run.

        Skipped with auto-apply or when not attached to a terminal.

        Raises:
            DeclinedError: If the operator declines
        """
        if self.config.auto_apply or not self.interactive():
            return
        if not await asyncio.to_thread(self.confirm, message):
            raise DeclinedError("you declined to run command")

    async def check_enabled_metrics(self) -> None:
        self.logger.info("Metric measurement is enabled")
        await self.collector.check_storage()

    async def _announce(self) -> None:
        if self.notifier.valid_client():
            try:
                await self.notifier.send_summary_message(
                    self.config, self.target_stacks(), self.application
                )
            except Exception as e:
                self.logger.warning("Failed to send summary message", error=str(e))
                self.config.slack_off = True
        elif not self.config.slack_off:
            self.logger.warning("No notification client is configured")

    async def _notify(self, text: str) -> None:
        if self.config.slack_off:
            return
        try:
            await self.notifier.send_simple_message(text)
        except Exception as e:
            self.logger.warning("Failed to send message", error=str(e))
            self.config.slack_off = True

    def elapsed(self) -> timedelta:
        """Wall-clock time since the run started."""
        return datetime.now(timezone.utc) - self.config.start_timestamp

    def print_summary(self) -> None:
        self.out.write(f"Application: {self.application}\n")
        self.out.write(f"Region:      {self.config.region or '(per stack)'}\n")
        self.out.write(f"Timeout:     {self.config.timeout}\n")
        started = self.config.start_timestamp.isoformat(timespec="seconds")
        self.out.write(f"Started:     {started}\n")
        for stack in self.target_stacks():
            self.out.write(
                f"  - {stack.stack} [{stack.replacement_type}] "
                f"region={stack.region or self.config.region} {stack.capacity.describe()}\n"
            )

    # Flows

    async def deploy(self) -> None:
        """Deploy a new version of every target stack."""
        await self.local_check("Do you really want to deploy this application? ")

        self.logger.info("Beginning deployment", application=self.application)
        self.print_summary()
        await self._announce()

        if self.metrics_enabled:
            await self.check_enabled_metrics()

        config = self.config
        deployers = self.build_deployers()

        await self.run_phase(
            "provision",
            deployers,
            (STEP_CHECK_PREVIOUS, lambda d: d.check_previous(config)),
            (STEP_DEPLOY, lambda d: d.deploy(config)),
        )

        await self.wait_healthy(deployers)

        await self.run_phase(
            "cutover",
            deployers,
            (STEP_ADDITIONAL_WORK, lambda d: d.finish_additional_work(config)),
            (STEP_TRIGGER_LIFECYCLE, lambda d: d.trigger_lifecycle_callbacks(config)),
            (STEP_CLEAN_PREVIOUS, lambda d: d.clean_previous_version(config)),
        )

        await self.wait_terminated(deployers)

        if self.metrics_enabled:
            await self.run_phase(
                "metrics", deployers, (STEP_GATHER_METRICS, lambda d: d.gather_metrics(config))
            )

        await self.run_phase("api-test", deployers, (STEP_API_TEST, lambda d: d.run_api_test(config)))

        self.logger.info(
            "Deployment is done", application=self.application, elapsed=str(self.elapsed())
        )
        await self._notify(f"Deployment is done: {self.application}")

    async def delete(self) -> None:
        """Drain and delete every live version of the target stacks."""
        await self.local_check("Do you really want to delete applications? ")

        self.logger.info("Beginning delete process", application=self.application)
        self.config.slack_off = True

        if self.metrics_enabled:
            await self.check_enabled_metrics()

        config = self.config
        deployers = self.build_deployers()

        await self.run_phase(
            "decommission",
            deployers,
            (STEP_CHECK_PREVIOUS, lambda d: d.check_previous(config)),
            (STEP_DEPLOY, lambda d: d.skip_deploy_step()),
            (STEP_TRIGGER_LIFECYCLE, lambda d: d.trigger_lifecycle_callbacks(config)),
            (STEP_CLEAN_PREVIOUS, lambda d: d.clean_previous_version(config)),
        )

        await self.wait_terminated(deployers)

        if self.metrics_enabled:
            await self.run_phase(
                "metrics", deployers, (STEP_GATHER_METRICS, lambda d: d.gather_metrics(config))
            )

        self.logger.info(
            "Delete process is done", application=self.application, elapsed=str(self.elapsed())
        )

    async def status(self) -> None:
        """Print the live group of the application."""
        name = await self.inspector.select_stack(self.config.application or "")
        group = await self.inspector.get_stack_information(name)
        self.inspector.print_status(group, self.out)

    async def update(self) -> None:
        """Resize the live group in place and wait for it to be healthy."""
        name = await self.inspector.select_stack(self.config.application or "")
        group = await self.inspector.get_stack_information(name)

        old = group.capacity
        new = plan_capacity(old, self.config)
        check_update_information(old, new)

        self.out.write(f"[ AS IS ]\n{old.describe()}\n")
        self.out.write(f"[ TO BE ]\n{new.describe()}\n")

        await self.local_check("Do you really want to update? ")

        downsizing = is_downsizing(old, new)
        if downsizing:
            self.logger.debug("Downsizing operation is triggered")

        self.logger.debug("Start updating configuration", group=group.name)
        await self.inspector.update(group.name, new)

        stack = self.inspector.generate_stack(
            self.config.region, group.model_copy(update={"capacity": new})
        )
        self.config.down_sizing_update = downsizing
        self.config.target_autoscaling_group = group.name
        self.config.force_manifest_capacity = False

        deployers = [self.deployer_factory(stack)]
        await self.wait_healthy(deployers)

        self.logger.info("Update operation is finished", group=group.name)
