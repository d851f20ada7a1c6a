"""Blue/green deployer: every release is a new autoscaling group.

Group names follow ``<application>-<stack>_v<NNN>``. A deploy creates the next
version, waits for it to be healthy (driven by the runner), then drains and
deletes every previous version.
"""

import structlog

from ..constants import ERROR_SENTINEL, VERSION_DIGITS, VERSION_SEPARATOR
from ..core.exceptions import BackendError, DeployerError
from ..models.config import RunConfig
from ..models.stack import APITestTemplate, Capacity, Stack
from ..services.collector import MetricsCollector, NullCollector
from ..services.notifier import Notifier
from .api_test import APITester
from .backend import StackBackend
from .base import DeployManager


class BlueGreenDeployer(DeployManager):
    """DeployManager backed by a StackBackend."""

    def __init__(
        self,
        application: str,
        stack: Stack,
        backend: StackBackend,
        region: str = "",
        api_test_template: APITestTemplate | None = None,
        collector: MetricsCollector | None = None,
        notifier: Notifier | None = None,
    ):
        self.application = application
        self.stack = stack
        self.backend = backend
        self.region = stack.region or region
        self.api_test_template = api_test_template
        self.collector = collector or NullCollector()
        self.notifier = notifier

        self.previous_groups: list[str] = []
        self.previous_capacity: Capacity | None = None
        self.next_version = 0
        self.new_group: str | None = None
        self.deploy_skipped = False
        self._draining: list[str] = []

        self.logger = structlog.get_logger().bind(
            component="blue_green", stack=stack.stack, region=self.region
        )

    @property
    def prefix(self) -> str:
        return f"{self.application}-{self.stack.stack}{VERSION_SEPARATOR}"

    def get_stack_name(self) -> str:
        return self.stack.stack

    def _version_of(self, group_name: str) -> int | None:
        if not group_name.startswith(self.prefix):
            return None
        version = group_name[len(self.prefix):]
        return int(version) if version.isdigit() else None

    async def check_previous(self, config: RunConfig) -> None:
        groups = await self.backend.list_groups(self.prefix, self.region)
        versioned = [
            (version, group)
            for group in groups
            if (version := self._version_of(group.name)) is not None
        ]
        versioned.sort(key=lambda item: item[0])
        self.previous_groups = [group.name for _, group in versioned]

        if versioned:
            latest_version, latest = versioned[-1]
            self.previous_capacity = latest.capacity
            self.next_version = latest_version + 1

        self.logger.info(
            "Previous versions", groups=self.previous_groups, next_version=self.next_version
        )

    async def deploy(self, config: RunConfig) -> None:
        name = f"{self.prefix}{self.next_version:0{VERSION_DIGITS}d}"
        if config.force_manifest_capacity or self.previous_capacity is None:
            capacity = self.stack.capacity
        else:
            capacity = self.previous_capacity

        self.logger.info("Creating autoscaling group", group=name, capacity=capacity.describe())
        try:
            await self.backend.create_group(name, self.region, self.stack, capacity)
        except BackendError as e:
            raise DeployerError(f"[{self.stack.stack}] failed to create {name}: {e}") from e
        self.new_group = name

        if self.notifier is not None and not config.slack_off:
            await self.notifier.send_simple_message(f"New autoscaling group is created: {name}")

    def skip_deploy_step(self) -> None:
        self.deploy_skipped = True
        self.logger.debug("Deploy step is skipped")

    async def health_checking(self, config: RunConfig) -> dict[str, bool]:
        stack_name = self.get_stack_name()
        if self.deploy_skipped:
            return {stack_name: True}

        target = config.target_autoscaling_group or self.new_group
        if target is None:
            self.logger.error("No deployed autoscaling group to check")
            return {ERROR_SENTINEL: True}

        try:
            group = await self.backend.describe_group(target, self.region)
        except BackendError as e:
            self.logger.error("Health check failed", group=target, error=str(e))
            return {ERROR_SENTINEL: True}
        if group is None:
            self.logger.error("Autoscaling group disappeared", group=target)
            return {ERROR_SENTINEL: True}

        desired = group.capacity.desired
        healthy = group.healthy_count
        if config.down_sizing_update:
            is_healthy = healthy == desired and len(group.instances) == desired
        else:
            is_healthy = healthy >= desired

        self.logger.info(
            "Health check", group=target, healthy=healthy, total=len(group.instances), desired=desired
        )
        return {stack_name: is_healthy}

    async def finish_additional_work(self, config: RunConfig) -> None:
        if self.new_group is None or not self.stack.autoscaling:
            return
        self.logger.debug("Attaching scaling policies", policies=self.stack.autoscaling)
        await self.backend.attach_scaling_policies(
            self.new_group, self.region, self.stack.autoscaling
        )

    async def trigger_lifecycle_callbacks(self, config: RunConfig) -> None:
        commands = self.stack.lifecycle_callbacks.pre_terminate_past_cluster
        if not commands or not self.previous_groups:
            return
        for group in self.previous_groups:
            self.logger.info("Running lifecycle callbacks", group=group, commands=len(commands))
            await self.backend.run_lifecycle_callbacks(group, self.region, commands)

    async def clean_previous_version(self, config: RunConfig) -> None:
        failures = []
        for group in self.previous_groups:
            try:
                await self.backend.update_capacity(group, self.region, Capacity())
            except BackendError as e:
                failures.append(f"{group}: {e}")
                continue
            self._draining.append(group)
            self.logger.info("Previous version is draining", group=group)

        if failures:
            raise DeployerError(
                f"[{self.stack.stack}] failed to clean previous versions: {'; '.join(failures)}"
            )

    async def terminate_checking(self, config: RunConfig) -> dict[str, bool]:
        remaining = []
        for name in self._draining:
            group = await self.backend.describe_group(name, self.region)
            if group is None:
                continue
            if group.instances:
                self.logger.debug("Waiting for instances to terminate", group=name,
                                  instances=len(group.instances))
                remaining.append(name)
                continue
            await self.backend.delete_group(name, self.region)
            self.logger.info("Previous version is deleted", group=name)

        self._draining = remaining
        return {self.get_stack_name(): not remaining}

    async def gather_metrics(self, config: RunConfig) -> None:
        groups = list(self.previous_groups)
        if self.new_group is not None:
            groups.append(self.new_group)
        await self.collector.gather(self.stack.stack, groups)

    async def run_api_test(self, config: RunConfig) -> None:
        if self.api_test_template is None:
            return
        await APITester(self.api_test_template).run()
