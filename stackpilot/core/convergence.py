"""Convergence polling across many deployers.

A poller repeatedly probes every deployer that has not yet reached the target
condition until all of them have. Each round fans out one probe task per
remaining deployer; the probes only put their single-entry result on a shared
queue, and the round collector is the only code that touches the done-set.
Identifiers in the done-set are never probed again.

Two instantiations exist: health convergence (deadline, fails on the error
sentinel) and termination convergence (no deadline).
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence

import structlog

from ..constants import ERROR_SENTINEL
from ..deployer.base import DeployManager
from ..models.config import RunConfig
from .exceptions import ConvergenceTimeoutError, HealthCheckError

Probe = Callable[[DeployManager, RunConfig], Awaitable[dict[str, bool]]]
Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


async def _health_probe(deployer: DeployManager, config: RunConfig) -> dict[str, bool]:
    return await deployer.health_checking(config)


async def _terminate_probe(deployer: DeployManager, config: RunConfig) -> dict[str, bool]:
    return await deployer.terminate_checking(config)


class ConvergencePoller:
    """Drive a set of deployers to a boolean condition."""

    def __init__(
        self,
        name: str,
        probe: Probe,
        interval: float,
        timeout: float | None = None,
        fail_on_error: bool = False,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        self.name = name
        self.probe = probe
        self.interval = interval
        self.timeout = timeout
        self.fail_on_error = fail_on_error
        self.clock = clock
        self.sleep = sleep
        self.rounds = 0
        self.logger = structlog.get_logger().bind(component=f"{name}_poller")

    async def run(self, deployers: Sequence[DeployManager], config: RunConfig) -> set[str]:
        """Poll until every deployer reports the condition.

        Returns:
            The done-set (every stack name)

        Raises:
            HealthCheckError: A probe reported the error sentinel (fail_on_error only)
            ConvergenceTimeoutError: Deadline passed with stacks still pending
        """
        start = self.clock()
        names = {d.get_stack_name() for d in deployers}
        done: set[str] = set()
        results: asyncio.Queue[dict[str, bool]] = asyncio.Queue()

        self.logger.debug("Start polling", stacks=sorted(names), timeout=self.timeout)

        while True:
            pending = [d for d in deployers if d.get_stack_name() not in done]
            tasks = [
                asyncio.create_task(self._probe_into(d, config, results)) for d in pending
            ]
            self.rounds += 1

            try:
                await self._collect(len(tasks), results, done)
            except HealthCheckError:
                # Cancel probes of this round that have not reported yet
                for task in tasks:
                    task.cancel()
                raise

            if names <= done:
                self.logger.info("All stacks converged", condition=self.name, rounds=self.rounds)
                return done

            elapsed = self.clock() - start
            if self.timeout is not None and elapsed > self.timeout:
                raise ConvergenceTimeoutError(
                    f"timeout has been exceeded : {self.timeout / 60:.0f} minutes"
                )

            self.logger.info(
                "Stacks not converged yet, waiting",
                condition=self.name,
                pending=sorted(names - done),
                elapsed_seconds=round(elapsed),
            )
            await self.sleep(self.interval)

    async def _collect(
        self, count: int, results: asyncio.Queue[dict[str, bool]], done: set[str]
    ) -> None:
        """Read exactly ``count`` results and merge them into ``done``."""
        while count > 0:
            result = await results.get()
            count -= 1

            if self.fail_on_error and result.get(ERROR_SENTINEL):
                raise HealthCheckError(f"error happened while {self.name} checking")

            for stack_name, reached in result.items():
                if stack_name == ERROR_SENTINEL:
                    continue
                if reached:
                    self.logger.debug("Stack reached condition", stack=stack_name)
                    done.add(stack_name)

    async def _probe_into(
        self,
        deployer: DeployManager,
        config: RunConfig,
        results: asyncio.Queue[dict[str, bool]],
    ) -> None:
        """Run one probe; always put exactly one result so the collector can count down."""
        try:
            result = await self.probe(deployer, config)
        except Exception as e:
            self.logger.error(
                "Probe failed", stack=deployer.get_stack_name(), error=str(e)
            )
            if self.fail_on_error:
                result = {ERROR_SENTINEL: True}
            else:
                result = {deployer.get_stack_name(): False}
        await results.put(result)


def health_poller(
    config: RunConfig, clock: Clock = time.monotonic, sleep: Sleep = asyncio.sleep
) -> ConvergencePoller:
    """Health convergence: bounded by ``config.timeout``, fatal on the error sentinel."""
    return ConvergencePoller(
        "health",
        _health_probe,
        interval=config.polling_interval.total_seconds(),
        timeout=config.timeout.total_seconds(),
        fail_on_error=True,
        clock=clock,
        sleep=sleep,
    )


def termination_poller(
    config: RunConfig, clock: Clock = time.monotonic, sleep: Sleep = asyncio.sleep
) -> ConvergencePoller:
    """Termination convergence: no deadline, previous versions are never abandoned."""
    return ConvergencePoller(
        "termination",
        _terminate_probe,
        interval=config.polling_interval.total_seconds(),
        clock=clock,
        sleep=sleep,
    )
