"""Tests for the convergence pollers."""

import asyncio
from datetime import timedelta

import pytest

from stackpilot.constants import ERROR_SENTINEL
from stackpilot.core.convergence import ConvergencePoller, health_poller, termination_poller
from stackpilot.core.exceptions import ConvergenceTimeoutError, HealthCheckError
from stackpilot.models.config import RunConfig
from tests.fakes import BlockingDeployer, FakeClock, FakeDeployer


@pytest.fixture
def config():
    return RunConfig(timeout=timedelta(minutes=10), polling_interval=timedelta(seconds=30))


@pytest.fixture
def clock():
    return FakeClock()


class TestHealthConvergence:
    @pytest.mark.asyncio
    async def test_converges_without_reprobing_healthy_stacks(self, config, clock):
        a = FakeDeployer("A", health=[True])
        b = FakeDeployer("B", health=[False, True])
        poller = health_poller(config, clock=clock, sleep=clock.sleep)

        done = await poller.run([a, b], config)

        assert done == {"A", "B"}
        assert poller.rounds == 2
        assert a.health_calls == 1
        assert b.health_calls == 2
        assert clock.sleeps == [30.0]

    @pytest.mark.asyncio
    async def test_done_set_is_union_of_rounds(self, config, clock):
        deployers = [
            FakeDeployer("A", health=[False, True]),
            FakeDeployer("B", health=[False, False, True]),
            FakeDeployer("C", health=[True]),
        ]
        poller = health_poller(config, clock=clock, sleep=clock.sleep)

        await poller.run(deployers, config)

        assert poller.rounds == 3
        assert [d.health_calls for d in deployers] == [2, 3, 1]

    @pytest.mark.asyncio
    async def test_error_sentinel_aborts_immediately(self, config, clock):
        a = FakeDeployer("A", health=[True])
        b = FakeDeployer("B", health=[{ERROR_SENTINEL: True}])
        poller = health_poller(config, clock=clock, sleep=clock.sleep)

        with pytest.raises(HealthCheckError):
            await poller.run([a, b], config)

        assert poller.rounds == 1
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_error_sentinel_cancels_unreported_probes(self, config, clock):
        """Probes still in flight when the sentinel arrives are cancelled, not leaked."""
        blocked = BlockingDeployer("slow")
        failing = FakeDeployer("bad", health=[{ERROR_SENTINEL: True}])
        poller = health_poller(config, clock=clock, sleep=clock.sleep)

        with pytest.raises(HealthCheckError):
            await poller.run([blocked, failing], config)

        for _ in range(3):
            await asyncio.sleep(0)
        assert blocked.started.is_set()
        assert blocked.cancelled is True

    @pytest.mark.asyncio
    async def test_probe_exception_becomes_error_sentinel(self, config, clock):
        class Exploding(FakeDeployer):
            async def health_checking(self, config):
                raise RuntimeError("boom")

        poller = health_poller(config, clock=clock, sleep=clock.sleep)

        with pytest.raises(HealthCheckError):
            await poller.run([Exploding("A")], config)

    @pytest.mark.asyncio
    async def test_timeout_when_not_converged(self, config):
        clock = FakeClock(advance_per_sleep=240)
        a = FakeDeployer("A", health=[False])
        poller = health_poller(config, clock=clock, sleep=clock.sleep)

        with pytest.raises(ConvergenceTimeoutError, match="10 minutes"):
            await poller.run([a], config)

        # 0 -> 240 -> 480 -> 720 (> 600) on the fourth round boundary
        assert poller.rounds == 4
        assert a.health_calls == 4

    @pytest.mark.asyncio
    async def test_no_timeout_when_converged_on_late_round(self, config):
        clock = FakeClock(advance_per_sleep=10_000)
        a = FakeDeployer("A", health=[True])
        poller = health_poller(config, clock=clock, sleep=clock.sleep)

        assert await poller.run([a], config) == {"A"}

    @pytest.mark.asyncio
    async def test_elapsed_equal_to_timeout_keeps_polling(self, config):
        clock = FakeClock(advance_per_sleep=600)
        a = FakeDeployer("A", health=[False, False, True])
        poller = health_poller(config, clock=clock, sleep=clock.sleep)

        # Elapsed is exactly 600 at the second boundary
        assert await poller.run([a], config) == {"A"}
        assert poller.rounds == 3

    @pytest.mark.asyncio
    async def test_start_timestamp_captured_once(self, config):
        clock = FakeClock(start=1_000.0, advance_per_sleep=300)
        a = FakeDeployer("A", health=[False, False, True])
        poller = health_poller(config, clock=clock, sleep=clock.sleep)

        # Elapsed is 300 then 600 at the incomplete round boundaries
        assert await poller.run([a], config) == {"A"}


class TestTerminationConvergence:
    @pytest.mark.asyncio
    async def test_no_deadline_even_with_huge_elapsed_time(self, config):
        clock = FakeClock(advance_per_sleep=86_400)
        a = FakeDeployer("A", terminate=[False] * 5 + [True])
        b = FakeDeployer("B", terminate=[True])
        poller = termination_poller(config, clock=clock, sleep=clock.sleep)

        done = await poller.run([a, b], config)

        assert done == {"A", "B"}
        assert poller.rounds == 6
        assert a.terminate_calls == 6
        assert b.terminate_calls == 1

    @pytest.mark.asyncio
    async def test_error_key_is_not_fatal(self, config, clock):
        a = FakeDeployer("A", terminate=[{ERROR_SENTINEL: True}, True])
        poller = termination_poller(config, clock=clock, sleep=clock.sleep)

        assert await poller.run([a], config) == {"A"}
        assert a.terminate_calls == 2

    @pytest.mark.asyncio
    async def test_probe_exception_is_retried(self, config, clock):
        class Flaky(FakeDeployer):
            async def terminate_checking(self, config):
                self.terminate_calls += 1
                if self.terminate_calls == 1:
                    raise RuntimeError("throttled")
                return {self.name: True}

        flaky = Flaky("A")
        poller = termination_poller(config, clock=clock, sleep=clock.sleep)

        assert await poller.run([flaky], config) == {"A"}
        assert flaky.terminate_calls == 2

    @pytest.mark.asyncio
    async def test_empty_deployer_list_converges_immediately(self, config, clock):
        poller = termination_poller(config, clock=clock, sleep=clock.sleep)

        assert await poller.run([], config) == set()
        assert clock.sleeps == []


@pytest.mark.asyncio
async def test_probes_within_a_round_run_concurrently(config):
    """Each round launches every probe before waiting for any of them."""
    started: list[str] = []
    release = asyncio.Event()

    async def probe(deployer, cfg):
        started.append(deployer.get_stack_name())
        if len(started) == 3:
            release.set()
        await release.wait()
        return {deployer.get_stack_name(): True}

    poller = ConvergencePoller("custom", probe, interval=1)
    deployers = [FakeDeployer(name) for name in ("A", "B", "C")]

    done = await asyncio.wait_for(poller.run(deployers, config), timeout=5)

    assert done == {"A", "B", "C"}
    assert sorted(started) == ["A", "B", "C"]
