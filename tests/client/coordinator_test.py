import asyncio

import pytest

from credgate.client.coordinator import RefreshCoordinator, RefreshState
from credgate.client.exceptions import RenewalFailure


class ControlledRenewal:
    """Renewal call that only completes when the test says so."""

    def __init__(self):
        self.calls = 0
        self.release = asyncio.Event()
        self.error: Exception | None = None

    async def __call__(self) -> str:
        self.calls += 1
        await self.release.wait()

        if self.error is not None:
            raise self.error

        return f"access-{self.calls}"


async def settle():
    """Let every ready task run until it blocks again."""
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.fixture
def renewal() -> ControlledRenewal:
    return ControlledRenewal()


@pytest.mark.anyio
class TestSingleFlight:
    @pytest.mark.parametrize("callers", [2, 10, 100])
    async def test_one_renewal_for_many_callers(self, renewal: ControlledRenewal, callers: int):
        coordinator = RefreshCoordinator(renewal)

        tasks = [asyncio.create_task(coordinator.ensure_fresh_credential()) for _ in range(callers)]
        await settle()

        assert coordinator.state is RefreshState.IN_FLIGHT
        assert coordinator.pending == callers

        renewal.release.set()
        results = await asyncio.gather(*tasks)

        assert renewal.calls == 1
        assert coordinator.renewal_calls == 1
        assert results == ["access-1"] * callers
        assert coordinator.credential == "access-1"
        assert coordinator.state is RefreshState.IDLE
        assert coordinator.pending == 0

    async def test_next_cycle_starts_new_renewal(self, renewal: ControlledRenewal):
        coordinator = RefreshCoordinator(renewal)
        renewal.release.set()

        assert await coordinator.ensure_fresh_credential() == "access-1"
        assert await coordinator.ensure_fresh_credential() == "access-2"
        assert renewal.calls == 2

    async def test_fifo_release(self, renewal: ControlledRenewal):
        coordinator = RefreshCoordinator(renewal)
        order: list[int] = []

        async def caller(index: int):
            await coordinator.ensure_fresh_credential()
            order.append(index)

        tasks = []
        for index in range(20):
            tasks.append(asyncio.create_task(caller(index)))
            # Arrival order is the order the callers reach the queue
            await settle()

        renewal.release.set()
        await asyncio.gather(*tasks)

        assert order == list(range(20))

    async def test_caller_arriving_after_completion_starts_new_cycle(
        self, renewal: ControlledRenewal
    ):
        coordinator = RefreshCoordinator(renewal)

        first = asyncio.create_task(coordinator.ensure_fresh_credential())
        await settle()
        renewal.release.set()
        assert await first == "access-1"

        assert await coordinator.ensure_fresh_credential() == "access-2"


@pytest.mark.anyio
class TestFailure:
    async def test_failure_releases_everyone(self, renewal: ControlledRenewal):
        failures = []
        coordinator = RefreshCoordinator(renewal, on_failure=lambda: failures.append(True))
        coordinator.credential = "stale"

        tasks = [asyncio.create_task(coordinator.ensure_fresh_credential()) for _ in range(5)]
        await settle()

        renewal.error = ConnectionError("network down")
        renewal.release.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert all(isinstance(result, RenewalFailure) for result in results)
        assert isinstance(results[0].exception, ConnectionError)
        assert renewal.calls == 1
        assert failures == [True]
        assert coordinator.credential is None
        assert coordinator.state is RefreshState.IDLE

    async def test_recovers_after_failure(self, renewal: ControlledRenewal):
        coordinator = RefreshCoordinator(renewal)
        renewal.error = ValueError("rejected")
        renewal.release.set()

        with pytest.raises(RenewalFailure):
            await coordinator.ensure_fresh_credential()

        renewal.error = None
        assert await coordinator.ensure_fresh_credential() == "access-2"


@pytest.mark.anyio
class TestCancellation:
    async def test_cancelled_waiter_does_not_cancel_renewal(self, renewal: ControlledRenewal):
        coordinator = RefreshCoordinator(renewal)

        first = asyncio.create_task(coordinator.ensure_fresh_credential())
        second = asyncio.create_task(coordinator.ensure_fresh_credential())
        await settle()

        first.cancel()
        await settle()
        renewal.release.set()

        assert await second == "access-1"
        assert first.cancelled()
        assert renewal.calls == 1

    async def test_close_discards_waiters(self, renewal: ControlledRenewal):
        coordinator = RefreshCoordinator(renewal)

        tasks = [asyncio.create_task(coordinator.ensure_fresh_credential()) for _ in range(3)]
        await settle()

        await coordinator.close()
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert all(isinstance(result, RenewalFailure) for result in results)
        assert coordinator.state is RefreshState.IDLE
        assert coordinator.pending == 0

    async def test_close_when_idle(self, renewal: ControlledRenewal):
        coordinator = RefreshCoordinator(renewal)

        await coordinator.close()

        assert coordinator.state is RefreshState.IDLE


@pytest.mark.anyio
class TestHungRenewal:
    async def test_hung_renewal_starves_waiters(self, renewal: ControlledRenewal):
        coordinator = RefreshCoordinator(renewal)

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(coordinator.ensure_fresh_credential(), timeout=0.05)

        # Later callers queue behind the same stuck renewal
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(coordinator.ensure_fresh_credential(), timeout=0.05)

        assert coordinator.state is RefreshState.IN_FLIGHT
        assert renewal.calls == 1

        await coordinator.close()
        assert coordinator.state is RefreshState.IDLE
