import asyncio
import contextlib
from collections import deque
from enum import StrEnum
from typing import Awaitable, Callable

from loguru import logger

from credgate.client.exceptions import RenewalFailure

RenewCallable = Callable[[], Awaitable[str]]


class RefreshState(StrEnum):
    IDLE = "idle"
    IN_FLIGHT = "in_flight"


class RefreshCoordinator:
    """
    Single-flight renewal of the access credential for one client session.

    Every caller of ensure_fresh_credential() parks a future in a FIFO queue.
    The caller that finds the coordinator idle flips it to in-flight and
    starts the one renewal task; everybody else just waits. When the renewal
    settles, the queue is swapped out under the lock and drained once, in
    arrival order, with either the new credential or a RenewalFailure.

    The renewal runs in its own task, so a cancelled waiter never cancels it.
    There is no timeout here; the transport's own timeout bounds a renewal.

    Example:
        ```python
        coordinator = RefreshCoordinator(renew=session_refresh_call)
        token = await coordinator.ensure_fresh_credential()
        ```
    """

    def __init__(
        self,
        renew: RenewCallable,
        on_failure: Callable[[], None] | None = None,
    ):
        """
        Args:
            renew: Performs the renewal network call and returns the new
                access credential. Any exception counts as a failed renewal.
            on_failure: Called once per failed cycle after waiters are released,
                to clear cached credentials and force a fresh login.
        """
        self._renew = renew
        self._on_failure = on_failure
        self._lock = asyncio.Lock()
        self._state = RefreshState.IDLE
        self._waiters: deque[asyncio.Future[str]] = deque()
        self._task: asyncio.Task[None] | None = None

        self.credential: str | None = None
        self.renewal_calls = 0

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def pending(self) -> int:
        """Number of callers waiting on the current cycle."""
        return len(self._waiters)

    async def ensure_fresh_credential(self) -> str:
        """
        Wait for the current renewal cycle, starting one if none is running.

        Returns:
            The new access credential.

        Raises:
            RenewalFailure: The renewal failed or the coordinator was closed.
        """
        waiter: asyncio.Future[str] = asyncio.get_running_loop().create_future()

        async with self._lock:
            self._waiters.append(waiter)

            if self._state is RefreshState.IDLE:
                self._state = RefreshState.IN_FLIGHT
                self.renewal_calls += 1
                self._task = asyncio.create_task(self._run_renewal())
                logger.debug("Credential renewal started")
            else:
                logger.debug(f"Credential renewal in flight, queued caller #{len(self._waiters)}")

        return await waiter

    async def _run_renewal(self) -> None:
        try:
            credential = await self._renew()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Credential renewal failed: {e}")
            await self._settle(failure=RenewalFailure(exception=e))
        else:
            logger.info("Credential renewal succeeded")
            await self._settle(credential=credential)

    async def _settle(
        self,
        credential: str | None = None,
        failure: RenewalFailure | None = None,
    ) -> None:
        async with self._lock:
            waiters, self._waiters = self._waiters, deque()
            self.credential = credential
            self._state = RefreshState.IDLE
            self._task = None

        for waiter in waiters:
            # Cancelled callers have already left
            if waiter.done():
                continue

            if failure is None:
                waiter.set_result(credential)  # type: ignore[arg-type]
            else:
                waiter.set_exception(failure)

        if failure is not None and self._on_failure is not None:
            self._on_failure()

    async def close(self) -> None:
        """
        Cancel an in-flight renewal and release anyone still waiting with a
        RenewalFailure. The coordinator is idle and reusable afterwards.
        """
        async with self._lock:
            task, self._task = self._task, None
            waiters, self._waiters = self._waiters, deque()
            self._state = RefreshState.IDLE

        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            logger.debug("In-flight credential renewal cancelled")

        for waiter in waiters:
            if not waiter.done():
                waiter.set_exception(RenewalFailure("Session closed during credential renewal"))
