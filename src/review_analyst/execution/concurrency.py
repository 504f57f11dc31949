"""Admission gate bounding simultaneous upstream calls.

The limiter runs on a single asyncio event loop. The active-slot counter and
the waiter queue are only touched from loop callbacks and coroutines on that
loop, so no lock is needed; using the limiter from several threads would
require one around ``acquire``/``release``.
"""

import asyncio
from collections import deque
from enum import Enum
from typing import Deque, Optional

from review_analyst.utils.logger import get_logger

from .cancellation import CancellationToken
from .errors import ConcurrencyBusyError, RequestCancelledError

logger = get_logger(__name__)


class WaiterState(Enum):
    """Lifecycle of a queued acquisition."""

    PENDING = "pending"
    GRANTED = "granted"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class _Waiter:
    """A suspended ``acquire()`` call queued behind a full gate."""

    __slots__ = ("future", "state", "timer")

    def __init__(self, future: "asyncio.Future[None]"):
        self.future = future
        self.state = WaiterState.PENDING
        self.timer: Optional[asyncio.TimerHandle] = None

    @property
    def is_pending(self) -> bool:
        return self.state is WaiterState.PENDING and not self.future.done()


class ConcurrencyLimiter:
    """FIFO concurrency gate with a per-wait timeout and cancellation."""

    def __init__(self, max_concurrent: int, wait_timeout_ms: int):
        """
        Initialize the limiter.

        Args:
            max_concurrent: Number of slots that may be held at once (>= 1)
            wait_timeout_ms: How long a queued caller waits before failing busy
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if wait_timeout_ms < 1:
            raise ValueError("wait_timeout_ms must be at least 1")
        self._limit = max_concurrent
        self._wait_timeout_ms = wait_timeout_ms
        self._active = 0
        self._waiters: Deque[_Waiter] = deque()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def wait_timeout_ms(self) -> int:
        return self._wait_timeout_ms

    @property
    def active(self) -> int:
        """Number of granted, unreleased slots."""
        return self._active

    @property
    def pending_count(self) -> int:
        """Number of callers still waiting for a slot."""
        return sum(1 for waiter in self._waiters if waiter.is_pending)

    async def acquire(self, token: Optional[CancellationToken] = None) -> None:
        """
        Take a slot, waiting in FIFO order if the gate is full.

        Raises:
            RequestCancelledError: The token fired before a slot was granted
            ConcurrencyBusyError: No slot was granted within the wait timeout
        """
        if token is not None and token.cancelled:
            raise RequestCancelledError(token.reason)

        if self._active < self._limit:
            self._active += 1
            return

        loop = asyncio.get_running_loop()
        waiter = _Waiter(loop.create_future())
        waiter.timer = loop.call_later(
            self._wait_timeout_ms / 1000, self._expire, waiter
        )
        self._waiters.append(waiter)

        hook = None
        if token is not None:
            hook = token.add_callback(lambda: self._cancel(waiter, token.reason))

        logger.debug(
            f"Concurrency gate full ({self._active}/{self._limit}); "
            f"queued behind {len(self._waiters) - 1} waiter(s)"
        )

        try:
            await waiter.future
        except asyncio.CancelledError:
            # The awaiting task itself was cancelled; never leak a granted slot
            if waiter.state is WaiterState.GRANTED:
                self.release()
            elif waiter.state is WaiterState.PENDING:
                waiter.state = WaiterState.CANCELLED
                self._discard(waiter)
            raise
        finally:
            if waiter.timer is not None:
                waiter.timer.cancel()
            if hook is not None:
                token.remove_callback(hook)

    def release(self) -> None:
        """Return a slot and hand it to the oldest pending waiter, if any."""
        if self._active > 0:
            self._active -= 1
        else:
            logger.warning("release() called with no active slots")

        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.is_pending:
                continue
            waiter.state = WaiterState.GRANTED
            self._active += 1
            waiter.future.set_result(None)
            break

    def _settle(self, waiter: _Waiter, state: WaiterState) -> bool:
        if not waiter.is_pending:
            return False
        waiter.state = state
        self._discard(waiter)
        if waiter.timer is not None:
            waiter.timer.cancel()
        return True

    def _discard(self, waiter: _Waiter) -> None:
        try:
            self._waiters.remove(waiter)
        except ValueError:
            pass

    def _expire(self, waiter: _Waiter) -> None:
        if self._settle(waiter, WaiterState.TIMED_OUT):
            logger.warning(
                f"Timed out waiting {self._wait_timeout_ms}ms for a concurrency slot "
                f"(limit {self._limit})"
            )
            waiter.future.set_exception(
                ConcurrencyBusyError(self._limit, self._wait_timeout_ms)
            )

    def _cancel(self, waiter: _Waiter, reason: str) -> None:
        if self._settle(waiter, WaiterState.CANCELLED):
            logger.info("Cancelled while waiting for a concurrency slot")
            waiter.future.set_exception(RequestCancelledError(reason))
