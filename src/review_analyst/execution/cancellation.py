"""Cooperative cancellation for structured requests.

A ``CancellationToken`` is handed to every suspension point of a call (slot
wait, backoff sleep, upstream call, repair call). Each suspension point checks
the token before suspending and registers a callback so it can tear down its
own resources when the token fires.
"""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

from review_analyst.utils.logger import get_logger

from .errors import RequestCancelledError, UpstreamTimeoutError

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_CANCEL_REASON = "Request was cancelled."


class CancellationToken:
    """One-shot cancellation signal shared by every suspension point of a call."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._callbacks: List[Callable[[], Any]] = []
        self._reason: Optional[str] = None
        self._parent: Optional["CancellationToken"] = None
        self._parent_hook: Optional[Callable[[], Any]] = None

    @classmethod
    def linked(cls, parent: Optional["CancellationToken"]) -> "CancellationToken":
        """Create a child token that fires whenever ``parent`` fires.

        The child can also be cancelled on its own (e.g. by a deadline)
        without affecting the parent. Call ``detach()`` once the child is no
        longer needed.
        """
        child = cls()
        if parent is not None:
            child._parent = parent
            child._parent_hook = parent.add_callback(
                lambda: child.cancel(parent.reason)
            )
        return child

    def detach(self) -> None:
        """Stop following the parent token."""
        if self._parent is not None and self._parent_hook is not None:
            self._parent.remove_callback(self._parent_hook)
        self._parent = None
        self._parent_hook = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason or DEFAULT_CANCEL_REASON

    def cancel(self, reason: Optional[str] = None) -> None:
        """Fire the token. Subsequent calls are no-ops."""
        if self._event.is_set():
            return
        self._reason = reason or DEFAULT_CANCEL_REASON
        self._event.set()

        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.warning(f"Cancellation callback failed: {e}")

    def add_callback(self, callback: Callable[[], Any]) -> Callable[[], Any]:
        """Register a callback to run when the token fires.

        Runs immediately if the token has already fired. Returns the callback
        so it can be passed to ``remove_callback``.
        """
        if self.cancelled:
            callback()
        else:
            self._callbacks.append(callback)
        return callback

    def remove_callback(self, callback: Callable[[], Any]) -> None:
        try:
            self._callbacks.remove(callback)
        except ValueError:
            pass

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise RequestCancelledError(self.reason)

    async def wait(self) -> None:
        await self._event.wait()


def _discard(awaitable: Awaitable[Any]) -> None:
    # Avoid "coroutine was never awaited" warnings for calls we never start
    if asyncio.iscoroutine(awaitable):
        awaitable.close()


async def run_cancellable(
    awaitable: Awaitable[T],
    token: Optional[CancellationToken] = None,
    timeout_ms: Optional[int] = None,
) -> T:
    """
    Await ``awaitable`` while honoring a cancellation token and a timeout.

    Args:
        awaitable: Coroutine to run as its own task
        token: Cancels the task when fired
        timeout_ms: Optional timeout for this suspension only

    Returns:
        The awaitable's result

    Raises:
        RequestCancelledError: The token fired before completion
        UpstreamTimeoutError: ``timeout_ms`` elapsed before completion
    """
    if token is not None and token.cancelled:
        _discard(awaitable)
        raise RequestCancelledError(token.reason)

    task = asyncio.ensure_future(awaitable)
    hook = token.add_callback(task.cancel) if token is not None else None
    timeout = timeout_ms / 1000 if timeout_ms else None

    try:
        return await asyncio.wait_for(task, timeout)
    except asyncio.TimeoutError:
        if token is not None and token.cancelled:
            raise RequestCancelledError(token.reason) from None
        raise UpstreamTimeoutError(timeout_ms or 0) from None
    except asyncio.CancelledError:
        if token is not None and token.cancelled:
            raise RequestCancelledError(token.reason) from None
        raise
    finally:
        if hook is not None:
            token.remove_callback(hook)


async def sleep_with_cancellation(
    delay_ms: int, token: Optional[CancellationToken] = None
) -> None:
    """Sleep for ``delay_ms`` unless the token fires first."""
    if delay_ms <= 0:
        if token is not None:
            token.raise_if_cancelled()
        return
    await run_cancellable(asyncio.sleep(delay_ms / 1000), token)
