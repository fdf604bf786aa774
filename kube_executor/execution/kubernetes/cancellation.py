"""
Cancellation plumbing for build commands.

A command runs as a background asyncio task raced against the caller's abort
event. The CancellationToken is shared with that task so both the readiness
poll and the exec stream pump (running on a worker thread) observe the abort.
"""

import asyncio
import threading
from typing import Awaitable, Callable, Set, TypeVar

from kube_executor.core.exceptions import BuildAbortedError
from kube_executor.core.telemetry import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Abandoned tasks are kept alive here until they finish unwinding
_background_tasks: Set[asyncio.Task] = set()


class CancellationToken:
    """Thread-safe, one-shot cancellation flag."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self, timeout: float) -> bool:
        """
        Wait up to `timeout` seconds for cancellation.

        Returns:
            True if the token was cancelled, False if the timeout elapsed
        """
        if self._event.is_set():
            return True
        return await asyncio.to_thread(self._event.wait, timeout)


def _reap(task: asyncio.Task) -> None:
    _background_tasks.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug(f"Aborted command finished with: {exc!r}")


async def race_with_abort(
    work: Callable[[CancellationToken], Awaitable[T]], abort: asyncio.Event
) -> T:
    """
    Run `work` in a background task and race it against `abort`.

    If the work finishes first its result (or exception) is returned as-is.
    If `abort` fires first the token is cancelled and BuildAbortedError is
    raised right away, without waiting for the work to unwind.
    """
    token = CancellationToken()
    task = asyncio.create_task(work(token))
    abort_waiter = asyncio.create_task(abort.wait())

    try:
        done, _ = await asyncio.wait(
            {task, abort_waiter}, return_when=asyncio.FIRST_COMPLETED
        )
    except asyncio.CancelledError:
        token.cancel()
        abort_waiter.cancel()
        _background_tasks.add(task)
        task.add_done_callback(_reap)
        raise

    if task in done:
        abort_waiter.cancel()
        return task.result()

    token.cancel()
    _background_tasks.add(task)
    task.add_done_callback(_reap)
    raise BuildAbortedError("build aborted")
