"""
Cancellable run context.

A RunContext carries an optional deadline and a cancel signal. Every
suspension point of a synchronization run (connect, ping, SQL execution,
backoff sleep) is awaited through the context so cancellation and timeouts
are observed cooperatively instead of terminating the process.
"""

import asyncio
import inspect
import logging
import time
from typing import Any, Awaitable, Optional

logger = logging.getLogger(__name__)


class OperationCancelled(Exception):
    """Raised when the run context is cancelled"""


class DeadlineExceeded(TimeoutError):
    """Raised when the run context deadline passes"""


class RunContext:
    """Deadline plus cancel signal, shared by one synchronization run"""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout
        self._deadline: Optional[float] = (
            time.monotonic() + timeout if timeout is not None else None
        )
        self._cancel_event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def deadline_exceeded(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> Optional[float]:
        """Seconds until the deadline, None when there is no deadline"""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def cancel(self) -> None:
        if not self.cancelled:
            logger.info("Run context cancelled")
        self._cancel_event.set()

    def err(self) -> Optional[Exception]:
        """The reason the context is done, or None while it is still live"""
        if self.cancelled:
            return OperationCancelled("operation cancelled")
        if self.deadline_exceeded:
            return DeadlineExceeded("deadline exceeded")
        return None

    def check(self) -> None:
        """Raise if the context is already done"""
        error = self.err()
        if error is not None:
            raise error

    async def run(self, awaitable: Awaitable[Any]) -> Any:
        """Await `awaitable`, racing it against cancellation and the deadline"""
        error = self.err()
        if error is not None:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise error

        task = asyncio.ensure_future(awaitable)
        cancel_waiter = asyncio.ensure_future(self._cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, cancel_waiter},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            cancel_waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        try:
            await task
        except (asyncio.CancelledError, Exception):
            # The operation was abandoned; its outcome no longer matters
            pass

        if self.cancelled:
            raise OperationCancelled("operation cancelled")
        raise DeadlineExceeded("deadline exceeded")

    async def sleep(self, delay: float) -> None:
        """Cancellable sleep"""
        await self.run(asyncio.sleep(delay))
