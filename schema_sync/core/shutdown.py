from typing import Awaitable, Callable, List, Optional, Union
import asyncio
import inspect
import logging
import signal

from .context import RunContext

logger = logging.getLogger(__name__)

ShutdownCallback = Callable[[], Union[None, Awaitable[None]]]


class ShutdownHandler:
    """Cleanup callbacks, each run exactly once, newest first"""

    def __init__(self):
        self._callbacks: List[ShutdownCallback] = []
        self._done = False

    def register(self, callback: ShutdownCallback) -> None:
        self._callbacks.append(callback)
        self._done = False

    @property
    def done(self) -> bool:
        """True when no registered callback is still pending"""
        return self._done

    async def shutdown(self) -> None:
        """Run the callbacks registered since the last shutdown, in reverse order"""
        callbacks, self._callbacks = self._callbacks, []
        self._done = True

        for callback in reversed(callbacks):
            try:
                result = callback()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Shutdown callback failed: {e}")


def install_signal_handlers(
    ctx: RunContext,
    loop: Optional[asyncio.AbstractEventLoop] = None,
) -> None:
    """Cancel `ctx` on SIGINT/SIGTERM. Process exit is left to the caller."""
    loop = loop or asyncio.get_running_loop()

    def _on_signal(sig: signal.Signals) -> None:
        logger.warning(f"Received {sig.name}, cancelling synchronization")
        ctx.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _on_signal, sig)
        except (NotImplementedError, RuntimeError) as e:
            # Not available on this platform or outside the main thread
            logger.debug(f"Could not install handler for {sig.name}: {e}")


def remove_signal_handlers(loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
    loop = loop or asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.remove_signal_handler(sig)
        except (NotImplementedError, RuntimeError):
            pass
