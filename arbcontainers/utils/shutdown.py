"""Graceful shutdown handling."""

import asyncio
from typing import Awaitable, Callable, List

import structlog

logger = structlog.get_logger(__name__)

ShutdownCallback = Callable[[], Awaitable[None]]


class GracefulShutdownHandler:
    """Runs registered async cleanup callbacks once, newest first."""

    def __init__(self, callback_timeout: float = 30.0):
        self.callback_timeout = callback_timeout
        self._shutdown_callbacks: List[ShutdownCallback] = []
        self._is_shutting_down = False
        self._shutdown_lock = asyncio.Lock()

    @property
    def is_shutting_down(self) -> bool:
        return self._is_shutting_down

    def add_shutdown_callback(self, callback: ShutdownCallback) -> None:
        """Add a callback to be executed during shutdown."""
        self._shutdown_callbacks.append(callback)

    async def shutdown(self) -> None:
        """Perform graceful shutdown."""
        async with self._shutdown_lock:
            if self._is_shutting_down:
                return

            self._is_shutting_down = True
            logger.info("Starting graceful shutdown")

            for callback in reversed(self._shutdown_callbacks):
                callback_name = getattr(callback, "__name__", str(callback))
                try:
                    await asyncio.wait_for(callback(), timeout=self.callback_timeout)
                except asyncio.TimeoutError:
                    logger.warning(
                        "Shutdown callback timed out",
                        callback=callback_name,
                        timeout=self.callback_timeout,
                    )
                except Exception as e:
                    logger.error(
                        "Error in shutdown callback", callback=callback_name, error=str(e)
                    )

            logger.info("Graceful shutdown completed")


def setup_graceful_shutdown(manager, registry) -> GracefulShutdownHandler:
    """Wire container teardown into a new shutdown handler.

    Ephemeral containers are cleaned up first, then every container the
    manager still tracks is stopped.
    """
    handler = GracefulShutdownHandler()
    handler.add_shutdown_callback(manager.stop_all)
    handler.add_shutdown_callback(registry.shutdown)

    logger.debug("Graceful shutdown handling configured")
    return handler
