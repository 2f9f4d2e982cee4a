"""Process-wide registry of ephemeral containers.

Containers started for a single task invocation are registered here by name
and removed when the task finishes or when the process exits, whether
normally or on SIGINT/SIGTERM.
"""

import asyncio
import atexit
import signal
import sys
from typing import Callable, Dict, List, Optional

import structlog

from ...models import EphemeralRecord
from ...utils.id_generator import generate_container_name
from .docker_cli import DockerCliRuntime
from .interfaces import ContainerRuntime

logger = structlog.get_logger(__name__)

# Conventional shell exit codes: 128 + signal number
SIGNAL_EXIT_CODES = {
    signal.SIGINT: 130,
    signal.SIGTERM: 143,
}


class EphemeralRegistry:
    """Tracks ephemeral container names and guarantees their cleanup."""

    def __init__(
        self,
        runtime: Optional[ContainerRuntime] = None,
        exit_func: Callable[[int], None] = sys.exit,
        stop_timeout: int = 10,
    ):
        self.runtime = runtime or DockerCliRuntime()
        self.exit_func = exit_func
        self.stop_timeout = stop_timeout
        self._records: Dict[str, EphemeralRecord] = {}
        self._initialized = False
        self._previous_handlers: Dict[int, object] = {}
        self._signal_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def generate_name(self, prefix: str, length: int = 8) -> str:
        return generate_container_name(prefix, length)

    def register(self, name: str) -> EphemeralRecord:
        """Register ``name`` for cleanup; re-registering keeps the first record."""
        record = self._records.get(name)
        if record is None:
            record = EphemeralRecord(generated_name=name)
            self._records[name] = record
            logger.debug("Registered ephemeral container", name=name)
        return record

    def unregister(self, name: str) -> None:
        self._records.pop(name, None)

    def is_registered(self, name: str) -> bool:
        return name in self._records

    def registered_names(self) -> List[str]:
        return list(self._records)

    async def resolve_reusable(self, name: Optional[str]) -> Optional[str]:
        """Return ``name`` if it is registered and its container still runs."""
        if not name or name not in self._records:
            return None
        container_id = await self.runtime.find_by_name(name)
        if container_id and await self.runtime.is_running(container_id):
            return name
        return None

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    async def cleanup_one(self, name: str) -> None:
        """Stop and remove the container called ``name``. Never raises."""
        try:
            container_id = await self.runtime.find_by_name(name)
            if container_id:
                try:
                    await self.runtime.stop(container_id, self.stop_timeout)
                except Exception as e:
                    logger.warning(
                        "Failed to stop ephemeral container", name=name, error=str(e)
                    )
                try:
                    await self.runtime.remove(container_id, force=True)
                except Exception as e:
                    logger.warning(
                        "Failed to remove ephemeral container", name=name, error=str(e)
                    )
                else:
                    logger.info("Removed ephemeral container", name=name)
        except Exception as e:
            logger.warning("Ephemeral cleanup failed", name=name, error=str(e))
        finally:
            self.unregister(name)

    async def cleanup_all(self) -> None:
        names = self.registered_names()
        if not names:
            return
        logger.info("Cleaning up ephemeral containers", count=len(names))
        await asyncio.gather(*(self.cleanup_one(name) for name in names))

    # ------------------------------------------------------------------
    # Process exit hooks
    # ------------------------------------------------------------------

    def init(self) -> None:
        """Install exit and signal hooks. Safe to call more than once.

        Handlers are installed with ``signal.signal`` so they outlive any
        particular event loop. A signal delivered while a loop is running
        schedules the cleanup on that loop; otherwise cleanup runs to
        completion before the process exits.
        """
        if self._initialized:
            return

        atexit.register(self._atexit_cleanup)
        for signum in SIGNAL_EXIT_CODES:
            self._previous_handlers[signum] = signal.signal(signum, self._on_signal)

        self._initialized = True
        logger.debug("Ephemeral registry initialized")

    async def shutdown(self) -> None:
        """Clean up every registered container and remove the hooks."""
        await self.cleanup_all()
        if not self._initialized:
            return

        for signum, previous in self._previous_handlers.items():
            signal.signal(signum, previous)
        self._previous_handlers.clear()

        atexit.unregister(self._atexit_cleanup)
        self._initialized = False

    def _on_signal(self, signum, frame) -> None:
        logger.info("Received signal, cleaning up", signal=signal.Signals(signum).name)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            # asyncio.run cannot nest; hand the cleanup to the running loop
            loop.call_soon_threadsafe(self._schedule_cleanup, signum)
            return

        try:
            self._run_cleanup_blocking()
        finally:
            self.exit_func(SIGNAL_EXIT_CODES[signum])

    def _schedule_cleanup(self, signum: int) -> None:
        if self._signal_task is not None and not self._signal_task.done():
            return
        self._signal_task = asyncio.ensure_future(self._cleanup_and_exit(signum))

    async def _cleanup_and_exit(self, signum: int) -> None:
        try:
            await self.cleanup_all()
        finally:
            self.exit_func(SIGNAL_EXIT_CODES[signum])

    def _atexit_cleanup(self) -> None:
        if self._records:
            self._run_cleanup_blocking()

    def _run_cleanup_blocking(self) -> None:
        try:
            asyncio.run(self.cleanup_all())
        except Exception as e:
            logger.warning("Ephemeral cleanup at exit failed", error=str(e))
