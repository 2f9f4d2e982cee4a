"""Error models and exception classes for container orchestration."""

from enum import Enum
from typing import List, Optional, Sequence


class ErrorPhase(str, Enum):
    """Orchestration phase in which a lifecycle error occurred."""

    UNAVAILABLE = "unavailable"
    PULL = "pull"
    CREATE = "create"
    INSPECT = "inspect"
    READY = "ready"
    STOP = "stop"
    REMOVE = "remove"


class ContainerRuntimeError(Exception):
    """A container runtime CLI invocation exited non-zero.

    Carries the assembled command, the exit code and the raw stderr so that
    callers can surface the daemon's own message.
    """

    def __init__(
        self,
        message: str,
        command: Optional[Sequence[str]] = None,
        exit_code: Optional[int] = None,
        stderr: str = "",
    ):
        self.message = message
        self.command = list(command) if command else []
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(message)

    @property
    def command_line(self) -> str:
        """The failed command as a single display string."""
        return " ".join(self.command)


class ContainerManagerError(Exception):
    """Lifecycle-level failure.

    Either wraps a ContainerRuntimeError with operation context, or signals
    an orchestration condition that has no underlying runtime error (readiness
    timeout, post-creation inspection inconsistency).
    """

    def __init__(
        self,
        message: str,
        phase: ErrorPhase,
        cause: Optional[BaseException] = None,
        details: Optional[List[str]] = None,
    ):
        self.message = message
        self.phase = phase
        self.cause = cause
        self.details = details or []
        super().__init__(message)

    def __str__(self) -> str:
        if not self.details:
            return self.message
        return self.message + "\n" + "\n".join(f"  - {d}" for d in self.details)


class ReadinessTimeoutError(ContainerManagerError, TimeoutError):
    """A readiness probe did not pass within its time budget.

    Kept distinct from other lifecycle errors so callers can surface the
    container logs before giving up; the container is left running.
    """

    def __init__(
        self,
        container_id: str,
        elapsed_ms: int,
        last_reason: Optional[str] = None,
    ):
        self.container_id = container_id
        self.elapsed_ms = elapsed_ms
        self.last_reason = last_reason
        message = f"Container {container_id} did not become ready within {elapsed_ms}ms"
        if last_reason:
            message += f" (last probe: {last_reason})"
        super().__init__(message, phase=ErrorPhase.READY)
