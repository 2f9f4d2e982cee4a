"""Container runtime capability interface."""

# Standard library imports
import asyncio
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Sequence

# Local application imports
from ...models import ContainerHandle, ContainerSpec, ContainerStatus, ExecResult

ProgressCallback = Callable[[str], None]


class LogStream:
    """Live ``logs -f`` process.

    The caller owns its lifetime: read from stdout/stderr, then kill() when
    the operator stops following.
    """

    def __init__(self, process: asyncio.subprocess.Process, container_id: str):
        self.process = process
        self.container_id = container_id

    @property
    def stdout(self) -> Optional[asyncio.StreamReader]:
        return self.process.stdout

    @property
    def stderr(self) -> Optional[asyncio.StreamReader]:
        return self.process.stderr

    @property
    def returncode(self) -> Optional[int]:
        return self.process.returncode

    def kill(self) -> None:
        """Terminate the streaming process if it is still alive."""
        if self.process.returncode is None:
            try:
                self.process.kill()
            except ProcessLookupError:
                pass

    async def wait(self) -> int:
        return await self.process.wait()


class ContainerRuntime(ABC):
    """Operations a container runtime must provide.

    Each operation maps onto a single runtime invocation. Failures raise
    ContainerRuntimeError, except for the status paths (is_available,
    get_status, is_running, inspect) which degrade to False/unknown/None.
    """

    @abstractmethod
    async def is_available(self) -> bool:
        """Check whether the runtime daemon is reachable."""
        pass

    @abstractmethod
    async def image_exists(self, image: str, tag: str) -> bool:
        """Check whether image:tag is present locally."""
        pass

    @abstractmethod
    async def pull_image(self, image: str, tag: str) -> None:
        """Pull image:tag from its registry."""
        pass

    @abstractmethod
    async def run(self, spec: ContainerSpec) -> str:
        """Create and start a container; returns its id."""
        pass

    @abstractmethod
    async def start(self, container_id: str) -> None:
        """Start an existing, stopped container."""
        pass

    @abstractmethod
    async def stop(self, container_id: str, timeout_seconds: int = 10) -> None:
        """Stop a running container."""
        pass

    @abstractmethod
    async def remove(self, container_id: str, force: bool = False) -> None:
        """Remove a container."""
        pass

    @abstractmethod
    async def inspect(self, container_id: str) -> Optional[ContainerHandle]:
        """Return a handle for the container, or None if it cannot be inspected."""
        pass

    @abstractmethod
    async def get_status(self, container_id: str) -> ContainerStatus:
        """Return the container status; unknown on any failure."""
        pass

    async def is_running(self, container_id: str) -> bool:
        """Check if a container is running."""
        return await self.get_status(container_id) == ContainerStatus.RUNNING

    @abstractmethod
    async def find_by_name(self, name: str) -> Optional[str]:
        """Find a container id by exact name."""
        pass

    @abstractmethod
    async def logs(self, container_id: str, tail: Optional[int] = None) -> str:
        """Return the container's combined log output."""
        pass

    @abstractmethod
    async def stream_logs(
        self, container_id: str, tail: Optional[int] = None
    ) -> LogStream:
        """Follow the container's logs."""
        pass

    @abstractmethod
    async def exec_in_container(
        self, container_id: str, command: Sequence[str]
    ) -> ExecResult:
        """Execute a command inside a running container."""
        pass

    @abstractmethod
    async def create_network(self, name: str) -> None:
        pass

    @abstractmethod
    async def remove_network(self, name: str) -> None:
        pass

    @abstractmethod
    async def network_exists(self, name: str) -> bool:
        pass

    @abstractmethod
    async def create_volume(self, name: str) -> None:
        pass

    @abstractmethod
    async def remove_volume(self, name: str) -> None:
        pass

    @abstractmethod
    async def volume_exists(self, name: str) -> bool:
        pass

    @abstractmethod
    async def build_image(
        self,
        name: str,
        tag: str,
        dockerfile_content: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """Build name:tag from the given Dockerfile content."""
        pass


__all__: List[str] = ["ContainerRuntime", "LogStream", "ProgressCallback"]
