"""Pytest configuration and shared fixtures."""

import secrets
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from unittest.mock import MagicMock

import pytest
import pytest_asyncio

from arbcontainers.models import (
    ContainerHandle,
    ContainerRuntimeError,
    ContainerSpec,
    ContainerStatus,
    ExecResult,
)
from arbcontainers.services.container import (
    ContainerManager,
    ContainerRuntime,
    EphemeralRegistry,
    LogStream,
    ReadinessProber,
)


@dataclass
class FakeContainer:
    id: str
    name: str
    spec: ContainerSpec
    status: ContainerStatus = ContainerStatus.RUNNING
    logs: str = ""


@dataclass
class FakeRuntime(ContainerRuntime):
    """In-memory ContainerRuntime.

    Behaves like a single Docker host: names are unique, stopped auto-remove
    containers disappear, and every call is recorded in ``calls``.
    """

    available: bool = True
    images: set = field(default_factory=set)
    containers: Dict[str, FakeContainer] = field(default_factory=dict)
    networks: set = field(default_factory=set)
    volumes: set = field(default_factory=set)
    calls: List[Tuple] = field(default_factory=list)
    pull_errors: Dict[str, str] = field(default_factory=dict)
    failures: Dict[str, Exception] = field(default_factory=dict)
    exec_handler: Optional[Callable[[str, Sequence[str]], ExecResult]] = None
    build_output: List[str] = field(default_factory=lambda: ["Step 1/5 : FROM rust:slim", ""])

    def _record(self, op: str, *args):
        self.calls.append((op, *args))
        if op in self.failures:
            raise self.failures[op]

    def count(self, op: str) -> int:
        return sum(1 for call in self.calls if call[0] == op)

    def _missing(self, container_id: str) -> ContainerRuntimeError:
        return ContainerRuntimeError(
            f"Error: No such container: {container_id}",
            command=["docker", "?", container_id],
            exit_code=1,
            stderr=f"Error: No such container: {container_id}",
        )

    def add_container(
        self,
        name: str,
        status: ContainerStatus = ContainerStatus.RUNNING,
        image: str = "busybox",
        tag: str = "latest",
    ) -> str:
        """Seed a pre-existing container, as if created by another process."""
        container_id = secrets.token_hex(32)
        self.containers[container_id] = FakeContainer(
            id=container_id,
            name=name,
            spec=ContainerSpec(image=image, tag=tag, name=name),
            status=status,
        )
        return container_id

    def container_named(self, name: str) -> Optional[FakeContainer]:
        for container in self.containers.values():
            if container.name == name:
                return container
        return None

    async def is_available(self) -> bool:
        self.calls.append(("is_available",))
        return self.available

    async def image_exists(self, image: str, tag: str) -> bool:
        self._record("image_exists", image, tag)
        return f"{image}:{tag}" in self.images

    async def pull_image(self, image: str, tag: str) -> None:
        self._record("pull_image", image, tag)
        ref = f"{image}:{tag}"
        if ref in self.pull_errors:
            raise ContainerRuntimeError(
                f"Failed to pull image {ref}",
                command=["docker", "pull", ref],
                exit_code=1,
                stderr=self.pull_errors[ref],
            )
        self.images.add(ref)

    async def run(self, spec: ContainerSpec) -> str:
        self._record("run", spec)
        if spec.name and self.container_named(spec.name):
            raise ContainerRuntimeError(
                f'Conflict. The container name "/{spec.name}" is already in use',
                command=["docker", "run"],
                exit_code=125,
                stderr="Conflict",
            )
        container_id = secrets.token_hex(32)
        self.containers[container_id] = FakeContainer(
            id=container_id,
            name=spec.name or f"auto_{container_id[:6]}",
            spec=spec,
        )
        return container_id

    async def start(self, container_id: str) -> None:
        self._record("start", container_id)
        if container_id not in self.containers:
            raise self._missing(container_id)
        self.containers[container_id].status = ContainerStatus.RUNNING

    async def stop(self, container_id: str, timeout_seconds: int = 10) -> None:
        self._record("stop", container_id, timeout_seconds)
        container = self.containers.get(container_id)
        if container is None:
            raise self._missing(container_id)
        container.status = ContainerStatus.EXITED
        if container.spec.auto_remove:
            del self.containers[container_id]

    async def remove(self, container_id: str, force: bool = False) -> None:
        self._record("remove", container_id, force)
        container = self.containers.get(container_id)
        if container is None:
            raise self._missing(container_id)
        if container.status == ContainerStatus.RUNNING and not force:
            raise ContainerRuntimeError("cannot remove a running container", exit_code=1)
        del self.containers[container_id]

    async def inspect(self, container_id: str) -> Optional[ContainerHandle]:
        self._record("inspect", container_id)
        container = self.containers.get(container_id)
        if container is None:
            return None
        return ContainerHandle(
            id=container.id,
            name=container.name,
            ports=list(container.spec.ports),
            status=container.status,
            image=container.spec.image,
            tag=container.spec.tag,
        )

    async def get_status(self, container_id: str) -> ContainerStatus:
        self.calls.append(("get_status", container_id))
        container = self.containers.get(container_id)
        return container.status if container else ContainerStatus.UNKNOWN

    async def find_by_name(self, name: str) -> Optional[str]:
        self._record("find_by_name", name)
        container = self.container_named(name)
        return container.id if container else None

    async def logs(self, container_id: str, tail: Optional[int] = None) -> str:
        self._record("logs", container_id, tail)
        container = self.containers.get(container_id)
        if container is None:
            raise self._missing(container_id)
        lines = container.logs.splitlines(keepends=True)
        return "".join(lines[-tail:] if tail else lines)

    async def stream_logs(self, container_id: str, tail: Optional[int] = None) -> LogStream:
        self._record("stream_logs", container_id, tail)
        process = MagicMock()
        process.returncode = None
        return LogStream(process, container_id)

    async def exec_in_container(self, container_id: str, command: Sequence[str]) -> ExecResult:
        self._record("exec_in_container", container_id, list(command))
        if self.exec_handler:
            return self.exec_handler(container_id, command)
        return ExecResult(exit_code=0, stdout="", stderr="")

    async def create_network(self, name: str) -> None:
        self._record("create_network", name)
        self.networks.add(name)

    async def remove_network(self, name: str) -> None:
        self._record("remove_network", name)
        if name not in self.networks:
            raise ContainerRuntimeError(f"network {name} not found", exit_code=1)
        self.networks.discard(name)

    async def network_exists(self, name: str) -> bool:
        self._record("network_exists", name)
        return name in self.networks

    async def create_volume(self, name: str) -> None:
        self._record("create_volume", name)
        self.volumes.add(name)

    async def remove_volume(self, name: str) -> None:
        self._record("remove_volume", name)
        if name not in self.volumes:
            raise ContainerRuntimeError(f"no such volume: {name}", exit_code=1)
        self.volumes.discard(name)

    async def volume_exists(self, name: str) -> bool:
        self._record("volume_exists", name)
        return name in self.volumes

    async def build_image(self, name, tag, dockerfile_content, on_progress=None) -> None:
        self._record("build_image", name, tag, dockerfile_content)
        for line in self.build_output:
            if line.strip() and on_progress:
                on_progress(line.strip())
        self.images.add(f"{name}:{tag}")


@pytest.fixture
def fake_runtime():
    """Empty in-memory Docker host."""
    return FakeRuntime()


@pytest.fixture
def manager(fake_runtime):
    """ContainerManager over the fake runtime."""
    return ContainerManager(
        runtime=fake_runtime,
        prober=ReadinessProber(fake_runtime, http_timeout=1.0, tcp_timeout=0.2),
        collision_policy="reuse",
        stop_timeout=1,
    )


@pytest.fixture
def exit_codes():
    """Collects exit codes passed to a registry's exit_func."""
    return []


@pytest_asyncio.fixture
async def registry(fake_runtime, exit_codes):
    """EphemeralRegistry whose exit is recorded instead of performed."""
    registry = EphemeralRegistry(fake_runtime, exit_func=exit_codes.append, stop_timeout=1)
    yield registry
    await registry.shutdown()
