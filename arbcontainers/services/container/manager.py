"""Container lifecycle management."""

import asyncio
from typing import Dict, List, Literal, Optional

import structlog

from ...config import settings
from ...models import (
    ContainerHandle,
    ContainerManagerError,
    ContainerRuntimeError,
    ContainerSpec,
    ContainerStatus,
    ErrorPhase,
    ReadinessCheck,
)
from .docker_cli import DockerCliRuntime
from .interfaces import ContainerRuntime, LogStream
from .readiness import ReadinessProber

logger = structlog.get_logger(__name__)

CollisionPolicy = Literal["reuse", "fail"]


class ContainerManager:
    """Starts, tracks and tears down containers.

    Starting is idempotent per container name: a running container holding the
    requested name is reused (or rejected, with the ``fail`` collision policy),
    and a stopped one is replaced. Containers this manager started are kept in
    an in-memory index so they can be stopped together.
    """

    def __init__(
        self,
        runtime: Optional[ContainerRuntime] = None,
        prober: Optional[ReadinessProber] = None,
        collision_policy: Optional[CollisionPolicy] = None,
        stop_timeout: Optional[int] = None,
    ):
        self.runtime = runtime or DockerCliRuntime()
        self.prober = prober or ReadinessProber(self.runtime)
        self.collision_policy = collision_policy or settings.container_collision_policy
        self.stop_timeout = (
            stop_timeout if stop_timeout is not None else settings.docker_stop_timeout
        )
        self._managed: Dict[str, ContainerHandle] = {}

    async def ensure_docker_available(self) -> None:
        """Raise if the Docker daemon cannot be reached."""
        if not await self.runtime.is_available():
            raise ContainerManagerError(
                "Docker is not available. Make sure Docker is installed and the "
                "daemon is running.",
                phase=ErrorPhase.UNAVAILABLE,
            )

    async def start(self, spec: ContainerSpec) -> ContainerHandle:
        """Start a container from ``spec`` and wait for it to be ready."""
        await self.ensure_docker_available()

        if spec.name:
            reused = await self._resolve_name_collision(spec.name)
            if reused is not None:
                return reused

        await self._ensure_image(spec.image, spec.tag)

        try:
            container_id = await self.runtime.run(spec)
        except ContainerRuntimeError as e:
            raise ContainerManagerError(
                f"Failed to create container from {spec.image_ref}: {e}",
                phase=ErrorPhase.CREATE,
                cause=e,
            ) from e

        handle = await self.runtime.inspect(container_id)
        if handle is None:
            raise ContainerManagerError(
                f"Container {container_id[:12]} was created but cannot be inspected",
                phase=ErrorPhase.INSPECT,
            )

        self._managed[handle.id] = handle
        logger.info(
            "Container started",
            container_id=handle.short_id,
            name=handle.name,
            image=spec.image_ref,
        )

        if spec.readiness_check:
            await self.prober.wait_for_ready(handle, spec.readiness_check)
            handle.status = ContainerStatus.RUNNING

        return handle

    async def _resolve_name_collision(self, name: str) -> Optional[ContainerHandle]:
        existing_id = await self.runtime.find_by_name(name)
        if not existing_id:
            return None

        if await self.runtime.is_running(existing_id):
            if self.collision_policy == "fail":
                raise ContainerManagerError(
                    f"A container named '{name}' is already running. "
                    "Stop it or choose a different name.",
                    phase=ErrorPhase.CREATE,
                )
            handle = await self.runtime.inspect(existing_id)
            if handle is None:
                raise ContainerManagerError(
                    f"Running container '{name}' cannot be inspected",
                    phase=ErrorPhase.INSPECT,
                )
            self._managed[handle.id] = handle
            logger.info(
                "Reusing running container", container_id=handle.short_id, name=name
            )
            return handle

        logger.info(
            "Removing stale container", container_id=existing_id[:12], name=name
        )
        try:
            await self.runtime.remove(existing_id, force=True)
        except ContainerRuntimeError as e:
            raise ContainerManagerError(
                f"Failed to remove stale container '{name}': {e}",
                phase=ErrorPhase.REMOVE,
                cause=e,
            ) from e
        return None

    async def _ensure_image(self, image: str, tag: str) -> None:
        if await self.runtime.image_exists(image, tag):
            return
        try:
            await self.runtime.pull_image(image, tag)
        except ContainerRuntimeError as e:
            raise ContainerManagerError(
                f"Failed to pull image {image}:{tag}. Check your network connection "
                f"and that the image name is correct. {e.stderr.strip()}".rstrip(),
                phase=ErrorPhase.PULL,
                cause=e,
            ) from e

    async def stop(self, container_id: str) -> None:
        """Stop a container if it is running and forget it."""
        try:
            if await self.runtime.is_running(container_id):
                await self.runtime.stop(container_id, self.stop_timeout)
                logger.info("Container stopped", container_id=container_id[:12])
        except ContainerRuntimeError as e:
            raise ContainerManagerError(
                f"Failed to stop container {container_id[:12]}: {e}",
                phase=ErrorPhase.STOP,
                cause=e,
            ) from e
        finally:
            self._managed.pop(container_id, None)

    async def remove(self, container_id: str) -> None:
        """Force-remove a container; missing containers are ignored."""
        try:
            if await self.runtime.inspect(container_id) is None:
                return
            await self.runtime.remove(container_id, force=True)
            logger.info("Container removed", container_id=container_id[:12])
        except ContainerRuntimeError as e:
            raise ContainerManagerError(
                f"Failed to remove container {container_id[:12]}: {e}",
                phase=ErrorPhase.REMOVE,
                cause=e,
            ) from e
        finally:
            self._managed.pop(container_id, None)

    async def stop_all(self) -> None:
        """Stop every tracked container, reporting all failures together."""
        ids = list(self._managed)
        if not ids:
            return

        logger.info("Stopping managed containers", count=len(ids))
        results = await asyncio.gather(
            *(self.stop(container_id) for container_id in ids), return_exceptions=True
        )

        failures = [
            f"{container_id[:12]}: {result}"
            for container_id, result in zip(ids, results)
            if isinstance(result, Exception)
        ]
        if failures:
            raise ContainerManagerError(
                f"Failed to stop {len(failures)} of {len(ids)} containers",
                phase=ErrorPhase.STOP,
                details=failures,
            )

    async def is_running(self, container_id: str) -> bool:
        return await self.runtime.is_running(container_id)

    async def logs(self, container_id: str, tail: Optional[int] = None) -> str:
        return await self.runtime.logs(container_id, tail)

    async def stream_logs(self, container_id: str, tail: Optional[int] = None) -> LogStream:
        return await self.runtime.stream_logs(container_id, tail)

    async def wait_for_ready(self, handle: ContainerHandle, check: ReadinessCheck) -> None:
        await self.prober.wait_for_ready(handle, check)

    def get_managed_containers(self) -> List[ContainerHandle]:
        """Snapshot of containers started or reused by this manager."""
        return list(self._managed.values())
