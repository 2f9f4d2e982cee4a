"""Cache volumes shared by Stylus compile containers."""

from typing import Optional, Sequence

import structlog

from ...config import settings
from ...models import ContainerRuntimeError, VolumeCleanResult, VolumeEnsureResult
from .docker_cli import DockerCliRuntime
from .interfaces import ContainerRuntime

logger = structlog.get_logger(__name__)

DEFAULT_CACHE_VOLUMES = tuple(volume.name for volume in settings.compile.cache_volumes)


class CacheVolumeManager:
    """Creates and removes the named volumes holding toolchain caches.

    Volume existence is always checked against the daemon; nothing is cached
    between calls.
    """

    def __init__(self, runtime: Optional[ContainerRuntime] = None):
        self.runtime = runtime or DockerCliRuntime()

    async def ensure_volumes(
        self, names: Sequence[str] = DEFAULT_CACHE_VOLUMES
    ) -> VolumeEnsureResult:
        """Create any volume in ``names`` that does not exist yet."""
        result = VolumeEnsureResult()
        for name in names:
            if await self.runtime.volume_exists(name):
                result.existing.append(name)
                continue
            await self.runtime.create_volume(name)
            result.created.append(name)

        if result.created:
            logger.info("Created cache volumes", volumes=result.created)
        return result

    async def clean_volumes(
        self, names: Sequence[str] = DEFAULT_CACHE_VOLUMES
    ) -> VolumeCleanResult:
        """Remove the volumes in ``names``; missing ones are reported, not raised."""
        result = VolumeCleanResult()
        for name in names:
            try:
                await self.runtime.remove_volume(name)
                result.removed.append(name)
            except ContainerRuntimeError as e:
                logger.debug("Cache volume not removed", volume=name, error=str(e))
                result.not_found.append(name)
        return result
