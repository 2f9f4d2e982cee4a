"""Process-wide service instances.

Collaborators obtain the shared runtime, manager and ephemeral registry here
instead of constructing their own, so that one registry owns the process exit
hooks.
"""

# Standard library imports
from functools import lru_cache

# Third-party imports
import structlog

# Local application imports
from .config import settings
from .services import (
    ArbNodeService,
    CacheVolumeManager,
    CompileImageBuilder,
    ContainerManager,
    ContainerRuntime,
    DockerCliRuntime,
    EphemeralRegistry,
    ReadinessProber,
)
from .utils.shutdown import GracefulShutdownHandler, setup_graceful_shutdown

logger = structlog.get_logger(__name__)


@lru_cache()
def get_runtime() -> ContainerRuntime:
    """Get the Docker CLI runtime."""
    return DockerCliRuntime(settings.docker.command)


@lru_cache()
def get_container_manager() -> ContainerManager:
    runtime = get_runtime()
    docker = settings.docker
    return ContainerManager(
        runtime=runtime,
        prober=ReadinessProber(
            runtime,
            http_timeout=docker.readiness_http_timeout,
            tcp_timeout=docker.readiness_tcp_timeout,
        ),
        collision_policy=docker.collision_policy,
        stop_timeout=docker.stop_timeout,
    )


@lru_cache()
def get_ephemeral_registry() -> EphemeralRegistry:
    """Get the ephemeral registry; call init() on it before registering names."""
    return EphemeralRegistry(get_runtime(), stop_timeout=settings.docker.stop_timeout)


@lru_cache()
def get_volume_manager() -> CacheVolumeManager:
    return CacheVolumeManager(get_runtime())


@lru_cache()
def get_compile_image_builder() -> CompileImageBuilder:
    return CompileImageBuilder(get_runtime(), config=settings.compile)


@lru_cache()
def get_node_service() -> ArbNodeService:
    return ArbNodeService(get_container_manager(), get_ephemeral_registry(), settings.node)


@lru_cache()
def get_shutdown_handler() -> GracefulShutdownHandler:
    return setup_graceful_shutdown(get_container_manager(), get_ephemeral_registry())


def init() -> None:
    """Install the ephemeral registry's exit and signal hooks."""
    get_ephemeral_registry().init()
    logger.debug("arbcontainers initialized")


async def shutdown() -> None:
    """Tear down ephemeral and managed containers."""
    await get_shutdown_handler().shutdown()


def reset() -> None:
    """Drop cached instances (used by tests)."""
    for getter in (
        get_runtime,
        get_container_manager,
        get_ephemeral_registry,
        get_volume_manager,
        get_compile_image_builder,
        get_node_service,
        get_shutdown_handler,
    ):
        getter.cache_clear()
