"""Container orchestration services.

This package provides Docker container orchestration split into:
- interfaces.py: ContainerRuntime capability interface
- docker_cli.py: ContainerRuntime backed by the docker CLI
- readiness.py: Readiness probing of started containers
- manager.py: Container lifecycle management
- ephemeral.py: Process-wide cleanup of throwaway containers
- volumes.py: Compile cache volumes
"""

from .docker_cli import DockerCliRuntime
from .ephemeral import EphemeralRegistry
from .interfaces import ContainerRuntime, LogStream, ProgressCallback
from .manager import ContainerManager
from .readiness import ProbeOutcome, ProbeState, ReadinessProber
from .volumes import DEFAULT_CACHE_VOLUMES, CacheVolumeManager

__all__ = [
    "CacheVolumeManager",
    "ContainerManager",
    "ContainerRuntime",
    "DEFAULT_CACHE_VOLUMES",
    "DockerCliRuntime",
    "EphemeralRegistry",
    "LogStream",
    "ProbeOutcome",
    "ProbeState",
    "ProgressCallback",
    "ReadinessProber",
]
