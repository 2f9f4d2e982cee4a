"""Services for arbcontainers."""

from .compile_image import CompileImageBuilder
from .container import (
    CacheVolumeManager,
    ContainerManager,
    ContainerRuntime,
    DockerCliRuntime,
    EphemeralRegistry,
    ReadinessProber,
)
from .node import ArbNodeService, EphemeralNode, NodeStatus

__all__ = [
    "ArbNodeService",
    "CacheVolumeManager",
    "CompileImageBuilder",
    "ContainerManager",
    "ContainerRuntime",
    "DockerCliRuntime",
    "EphemeralNode",
    "EphemeralRegistry",
    "NodeStatus",
    "ReadinessProber",
]
