"""Data models for arbcontainers."""

from .container import (
    CacheVolume,
    ContainerHandle,
    ContainerSpec,
    ContainerStatus,
    EphemeralRecord,
    ExecResult,
    PortMapping,
    ReadinessCheck,
    ReadinessKind,
    VolumeCleanResult,
    VolumeEnsureResult,
    VolumeMapping,
    split_image_ref,
)
from .errors import (
    ContainerManagerError,
    ContainerRuntimeError,
    ErrorPhase,
    ReadinessTimeoutError,
)

__all__ = [
    # Container models
    "CacheVolume",
    "ContainerHandle",
    "ContainerSpec",
    "ContainerStatus",
    "EphemeralRecord",
    "ExecResult",
    "PortMapping",
    "ReadinessCheck",
    "ReadinessKind",
    "VolumeCleanResult",
    "VolumeEnsureResult",
    "VolumeMapping",
    "split_image_ref",
    # Errors
    "ContainerManagerError",
    "ContainerRuntimeError",
    "ErrorPhase",
    "ReadinessTimeoutError",
]
