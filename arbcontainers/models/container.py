"""Data models for container orchestration.

These models describe containers to start, handles to containers that
exist on the runtime host, readiness contracts and the bookkeeping records
used by the ephemeral registry and the cache volume manager.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from types import MappingProxyType
from typing import List, Mapping, Optional, Sequence, Tuple


class ContainerStatus(str, Enum):
    """Status of a container as reported by the runtime."""

    RUNNING = "running"
    STOPPED = "stopped"
    EXITED = "exited"
    CREATED = "created"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ContainerStatus":
        """Map a daemon state string onto a status; anything else is unknown."""
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.UNKNOWN


class ReadinessKind(str, Enum):
    """How a readiness check reaches the workload."""

    HTTP = "http"
    TCP = "tcp"
    EXEC = "exec"


@dataclass(frozen=True)
class PortMapping:
    """Port published from the container to the host."""

    host: int
    container: int
    protocol: str = "tcp"

    def to_flag(self) -> str:
        return f"{self.host}:{self.container}/{self.protocol}"


@dataclass(frozen=True)
class VolumeMapping:
    """Bind mount or named volume mounted into the container."""

    host_path: str
    container_path: str
    readonly: bool = False

    def to_flag(self) -> str:
        mode = "ro" if self.readonly else "rw"
        return f"{self.host_path}:{self.container_path}:{mode}"


@dataclass(frozen=True)
class ReadinessCheck:
    """Polling contract confirming a started workload can serve requests.

    target is interpreted per kind:
    - http: full URL (e.g. "http://localhost:8547")
    - tcp: "host:port" (e.g. "localhost:8547")
    - exec: command run inside the container (e.g. "cat /ready")
    """

    kind: ReadinessKind
    target: str
    timeout_ms: int
    interval_ms: int

    def __post_init__(self):
        object.__setattr__(self, "kind", ReadinessKind(self.kind))
        if self.timeout_ms < 0 or self.interval_ms < 0:
            raise ValueError("timeout_ms and interval_ms must be non-negative")


@dataclass(frozen=True)
class ContainerSpec:
    """Declarative description of a container to start.

    Immutable: sequences are frozen to tuples and env to a read-only mapping
    at construction, so callers cannot change a spec after handing it over.
    """

    image: str
    tag: str = "latest"
    name: Optional[str] = None
    ports: Sequence[PortMapping] = ()
    env: Mapping[str, str] = field(default_factory=dict)
    volumes: Sequence[VolumeMapping] = ()
    command: Sequence[str] = ()
    network: Optional[str] = None
    # "host:ip" entries for the container's /etc/hosts
    extra_hosts: Sequence[str] = ()
    readiness_check: Optional[ReadinessCheck] = None
    auto_remove: bool = False
    detach: bool = True
    working_dir: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "ports", tuple(self.ports))
        object.__setattr__(self, "volumes", tuple(self.volumes))
        object.__setattr__(self, "command", tuple(self.command))
        object.__setattr__(self, "extra_hosts", tuple(self.extra_hosts))
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))

    @property
    def image_ref(self) -> str:
        return f"{self.image}:{self.tag}"


@dataclass
class ContainerHandle:
    """Handle to a container that exists on the runtime host.

    Produced by inspecting the runtime after creation.
    """

    id: str
    name: str
    ports: List[PortMapping] = field(default_factory=list)
    status: ContainerStatus = ContainerStatus.UNKNOWN
    image: str = ""
    tag: str = ""

    @property
    def short_id(self) -> str:
        return self.id[:12]

    @property
    def is_running(self) -> bool:
        return self.status == ContainerStatus.RUNNING

    def host_port(self, container_port: int) -> Optional[int]:
        """Host port published for ``container_port``, if any."""
        for port in self.ports:
            if port.container == container_port:
                return port.host
        return None


@dataclass
class ExecResult:
    """Result of a command executed inside a container."""

    exit_code: int
    stdout: str
    stderr: str


@dataclass
class EphemeralRecord:
    """A container name owed cleanup by the ephemeral registry."""

    generated_name: str
    registered_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class CacheVolume:
    """Named volume persisting toolchain state across compile containers."""

    name: str
    mount_path: str = ""


@dataclass
class VolumeEnsureResult:
    """Classification of volumes by ensure_volumes."""

    created: List[str] = field(default_factory=list)
    existing: List[str] = field(default_factory=list)


@dataclass
class VolumeCleanResult:
    """Classification of volumes by clean_volumes."""

    removed: List[str] = field(default_factory=list)
    not_found: List[str] = field(default_factory=list)


def split_image_ref(ref: str) -> Tuple[str, str]:
    """Split ``image[:tag]`` into (image, tag).

    A colon inside a registry host (``registry:5000/app``) is not a tag
    separator; a missing tag means ``latest``. Digests are kept on the image.
    """
    if "@" in ref:
        return ref, ""
    slash = ref.rfind("/")
    colon = ref.rfind(":")
    if colon > slash:
        return ref[:colon], ref[colon + 1 :]
    return ref, "latest"
