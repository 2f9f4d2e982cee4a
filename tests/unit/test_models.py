"""Unit tests for container data models and errors."""

import pytest

from arbcontainers.models import (
    ContainerHandle,
    ContainerManagerError,
    ContainerRuntimeError,
    ContainerSpec,
    ContainerStatus,
    ErrorPhase,
    PortMapping,
    ReadinessCheck,
    ReadinessKind,
    ReadinessTimeoutError,
    VolumeMapping,
    split_image_ref,
)


class TestContainerStatus:
    """Tests for ContainerStatus parsing."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("running", ContainerStatus.RUNNING),
            ("exited\n", ContainerStatus.EXITED),
            ("Created", ContainerStatus.CREATED),
            ("paused", ContainerStatus.UNKNOWN),
            ("", ContainerStatus.UNKNOWN),
            (None, ContainerStatus.UNKNOWN),
        ],
    )
    def test_parse(self, raw, expected):
        assert ContainerStatus.parse(raw) == expected


class TestMappings:
    """Tests for port and volume flags."""

    def test_port_flag_defaults_to_tcp(self):
        assert PortMapping(18547, 8547).to_flag() == "18547:8547/tcp"

    def test_port_flag_udp(self):
        assert PortMapping(53, 53, "udp").to_flag() == "53:53/udp"

    def test_volume_flag_modes(self):
        assert VolumeMapping("/src", "/workspace").to_flag() == "/src:/workspace:rw"
        assert VolumeMapping("cache", "/cache", readonly=True).to_flag() == "cache:/cache:ro"


class TestContainerSpec:
    """Tests for ContainerSpec immutability."""

    def test_sequences_are_frozen(self):
        ports = [PortMapping(1, 2)]
        command = ["--dev"]
        spec = ContainerSpec(image="img", ports=ports, command=command)

        ports.append(PortMapping(3, 4))
        command.append("--other")

        assert spec.ports == (PortMapping(1, 2),)
        assert spec.command == ("--dev",)

    def test_env_is_read_only(self):
        env = {"A": "1"}
        spec = ContainerSpec(image="img", env=env)
        env["B"] = "2"

        assert dict(spec.env) == {"A": "1"}
        with pytest.raises(TypeError):
            spec.env["C"] = "3"

    def test_fields_cannot_be_reassigned(self):
        spec = ContainerSpec(image="img")
        with pytest.raises(AttributeError):
            spec.name = "other"

    def test_image_ref(self):
        assert ContainerSpec(image="offchainlabs/nitro-node", tag="v1").image_ref == (
            "offchainlabs/nitro-node:v1"
        )
        assert ContainerSpec(image="busybox").image_ref == "busybox:latest"


class TestReadinessCheck:
    """Tests for ReadinessCheck validation."""

    def test_kind_coerced_from_string(self):
        check = ReadinessCheck(kind="tcp", target="localhost:1", timeout_ms=10, interval_ms=1)
        assert check.kind is ReadinessKind.TCP

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError):
            ReadinessCheck(kind="grpc", target="x", timeout_ms=10, interval_ms=1)

    def test_negative_timeout_rejected(self):
        with pytest.raises(ValueError):
            ReadinessCheck(kind="http", target="x", timeout_ms=-1, interval_ms=1)


class TestContainerHandle:
    def test_host_port_lookup(self):
        handle = ContainerHandle(
            id="a" * 64,
            name="node",
            ports=[PortMapping(18547, 8547), PortMapping(18548, 8548)],
            status=ContainerStatus.RUNNING,
        )

        assert handle.short_id == "a" * 12
        assert handle.is_running
        assert handle.host_port(8548) == 18548
        assert handle.host_port(9999) is None


class TestSplitImageRef:
    @pytest.mark.parametrize(
        "ref,expected",
        [
            ("offchainlabs/nitro-node:v3.7.1-926f1ab", ("offchainlabs/nitro-node", "v3.7.1-926f1ab")),
            ("busybox", ("busybox", "latest")),
            ("registry:5000/app", ("registry:5000/app", "latest")),
            ("registry:5000/app:1.0", ("registry:5000/app", "1.0")),
        ],
    )
    def test_split(self, ref, expected):
        assert split_image_ref(ref) == expected


class TestErrors:
    """Tests for the error taxonomy."""

    def test_runtime_error_carries_command(self):
        error = ContainerRuntimeError(
            "Failed", command=["docker", "pull", "x:y"], exit_code=1, stderr="denied"
        )

        assert error.command_line == "docker pull x:y"
        assert error.exit_code == 1
        assert error.stderr == "denied"

    def test_manager_error_lists_details(self):
        error = ContainerManagerError(
            "Failed to stop 2 of 3 containers",
            phase=ErrorPhase.STOP,
            details=["abc: boom", "def: bang"],
        )

        assert str(error) == "Failed to stop 2 of 3 containers\n  - abc: boom\n  - def: bang"

    def test_readiness_timeout_is_a_timeout(self):
        error = ReadinessTimeoutError("abc123", 30012, "HTTP 503")

        assert isinstance(error, ContainerManagerError)
        assert isinstance(error, TimeoutError)
        assert error.phase == ErrorPhase.READY
        assert "abc123" in str(error)
        assert "30012ms" in str(error)
        assert "HTTP 503" in str(error)
