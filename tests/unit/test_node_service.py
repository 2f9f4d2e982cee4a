"""Unit tests for the nitro-devnode service."""

from unittest.mock import AsyncMock

import pytest

from arbcontainers.config import NodeConfig
from arbcontainers.models import (
    ContainerManagerError,
    ContainerRuntimeError,
    ContainerStatus,
    PortMapping,
    ReadinessKind,
)
from arbcontainers.services.node import ArbNodeService

IMAGE = "offchainlabs/nitro-node:v3.7.1-926f1ab"


@pytest.fixture
def service(manager, registry, fake_runtime):
    fake_runtime.images.add(IMAGE)
    manager.prober.wait_for_ready = AsyncMock()
    return ArbNodeService(manager, registry, NodeConfig())


class TestBuildSpec:
    def test_default_node_spec(self, service):
        spec = service.build_spec()

        assert spec.image_ref == IMAGE
        assert spec.name == "nitro-devnode"
        assert spec.ports == (PortMapping(8547, 8547), PortMapping(8548, 8548))
        assert spec.command[0] == "--dev"
        assert "--http.api=eth,net,web3,debug" in spec.command
        assert spec.auto_remove is True
        check = spec.readiness_check
        assert check.kind == ReadinessKind.HTTP
        assert check.target == "http://localhost:8547"
        assert (check.timeout_ms, check.interval_ms) == (30000, 1000)

    def test_custom_ports(self, service):
        spec = service.build_spec(name="n", http_port=18547, ws_port=18548)

        assert spec.ports == (PortMapping(18547, 8547), PortMapping(18548, 8548))
        assert spec.readiness_check.target == "http://localhost:18547"


class TestNodeLifecycle:
    """Tests for start/stop/status/logs."""

    @pytest.mark.asyncio
    async def test_start_waits_for_readiness(self, service, manager):
        handle = await service.start_node()

        assert handle.name == "nitro-devnode"
        manager.prober.wait_for_ready.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stop_missing_node(self, service):
        assert await service.stop_node() is False

    @pytest.mark.asyncio
    async def test_stop_running_node(self, service, fake_runtime):
        await service.start_node()

        assert await service.stop_node() is True
        assert fake_runtime.container_named("nitro-devnode") is None

    @pytest.mark.asyncio
    async def test_stop_swallows_runtime_errors(self, service, fake_runtime):
        await service.start_node()
        fake_runtime.failures["stop"] = ContainerRuntimeError("already stopped")
        fake_runtime.failures["remove"] = ContainerRuntimeError("already removed")

        assert await service.stop_node() is True

    @pytest.mark.asyncio
    async def test_status(self, service, fake_runtime):
        missing = await service.node_status()
        assert not missing.exists

        await service.start_node()
        running = await service.node_status()
        assert running.running
        assert running.http_url == "http://localhost:8547"
        assert running.ws_url == "ws://localhost:8548"

        fake_runtime.container_named("nitro-devnode").status = ContainerStatus.EXITED
        stopped = await service.node_status()
        assert stopped.exists and not stopped.running

    @pytest.mark.asyncio
    async def test_logs(self, service, fake_runtime):
        assert await service.node_logs() is None

        await service.start_node()
        fake_runtime.container_named("nitro-devnode").logs = "INFO started\n"

        assert await service.node_logs() == "INFO started\n"
        assert (await service.stream_node_logs()).container_id


class TestEphemeralNode:
    """Tests for throwaway nodes."""

    @pytest.mark.asyncio
    async def test_starts_registered_node_on_free_ports(self, service, registry, fake_runtime):
        node = await service.start_ephemeral_node()

        assert node.name.startswith("nitro-devnode-tmp-")
        assert node.http_port != node.ws_port
        assert node.http_url == f"http://localhost:{node.http_port}"
        assert registry.is_registered(node.name)
        assert fake_runtime.container_named(node.name) is not None

    @pytest.mark.asyncio
    async def test_reuses_caller_held_name(self, service, fake_runtime):
        first = await service.start_ephemeral_node()

        second = await service.start_ephemeral_node(reuse_name=first.name)

        assert second.reused
        assert second.name == first.name
        assert second.http_port == first.http_port
        assert fake_runtime.count("run") == 1

    @pytest.mark.asyncio
    async def test_stale_name_starts_new_node(self, service, fake_runtime):
        first = await service.start_ephemeral_node()
        await service.stop_ephemeral_node(first.name)

        second = await service.start_ephemeral_node(reuse_name=first.name)

        assert not second.reused
        assert second.name != first.name

    @pytest.mark.asyncio
    async def test_failed_start_is_cleaned_up(self, service, registry, fake_runtime):
        fake_runtime.failures["run"] = ContainerRuntimeError("port is already allocated")

        with pytest.raises(ContainerManagerError):
            await service.start_ephemeral_node()

        assert registry.registered_names() == []
