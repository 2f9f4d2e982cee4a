"""Arbitrum nitro-devnode service.

Starts the local development chain either as the long-lived, well-known
``nitro-devnode`` container or as an ephemeral node on free host ports that
is cleaned up with the process.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from ..config import NODE_HTTP_CONTAINER_PORT, NODE_WS_CONTAINER_PORT, NodeConfig, settings
from ..models import (
    ContainerHandle,
    ContainerRuntimeError,
    ContainerSpec,
    PortMapping,
    ReadinessCheck,
    ReadinessKind,
)
from ..utils.network import find_free_port
from .container import ContainerManager, EphemeralRegistry, LogStream

logger = structlog.get_logger(__name__)


@dataclass
class NodeStatus:
    """Observed state of a node container."""

    name: str
    container_id: Optional[str] = None
    running: bool = False
    http_url: Optional[str] = None
    ws_url: Optional[str] = None

    @property
    def exists(self) -> bool:
        return self.container_id is not None


@dataclass
class EphemeralNode:
    """A throwaway node started for a single task."""

    name: str
    http_port: int
    ws_port: int
    handle: Optional[ContainerHandle] = None
    reused: bool = False

    @property
    def http_url(self) -> str:
        return f"http://localhost:{self.http_port}"

    @property
    def ws_url(self) -> str:
        return f"ws://localhost:{self.ws_port}"


class ArbNodeService:
    """Lifecycle operations for nitro-devnode containers."""

    def __init__(
        self,
        manager: ContainerManager,
        registry: EphemeralRegistry,
        config: Optional[NodeConfig] = None,
    ):
        self.manager = manager
        self.registry = registry
        self.config = config or settings.node

    @property
    def runtime(self):
        return self.manager.runtime

    def build_spec(
        self,
        name: Optional[str] = None,
        http_port: Optional[int] = None,
        ws_port: Optional[int] = None,
    ) -> ContainerSpec:
        """Container spec for a node publishing its RPC ports on the host."""
        http_port = http_port or self.config.http_port
        ws_port = ws_port or self.config.ws_port
        return ContainerSpec(
            image=self.config.image,
            tag=self.config.tag,
            name=name or self.config.container_name,
            ports=[
                PortMapping(host=http_port, container=NODE_HTTP_CONTAINER_PORT),
                PortMapping(host=ws_port, container=NODE_WS_CONTAINER_PORT),
            ],
            command=self.config.command,
            readiness_check=ReadinessCheck(
                kind=ReadinessKind.HTTP,
                target=self.config.http_url(http_port),
                timeout_ms=self.config.readiness_timeout_ms,
                interval_ms=self.config.readiness_interval_ms,
            ),
            auto_remove=True,
        )

    async def start_node(self, name: Optional[str] = None) -> ContainerHandle:
        """Start the node (or reuse the running one) and wait until it serves RPC."""
        spec = self.build_spec(name=name)
        logger.info("Starting nitro-devnode", name=spec.name, image=spec.image_ref)
        return await self.manager.start(spec)

    async def stop_node(self, name: Optional[str] = None) -> bool:
        """Stop and remove the node.

        Returns:
            False if no container with that name exists
        """
        name = name or self.config.container_name
        container_id = await self.runtime.find_by_name(name)
        if not container_id:
            return False

        try:
            await self.runtime.stop(container_id, self.manager.stop_timeout)
        except ContainerRuntimeError as e:
            logger.debug("Node already stopped", name=name, error=str(e))

        # auto-removed containers are usually gone by now
        try:
            await self.runtime.remove(container_id, force=True)
        except ContainerRuntimeError as e:
            logger.debug("Node already removed", name=name, error=str(e))

        logger.info("nitro-devnode stopped", name=name)
        return True

    async def node_status(self, name: Optional[str] = None) -> NodeStatus:
        name = name or self.config.container_name
        status = NodeStatus(name=name)
        status.container_id = await self.runtime.find_by_name(name)
        if status.container_id is None:
            return status

        status.running = await self.runtime.is_running(status.container_id)
        if status.running:
            handle = await self.runtime.inspect(status.container_id)
            http_port = handle.host_port(NODE_HTTP_CONTAINER_PORT) if handle else None
            ws_port = handle.host_port(NODE_WS_CONTAINER_PORT) if handle else None
            status.http_url = self.config.http_url(http_port)
            status.ws_url = self.config.ws_url(ws_port)
        return status

    async def node_logs(
        self, name: Optional[str] = None, tail: Optional[int] = None
    ) -> Optional[str]:
        """Logs of the node, or None if it does not exist."""
        container_id = await self.runtime.find_by_name(name or self.config.container_name)
        if not container_id:
            return None
        return await self.manager.logs(container_id, tail)

    async def stream_node_logs(
        self, name: Optional[str] = None, tail: Optional[int] = None
    ) -> Optional[LogStream]:
        container_id = await self.runtime.find_by_name(name or self.config.container_name)
        if not container_id:
            return None
        return await self.manager.stream_logs(container_id, tail)

    async def start_ephemeral_node(self, reuse_name: Optional[str] = None) -> EphemeralNode:
        """Start a throwaway node on free host ports.

        When ``reuse_name`` names a registered node that is still running, that
        node is returned instead of starting another one.
        """
        reusable = await self.registry.resolve_reusable(reuse_name)
        if reusable:
            container_id = await self.runtime.find_by_name(reusable)
            handle = await self.runtime.inspect(container_id) if container_id else None
            if handle is not None:
                logger.info("Reusing ephemeral node", name=reusable)
                return EphemeralNode(
                    name=reusable,
                    http_port=handle.host_port(NODE_HTTP_CONTAINER_PORT) or 0,
                    ws_port=handle.host_port(NODE_WS_CONTAINER_PORT) or 0,
                    handle=handle,
                    reused=True,
                )

        name = self.registry.generate_name(self.config.ephemeral_prefix)
        http_port = find_free_port()
        ws_port = find_free_port()
        while ws_port == http_port:
            ws_port = find_free_port()

        self.registry.init()
        self.registry.register(name)
        try:
            handle = await self.manager.start(
                self.build_spec(name=name, http_port=http_port, ws_port=ws_port)
            )
        except Exception:
            await self.registry.cleanup_one(name)
            raise

        logger.info("Ephemeral node started", name=name, http_port=http_port)
        return EphemeralNode(name=name, http_port=http_port, ws_port=ws_port, handle=handle)

    async def stop_ephemeral_node(self, name: str) -> None:
        await self.registry.cleanup_one(name)
