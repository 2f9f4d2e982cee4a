"""Readiness probing for started containers."""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import httpx
import structlog

from ...config import settings
from ...models import ContainerHandle, ReadinessCheck, ReadinessKind, ReadinessTimeoutError
from .interfaces import ContainerRuntime

logger = structlog.get_logger(__name__)

# Cheapest JSON-RPC call every Ethereum-compatible node answers
ETH_CHAIN_ID_REQUEST = {"jsonrpc": "2.0", "method": "eth_chainId", "params": [], "id": 1}


class ProbeState(str, Enum):
    READY = "ready"
    NOT_READY = "not_ready"
    PROBE_ERROR = "probe_error"


@dataclass
class ProbeOutcome:
    """Result of a single readiness probe attempt."""

    state: ProbeState
    reason: Optional[str] = None

    @property
    def ready(self) -> bool:
        return self.state == ProbeState.READY

    @classmethod
    def ok(cls) -> "ProbeOutcome":
        return cls(ProbeState.READY)

    @classmethod
    def not_ready(cls, reason: str) -> "ProbeOutcome":
        return cls(ProbeState.NOT_READY, reason)

    @classmethod
    def error(cls, reason: str) -> "ProbeOutcome":
        return cls(ProbeState.PROBE_ERROR, reason)


def parse_tcp_target(target: str) -> Tuple[str, int]:
    """Split a ``host:port`` target."""
    host, sep, port = target.rpartition(":")
    if not sep or not host:
        raise ValueError(f"TCP readiness target must be host:port, got {target!r}")
    return host.strip("[]"), int(port)


class ReadinessProber:
    """Polls a started container until its readiness check passes."""

    def __init__(
        self,
        runtime: ContainerRuntime,
        http_timeout: Optional[float] = None,
        tcp_timeout: Optional[float] = None,
    ):
        self.runtime = runtime
        self.http_timeout = http_timeout or settings.readiness_http_timeout
        self.tcp_timeout = tcp_timeout or settings.readiness_tcp_timeout

    async def wait_for_ready(self, handle: ContainerHandle, check: ReadinessCheck) -> None:
        """Block until ``check`` passes or its time budget is spent.

        Raises ReadinessTimeoutError on exhaustion. The container is left
        running so the caller can inspect its logs.
        """
        started = time.monotonic()
        deadline = started + check.timeout_ms / 1000
        last: Optional[ProbeOutcome] = None
        attempts = 0

        logger.debug(
            "Waiting for container readiness",
            container_id=handle.short_id,
            kind=check.kind.value,
            target=check.target,
            timeout_ms=check.timeout_ms,
        )

        while time.monotonic() < deadline:
            attempts += 1
            last = await self.probe(handle, check)
            if last.ready:
                logger.info(
                    "Container ready",
                    container_id=handle.short_id,
                    name=handle.name,
                    attempts=attempts,
                    elapsed_ms=int((time.monotonic() - started) * 1000),
                )
                return

            logger.debug(
                "Readiness probe failed",
                container_id=handle.short_id,
                state=last.state.value,
                reason=last.reason,
                attempt=attempts,
            )

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            await asyncio.sleep(min(check.interval_ms / 1000, remaining))

        elapsed_ms = int((time.monotonic() - started) * 1000)
        raise ReadinessTimeoutError(
            handle.id, elapsed_ms, last.reason if last else "no probe attempted"
        )

    async def probe(self, handle: ContainerHandle, check: ReadinessCheck) -> ProbeOutcome:
        """Run one probe of the given kind."""
        if check.kind == ReadinessKind.HTTP:
            return await self._probe_http(check.target)
        if check.kind == ReadinessKind.TCP:
            return await self._probe_tcp(check.target)
        return await self._probe_exec(handle, check.target)

    async def _probe_http(self, url: str) -> ProbeOutcome:
        try:
            async with httpx.AsyncClient(timeout=self.http_timeout) as client:
                response = await client.post(
                    url,
                    json=ETH_CHAIN_ID_REQUEST,
                    headers={"Content-Type": "application/json"},
                )
        except httpx.HTTPError as e:
            return ProbeOutcome.error(f"{type(e).__name__}: {e}")

        if response.is_success:
            return ProbeOutcome.ok()
        return ProbeOutcome.not_ready(f"HTTP {response.status_code}")

    async def _probe_tcp(self, target: str) -> ProbeOutcome:
        try:
            host, port = parse_tcp_target(target)
        except ValueError as e:
            return ProbeOutcome.error(str(e))

        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port), timeout=self.tcp_timeout
            )
        except asyncio.TimeoutError:
            return ProbeOutcome.not_ready(f"connect to {host}:{port} timed out")
        except OSError as e:
            return ProbeOutcome.not_ready(f"connect to {host}:{port} failed: {e}")

        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return ProbeOutcome.ok()

    async def _probe_exec(self, handle: ContainerHandle, target: str) -> ProbeOutcome:
        command = target.split()
        if not command:
            return ProbeOutcome.error("empty exec readiness command")
        try:
            result = await self.runtime.exec_in_container(handle.id, command)
        except Exception as e:
            return ProbeOutcome.error(f"exec failed: {e}")

        if result.exit_code == 0:
            return ProbeOutcome.ok()
        return ProbeOutcome.not_ready(f"exit code {result.exit_code}")
