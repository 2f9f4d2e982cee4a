"""Unit tests for readiness probing."""

import asyncio
import json
import time
from unittest.mock import patch

import httpx
import pytest

from arbcontainers.models import (
    ContainerHandle,
    ContainerStatus,
    ExecResult,
    ReadinessCheck,
    ReadinessTimeoutError,
)
from arbcontainers.services.container.readiness import (
    ETH_CHAIN_ID_REQUEST,
    ProbeState,
    ReadinessProber,
    parse_tcp_target,
)
from arbcontainers.utils.network import find_free_port

HANDLE = ContainerHandle(id="c" * 64, name="probe-target", status=ContainerStatus.RUNNING)


def patched_http(handler):
    """Route the prober's httpx client through a mock transport."""
    real_client = httpx.AsyncClient
    transport = httpx.MockTransport(handler)
    return patch(
        "arbcontainers.services.container.readiness.httpx.AsyncClient",
        lambda **kwargs: real_client(transport=transport, **kwargs),
    )


class TestParseTcpTarget:
    def test_host_port(self):
        assert parse_tcp_target("localhost:8547") == ("localhost", 8547)

    def test_ipv6(self):
        assert parse_tcp_target("[::1]:8547") == ("::1", 8547)

    def test_missing_port(self):
        with pytest.raises(ValueError):
            parse_tcp_target("localhost")


class TestHttpProbe:
    """Tests for the JSON-RPC http probe."""

    @pytest.mark.asyncio
    async def test_posts_chain_id_request(self, fake_runtime):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": "0x64aba"})

        prober = ReadinessProber(fake_runtime, http_timeout=1.0)
        check = ReadinessCheck("http", "http://localhost:8547", timeout_ms=1000, interval_ms=10)

        with patched_http(handler):
            outcome = await prober.probe(HANDLE, check)

        assert outcome.state == ProbeState.READY
        request = seen[0]
        assert request.method == "POST"
        assert request.headers["content-type"] == "application/json"
        assert json.loads(request.content) == ETH_CHAIN_ID_REQUEST

    @pytest.mark.asyncio
    async def test_non_2xx_is_not_ready(self, fake_runtime):
        prober = ReadinessProber(fake_runtime, http_timeout=1.0)
        check = ReadinessCheck("http", "http://localhost:8547", timeout_ms=1000, interval_ms=10)

        with patched_http(lambda request: httpx.Response(503)):
            outcome = await prober.probe(HANDLE, check)

        assert outcome.state == ProbeState.NOT_READY
        assert outcome.reason == "HTTP 503"

    @pytest.mark.asyncio
    async def test_connection_error_is_probe_error(self, fake_runtime):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        prober = ReadinessProber(fake_runtime, http_timeout=1.0)
        check = ReadinessCheck("http", "http://localhost:8547", timeout_ms=1000, interval_ms=10)

        with patched_http(handler):
            outcome = await prober.probe(HANDLE, check)

        assert outcome.state == ProbeState.PROBE_ERROR
        assert "ConnectError" in outcome.reason

    @pytest.mark.asyncio
    async def test_waits_until_node_answers(self, fake_runtime):
        calls = {"count": 0}

        def handler(request):
            calls["count"] += 1
            if calls["count"] < 3:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, json={"result": "0x1"})

        prober = ReadinessProber(fake_runtime, http_timeout=1.0)
        check = ReadinessCheck("http", "http://localhost:8547", timeout_ms=5000, interval_ms=20)

        with patched_http(handler):
            await prober.wait_for_ready(HANDLE, check)

        assert calls["count"] == 3


class TestTcpProbe:
    """Tests for the TCP connect probe."""

    @pytest.mark.asyncio
    async def test_listening_port_is_ready(self, fake_runtime):
        server = await asyncio.start_server(lambda r, w: w.close(), "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        try:
            prober = ReadinessProber(fake_runtime, tcp_timeout=0.5)
            check = ReadinessCheck("tcp", f"127.0.0.1:{port}", timeout_ms=1000, interval_ms=10)
            outcome = await prober.probe(HANDLE, check)
        finally:
            server.close()
            await server.wait_closed()

        assert outcome.ready

    @pytest.mark.asyncio
    async def test_closed_port_is_not_ready(self, fake_runtime):
        prober = ReadinessProber(fake_runtime, tcp_timeout=0.5)
        port = find_free_port()
        check = ReadinessCheck("tcp", f"127.0.0.1:{port}", timeout_ms=1000, interval_ms=10)

        outcome = await prober.probe(HANDLE, check)

        assert outcome.state == ProbeState.NOT_READY

    @pytest.mark.asyncio
    async def test_malformed_target_is_probe_error(self, fake_runtime):
        prober = ReadinessProber(fake_runtime, tcp_timeout=0.5)
        check = ReadinessCheck("tcp", "no-port", timeout_ms=1000, interval_ms=10)

        outcome = await prober.probe(HANDLE, check)

        assert outcome.state == ProbeState.PROBE_ERROR


class TestExecProbe:
    """Tests for the in-container exec probe."""

    @pytest.mark.asyncio
    async def test_runs_split_command(self, fake_runtime):
        prober = ReadinessProber(fake_runtime)
        check = ReadinessCheck("exec", "cat  /tmp/ready", timeout_ms=1000, interval_ms=10)

        outcome = await prober.probe(HANDLE, check)

        assert outcome.ready
        assert fake_runtime.calls[-1] == ("exec_in_container", HANDLE.id, ["cat", "/tmp/ready"])

    @pytest.mark.asyncio
    async def test_non_zero_exit_is_not_ready(self, fake_runtime):
        fake_runtime.exec_handler = lambda cid, cmd: ExecResult(1, "", "missing")
        prober = ReadinessProber(fake_runtime)
        check = ReadinessCheck("exec", "cat /tmp/ready", timeout_ms=1000, interval_ms=10)

        outcome = await prober.probe(HANDLE, check)

        assert outcome.state == ProbeState.NOT_READY
        assert outcome.reason == "exit code 1"


class TestWaitForReadyTiming:
    """Tests for the bounded poll loop."""

    @pytest.mark.asyncio
    async def test_never_ready_fails_within_bounds(self, fake_runtime):
        fake_runtime.exec_handler = lambda cid, cmd: ExecResult(1, "", "")
        prober = ReadinessProber(fake_runtime)
        check = ReadinessCheck("exec", "false", timeout_ms=300, interval_ms=100)

        started = time.monotonic()
        with pytest.raises(ReadinessTimeoutError) as exc_info:
            await prober.wait_for_ready(HANDLE, check)
        elapsed = time.monotonic() - started

        assert elapsed >= 0.3
        assert elapsed < 0.3 + 0.1 + 0.5
        assert exc_info.value.container_id == HANDLE.id
        assert exc_info.value.last_reason == "exit code 1"

    @pytest.mark.asyncio
    async def test_interval_is_clipped_to_remaining_budget(self, fake_runtime):
        fake_runtime.exec_handler = lambda cid, cmd: ExecResult(1, "", "")
        prober = ReadinessProber(fake_runtime)
        check = ReadinessCheck("exec", "false", timeout_ms=200, interval_ms=5000)

        started = time.monotonic()
        with pytest.raises(ReadinessTimeoutError):
            await prober.wait_for_ready(HANDLE, check)

        assert time.monotonic() - started < 1.0

    @pytest.mark.asyncio
    async def test_ready_on_first_probe_does_not_sleep(self, fake_runtime):
        prober = ReadinessProber(fake_runtime)
        check = ReadinessCheck("exec", "true", timeout_ms=10000, interval_ms=5000)

        started = time.monotonic()
        await prober.wait_for_ready(HANDLE, check)

        assert time.monotonic() - started < 1.0
        assert fake_runtime.count("exec_in_container") == 1
