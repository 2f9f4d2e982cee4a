"""Arbitrum nitro-devnode configuration.

Defaults follow the official nitro-devnode setup: the node runs in ``--dev``
mode and exposes its JSON-RPC endpoint on 8547 and WebSocket on 8548.
"""

from dataclasses import dataclass, field
from typing import List

# Ports the nitro node listens on inside the container
NODE_HTTP_CONTAINER_PORT = 8547
NODE_WS_CONTAINER_PORT = 8548


@dataclass
class NodeConfig:
    """nitro-devnode container configuration."""

    image: str = "offchainlabs/nitro-node"
    tag: str = "v3.7.1-926f1ab"
    http_port: int = 8547
    ws_port: int = 8548

    # Well-known name for the long-lived node started by operators
    container_name: str = "nitro-devnode"

    # Prefix for throwaway nodes started on behalf of a single task
    ephemeral_prefix: str = "nitro-devnode-tmp-"

    readiness_timeout_ms: int = 30000
    readiness_interval_ms: int = 1000

    command: List[str] = field(
        default_factory=lambda: [
            "--dev",
            "--http.api=eth,net,web3,debug",
            "--http.corsdomain=*",
            "--http.addr=0.0.0.0",
            "--http.vhosts=*",
            "--ws.api=eth,net,web3,debug",
            "--ws.addr=0.0.0.0",
            "--ws.origins=*",
        ]
    )

    def http_url(self, port: int | None = None) -> str:
        """JSON-RPC URL of a node published on ``port`` (defaults to http_port)."""
        return f"http://localhost:{port or self.http_port}"

    def ws_url(self, port: int | None = None) -> str:
        """WebSocket URL of a node published on ``port`` (defaults to ws_port)."""
        return f"ws://localhost:{port or self.ws_port}"
