"""Configuration validation utilities."""

import logging
import shutil
from typing import Any, Dict, List

import docker

from ..config import Settings, settings

logger = logging.getLogger(__name__)


class ConfigValidator:
    """Validates configuration and Docker daemon connectivity."""

    def __init__(self, config: Settings | None = None):
        self.config = config or settings
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def validate_all(self) -> bool:
        """Validate all configuration settings and the Docker daemon."""
        self.errors.clear()
        self.warnings.clear()

        self._validate_node_config()
        self._validate_readiness_config()
        self._validate_compile_config()
        self._validate_docker_cli()
        self._validate_docker_connection()

        if self.warnings:
            for warning in self.warnings:
                logger.warning(f"Configuration warning: {warning}")

        if self.errors:
            for error in self.errors:
                logger.error(f"Configuration error: {error}")
            return False

        return True

    def _validate_node_config(self):
        """Validate node port configuration."""
        http_port = self.config.arb_node_http_port
        ws_port = self.config.arb_node_ws_port

        for label, port in (("HTTP", http_port), ("WebSocket", ws_port)):
            if not 1 <= port <= 65535:
                self.errors.append(f"Node {label} port out of range: {port}")
            elif port < 1024:
                self.warnings.append(
                    f"Node {label} port {port} is privileged and may need root"
                )

        if http_port == ws_port:
            self.errors.append("Node HTTP and WebSocket ports must differ")

        if not self.config.arb_node_container_name.strip():
            self.errors.append("Node container name must not be empty")

    def _validate_readiness_config(self):
        """Validate readiness polling configuration."""
        timeout_ms = self.config.arb_node_readiness_timeout_ms
        interval_ms = self.config.arb_node_readiness_interval_ms
        if interval_ms > timeout_ms:
            self.warnings.append(
                f"Readiness interval ({interval_ms}ms) exceeds timeout ({timeout_ms}ms); "
                "the node gets a single probe"
            )

    def _validate_compile_config(self):
        """Validate compile cache volume names."""
        if self.config.compile_rustup_volume == self.config.compile_cargo_volume:
            self.errors.append("Rustup and cargo cache volumes must have different names")

    def _validate_docker_cli(self):
        """Validate that the docker executable is on PATH."""
        if shutil.which(self.config.docker_command) is None:
            self.warnings.append(
                f"Docker CLI '{self.config.docker_command}' not found on PATH"
            )

    def _validate_docker_connection(self):
        """Validate Docker daemon connectivity."""
        try:
            client = docker.from_env(timeout=self.config.docker_info_timeout)
        except docker.errors.DockerException as e:
            self.warnings.append(f"Docker connection error: {e}")
            return

        try:
            client.ping()
            self._validate_node_image(client)
        except docker.errors.DockerException as e:
            self.warnings.append(f"Docker daemon not reachable: {e}")
        except Exception as e:
            self.warnings.append(f"Docker validation error: {e}")
        finally:
            client.close()

    def _validate_node_image(self, docker_client):
        """Warn when the node image still has to be pulled."""
        image = f"{self.config.arb_node_image}:{self.config.arb_node_tag}"
        try:
            docker_client.images.get(image)
        except docker.errors.ImageNotFound:
            self.warnings.append(
                f"Docker image not found locally (will be pulled on first use): {image}"
            )


def get_configuration_summary() -> Dict[str, Any]:
    """Get a summary of current configuration for debugging."""
    return {
        "docker_command": settings.docker_command,
        "collision_policy": settings.container_collision_policy,
        "node_image": f"{settings.arb_node_image}:{settings.arb_node_tag}",
        "node_http_port": settings.arb_node_http_port,
        "node_ws_port": settings.arb_node_ws_port,
        "compile_image": settings.compile_image_name,
    }
