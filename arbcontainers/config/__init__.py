"""Configuration management for arbcontainers.

Settings are read from environment variables (and an optional ``.env``
file) into a single flat Settings class, with grouped views for each
component.

Usage:
    from arbcontainers.config import settings

    # Grouped access
    settings.docker.command
    settings.node.http_port

    # Flat access
    settings.docker_command
    settings.arb_node_http_port
"""

from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .compile import CompileConfig
from .docker import DockerConfig
from .logging import LoggingConfig
from .node import NODE_HTTP_CONTAINER_PORT, NODE_WS_CONTAINER_PORT, NodeConfig


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Docker CLI
    docker_command: str = Field(default="docker", description="Docker CLI executable")
    docker_stop_timeout: int = Field(
        default=10, ge=0, le=600, description="Seconds docker stop waits before SIGKILL"
    )
    docker_info_timeout: int = Field(
        default=5, ge=1, description="Timeout for daemon reachability checks"
    )
    container_collision_policy: Literal["reuse", "fail"] = Field(
        default="reuse",
        description="Behaviour when start() finds a running container with the same name",
    )

    # Readiness probes
    readiness_http_timeout: float = Field(default=5.0, gt=0, le=60)
    readiness_tcp_timeout: float = Field(default=1.0, gt=0, le=30)

    # nitro-devnode
    arb_node_image: str = Field(default="offchainlabs/nitro-node")
    arb_node_tag: str = Field(default="v3.7.1-926f1ab")
    arb_node_http_port: int = Field(default=8547, ge=1, le=65535)
    arb_node_ws_port: int = Field(default=8548, ge=1, le=65535)
    arb_node_container_name: str = Field(default="nitro-devnode", min_length=1)
    arb_node_ephemeral_prefix: str = Field(default="nitro-devnode-tmp-", min_length=1)
    arb_node_readiness_timeout_ms: int = Field(default=30000, ge=100)
    arb_node_readiness_interval_ms: int = Field(default=1000, ge=10)

    # Stylus compile containers
    compile_image_name: str = Field(default="stylus-compile")
    compile_rustup_volume: str = Field(default="stylus-compile-rustup")
    compile_cargo_volume: str = Field(default="stylus-compile-cargo")

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")
    log_file: str | None = Field(default=None)
    log_max_size_mb: int = Field(default=100, ge=1)
    log_backup_count: int = Field(default=5, ge=1)

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v):
        """Accept log levels in any case."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Only json and console renderers exist."""
        fmt = v.lower()
        if fmt not in {"json", "console"}:
            raise ValueError("log_format must be 'json' or 'console'")
        return fmt

    @model_validator(mode="after")
    def check_node_ports(self):
        """HTTP and WebSocket ports must be distinct on the host."""
        if self.arb_node_http_port == self.arb_node_ws_port:
            raise ValueError("arb_node_http_port and arb_node_ws_port must differ")
        return self

    # ========================================================================
    # GROUPED CONFIG ACCESS
    # ========================================================================

    @property
    def docker(self) -> DockerConfig:
        """Access Docker configuration group."""
        return DockerConfig(
            docker_command=self.docker_command,
            docker_stop_timeout=self.docker_stop_timeout,
            docker_info_timeout=self.docker_info_timeout,
            container_collision_policy=self.container_collision_policy,
            readiness_http_timeout=self.readiness_http_timeout,
            readiness_tcp_timeout=self.readiness_tcp_timeout,
        )

    @property
    def node(self) -> NodeConfig:
        """Access nitro-devnode configuration group."""
        return NodeConfig(
            image=self.arb_node_image,
            tag=self.arb_node_tag,
            http_port=self.arb_node_http_port,
            ws_port=self.arb_node_ws_port,
            container_name=self.arb_node_container_name,
            ephemeral_prefix=self.arb_node_ephemeral_prefix,
            readiness_timeout_ms=self.arb_node_readiness_timeout_ms,
            readiness_interval_ms=self.arb_node_readiness_interval_ms,
        )

    @property
    def compile(self) -> CompileConfig:
        """Access compile container configuration group."""
        return CompileConfig(
            image_name=self.compile_image_name,
            rustup_volume=self.compile_rustup_volume,
            cargo_volume=self.compile_cargo_volume,
        )

    @property
    def logging(self) -> LoggingConfig:
        """Access logging configuration group."""
        return LoggingConfig(
            log_level=self.log_level,
            log_format=self.log_format,
            log_file=self.log_file,
            log_max_size_mb=self.log_max_size_mb,
            log_backup_count=self.log_backup_count,
        )


# Global settings instance
settings = Settings()

__all__ = [
    "Settings",
    "settings",
    "CompileConfig",
    "DockerConfig",
    "LoggingConfig",
    "NodeConfig",
    "NODE_HTTP_CONTAINER_PORT",
    "NODE_WS_CONTAINER_PORT",
]
