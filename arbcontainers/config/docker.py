"""Docker configuration."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DockerConfig(BaseSettings):
    """Docker CLI settings."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    command: str = Field(default="docker", alias="docker_command")
    stop_timeout: int = Field(default=10, ge=0, le=600, alias="docker_stop_timeout")
    info_timeout: int = Field(default=5, ge=1, alias="docker_info_timeout")

    # What start() does when a running container already holds the requested name
    collision_policy: Literal["reuse", "fail"] = Field(
        default="reuse", alias="container_collision_policy"
    )

    # Readiness probe per-attempt timeouts (seconds)
    readiness_http_timeout: float = Field(default=5.0, gt=0, le=60)
    readiness_tcp_timeout: float = Field(default=1.0, gt=0, le=30)
