"""Host networking helpers."""

import socket
from urllib.parse import urlsplit, urlunsplit

# Hostname under which containers reach services on the Docker host
DOCKER_HOST_ALIAS = "host.docker.internal"


def is_localhost_url(url: str) -> bool:
    """Check if ``url`` points at the local machine."""
    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        return False
    if not hostname:
        return False
    return hostname == "localhost" or hostname.startswith("127.")


def to_docker_host_url(url: str) -> str:
    """Rewrite a localhost URL so it is reachable from inside a container."""
    parts = urlsplit(url)
    netloc = DOCKER_HOST_ALIAS
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    if parts.username:
        userinfo = parts.username
        if parts.password:
            userinfo += f":{parts.password}"
        netloc = f"{userinfo}@{netloc}"
    return urlunsplit(parts._replace(netloc=netloc)).rstrip("/")


def find_free_port(host: str = "127.0.0.1") -> int:
    """Ask the OS for a currently unused TCP port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return sock.getsockname()[1]
