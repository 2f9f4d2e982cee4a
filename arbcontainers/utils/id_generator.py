"""Name generation utilities for throwaway containers."""

import secrets
import string

# Docker container names must match [a-zA-Z0-9][a-zA-Z0-9_.-]*
SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def generate_suffix(length: int = 8) -> str:
    """Generate a random lowercase alphanumeric suffix."""
    if length < 1:
        raise ValueError("length must be at least 1")
    return "".join(secrets.choice(SUFFIX_ALPHABET) for _ in range(length))


def generate_container_name(prefix: str, length: int = 8) -> str:
    """Generate a container name such as ``nitro-devnode-tmp-k3x9q0ab``."""
    return f"{prefix}{generate_suffix(length)}"
