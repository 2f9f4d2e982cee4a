"""Stylus compile container configuration."""

from dataclasses import dataclass
from typing import List

from ..models import CacheVolume


@dataclass
class CompileConfig:
    """Compile image and cache volume settings."""

    image_name: str = "stylus-compile"

    # Named volumes that persist rustup toolchains and the cargo registry
    # between compile container runs
    rustup_volume: str = "stylus-compile-rustup"
    cargo_volume: str = "stylus-compile-cargo"

    # RUSTUP_HOME and CARGO_HOME of the official rust images
    rustup_home: str = "/usr/local/rustup"
    cargo_home: str = "/usr/local/cargo"
    workspace_dir: str = "/workspace"

    @property
    def cache_volumes(self) -> List[CacheVolume]:
        """All cache volumes, in creation order."""
        return [
            CacheVolume(self.rustup_volume, mount_path=self.rustup_home),
            CacheVolume(self.cargo_volume, mount_path=self.cargo_home),
        ]
