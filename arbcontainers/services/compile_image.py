"""Stylus compile image management.

The compile image bundles a Rust toolchain with the wasm32 target and
cargo-stylus. It is built locally on first use and then reused; toolchain
and registry downloads made by compile containers persist in the cache
volumes mounted by ``container_spec``.
"""

from typing import Dict, Iterable, List, Optional, Sequence

import structlog

from ..config import CompileConfig, settings
from ..models import ContainerSpec, VolumeMapping
from ..utils.network import DOCKER_HOST_ALIAS, is_localhost_url, to_docker_host_url
from .container import ContainerRuntime, DockerCliRuntime, ProgressCallback

logger = structlog.get_logger(__name__)

DEFAULT_COMPILE_TAG = "latest"

# Maps the Docker host alias to the host gateway on Linux daemons
HOST_GATEWAY = f"{DOCKER_HOST_ALIAS}:host-gateway"


def generate_dockerfile(toolchain: Optional[str] = None) -> str:
    """Dockerfile for a compile image, pinned to ``toolchain`` when given."""
    base = f"rust:{toolchain}-slim" if toolchain else "rust:slim"
    return (
        f"FROM {base}\n"
        "RUN apt-get update && apt-get install -y pkg-config libssl-dev "
        "&& rm -rf /var/lib/apt/lists/*\n"
        "RUN rustup target add wasm32-unknown-unknown\n"
        "RUN cargo install cargo-stylus\n"
        "WORKDIR /workspace\n"
    )


class CompileImageBuilder:
    """Builds and locates Stylus compile images."""

    def __init__(
        self,
        runtime: Optional[ContainerRuntime] = None,
        image_name: Optional[str] = None,
        config: Optional[CompileConfig] = None,
    ):
        self.runtime = runtime or DockerCliRuntime()
        self.config = config or settings.compile
        self.image_name = image_name or self.config.image_name

    def image_tag(self, toolchain: Optional[str] = None) -> str:
        return toolchain or DEFAULT_COMPILE_TAG

    def image_ref(self, toolchain: Optional[str] = None) -> str:
        return f"{self.image_name}:{self.image_tag(toolchain)}"

    async def image_exists(self, toolchain: Optional[str] = None) -> bool:
        return await self.runtime.image_exists(self.image_name, self.image_tag(toolchain))

    async def ensure_image(
        self,
        toolchain: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> bool:
        """Build the compile image unless it exists.

        Returns:
            True if the image was built, False if a cached image was used
        """
        ref = self.image_ref(toolchain)
        if await self.image_exists(toolchain):
            if on_progress:
                on_progress(f"Using cached compile image {ref}")
            return False

        if on_progress:
            on_progress("Building compile image... (this may take several minutes on first run)")
        logger.info("Building compile image", image=ref, toolchain=toolchain)

        await self.runtime.build_image(
            self.image_name,
            self.image_tag(toolchain),
            generate_dockerfile(toolchain),
            on_progress,
        )

        if on_progress:
            on_progress(f"Compile image {ref} ready.")
        return True

    async def ensure_images(
        self,
        toolchains: Iterable[str],
        on_progress: Optional[ProgressCallback] = None,
    ) -> Dict[str, List[str]]:
        """Ensure one image per distinct toolchain."""
        result: Dict[str, List[str]] = {"built": [], "cached": []}
        for toolchain in dict.fromkeys(toolchains):
            built = await self.ensure_image(toolchain, on_progress)
            result["built" if built else "cached"].append(toolchain)
        return result

    def container_spec(
        self,
        contract_path: str,
        command: Sequence[str],
        toolchain: Optional[str] = None,
        name: Optional[str] = None,
        network: Optional[str] = None,
        rpc_url: Optional[str] = None,
    ) -> ContainerSpec:
        """Spec for a one-shot compile container working on ``contract_path``.

        When ``rpc_url`` points at the local machine the container is given a
        route to the Docker host; pass the command an endpoint built with
        ``rpc_endpoint``.
        """
        extra_hosts = []
        if rpc_url and is_localhost_url(rpc_url):
            extra_hosts.append(HOST_GATEWAY)
        volumes = [VolumeMapping(contract_path, self.config.workspace_dir)]
        volumes.extend(
            VolumeMapping(volume.name, volume.mount_path)
            for volume in self.config.cache_volumes
        )
        return ContainerSpec(
            image=self.image_name,
            tag=self.image_tag(toolchain),
            name=name,
            volumes=volumes,
            command=command,
            network=network,
            extra_hosts=extra_hosts,
            auto_remove=True,
            working_dir=self.config.workspace_dir,
        )

    def rpc_endpoint(self, rpc_url: str) -> str:
        """RPC URL as seen from inside a compile container."""
        if is_localhost_url(rpc_url):
            return to_docker_host_url(rpc_url)
        return rpc_url
