"""Docker CLI runtime adapter.

Talks to the Docker daemon through the ``docker`` executable. Every
operation spawns exactly one CLI process with ``asyncio`` so concurrent
operations never block each other, and parses its text/JSON output into
typed results. No operation retries; callers own retry policy.
"""

import asyncio
import json
import os
import re
import shutil
import tempfile
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import structlog

from ...config import settings
from ...models import (
    ContainerHandle,
    ContainerRuntimeError,
    ContainerSpec,
    ContainerStatus,
    ExecResult,
    PortMapping,
    split_image_ref,
)
from .interfaces import ContainerRuntime, LogStream, ProgressCallback

logger = structlog.get_logger(__name__)

# Exit code reported when the CLI executable itself cannot be spawned
COMMAND_NOT_FOUND_EXIT_CODE = 127


@dataclass
class CommandResult:
    """Result of a Docker CLI command execution."""

    stdout: str
    stderr: str
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


def build_run_args(spec: ContainerSpec) -> List[str]:
    """Build ``docker run`` arguments from a ContainerSpec.

    Command tokens always come last, after the image reference.
    """
    args = ["run"]

    if spec.detach:
        args.append("-d")
    if spec.auto_remove:
        args.append("--rm")
    if spec.name:
        args.extend(["--name", spec.name])
    if spec.network:
        args.extend(["--network", spec.network])
    for host in spec.extra_hosts:
        args.extend(["--add-host", host])

    for port in spec.ports:
        args.extend(["-p", port.to_flag()])
    for key, value in spec.env.items():
        args.extend(["-e", f"{key}={value}"])
    for volume in spec.volumes:
        args.extend(["-v", volume.to_flag()])

    if spec.working_dir:
        args.extend(["-w", spec.working_dir])

    args.append(spec.image_ref)
    args.extend(spec.command)
    return args


def parse_inspect_result(data: Dict[str, Any]) -> ContainerHandle:
    """Parse ``docker inspect`` JSON into a ContainerHandle."""
    ports: List[PortMapping] = []
    network_ports = (data.get("NetworkSettings") or {}).get("Ports") or {}
    for container_port, bindings in network_ports.items():
        if not bindings:
            continue
        port, _, protocol = container_port.partition("/")
        try:
            ports.append(
                PortMapping(
                    host=int(bindings[0].get("HostPort")),
                    container=int(port),
                    protocol=protocol or "tcp",
                )
            )
        except (TypeError, ValueError):
            continue

    image, tag = split_image_ref((data.get("Config") or {}).get("Image") or "")
    status = ContainerStatus.parse((data.get("State") or {}).get("Status"))

    return ContainerHandle(
        id=data.get("Id", ""),
        name=(data.get("Name") or "").lstrip("/"),
        ports=ports,
        status=status,
        image=image,
        tag=tag,
    )


class DockerCliRuntime(ContainerRuntime):
    """ContainerRuntime backed by the docker CLI."""

    def __init__(self, docker_command: Optional[str] = None):
        self.docker_command = docker_command or settings.docker_command

    def _command(self, args: Sequence[str]) -> List[str]:
        return [self.docker_command, *args]

    async def _exec(self, args: Sequence[str]) -> CommandResult:
        """Run one docker CLI command to completion."""
        command = self._command(args)
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            return CommandResult(
                stdout="",
                stderr=f"Failed to execute {self.docker_command}: {e}",
                exit_code=COMMAND_NOT_FOUND_EXIT_CODE,
            )

        stdout, stderr = await process.communicate()
        return CommandResult(
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
            exit_code=process.returncode if process.returncode is not None else 1,
        )

    async def _exec_checked(self, args: Sequence[str], failure: str) -> CommandResult:
        """Run a command and raise ContainerRuntimeError on non-zero exit."""
        result = await self._exec(args)
        if not result.ok:
            command = self._command(args)
            stderr = result.stderr.strip()
            logger.debug(
                "Docker command failed",
                command=" ".join(command),
                exit_code=result.exit_code,
                stderr=stderr,
            )
            raise ContainerRuntimeError(
                f"{failure}: {stderr}" if stderr else failure,
                command=command,
                exit_code=result.exit_code,
                stderr=result.stderr,
            )
        return result

    # ------------------------------------------------------------------
    # Daemon and images
    # ------------------------------------------------------------------

    async def is_available(self) -> bool:
        result = await self._exec(["info", "--format", "{{.ServerVersion}}"])
        return result.ok and bool(result.stdout.strip())

    async def image_exists(self, image: str, tag: str) -> bool:
        result = await self._exec(["image", "inspect", f"{image}:{tag}"])
        return result.ok

    async def pull_image(self, image: str, tag: str) -> None:
        ref = f"{image}:{tag}"
        logger.info("Pulling Docker image", image=ref)
        await self._exec_checked(["pull", ref], f"Failed to pull image {ref}")
        logger.info("Pulled Docker image", image=ref)

    async def build_image(
        self,
        name: str,
        tag: str,
        dockerfile_content: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """Build an image from Dockerfile content.

        The Dockerfile is written into a throwaway build context directory
        that is deleted whether the build succeeds or fails. Build output is
        forwarded line by line to ``on_progress``.
        """
        ref = f"{name}:{tag}"
        context_dir = tempfile.mkdtemp(prefix="arbcontainers-build-")
        try:
            with open(os.path.join(context_dir, "Dockerfile"), "w", encoding="utf-8") as f:
                f.write(dockerfile_content)

            args = ["build", "-t", ref, context_dir]
            command = self._command(args)
            logger.info("Building Docker image", image=ref)

            try:
                process = await asyncio.create_subprocess_exec(
                    *command,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as e:
                raise ContainerRuntimeError(
                    f"Failed to build image {ref}: {e}",
                    command=command,
                    exit_code=COMMAND_NOT_FOUND_EXIT_CODE,
                    stderr=str(e),
                ) from e

            stderr_lines: List[str] = []

            async def pump(stream: Optional[asyncio.StreamReader], sink: Optional[List[str]]):
                if stream is None:
                    return
                async for raw in stream:
                    line = raw.decode(errors="replace").rstrip()
                    if sink is not None:
                        sink.append(line)
                    if line.strip() and on_progress:
                        on_progress(line.strip())

            await asyncio.gather(
                pump(process.stdout, None),
                pump(process.stderr, stderr_lines),
            )
            exit_code = await process.wait()

            if exit_code != 0:
                stderr = "\n".join(stderr_lines)
                raise ContainerRuntimeError(
                    f"Failed to build image {ref} (exit code {exit_code})",
                    command=command,
                    exit_code=exit_code,
                    stderr=stderr,
                )
            logger.info("Built Docker image", image=ref)
        finally:
            shutil.rmtree(context_dir, ignore_errors=True)

    # ------------------------------------------------------------------
    # Containers
    # ------------------------------------------------------------------

    async def run(self, spec: ContainerSpec) -> str:
        args = build_run_args(spec)
        result = await self._exec(args)
        if not result.ok:
            command = self._command(args)
            raise ContainerRuntimeError(
                f"Failed to start container ({' '.join(command)}): {result.stderr.strip()}",
                command=command,
                exit_code=result.exit_code,
                stderr=result.stderr,
            )
        container_id = result.stdout.strip()
        logger.debug("Container created", container_id=container_id[:12], image=spec.image_ref)
        return container_id

    async def start(self, container_id: str) -> None:
        await self._exec_checked(
            ["start", container_id], f"Failed to start container {container_id}"
        )

    async def stop(self, container_id: str, timeout_seconds: int = 10) -> None:
        await self._exec_checked(
            ["stop", "-t", str(timeout_seconds), container_id],
            f"Failed to stop container {container_id}",
        )

    async def remove(self, container_id: str, force: bool = False) -> None:
        args = ["rm"]
        if force:
            args.append("-f")
        args.append(container_id)
        await self._exec_checked(args, f"Failed to remove container {container_id}")

    async def inspect(self, container_id: str) -> Optional[ContainerHandle]:
        result = await self._exec(["inspect", "--format", "{{json .}}", container_id])
        if not result.ok:
            return None

        lines = result.stdout.strip().splitlines()
        if not lines:
            return None
        try:
            data = json.loads(lines[0])
        except json.JSONDecodeError:
            logger.warning("Unparseable inspect output", container_id=container_id)
            return None
        if not isinstance(data, dict):
            return None
        return parse_inspect_result(data)

    async def get_status(self, container_id: str) -> ContainerStatus:
        result = await self._exec(["inspect", "--format", "{{.State.Status}}", container_id])
        if not result.ok:
            return ContainerStatus.UNKNOWN
        return ContainerStatus.parse(result.stdout)

    async def find_by_name(self, name: str) -> Optional[str]:
        # Anchored so "node" does not match "node-tmp-abc"; escaped since the
        # daemon treats the filter as a regular expression
        result = await self._exec(
            ["ps", "-a", "--filter", f"name=^{re.escape(name)}$", "--format", "{{.ID}}"]
        )
        if not result.ok:
            return None
        lines = result.stdout.strip().splitlines()
        return lines[0].strip() if lines else None

    async def logs(self, container_id: str, tail: Optional[int] = None) -> str:
        args = ["logs"]
        if tail is not None:
            args.extend(["--tail", str(tail)])
        args.append(container_id)
        result = await self._exec_checked(args, f"Failed to read logs of {container_id}")
        # Container stderr is relayed on the CLI's stderr
        return result.stdout + result.stderr

    async def stream_logs(
        self, container_id: str, tail: Optional[int] = None
    ) -> LogStream:
        args = ["logs", "-f"]
        if tail is not None:
            args.extend(["--tail", str(tail)])
        args.append(container_id)
        command = self._command(args)
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ContainerRuntimeError(
                f"Failed to stream logs of {container_id}: {e}",
                command=command,
                exit_code=COMMAND_NOT_FOUND_EXIT_CODE,
                stderr=str(e),
            ) from e
        return LogStream(process, container_id)

    async def exec_in_container(
        self, container_id: str, command: Sequence[str]
    ) -> ExecResult:
        result = await self._exec(["exec", container_id, *command])
        return ExecResult(
            exit_code=result.exit_code, stdout=result.stdout, stderr=result.stderr
        )

    # ------------------------------------------------------------------
    # Networks and volumes
    # ------------------------------------------------------------------

    async def create_network(self, name: str) -> None:
        await self._exec_checked(["network", "create", name], f"Failed to create network {name}")
        logger.info("Created Docker network", network=name)

    async def remove_network(self, name: str) -> None:
        await self._exec_checked(["network", "rm", name], f"Failed to remove network {name}")
        logger.info("Removed Docker network", network=name)

    async def network_exists(self, name: str) -> bool:
        result = await self._exec(["network", "inspect", name])
        return result.ok

    async def create_volume(self, name: str) -> None:
        await self._exec_checked(["volume", "create", name], f"Failed to create volume {name}")
        logger.info("Created Docker volume", volume=name)

    async def remove_volume(self, name: str) -> None:
        await self._exec_checked(["volume", "rm", name], f"Failed to remove volume {name}")
        logger.info("Removed Docker volume", volume=name)

    async def volume_exists(self, name: str) -> bool:
        result = await self._exec(["volume", "inspect", name])
        return result.ok
