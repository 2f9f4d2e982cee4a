#!/usr/bin/env python3
"""
Arbitrum dev node CLI - manage the local nitro-devnode and compile caches.

Usage:
  python scripts/arb_node_cli.py start              # Start nitro-devnode
  python scripts/arb_node_cli.py status             # Show node status
  python scripts/arb_node_cli.py logs -f            # Follow node logs
  python scripts/arb_node_cli.py stop               # Stop and remove the node
  python scripts/arb_node_cli.py build-image 1.83.0 # Build a compile image
  python scripts/arb_node_cli.py clean-cache        # Remove compile cache volumes
  python scripts/arb_node_cli.py check              # Validate configuration
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load .env file if it exists
from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / ".env")

from rich.console import Console
from rich.table import Table
from rich import box
from rich.markup import escape

from arbcontainers.config import settings
from arbcontainers.dependencies import (
    get_compile_image_builder,
    get_container_manager,
    get_node_service,
    get_volume_manager,
)
from arbcontainers.models import (
    ContainerManagerError,
    ContainerRuntimeError,
    ReadinessTimeoutError,
)
from arbcontainers.utils.config_validator import ConfigValidator, get_configuration_summary
from arbcontainers.utils.logging import setup_logging

console = Console()
err_console = Console(stderr=True)


# ============================================================================
# Commands
# ============================================================================

async def cmd_start(args):
    """Start the node and wait until it serves RPC."""
    service = get_node_service()
    name = args.name or settings.arb_node_container_name

    if not args.quiet:
        console.print(f"Starting Arbitrum nitro-devnode [cyan]{name}[/cyan]...")

    try:
        handle = await service.start_node(name)
    except ReadinessTimeoutError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        logs = await get_container_manager().logs(e.container_id, tail=20)
        if logs.strip():
            err_console.print("\n[dim]Last log lines:[/dim]")
            err_console.print(logs.rstrip(), markup=False, highlight=False)
        return 1

    if not args.quiet:
        console.print(f"[green]Node started[/green] (container: {handle.short_id})")
        console.print(f"  HTTP RPC:  {settings.node.http_url()}")
        console.print(f"  WebSocket: {settings.node.ws_url()}")
    return 0


async def cmd_stop(args):
    """Stop and remove the node."""
    service = get_node_service()
    name = args.name or settings.arb_node_container_name

    if not args.quiet:
        console.print(f"Stopping Arbitrum node [cyan]{name}[/cyan]...")

    stopped = await service.stop_node(name)
    if not args.quiet:
        console.print("Node stopped." if stopped else "Node is not running.")
    return 0


async def cmd_status(args):
    """Show whether the node exists and is running."""
    status = await get_node_service().node_status(args.name)

    table = Table(box=box.SIMPLE, show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Container", status.name)

    if not status.exists:
        table.add_row("State", "[yellow]not running[/yellow]")
    elif status.running:
        table.add_row("State", "[green]running[/green]")
        table.add_row("ID", status.container_id[:12])
        table.add_row("HTTP RPC", status.http_url)
        table.add_row("WebSocket", status.ws_url)
    else:
        table.add_row("State", "[yellow]exists but not running[/yellow]")
        table.add_row("ID", status.container_id[:12])

    console.print(table)
    return 0


async def cmd_logs(args):
    """Print or follow node logs."""
    service = get_node_service()
    name = args.name or settings.arb_node_container_name

    if not args.follow:
        logs = await service.node_logs(name, args.tail)
        if logs is None:
            return _report_missing_node(name)
        sys.stdout.write(logs)
        return 0

    stream = await service.stream_node_logs(name, args.tail)
    if stream is None:
        return _report_missing_node(name)

    err_console.print("[dim]Streaming logs (press Ctrl+C to stop)...[/dim]\n")

    async def pipe(reader, writer):
        if reader is None:
            return
        async for line in reader:
            writer.write(line.decode(errors="replace"))
            writer.flush()

    try:
        await asyncio.gather(pipe(stream.stdout, sys.stdout), pipe(stream.stderr, sys.stderr))
        await stream.wait()
    finally:
        stream.kill()
    return 0


def _report_missing_node(name):
    console.print(f"Node [cyan]{name}[/cyan] is not running.")
    console.print("If the node was started with a custom name, use --name to specify it.")
    return 1


async def cmd_build_image(args):
    """Build the Stylus compile image for a toolchain."""
    builder = get_compile_image_builder()

    def progress(line):
        if args.verbose:
            console.print(f"  [dim]{escape(line)}[/dim]", highlight=False)

    with console.status(f"Preparing {builder.image_ref(args.toolchain)}..."):
        built = await builder.ensure_image(args.toolchain, progress)

    verb = "Built" if built else "Using cached"
    console.print(f"[green]{verb}[/green] compile image {builder.image_ref(args.toolchain)}")
    return 0


async def cmd_clean_cache(args):
    """Remove compile cache volumes."""
    result = await get_volume_manager().clean_volumes()

    for name in result.removed:
        console.print(f"[green]Removed[/green] {name}")
    for name in result.not_found:
        console.print(f"[dim]Not found[/dim] {name}")
    if not result.removed:
        console.print("No cache volumes to remove.")
    return 0


async def cmd_check(args):
    """Validate configuration and Docker connectivity."""
    validator = ConfigValidator()
    ok = validator.validate_all()

    table = Table(title="Configuration", box=box.ROUNDED)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in get_configuration_summary().items():
        table.add_row(key, str(value))
    console.print(table)

    available = await get_container_manager().runtime.is_available()
    console.print(
        "Docker daemon: " + ("[green]available[/green]" if available else "[red]unavailable[/red]")
    )

    for warning in validator.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")
    for error in validator.errors:
        console.print(f"[red]Error:[/red] {error}")

    return 0 if ok and available else 1


# ============================================================================
# Main
# ============================================================================

def main():
    parser = argparse.ArgumentParser(
        description="Arbitrum nitro-devnode management CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s start
  %(prog)s status
  %(prog)s logs --follow --tail 100
  %(prog)s stop --name my-node
  %(prog)s build-image 1.83.0 -v
  %(prog)s clean-cache
"""
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # start command
    start_parser = subparsers.add_parser("start", help="Start the node")
    start_parser.add_argument("--name", help="Container name")
    start_parser.add_argument("-q", "--quiet", action="store_true", help="Suppress output")

    # stop command
    stop_parser = subparsers.add_parser("stop", help="Stop and remove the node")
    stop_parser.add_argument("--name", help="Container name")
    stop_parser.add_argument("-q", "--quiet", action="store_true", help="Suppress output")

    # status command
    status_parser = subparsers.add_parser("status", help="Show node status")
    status_parser.add_argument("--name", help="Container name")

    # logs command
    logs_parser = subparsers.add_parser("logs", help="Show node logs")
    logs_parser.add_argument("--name", help="Container name")
    logs_parser.add_argument("-f", "--follow", action="store_true", help="Follow log output")
    logs_parser.add_argument("--tail", type=int, help="Number of lines from the end")

    # build-image command
    build_parser = subparsers.add_parser("build-image", help="Build a Stylus compile image")
    build_parser.add_argument("toolchain", nargs="?", help="Rust toolchain version (e.g. 1.83.0)")
    build_parser.add_argument("-v", "--verbose", action="store_true", help="Show build output")

    # clean-cache command
    subparsers.add_parser("clean-cache", help="Remove compile cache volumes")

    # check command
    subparsers.add_parser("check", help="Validate configuration and Docker connectivity")

    args = parser.parse_args()
    setup_logging(level="DEBUG" if args.debug else None)

    handlers = {
        "start": cmd_start,
        "stop": cmd_stop,
        "status": cmd_status,
        "logs": cmd_logs,
        "build-image": cmd_build_image,
        "clean-cache": cmd_clean_cache,
        "check": cmd_check,
    }

    try:
        sys.exit(asyncio.run(handlers[args.command](args)))
    except (ContainerManagerError, ContainerRuntimeError) as e:
        err_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nCancelled.")
        sys.exit(130)


if __name__ == "__main__":
    main()
