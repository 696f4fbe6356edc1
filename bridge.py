#!/usr/bin/env python3
"""vMix Ember Bridge CLI - exposes vMix tally and status as a control tree.

The bridge keeps a TCP connection to the vMix API, mirrors tally and ACTS
reports into the tree and sends vMix FUNCTION commands when tree functions
are invoked.

Examples:
    # vMix on this machine (port 8099)
    python bridge.py start

    # vMix elsewhere, with an interactive tree console
    python bridge.py start --vmix-host 192.168.1.50 --console

    # Settings from a file; VMIX_HOST / VMIX_PORT still override it
    python bridge.py start --config bridge.yaml

    # Show the exposed tree
    python bridge.py tree
"""
from __future__ import annotations

import asyncio
import logging
import shlex
import signal
import sys
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree as RichTree

# Ensure the vmixember package is importable
if __name__ == "__main__":
    import os
    sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from vmixember.bridge import Bridge
from vmixember.config import MAX_INPUT_COUNT, load_config
from vmixember.errors import BridgeError, ConfigError
from vmixember.tree import Element, Function, LocalTreeService, Matrix, Node, Parameter, build_tree

app = typer.Typer(
    name="bridge",
    help="vMix Ember Bridge - vMix TCP API to control tree gateway",
    add_completion=False,
)
console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich output."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
    )


def _label(element: Element) -> str:
    if isinstance(element, Parameter):
        value = "[green]true[/green]" if element.value is True else (
            "[dim]false[/dim]" if element.value is False else repr(element.value)
        )
        return f"[cyan]{element.number}[/cyan] {element.identifier} = {value}"
    if isinstance(element, Function):
        return f"[cyan]{element.number}[/cyan] [magenta]{element.identifier}()[/magenta] [dim]{element.description}[/dim]"
    if isinstance(element, Matrix):
        return (
            f"[cyan]{element.number}[/cyan] [yellow]{element.identifier}[/yellow] "
            f"{len(element.targets)}x{len(element.sources)} {element.matrix_type.name}"
        )
    return f"[cyan]{element.number}[/cyan] [bold]{element.identifier}[/bold]"


def render_tree(element: Element, branch: Optional[RichTree] = None) -> RichTree:
    node = RichTree(_label(element)) if branch is None else branch.add(_label(element))
    if isinstance(element, Node):
        for number in sorted(element.children):
            render_tree(element.children[number], node)
    return node


def handle_console_command(bridge: Bridge, raw: str) -> bool:
    """Run one console command. Returns False when the console should exit."""
    service = bridge.tree_service
    if not isinstance(service, LocalTreeService):
        console.print("[red]Console requires the local tree service[/red]")
        return False

    try:
        parts = shlex.split(raw)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        return True
    if not parts:
        return True

    cmd = parts[0].lower()
    if cmd in {"quit", "exit"}:
        return False
    if cmd == "help":
        console.print(
            "Commands: show [path] | invoke <function> | set <path> <value> | "
            "stats | functions | quit\n"
            "Paths are numeric (1.1.3.1) or identifier paths (\"vMix/Functions/Stinger 2\"); "
            "functions may also be given by name alone."
        )
        return True

    try:
        if cmd == "show":
            if len(parts) >= 2:
                console.print(render_tree(bridge.tree.resolve(parts[1])))
            else:
                for number in sorted(bridge.tree.roots):
                    console.print(render_tree(bridge.tree.roots[number]))
        elif cmd == "functions":
            table = Table(title="Functions")
            table.add_column("Path", style="cyan")
            table.add_column("Function")
            table.add_column("vMix command", style="yellow")
            for function in bridge.tree.functions():
                table.add_row(function.path, function.identifier, bridge.router.command_for(function.identifier) or "-")
            console.print(table)
        elif cmd == "invoke" and len(parts) >= 2:
            target = " ".join(parts[1:])
            address = _function_address(bridge, target)
            result = service.invoke(address)
            if result.success:
                console.print(f"[green]Invocation {result.id} succeeded[/green]")
            else:
                console.print(f"[red]Invocation {result.id} failed: {result.error}[/red]")
        elif cmd == "set" and len(parts) >= 3:
            accepted = service.set_value(parts[1], parts[2])
            console.print(f"Set {parts[1]} -> {service.get_value(parts[1])!r} ({'accepted' if accepted else 'rejected'})")
        elif cmd == "stats":
            console.print(bridge.get_stats())
        else:
            console.print(f"Unknown command: {raw}")
    except BridgeError as exc:
        console.print(f"[red]{exc}[/red]")
    return True


def _function_address(bridge: Bridge, target: str) -> str:
    for function in bridge.tree.functions():
        if function.identifier == target:
            return function.path
    return target


async def _interactive_console(bridge: Bridge) -> None:
    console.print("[bold cyan]Tree console ready[/]. Type 'help' for commands")
    while True:
        try:
            raw = await asyncio.to_thread(input, "tree> ")
        except (EOFError, KeyboardInterrupt):
            console.print("Exiting console...")
            return
        if not handle_console_command(bridge, raw):
            return


@app.command()
def start(
    vmix_host: Optional[str] = typer.Option(
        None,
        "--vmix-host",
        "-H",
        help="vMix host (default: $VMIX_HOST or localhost)",
    ),
    vmix_port: Optional[int] = typer.Option(
        None,
        "--vmix-port",
        "-P",
        help="vMix TCP API port (default: $VMIX_PORT or 8099)",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        exists=True,
        readable=True,
        help="YAML/JSON configuration file",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging (every received line)",
    ),
    interactive: bool = typer.Option(
        False,
        "--console",
        help="Open an interactive console acting as a local tree client",
    ),
    stats_interval: float = typer.Option(
        60.0,
        "--stats-interval",
        help="Seconds between status lines",
    ),
) -> None:
    """Start the bridge and keep it running until interrupted."""
    setup_logging(verbose)

    try:
        cfg = load_config(config)
    except (ConfigError, FileNotFoundError) as exc:
        console.print(f"[red]Error: {exc}[/red]")
        raise typer.Exit(1)

    overrides: dict[str, Any] = {}
    if vmix_host:
        overrides["vmix_host"] = vmix_host
    if vmix_port is not None:
        overrides["vmix_port"] = vmix_port
    for key, value in overrides.items():
        setattr(cfg, key, value)
    try:
        cfg.validate()
    except ConfigError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        raise typer.Exit(1)

    table = Table(title="Bridge Configuration", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="yellow")
    table.add_row("vMix TCP API", f"{cfg.vmix_host}:{cfg.vmix_port}")
    table.add_row("Ember port", str(cfg.ember_port))
    table.add_row("Inputs", str(cfg.input_count))
    table.add_row(
        "Reconnect delays",
        ", ".join(f"{d:g}s" for d in cfg.retry_delays) + f", then {cfg.max_retry_delay:g}s",
    )
    console.print(table)
    console.print()

    bridge = Bridge(cfg)

    def log_update(parameter: Parameter, value: Any) -> None:
        if parameter is bridge.handles.connected:
            style = "green" if value else "red"
            console.print(f"[{style}]vMix Connected = {value}[/{style}]")

    if isinstance(bridge.tree_service, LocalTreeService):
        bridge.tree_service.add_update_listener(log_update)

    console.print(Panel.fit("[bold green]Starting bridge...[/bold green]"))

    async def run():
        loop = asyncio.get_running_loop()
        stop_event = asyncio.Event()

        def signal_handler():
            console.print("\n[yellow]Shutting down...[/yellow]")
            stop_event.set()

        try:
            loop.add_signal_handler(signal.SIGINT, signal_handler)
            loop.add_signal_handler(signal.SIGTERM, signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

        console_task: Optional[asyncio.Task] = None
        try:
            await bridge.start()
            console.print("[bold green]Bridge running. Press Ctrl+C to stop.[/bold green]")

            if interactive:
                console_task = asyncio.create_task(_interactive_console(bridge))
                console_task.add_done_callback(lambda _: stop_event.set())

            while not stop_event.is_set():
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=stats_interval)
                except asyncio.TimeoutError:
                    stats = bridge.get_stats()
                    console.print(
                        f"[dim]Stats: {stats['state']}, {stats['lines_received']} lines, "
                        f"{stats['commands_sent']} commands sent, "
                        f"{stats['commands_failed']} failed[/dim]"
                    )
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted[/yellow]")
        finally:
            if console_task is not None and not console_task.done():
                console_task.cancel()
            await bridge.stop()
            console.print("[green]Bridge stopped.[/green]")

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


@app.command()
def tree(
    inputs: int = typer.Option(32, "--inputs", "-i", min=1, max=MAX_INPUT_COUNT, help="Number of vMix inputs to expose"),
) -> None:
    """Print the control tree exposed by the bridge."""
    built, _ = build_tree(inputs)
    for number in sorted(built.roots):
        console.print(render_tree(built.roots[number]))


@app.command()
def info() -> None:
    """Display bridge capabilities and usage information."""
    console.print(
        Panel.fit(
            "[bold]vMix Ember Bridge[/bold]\n\n"
            "Mirrors the vMix TCP API into a control tree and forwards\n"
            "tree function invocations to vMix.\n\n"
            "[bold]Tree:[/bold]\n"
            "  • Program / Preview tally booleans per input (default 32)\n"
            "  • vMix Connected flag\n"
            "  • ACTS status: Recording, MultiCorder, Streaming\n"
            "  • Functions: Auto Mix 1, Stinger 1-4, Transition 1-4\n\n"
            "[bold]Connection:[/bold]\n"
            "  • Subscribes to TALLY and ACTS on every connect\n"
            "  • Reconnects with back-off (default 2s, 4s, 16s, then every 30s)\n\n"
            "[bold]Environment:[/bold]\n"
            "  • VMIX_HOST, VMIX_PORT override the vMix endpoint\n",
            title="About",
        )
    )


if __name__ == "__main__":
    app()
