#!/usr/bin/env python3
"""Mock vMix TCP API server CLI, for running the bridge without vMix."""
from __future__ import annotations

import asyncio
import logging
import sys
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

if __name__ == "__main__":
    import os
    sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from vmixember.mock_device import MockVmix

app = typer.Typer(help="Mock vMix TCP API server", add_completion=False)
console = Console()


def handle_console_command(device: MockVmix, raw: str) -> bool:
    """Run one console command. Returns False when the console should exit."""
    parts = raw.strip().split()
    if not parts:
        return True
    cmd = parts[0].lower()
    if cmd in {"quit", "exit"}:
        return False
    if cmd == "help":
        console.print(
            "Commands: tally <digits> | acts <category> <0|1> | raw <line> | "
            "commands | clients | drop | quit"
        )
        return True
    if cmd == "tally" and len(parts) == 2:
        if not parts[1].isdigit():
            console.print("Tally must be a digit string, e.g. 0120")
            return True
        device.set_tally(parts[1])
        console.print(f"Tally set to {parts[1]}")
        return True
    if cmd == "acts" and len(parts) == 3:
        device.set_activity(parts[1], parts[2] == "1")
        console.print(f"{parts[1]} set to {parts[2] == '1'}")
        return True
    if cmd == "raw" and len(parts) >= 2:
        line = raw.strip()[len(parts[0]):].strip()
        device.send_raw(line.encode("utf-8") + b"\r\n")
        console.print(f"Sent: {line}")
        return True
    if cmd == "commands":
        table = Table(title="Received commands")
        table.add_column("Time", style="dim")
        table.add_column("Client", style="cyan")
        table.add_column("Command", style="yellow")
        for entry in device.commands:
            table.add_row(entry.timestamp.strftime("%H:%M:%S"), entry.client, entry.line)
        console.print(table)
        return True
    if cmd == "clients":
        console.print(
            f"{device.client_count} client(s), "
            f"{device.subscribed_clients('TALLY')} on TALLY, {device.subscribed_clients('ACTS')} on ACTS"
        )
        return True
    if cmd == "drop":
        asyncio.get_running_loop().create_task(device.disconnect_clients())
        console.print("Dropping all clients")
        return True
    console.print(f"Unknown command: {raw}")
    return True


async def _interactive_console(device: MockVmix) -> None:
    console.print("[bold cyan]Mock vMix console ready[/]. Type 'help' for commands")
    while True:
        try:
            raw = await asyncio.to_thread(input, "vmix> ")
        except (EOFError, KeyboardInterrupt):
            console.print("Exiting console...")
            return
        if not handle_console_command(device, raw):
            return


async def _run_server(host: str, port: int, tally: Optional[str], interactive: bool) -> None:
    device = MockVmix(host=host, port=port)
    if tally:
        device.state.tally = tally
    await device.start()
    console.print(f"[green]Mock vMix running on {host}:{device.port}. Press Ctrl+C to stop.[/]")
    try:
        if interactive:
            await _interactive_console(device)
        else:
            await asyncio.Event().wait()
    finally:
        await device.stop()


@app.command()
def start(
    host: str = typer.Option("127.0.0.1", help="Host to bind"),
    port: int = typer.Option(8099, help="TCP port to bind"),
    tally: Optional[str] = typer.Option(None, help="Initial tally digit string"),
    interactive: bool = typer.Option(True, help="Launch interactive console"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Start the mock vMix server."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console)],
    )
    try:
        asyncio.run(_run_server(host, port, tally, interactive))
    except KeyboardInterrupt:
        console.print("Stopping server...")


if __name__ == "__main__":
    app()
