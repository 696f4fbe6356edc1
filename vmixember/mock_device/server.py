"""Mock vMix TCP API server for development and tests.

Implements the subset of the vMix TCP API the bridge relies on:
  - SUBSCRIBE TALLY / SUBSCRIBE ACTS (answered with "SUBSCRIBE OK <topic>")
  - FUNCTION <name> (recorded, answered with "FUNCTION OK Completed")
and pushes TALLY / ACTS reports to subscribed clients.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set

from vmixember.bridge.protocol import LINE_TERMINATOR, LineDecoder

logger = logging.getLogger("vmixember.mock_device")

TOPICS = ("TALLY", "ACTS")


@dataclass(slots=True)
class ReceivedCommand:
    timestamp: datetime
    client: str
    line: str


class MockClient:
    """Represents a connected bridge (or any other TCP API client)."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter, session_id: int):
        self.reader = reader
        self.writer = writer
        self.session_id = session_id
        self.subscriptions: Set[str] = set()
        self.connected = True
        self._addr = writer.get_extra_info("peername")

    @property
    def address(self) -> str:
        if self._addr:
            return f"{self._addr[0]}:{self._addr[1]}"
        return "unknown"

    def send_line(self, line: str) -> None:
        if not self.connected:
            return
        try:
            self.writer.write(line.encode("utf-8") + LINE_TERMINATOR)
        except Exception as e:
            logger.warning("Failed to send to client %s: %s", self.address, e)
            self.connected = False

    async def close(self) -> None:
        self.connected = False
        try:
            self.writer.close()
            await self.writer.wait_closed()
        except Exception:
            pass


@dataclass
class MockVmixState:
    """Device state the mock reports to subscribers."""
    tally: str = ""
    activity: Dict[str, bool] = field(default_factory=lambda: {
        "Recording": False,
        "MultiCorder": False,
        "Streaming": False,
    })


class MockVmix:
    """Asyncio TCP server pretending to be vMix."""

    def __init__(self, host: str = "127.0.0.1", port: int = 8099, state: Optional[MockVmixState] = None):
        self.host = host
        self.port = port
        self.state = state or MockVmixState()
        self.commands: List[ReceivedCommand] = []
        self._server: Optional[asyncio.Server] = None
        self._clients: Set[MockClient] = set()
        self._session_counter = 0
        self._changed = asyncio.Event()

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle_client, self.host, self.port)
        # Port 0 asks the OS for a free port
        self.port = self._server.sockets[0].getsockname()[1]
        logger.info("Mock vMix listening on %s:%d", self.host, self.port)

    async def stop(self) -> None:
        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        await self.disconnect_clients()
        logger.info("Mock vMix stopped")

    async def disconnect_clients(self) -> None:
        """Drop every client connection, as vMix does when it shuts down."""
        for client in list(self._clients):
            await client.close()
        self._clients.clear()

    # --- Device state ---

    def set_tally(self, digits: str) -> None:
        self.state.tally = digits
        self.broadcast("TALLY", f"TALLY OK {digits}")

    def set_activity(self, category: str, active: bool) -> None:
        self.state.activity[category] = active
        self.broadcast("ACTS", f"ACTS OK {category} {1 if active else 0}")

    def broadcast(self, topic: str, line: str) -> int:
        """Send a raw line to every client subscribed to `topic`."""
        sent = 0
        for client in list(self._clients):
            if topic in client.subscriptions:
                client.send_line(line)
                sent += 1
        return sent

    def send_raw(self, data: bytes) -> None:
        """Write raw bytes to every client, for framing tests."""
        for client in list(self._clients):
            client.writer.write(data)

    # --- Inspection ---

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def subscribed_clients(self, topic: str) -> int:
        return sum(1 for c in self._clients if topic in c.subscriptions)

    async def wait_for_command(self, count: int = 1, timeout: float = 2.0) -> ReceivedCommand:
        """Wait until `count` commands have been received, return the latest."""
        await self._wait_until(lambda: len(self.commands) >= count, timeout)
        return self.commands[-1]

    async def wait_for_subscriptions(self, count: int = 1, timeout: float = 2.0) -> None:
        """Wait until `count` clients are subscribed to every topic."""
        await self._wait_until(
            lambda: all(self.subscribed_clients(t) >= count for t in TOPICS), timeout
        )

    async def wait_for_clients(self, count: int, timeout: float = 2.0) -> None:
        await self._wait_until(lambda: self.client_count == count, timeout)

    async def _wait_until(self, predicate, timeout: float) -> None:
        async def _wait() -> None:
            while not predicate():
                self._changed.clear()
                await self._changed.wait()

        await asyncio.wait_for(_wait(), timeout=timeout)

    # --- Connection handling ---

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._session_counter += 1
        client = MockClient(reader, writer, self._session_counter)
        self._clients.add(client)
        self._changed.set()
        logger.info("Client %d connected from %s", client.session_id, client.address)

        decoder = LineDecoder()
        try:
            while client.connected:
                data = await reader.read(4096)
                if not data:
                    break
                for line in decoder.feed(data):
                    self._handle_line(client, line.strip())
        except asyncio.CancelledError:
            pass
        except OSError as e:
            logger.warning("Client %d error: %s", client.session_id, e)
        finally:
            self._clients.discard(client)
            self._changed.set()
            await client.close()
            logger.info("Client %d disconnected", client.session_id)

    def _handle_line(self, client: MockClient, line: str) -> None:
        if not line:
            return
        parts = line.split(" ")
        verb = parts[0].upper()

        if verb == "SUBSCRIBE" and len(parts) >= 2 and parts[1].upper() in TOPICS:
            topic = parts[1].upper()
            client.subscriptions.add(topic)
            client.send_line(f"SUBSCRIBE OK {topic}")
            self._send_snapshot(client, topic)
            self._changed.set()
            return

        self.commands.append(
            ReceivedCommand(timestamp=datetime.now(timezone.utc), client=client.address, line=line)
        )
        self._changed.set()
        logger.info("Command from %s: %s", client.address, line)
        if verb == "FUNCTION":
            client.send_line("FUNCTION OK Completed")
        else:
            client.send_line(f"{verb} ER Unknown command")

    def _send_snapshot(self, client: MockClient, topic: str) -> None:
        if topic == "TALLY" and self.state.tally:
            client.send_line(f"TALLY OK {self.state.tally}")
        elif topic == "ACTS":
            for category, active in self.state.activity.items():
                client.send_line(f"ACTS OK {category} {1 if active else 0}")
