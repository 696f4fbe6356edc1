"""Connection supervisor - owns the vMix TCP connection lifecycle.

State machine:

    DISCONNECTED -> CONNECTING -> CONNECTED -> (CLOSING | ERRORED)
        -> BACKOFF_WAIT -> CONNECTING -> ...

A successful connect subscribes to tally and activity reports and resets the
back-off. Any failure schedules exactly one reconnect using the next delay of
the back-off schedule; once the schedule is exhausted the ceiling delay is
used until a connect succeeds again.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Tuple

from vmixember.errors import ConnectionUnavailableError, LineTooLongError

from .protocol import SUBSCRIBE_COMMANDS, LineDecoder, encode_command

logger = logging.getLogger("vmixember.bridge.supervisor")

Connector = Callable[[str, int], Awaitable[Tuple[asyncio.StreamReader, asyncio.StreamWriter]]]
LineHandler = Callable[[str], None]
ConnectedHandler = Callable[[bool], None]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


Scheduler = Callable[[float, Callable[[], None]], TimerHandle]


class SupervisorState(Enum):
    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()
    CLOSING = auto()
    ERRORED = auto()
    BACKOFF_WAIT = auto()


@dataclass(frozen=True)
class BackoffSchedule:
    """Reconnect delays in seconds, plus the ceiling used once they run out."""
    delays: Tuple[float, ...] = (2.0, 4.0, 16.0)
    ceiling: float = 30.0

    def delay_for(self, index: int) -> float:
        if 0 <= index < len(self.delays):
            return self.delays[index]
        return self.ceiling

    def next_index(self, index: int) -> int:
        return index + 1 if index < len(self.delays) else index


class DeviceConnection:
    """A live socket to vMix with its own receive buffer."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        decoder: LineDecoder,
    ):
        self.reader = reader
        self.writer = writer
        self.decoder = decoder
        self.open = True

    @property
    def writable(self) -> bool:
        return self.open and not self.writer.is_closing()

    def write_line(self, command: str) -> None:
        self.writer.write(encode_command(command))

    def close(self) -> None:
        if not self.open:
            return
        self.open = False
        self.decoder.reset()
        try:
            self.writer.close()
        except Exception as e:
            logger.debug("Error closing vMix socket: %s", e)


def _default_scheduler(delay: float, callback: Callable[[], None]) -> TimerHandle:
    return asyncio.get_running_loop().call_later(delay, callback)


class ConnectionSupervisor:
    """Keep a single connection to vMix alive, forever.

    The active connection is private; other components write through
    `try_write`, which never outlives or replaces the connection.
    """

    def __init__(
        self,
        host: str,
        port: int,
        on_line: LineHandler,
        on_connected_changed: ConnectedHandler,
        schedule: BackoffSchedule = BackoffSchedule(),
        connector: Optional[Connector] = None,
        scheduler: Optional[Scheduler] = None,
        max_line_length: Optional[int] = None,
        read_size: int = 4096,
    ):
        self.host = host
        self.port = port
        self.schedule = schedule
        self.max_line_length = max_line_length
        self.read_size = read_size

        self._on_line = on_line
        self._on_connected_changed = on_connected_changed
        self._connector: Connector = connector or asyncio.open_connection
        self._scheduler: Scheduler = scheduler or _default_scheduler

        self._state = SupervisorState.DISCONNECTED
        self._connection: Optional[DeviceConnection] = None
        self._connected = False
        self._connected_event = asyncio.Event()
        self._backoff_index = 0
        self._reconnect_scheduled = False
        self._timer: Optional[TimerHandle] = None
        self._task: Optional[asyncio.Task] = None
        self._running = False

        self.last_delay: Optional[float] = None
        self.connect_attempts = 0
        self.lines_received = 0

    # --- Public API ---

    def start(self) -> None:
        """Begin connecting. Must be called with a running event loop."""
        if self._running:
            return
        self._running = True
        self._begin_connect()

    async def stop(self) -> None:
        """Tear down the connection and cancel any pending reconnect."""
        self._running = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._reconnect_scheduled = False

        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

        connection, self._connection = self._connection, None
        if connection is not None:
            connection.close()
            try:
                await connection.writer.wait_closed()
            except Exception:
                pass

        self._state = SupervisorState.DISCONNECTED
        self._set_connected(False)
        logger.info("vMix supervisor stopped")

    def send(self, command: str) -> None:
        """Write one command line on the subscribed connection.

        Raises ConnectionUnavailableError when no writable connection exists.
        """
        connection = self._connection
        if connection is None or not self._connected or not connection.writable:
            raise ConnectionUnavailableError("vMix connection not available.")
        try:
            connection.write_line(command)
        except (OSError, RuntimeError) as e:
            raise ConnectionUnavailableError(f"Failed to write {command} to vMix: {e}") from e

    def try_write(self, command: str) -> bool:
        """Like `send`, but reports failure as False instead of raising."""
        try:
            self.send(command)
        except ConnectionUnavailableError as e:
            logger.debug("%s", e)
            return False
        return True

    async def wait_connected(self, timeout: Optional[float] = None) -> None:
        await asyncio.wait_for(self._connected_event.wait(), timeout=timeout)

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def backoff_index(self) -> int:
        return self._backoff_index

    @property
    def reconnect_scheduled(self) -> bool:
        return self._reconnect_scheduled

    def get_stats(self) -> Dict[str, Any]:
        return {
            "state": self._state.name,
            "connected": self._connected,
            "connect_attempts": self.connect_attempts,
            "lines_received": self.lines_received,
            "backoff_index": self._backoff_index,
            "last_delay": self.last_delay,
        }

    # --- Transitions ---

    def _begin_connect(self) -> None:
        self._state = SupervisorState.CONNECTING
        self._task = asyncio.get_running_loop().create_task(self._run_connection())

    async def _run_connection(self) -> None:
        self.connect_attempts += 1
        logger.info("Attempting to connect to vMix TCP API at %s:%d...", self.host, self.port)
        try:
            reader, writer = await self._connector(self.host, self.port)
        except OSError as e:
            logger.error("vMix is not reachable at %s:%d: %s", self.host, self.port, e)
            self._on_failure(None, SupervisorState.ERRORED)
            return
        except Exception as e:
            # e.g. UnicodeError from name resolution of a malformed host
            logger.error("Cannot connect to vMix at %s:%d: %r", self.host, self.port, e)
            self._on_failure(None, SupervisorState.ERRORED)
            return

        connection = DeviceConnection(reader, writer, LineDecoder(max_buffer=self.max_line_length))
        self._on_connected(connection)
        next_state = await self._read_loop(connection)
        self._on_failure(connection, next_state)

    def _on_connected(self, connection: DeviceConnection) -> None:
        logger.info("Connected to vMix TCP API at %s:%d", self.host, self.port)
        self._connection = connection
        self._state = SupervisorState.CONNECTED
        self._backoff_index = 0
        self._reconnect_scheduled = False
        for command in SUBSCRIBE_COMMANDS:
            connection.write_line(command)
        self._set_connected(True)

    async def _read_loop(self, connection: DeviceConnection) -> SupervisorState:
        """Feed received lines to the handler until the connection ends."""
        while True:
            try:
                data = await connection.reader.read(self.read_size)
            except OSError as e:
                logger.error("vMix TCP API connection error: %s", e)
                return SupervisorState.ERRORED
            if not data:
                logger.error("vMix TCP API connection closed.")
                return SupervisorState.CLOSING

            try:
                lines = connection.decoder.feed(data)
            except LineTooLongError as e:
                logger.error("Resetting vMix connection: %s", e)
                return SupervisorState.ERRORED

            for line in lines:
                self.lines_received += 1
                try:
                    self._on_line(line.strip())
                except Exception:
                    logger.exception("Failed to process vMix line %r", line)

    def _on_failure(self, connection: Optional[DeviceConnection], state: SupervisorState) -> None:
        if connection is not None:
            connection.close()
            if connection is not self._connection:
                # Superseded connection; its events no longer matter
                return
        self._connection = None
        if self._reconnect_scheduled:
            return
        self._state = state
        if self._running:
            self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._reconnect_scheduled:
            return
        self._reconnect_scheduled = True
        delay = self.schedule.delay_for(self._backoff_index)
        self._backoff_index = self.schedule.next_index(self._backoff_index)
        self.last_delay = delay
        logger.error("vMix connection lost. Retrying in %g seconds...", delay)
        self._set_connected(False)
        self._state = SupervisorState.BACKOFF_WAIT
        self._timer = self._scheduler(delay, self._on_backoff_elapsed)

    def _on_backoff_elapsed(self) -> None:
        self._timer = None
        self._reconnect_scheduled = False
        if self._running:
            self._begin_connect()

    def _set_connected(self, connected: bool) -> None:
        self._connected = connected
        if connected:
            self._connected_event.set()
        else:
            self._connected_event.clear()
        try:
            self._on_connected_changed(connected)
        except Exception:
            logger.exception("Connected-flag handler failed")
