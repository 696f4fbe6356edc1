"""vMix TCP API utilities: line framing and report parsing.

The vMix TCP API is a CRLF-terminated ASCII protocol. The bridge subscribes
to two topics and receives reports such as:

    TALLY OK 0121...          (0 = off, 1 = program, 2 = preview)
    ACTS OK Recording 1       (1 = active, 0 = inactive)
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple, Union

from vmixember.errors import LineTooLongError, MalformedLineError

LINE_TERMINATOR = b"\r\n"

TALLY_PREFIX = "TALLY OK"
ACTS_PREFIX = "ACTS OK"
# "TALLY OK " including the separating space
TALLY_PREFIX_WIDTH = 9

SUBSCRIBE_COMMANDS: Tuple[str, ...] = ("SUBSCRIBE TALLY", "SUBSCRIBE ACTS")

DEFAULT_INPUT_COUNT = 32


class TallyState(Enum):
    """Tally state of a single vMix input."""
    OFF = "0"
    PROGRAM = "1"
    PREVIEW = "2"

    @classmethod
    def from_digit(cls, digit: str) -> "TallyState":
        if digit == "1":
            return cls.PROGRAM
        if digit == "2":
            return cls.PREVIEW
        return cls.OFF


@dataclass(frozen=True)
class TallyVector:
    """Per-input tally states, index 0 is input 1."""
    states: Tuple[TallyState, ...]

    def __len__(self) -> int:
        return len(self.states)


@dataclass(frozen=True)
class ActivityFlag:
    """On/off status of a vMix subsystem (Recording, Streaming, ...)."""
    category: str
    active: bool


@dataclass(frozen=True)
class Unrecognized:
    """Any line the bridge does not project."""
    line: str


DeviceFact = Union[TallyVector, ActivityFlag, Unrecognized]


class LineDecoder:
    """Split a byte stream into CRLF-terminated lines.

    Partial lines are kept until the rest arrives, so chunk boundaries
    (including one falling between CR and LF) never change the output.
    """

    def __init__(self, max_buffer: Optional[int] = None, encoding: str = "utf-8"):
        self.max_buffer = max_buffer
        self.encoding = encoding
        self._buffer = bytearray()

    def feed(self, chunk: bytes) -> List[str]:
        """Append a chunk and return every complete line, in order."""
        self._buffer.extend(chunk)
        lines: List[str] = []
        while True:
            end = self._buffer.find(LINE_TERMINATOR)
            if end == -1:
                break
            raw = bytes(self._buffer[:end])
            del self._buffer[:end + len(LINE_TERMINATOR)]
            lines.append(raw.decode(self.encoding, errors="replace"))

        if self.max_buffer is not None and len(self._buffer) > self.max_buffer:
            size = len(self._buffer)
            self._buffer.clear()
            raise LineTooLongError(size, self.max_buffer)
        return lines

    def reset(self) -> None:
        """Drop any buffered partial line."""
        self._buffer.clear()

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet forming a complete line."""
        return len(self._buffer)


def parse_tally(line: str, input_count: int = DEFAULT_INPUT_COUNT) -> TallyVector:
    digits = line[TALLY_PREFIX_WIDTH:TALLY_PREFIX_WIDTH + input_count]
    return TallyVector(tuple(TallyState.from_digit(d) for d in digits))


def parse_activity(line: str) -> ActivityFlag:
    # Expected format: "ACTS OK <Category> <Value>"
    parts = line.split(" ")
    if len(parts) < 4:
        raise MalformedLineError(line, "ACTS report needs a category and a value")
    return ActivityFlag(category=parts[2], active=(parts[3] == "1"))


def interpret_line(line: str, input_count: int = DEFAULT_INPUT_COUNT) -> DeviceFact:
    """Classify one trimmed line from vMix.

    Raises:
        MalformedLineError: for an ACTS report with fewer than four tokens.
    """
    if line.startswith(TALLY_PREFIX):
        return parse_tally(line, input_count)
    if line.startswith(ACTS_PREFIX):
        return parse_activity(line)
    return Unrecognized(line)


def encode_command(command: str) -> bytes:
    """Frame a command for the wire."""
    return command.encode("ascii") + LINE_TERMINATOR
