"""Exception types shared across the bridge."""
from typing import Optional


class BridgeError(Exception):
    """Base class for bridge errors."""


class MalformedLineError(BridgeError, ValueError):
    """A device line matched a known prefix but could not be parsed."""

    def __init__(self, line: str, reason: str):
        super().__init__(f"{reason}: {line!r}")
        self.line = line
        self.reason = reason


class LineTooLongError(BridgeError):
    """The receive buffer grew past its limit without a line terminator."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"Unterminated input of {size} bytes exceeds limit of {limit}")
        self.size = size
        self.limit = limit


class ConnectionUnavailableError(BridgeError):
    """No writable device connection is active."""


class TreeError(BridgeError, KeyError):
    """Unknown tree path or element."""

    def __init__(self, path: str, detail: Optional[str] = None):
        super().__init__(path)
        self.path = path
        self.detail = detail

    def __str__(self) -> str:
        if self.detail:
            return f"{self.detail}: {self.path}"
        return f"Unknown tree path: {self.path}"


class ConfigError(BridgeError, ValueError):
    """Invalid bridge configuration."""
