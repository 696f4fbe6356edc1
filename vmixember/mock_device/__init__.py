"""Mock vMix TCP API server."""

from .server import MockClient, MockVmix, MockVmixState, ReceivedCommand

__all__ = [
    "MockClient",
    "MockVmix",
    "MockVmixState",
    "ReceivedCommand",
]
