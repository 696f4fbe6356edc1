"""Route tree function invocations to vMix commands."""
from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Callable, Mapping, Optional

from vmixember.tree.service import InvocationResult

logger = logging.getLogger("vmixember.bridge.router")

# Function identifier -> vMix TCP API command
COMMAND_MAPPING: Mapping[str, str] = MappingProxyType({
    "Auto Mix 1": "FUNCTION CUT",
    "Stinger 1": "FUNCTION STINGER1",
    "Stinger 2": "FUNCTION STINGER2",
    "Stinger 3": "FUNCTION STINGER3",
    "Stinger 4": "FUNCTION STINGER4",
    "Transition 1": "FUNCTION TRANSITION1",
    "Transition 2": "FUNCTION TRANSITION2",
    "Transition 3": "FUNCTION TRANSITION3",
    "Transition 4": "FUNCTION TRANSITION4",
})

CONNECTION_UNAVAILABLE = "vMix connection not available."

# Writes one command line; returns False when no writable connection exists
TryWrite = Callable[[str], bool]


class CommandRouter:
    """Turn invocations into fire-and-forget vMix commands."""

    def __init__(self, try_write: TryWrite, mapping: Mapping[str, str] = COMMAND_MAPPING):
        self._try_write = try_write
        self._mapping = MappingProxyType(dict(mapping))
        self.commands_sent = 0
        self.commands_failed = 0

    @property
    def mapping(self) -> Mapping[str, str]:
        return self._mapping

    def command_for(self, identifier: str) -> Optional[str]:
        return self._mapping.get(identifier)

    def invoke(self, identifier: str, invocation_id: Optional[int] = None) -> InvocationResult:
        command = self._mapping.get(identifier)
        if command is None:
            # Unknown functions are acknowledged without side effects
            logger.debug("No command mapped for %r", identifier)
            return InvocationResult(id=invocation_id, success=True)

        if self._try_write(command):
            self.commands_sent += 1
            logger.info("Sent command %s to vMix", command)
            return InvocationResult(id=invocation_id, success=True)

        self.commands_failed += 1
        logger.error("vMix connection not available. Cannot send %s command.", command)
        return InvocationResult(id=invocation_id, success=False, error=CONNECTION_UNAVAILABLE)
