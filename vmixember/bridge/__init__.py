"""vMix bridge engine.

Decodes the vMix TCP API, projects tally and activity reports onto the
control tree and routes tree function invocations back to vMix, keeping
the vMix connection alive with exponential back-off.
"""

from .bridge import Bridge
from .projector import StateProjector
from .protocol import (
    ActivityFlag,
    DeviceFact,
    LineDecoder,
    TallyState,
    TallyVector,
    Unrecognized,
    interpret_line,
)
from .router import COMMAND_MAPPING, CommandRouter
from .supervisor import BackoffSchedule, ConnectionSupervisor, SupervisorState

__all__ = [
    "ActivityFlag",
    "BackoffSchedule",
    "Bridge",
    "COMMAND_MAPPING",
    "CommandRouter",
    "ConnectionSupervisor",
    "DeviceFact",
    "LineDecoder",
    "StateProjector",
    "SupervisorState",
    "TallyState",
    "TallyVector",
    "Unrecognized",
    "interpret_line",
]
