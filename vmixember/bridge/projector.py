"""Project decoded vMix facts onto tree parameter updates."""
from __future__ import annotations

import logging
from typing import Any, List, Mapping, Tuple

from vmixember.tree.model import Parameter
from vmixember.tree.service import TreeService

from .protocol import ActivityFlag, DeviceFact, TallyState, TallyVector

logger = logging.getLogger("vmixember.bridge.projector")

Update = Tuple[Parameter, Any]


class StateProjector:
    """Map facts to (parameter, value) pairs using fixed handle tables."""

    def __init__(
        self,
        tree: TreeService,
        program_tally: Mapping[int, Parameter],
        preview_tally: Mapping[int, Parameter],
        activity: Mapping[str, Parameter],
    ):
        self._tree = tree
        self._program = program_tally
        self._preview = preview_tally
        self._activity = activity
        self.facts_applied = 0

    def project(self, fact: DeviceFact) -> List[Update]:
        """Return the updates for a fact without applying them."""
        if isinstance(fact, TallyVector):
            return self._project_tally(fact)
        if isinstance(fact, ActivityFlag):
            return self._project_activity(fact)
        return []

    def apply(self, fact: DeviceFact) -> List[Update]:
        """Push every update for a fact to the tree service before returning."""
        updates = self.project(fact)
        for parameter, value in updates:
            self._tree.update(parameter, value)
        if updates:
            self.facts_applied += 1
        return updates

    def _project_tally(self, fact: TallyVector) -> List[Update]:
        updates: List[Update] = []
        for index, state in enumerate(fact.states):
            input_number = index + 1
            program = self._program.get(input_number)
            if program is not None:
                updates.append((program, state is TallyState.PROGRAM))
            preview = self._preview.get(input_number)
            if preview is not None:
                updates.append((preview, state is TallyState.PREVIEW))
            logger.debug("Input %d tally: %s", input_number, state.name)
        return updates

    def _project_activity(self, fact: ActivityFlag) -> List[Update]:
        parameter = self._activity.get(fact.category)
        if parameter is None:
            logger.info("Unknown ACTS category received: %s", fact.category)
            return []
        logger.debug("Updating %s status to %s", fact.category, fact.active)
        return [(parameter, fact.active)]
