"""Bridge orchestrator - wires the vMix connection to the control tree.

The Bridge builds the static tree, resolves the parameter handles it writes
to, and connects:
  - supervisor lines -> interpreter -> projector -> tree updates
  - tree invocations -> command router -> supervisor writes
  - tree set-value / matrix requests -> echoed back as the new state
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from vmixember.config import BridgeConfig
from vmixember.errors import MalformedLineError, TreeError
from vmixember.tree.model import Function, Matrix, MatrixConnection, Parameter
from vmixember.tree.service import Invocation, InvocationResult, LocalTreeService, TreeService
from vmixember.tree.shape import TreeHandles, build_tree

from .projector import StateProjector
from .protocol import Unrecognized, interpret_line
from .router import CommandRouter
from .supervisor import BackoffSchedule, ConnectionSupervisor, Connector, Scheduler

logger = logging.getLogger("vmixember.bridge")


class Bridge:
    """vMix to control-tree gateway.

    Example:
        bridge = Bridge(BridgeConfig(vmix_host="10.0.0.5"))
        await bridge.start()
        ...
        await bridge.stop()
    """

    def __init__(
        self,
        config: Optional[BridgeConfig] = None,
        tree_service: Optional[TreeService] = None,
        connector: Optional[Connector] = None,
        scheduler: Optional[Scheduler] = None,
    ):
        self.config = config or BridgeConfig()
        self.tree, self._handles = build_tree(self.config.input_count)
        self._tree_service = tree_service or LocalTreeService()

        self._projector = StateProjector(
            self._tree_service,
            program_tally=self._handles.program_tally,
            preview_tally=self._handles.preview_tally,
            activity=self._handles.activity,
        )

        self._supervisor = ConnectionSupervisor(
            host=self.config.vmix_host,
            port=self.config.vmix_port,
            on_line=self._handle_line,
            on_connected_changed=self._handle_connected_changed,
            schedule=BackoffSchedule(
                delays=tuple(self.config.retry_delays),
                ceiling=self.config.max_retry_delay,
            ),
            connector=connector,
            scheduler=scheduler,
            max_line_length=self.config.max_line_length,
        )

        self._router = CommandRouter(self._supervisor.try_write)

        self._tree_service.on_invocation = self._handle_invocation
        self._tree_service.on_set_value = self._handle_set_value
        self._tree_service.on_matrix_operation = self._handle_matrix_operation

        self._running = False
        self.malformed_lines = 0
        self.other_lines = 0

    async def start(self) -> None:
        """Publish the tree and start connecting to vMix."""
        logger.info("Starting bridge...")
        self._tree_service.init(self.tree)
        self._running = True
        self._supervisor.start()
        logger.info("Bridge started, vMix target %s:%d", self.config.vmix_host, self.config.vmix_port)

    async def stop(self) -> None:
        logger.info("Stopping bridge...")
        self._running = False
        await self._supervisor.stop()
        logger.info("Bridge stopped")

    # --- Device side ---

    def _handle_line(self, line: str) -> None:
        logger.debug("Received line: %s", line)
        try:
            fact = interpret_line(line, self.config.input_count)
        except MalformedLineError as e:
            self.malformed_lines += 1
            logger.warning("Malformed vMix line: %s", e)
            return

        if isinstance(fact, Unrecognized):
            self.other_lines += 1
            logger.debug("Other response: %s", line)
            return

        self._projector.apply(fact)

    def _handle_connected_changed(self, connected: bool) -> None:
        self._tree_service.update(self._handles.connected, connected)

    # --- Tree side ---

    def _handle_invocation(self, function: Function, invocation: Invocation) -> InvocationResult:
        logger.info("Invocation received: %s (id %s)", function.identifier, invocation.id)
        return self._router.invoke(function.identifier, invocation.id)

    def _handle_set_value(self, parameter: Parameter, value: Any) -> bool:
        # Accepted as-is; the next vMix report overwrites it if vMix disagrees
        logger.info("Set value request for %s to %r", parameter.path, value)
        self._tree_service.update(parameter, value)
        return True

    def _handle_matrix_operation(
        self,
        matrix: Matrix,
        connections: Mapping[int, MatrixConnection],
    ) -> None:
        logger.info("Matrix operation on %s", matrix.identifier)
        for connection in connections.values():
            try:
                matrix.check(connection)
            except TreeError as e:
                logger.warning("Skipping matrix connection: %s", e)
                continue
            self._tree_service.update_matrix_connection(matrix, connection)
            logger.info("Updated matrix connection: target %d -> %s", connection.target, connection.sources)

    # --- Accessors ---

    @property
    def tree_service(self) -> TreeService:
        return self._tree_service

    @property
    def handles(self) -> TreeHandles:
        return self._handles

    @property
    def supervisor(self) -> ConnectionSupervisor:
        return self._supervisor

    @property
    def router(self) -> CommandRouter:
        return self._router

    @property
    def projector(self) -> StateProjector:
        return self._projector

    @property
    def is_running(self) -> bool:
        return self._running

    def get_stats(self) -> Dict[str, Any]:
        return {
            "running": self._running,
            **self._supervisor.get_stats(),
            "facts_applied": self._projector.facts_applied,
            "malformed_lines": self.malformed_lines,
            "other_lines": self.other_lines,
            "commands_sent": self._router.commands_sent,
            "commands_failed": self._router.commands_failed,
        }
