"""Control tree service boundary.

`TreeService` is what the bridge needs from a control-tree server: define
the tree, push parameter and matrix updates, and call back into the bridge
for invocations, set-value requests and matrix operations.

`LocalTreeService` keeps the tree in memory and lets in-process clients
(the interactive console, tests) drive the callbacks.
"""
from __future__ import annotations

import itertools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from vmixember.errors import TreeError

from .model import Function, Matrix, MatrixConnection, Parameter, ParameterType, Tree

logger = logging.getLogger("vmixember.tree.service")


@dataclass(frozen=True)
class Invocation:
    id: int
    arguments: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class InvocationResult:
    id: Optional[int]
    success: bool
    error: Optional[str] = None
    result: Tuple[Any, ...] = field(default=())


InvocationHandler = Callable[[Function, Invocation], InvocationResult]
SetValueHandler = Callable[[Parameter, Any], bool]
MatrixOperationHandler = Callable[[Matrix, Mapping[int, MatrixConnection]], None]
UpdateListener = Callable[[Parameter, Any], None]


class TreeService(ABC):
    """Callback points are plain attributes, assigned by the bridge."""

    def __init__(self) -> None:
        self.on_invocation: Optional[InvocationHandler] = None
        self.on_set_value: Optional[SetValueHandler] = None
        self.on_matrix_operation: Optional[MatrixOperationHandler] = None

    @abstractmethod
    def init(self, tree: Tree) -> None:
        pass

    @abstractmethod
    def update(self, parameter: Parameter, value: Any) -> None:
        pass

    @abstractmethod
    def update_matrix_connection(self, matrix: Matrix, connection: MatrixConnection) -> None:
        pass


_COERCERS: Dict[ParameterType, Callable[[Any], Any]] = {
    ParameterType.INTEGER: int,
    ParameterType.REAL: float,
    ParameterType.STRING: str,
}


def _coerce(parameter: Parameter, value: Any) -> Any:
    if parameter.parameter_type is ParameterType.BOOLEAN:
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "on", "yes"}
        return bool(value)
    return _COERCERS[parameter.parameter_type](value)


class LocalTreeService(TreeService):
    """In-memory tree service."""

    def __init__(self) -> None:
        super().__init__()
        self.tree: Optional[Tree] = None
        self._listeners: List[UpdateListener] = []
        self._invocation_ids = itertools.count(1)
        self.update_count = 0

    def init(self, tree: Tree) -> None:
        self.tree = tree
        logger.debug("Tree initialised with %d parameters", sum(1 for _ in tree.parameters()))

    def add_update_listener(self, listener: UpdateListener) -> None:
        self._listeners.append(listener)

    def update(self, parameter: Parameter, value: Any) -> None:
        parameter.value = value
        self.update_count += 1
        for listener in self._listeners:
            try:
                listener(parameter, value)
            except Exception:
                logger.exception("Update listener failed for %s", parameter.path)

    def update_matrix_connection(self, matrix: Matrix, connection: MatrixConnection) -> None:
        matrix.apply(connection)

    def _require_tree(self) -> Tree:
        if self.tree is None:
            raise RuntimeError("Tree service not initialised")
        return self.tree

    # --- Client-side entry points ---

    def get_value(self, address: str) -> Any:
        element = self._require_tree().resolve(address)
        if not isinstance(element, Parameter):
            raise TreeError(address, "Not a parameter")
        return element.value

    def invoke(self, address: str, arguments: Tuple[Any, ...] = ()) -> InvocationResult:
        element = self._require_tree().resolve(address)
        if not isinstance(element, Function):
            raise TreeError(address, "Not a function")
        invocation = Invocation(id=next(self._invocation_ids), arguments=tuple(arguments))
        if self.on_invocation is None:
            return InvocationResult(id=invocation.id, success=False, error="No invocation handler")
        return self.on_invocation(element, invocation)

    def set_value(self, address: str, value: Any) -> bool:
        element = self._require_tree().resolve(address)
        if not isinstance(element, Parameter):
            raise TreeError(address, "Not a parameter")
        value = _coerce(element, value)
        if self.on_set_value is None:
            return False
        return self.on_set_value(element, value)

    def matrix_operation(self, address: str, connections: Mapping[int, MatrixConnection]) -> None:
        element = self._require_tree().resolve(address)
        if not isinstance(element, Matrix):
            raise TreeError(address, "Not a matrix")
        if self.on_matrix_operation is not None:
            self.on_matrix_operation(element, connections)
