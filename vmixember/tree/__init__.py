"""Control tree model, static shape and service boundary."""

from .model import (
    ConnectionOperation,
    Element,
    Function,
    Matrix,
    MatrixConnection,
    Node,
    Parameter,
    ParameterAccess,
    ParameterType,
    Tree,
)
from .service import Invocation, InvocationResult, LocalTreeService, TreeService
from .shape import TreeHandles, build_tree

__all__ = [
    "ConnectionOperation",
    "Element",
    "Function",
    "Invocation",
    "InvocationResult",
    "LocalTreeService",
    "Matrix",
    "MatrixConnection",
    "Node",
    "Parameter",
    "ParameterAccess",
    "ParameterType",
    "Tree",
    "TreeHandles",
    "TreeService",
    "build_tree",
]
