"""In-memory control tree model.

Elements are addressed by number relative to their parent; the numeric path
of an element is the dotted list of numbers from the root ("1.1.3.1").
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, Iterator, List, Optional, Tuple

from vmixember.errors import TreeError


class ParameterType(Enum):
    BOOLEAN = auto()
    INTEGER = auto()
    REAL = auto()
    STRING = auto()


class ParameterAccess(Enum):
    NONE = auto()
    READ = auto()
    WRITE = auto()
    READ_WRITE = auto()


class MatrixType(Enum):
    ONE_TO_N = auto()
    ONE_TO_ONE = auto()
    N_TO_N = auto()


class MatrixAddressingMode(Enum):
    LINEAR = auto()
    NON_LINEAR = auto()


class ConnectionOperation(Enum):
    ABSOLUTE = auto()
    CONNECT = auto()
    DISCONNECT = auto()


@dataclass(eq=False)
class Element:
    """Base for anything that can sit in the tree."""
    number: int
    identifier: str
    description: str = ""
    parent: Optional["Node"] = field(default=None, repr=False)

    @property
    def path(self) -> str:
        numbers: List[str] = []
        element: Optional[Element] = self
        while element is not None:
            numbers.append(str(element.number))
            element = element.parent
        return ".".join(reversed(numbers))

    @property
    def identifier_path(self) -> str:
        names: List[str] = []
        element: Optional[Element] = self
        while element is not None:
            names.append(element.identifier)
            element = element.parent
        return "/".join(reversed(names))


@dataclass(eq=False)
class Node(Element):
    is_online: bool = True
    children: Dict[int, Element] = field(default_factory=dict)

    def add(self, child: Element) -> Element:
        if child.number in self.children:
            raise TreeError(f"{self.path}.{child.number}", "Duplicate element number")
        child.parent = self
        self.children[child.number] = child
        return child


@dataclass(eq=False)
class Parameter(Element):
    """A value-carrying leaf. `key` is the stable handle name used by the bridge."""
    parameter_type: ParameterType = ParameterType.BOOLEAN
    value: Any = None
    access: ParameterAccess = ParameterAccess.READ
    key: Optional[str] = None


@dataclass(eq=False)
class Function(Element):
    pass


@dataclass(frozen=True)
class MatrixConnection:
    target: int
    sources: Tuple[int, ...] = ()
    operation: ConnectionOperation = ConnectionOperation.ABSOLUTE


@dataclass(eq=False)
class Matrix(Element):
    targets: Tuple[int, ...] = ()
    sources: Tuple[int, ...] = ()
    connections: Dict[int, MatrixConnection] = field(default_factory=dict)
    matrix_type: MatrixType = MatrixType.ONE_TO_N
    addressing_mode: MatrixAddressingMode = MatrixAddressingMode.LINEAR
    max_total_connects: Optional[int] = None
    max_connects_per_target: Optional[int] = None

    def check(self, connection: MatrixConnection) -> None:
        """Raise TreeError if the connection names an unknown target or source."""
        if connection.target not in self.targets:
            raise TreeError(f"{self.path}[{connection.target}]", "Unknown matrix target")
        unknown = [s for s in connection.sources if s not in self.sources]
        if unknown:
            raise TreeError(f"{self.path}[{connection.target}]", f"Unknown matrix sources {unknown}")

    def apply(self, connection: MatrixConnection) -> MatrixConnection:
        """Merge a connection request into the current state and return the result."""
        self.check(connection)

        current = self.connections.get(connection.target)
        existing = current.sources if current else ()
        if connection.operation is ConnectionOperation.CONNECT:
            sources = existing + tuple(s for s in connection.sources if s not in existing)
        elif connection.operation is ConnectionOperation.DISCONNECT:
            sources = tuple(s for s in existing if s not in connection.sources)
        else:
            sources = tuple(connection.sources)

        result = MatrixConnection(target=connection.target, sources=sources)
        self.connections[connection.target] = result
        return result


class Tree:
    """Root container with lookup helpers."""

    def __init__(self, roots: Optional[List[Element]] = None):
        self.roots: Dict[int, Element] = {}
        for root in roots or []:
            self.add(root)

    def add(self, element: Element) -> Element:
        if element.number in self.roots:
            raise TreeError(str(element.number), "Duplicate root number")
        element.parent = None
        self.roots[element.number] = element
        return element

    def find(self, path: str) -> Element:
        """Look up an element by numeric path ("1.2.3")."""
        try:
            numbers = [int(part) for part in path.split(".")]
        except ValueError:
            raise TreeError(path, "Invalid numeric path") from None

        element = self.roots.get(numbers[0])
        for number in numbers[1:]:
            if not isinstance(element, Node):
                element = None
                break
            element = element.children.get(number)
        if element is None:
            raise TreeError(path)
        return element

    def find_by_identifier(self, identifier_path: str) -> Element:
        """Look up an element by slash-separated identifiers ("vMix/Functions/Stinger 2")."""
        for element in self.walk():
            if element.identifier_path == identifier_path:
                return element
        raise TreeError(identifier_path)

    def resolve(self, address: str) -> Element:
        """Accept either a numeric or an identifier path."""
        if "/" in address or not address.replace(".", "").isdigit():
            return self.find_by_identifier(address)
        return self.find(address)

    def walk(self) -> Iterator[Element]:
        """Depth-first traversal in element-number order."""
        stack: List[Element] = [self.roots[n] for n in sorted(self.roots, reverse=True)]
        while stack:
            element = stack.pop()
            yield element
            if isinstance(element, Node):
                stack.extend(element.children[n] for n in sorted(element.children, reverse=True))

    def parameters(self) -> Iterator[Parameter]:
        for element in self.walk():
            if isinstance(element, Parameter):
                yield element

    def functions(self) -> Iterator[Function]:
        for element in self.walk():
            if isinstance(element, Function):
                yield element
