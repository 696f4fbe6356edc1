"""Static shape of the exposed vMix tree.

    1 vMix
      1 Studio
        1 Program Tally / <i> Input i / 1 parameter
        2 Preview Tally / <i> Input i / 1 parameter
        3 vMix Connected / 1 parameter
        4 ACTS Status / 1 Recording, 2 MultiCorder, 3 Streaming / 1 parameter
      2 Functions / 1..9
      3 Matrices / 1 Test Matrix
"""
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Mapping, Tuple

from vmixember.errors import TreeError

from .model import (
    Function,
    Matrix,
    MatrixAddressingMode,
    MatrixType,
    Node,
    Parameter,
    ParameterAccess,
    ParameterType,
    Tree,
)

INPUT_COUNT = 32

# (identifier, description), numbered from 1 in this order
FUNCTIONS: Tuple[Tuple[str, str], ...] = (
    ("Auto Mix 1", "Cut A to B"),
    ("Stinger 1", "Stinger 1"),
    ("Stinger 2", "Stinger 2"),
    ("Stinger 3", "Stinger 3"),
    ("Stinger 4", "Stinger 4"),
    ("Transition 1", "Transition 1"),
    ("Transition 2", "Transition 2"),
    ("Transition 3", "Transition 3"),
    ("Transition 4", "Transition 4"),
)

ACTIVITY_CATEGORIES: Tuple[str, ...] = ("Recording", "MultiCorder", "Streaming")

CONNECTED_KEY = "connected-flag"


def program_tally_key(input_number: int) -> str:
    return f"program-tally[{input_number}]"


def preview_tally_key(input_number: int) -> str:
    return f"preview-tally[{input_number}]"


def activity_key(category: str) -> str:
    return f"activity[{category}]"


@dataclass(frozen=True)
class TreeHandles:
    """Parameters the bridge writes to, resolved once from the built tree."""
    program_tally: Mapping[int, Parameter]
    preview_tally: Mapping[int, Parameter]
    activity: Mapping[str, Parameter]
    connected: Parameter

    def by_key(self, key: str) -> Parameter:
        for parameter in self:
            if parameter.key == key:
                return parameter
        raise TreeError(key, "Unknown parameter handle")

    def __iter__(self):
        yield from self.program_tally.values()
        yield from self.preview_tally.values()
        yield from self.activity.values()
        yield self.connected


def _status_parameter(identifier: str, description: str, key: str) -> Parameter:
    return Parameter(
        1,
        identifier,
        description,
        parameter_type=ParameterType.BOOLEAN,
        value=False,
        access=ParameterAccess.READ,
        key=key,
    )


def _tally_subtree(number: int, label: str, input_count: int, key_for) -> Tuple[Node, Dict[int, Parameter]]:
    subtree = Node(number, label, label)
    handles: Dict[int, Parameter] = {}
    for i in range(1, input_count + 1):
        container = subtree.add(Node(i, f"Input {i}", f"Input {i} {label}"))
        handles[i] = container.add(
            _status_parameter(f"Input {i}", f"Input {i} {label}", key_for(i))
        )
    return subtree, handles


def build_tree(input_count: int = INPUT_COUNT) -> Tuple[Tree, TreeHandles]:
    """Build the vMix tree and return it with the handles the bridge updates."""
    root = Node(1, "vMix", "vMix to EmberPlus Gateway")
    studio = root.add(Node(1, "Studio", "Studio"))

    program, program_handles = _tally_subtree(1, "Program Tally", input_count, program_tally_key)
    preview, preview_handles = _tally_subtree(2, "Preview Tally", input_count, preview_tally_key)
    studio.add(program)
    studio.add(preview)

    connected_container = studio.add(Node(3, "vMix Connected", "vMix TCP connection status"))
    connected = connected_container.add(
        _status_parameter("vMix Connected", "Indicates if vMix TCP connection is alive", CONNECTED_KEY)
    )

    acts = studio.add(Node(4, "ACTS Status", "ACTS Status"))
    activity_handles: Dict[str, Parameter] = {}
    for number, category in enumerate(ACTIVITY_CATEGORIES, start=1):
        container = acts.add(Node(number, category, f"{category} status"))
        activity_handles[category] = container.add(
            _status_parameter(category, f"{category} status", activity_key(category))
        )

    functions = root.add(Node(2, "Functions", "Functions"))
    for number, (identifier, description) in enumerate(FUNCTIONS, start=1):
        functions.add(Function(number, identifier, description))

    matrices = root.add(Node(3, "Matrices", "Matrices"))
    matrices.add(
        Matrix(
            1,
            "Test Matrix",
            targets=(1, 2, 3, 4, 5),
            sources=(1, 2, 3, 4, 5),
            matrix_type=MatrixType.N_TO_N,
            addressing_mode=MatrixAddressingMode.NON_LINEAR,
            max_total_connects=5,
            max_connects_per_target=5,
        )
    )

    handles = TreeHandles(
        program_tally=MappingProxyType(program_handles),
        preview_tally=MappingProxyType(preview_handles),
        activity=MappingProxyType(activity_handles),
        connected=connected,
    )
    return Tree([root]), handles
