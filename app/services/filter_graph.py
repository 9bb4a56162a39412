"""
Typed filter graph for ffmpeg -filter_complex.

The graph is an ordered list of filter nodes with named input and output
pins. It is validated as a whole before being serialized into ffmpeg's
textual filtergraph syntax:

- every consumed pin was produced earlier (by an input file or a node)
- no pin is produced twice
- no pin is consumed twice
- pins mapped to the output exist and are not consumed by a node

Pins produced but never consumed are allowed and reported.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from app.services.errors import GraphValidationError

logger = logging.getLogger(__name__)


LABEL_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")
INPUT_PIN_PATTERN = re.compile(r"^(\d+):([va])$")

# Characters with meaning in filtergraph syntax; values containing them get quoted
_SPECIAL_CHARS = set("\\':,;[]=")


def format_value(value: Any) -> str:
    """Render a filter parameter value as filtergraph text."""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float):
        text = f"{value:.3f}".rstrip("0").rstrip(".")
        return text if text not in ("", "-0") else "0"
    return str(value)


def escape_value(text: str) -> str:
    """Quote a parameter value when it contains filtergraph metacharacters."""
    if not any(c in _SPECIAL_CHARS for c in text):
        return text
    return "'" + text.replace("'", "'\\''") + "'"


@dataclass(frozen=True)
class GraphInput:
    """An input file fed to ffmpeg with -i."""

    index: int
    path: str
    options: tuple[str, ...] = ()  # Input options placed before -i

    @property
    def video(self) -> str:
        return f"{self.index}:v"

    @property
    def audio(self) -> str:
        return f"{self.index}:a"


@dataclass
class FilterNode:
    """One filter with its input pins, output pins and parameters."""

    filter_name: str
    inputs: tuple[str, ...]
    outputs: tuple[str, ...]
    params: dict[str, Any] = field(default_factory=dict)
    kind: str = ""  # Pipeline stage that emitted the node (normalize, transition, ...)

    def to_filtergraph(self) -> str:
        text = "".join(f"[{pin}]" for pin in self.inputs) + self.filter_name
        if self.params:
            text += "=" + ":".join(
                f"{key}={escape_value(format_value(value))}" for key, value in self.params.items()
            )
        return text + "".join(f"[{pin}]" for pin in self.outputs)


@dataclass
class GraphValidationReport:
    """Result of a successful validation."""

    produced_pins: list[str]
    unused_pins: list[str]


class FilterGraph:
    """
    Ordered filter graph builder.

    Usage:
        graph = FilterGraph()
        clip = graph.add_input("clip.mp4")
        graph.add("setpts", [clip.video], ["v0"], {"expr": "PTS-STARTPTS"})
        graph.validate(["v0"])
        args = graph.to_args(["v0"])
    """

    def __init__(self):
        self.inputs: list[GraphInput] = []
        self.nodes: list[FilterNode] = []

    def add_input(self, path: str, options: Sequence[str] = ()) -> GraphInput:
        """Register an input file and return its handle."""
        graph_input = GraphInput(index=len(self.inputs), path=path, options=tuple(options))
        self.inputs.append(graph_input)
        return graph_input

    def add(
        self,
        filter_name: str,
        inputs: Sequence[str],
        outputs: Sequence[str],
        params: Optional[dict[str, Any]] = None,
        kind: str = "",
    ) -> FilterNode:
        """Append a filter node. Wiring is checked by validate()."""
        node = FilterNode(
            filter_name=filter_name,
            inputs=tuple(inputs),
            outputs=tuple(outputs),
            params=dict(params or {}),
            kind=kind,
        )
        self.nodes.append(node)
        return node

    def chain(
        self,
        source: str,
        filters: Sequence[tuple[str, dict[str, Any]]],
        output: str,
        kind: str = "",
    ) -> str:
        """
        Append a linear chain of single-input filters.

        Intermediate pins are named `{output}_{n}`. Returns the output pin.
        """
        current = source
        for n, (filter_name, params) in enumerate(filters):
            target = output if n == len(filters) - 1 else f"{output}_{n}"
            self.add(filter_name, [current], [target], params, kind=kind)
            current = target
        return current

    def nodes_of_kind(self, kind: str) -> list[FilterNode]:
        return [node for node in self.nodes if node.kind == kind]

    def validate(self, outputs: Sequence[str]) -> GraphValidationReport:
        """
        Check pin wiring.

        Args:
            outputs: Pins mapped to the output file

        Raises:
            GraphValidationError: On any wiring violation
        """
        produced: dict[str, int] = {}
        consumed: set[str] = set()

        for position, node in enumerate(self.nodes):
            for pin in node.inputs:
                if pin in consumed:
                    raise GraphValidationError(
                        f"Node {position} ({node.filter_name}) consumes pin [{pin}] which is already consumed"
                    )
                input_match = INPUT_PIN_PATTERN.match(pin)
                if input_match:
                    if int(input_match.group(1)) >= len(self.inputs):
                        raise GraphValidationError(
                            f"Node {position} ({node.filter_name}) references missing input [{pin}]"
                        )
                elif pin not in produced:
                    raise GraphValidationError(
                        f"Node {position} ({node.filter_name}) consumes pin [{pin}] before it is produced"
                    )
                consumed.add(pin)

            for pin in node.outputs:
                if not LABEL_PATTERN.match(pin):
                    raise GraphValidationError(f"Invalid pin label [{pin}] on node {position}")
                if pin in produced:
                    raise GraphValidationError(
                        f"Pin [{pin}] produced twice (nodes {produced[pin]} and {position})"
                    )
                produced[pin] = position

        if not outputs:
            raise GraphValidationError("Graph has no output pins")

        for pin in outputs:
            if pin not in produced:
                raise GraphValidationError(f"Output pin [{pin}] is never produced")
            if pin in consumed:
                raise GraphValidationError(f"Output pin [{pin}] is also consumed by a filter")

        unused = [pin for pin in produced if pin not in consumed and pin not in outputs]
        if unused:
            logger.debug(f"Filter graph has unused pins: {unused}")

        return GraphValidationReport(produced_pins=list(produced), unused_pins=unused)

    def serialize(self) -> str:
        """Render the graph in ffmpeg -filter_complex syntax."""
        return ";".join(node.to_filtergraph() for node in self.nodes)

    def to_args(self, outputs: Sequence[str]) -> list[str]:
        """Build ffmpeg input, filter and map arguments for the graph."""
        args: list[str] = []
        for graph_input in self.inputs:
            args.extend([*graph_input.options, "-i", graph_input.path])
        args.extend(["-filter_complex", self.serialize()])
        for pin in outputs:
            args.extend(["-map", f"[{pin}]"])
        return args
