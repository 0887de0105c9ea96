"""
Generalization Lattice Structure.

Read-only representation of the transformation space produced by the
anonymization engine. Nodes live in a flat arena indexed by integer id;
generalization relations are stored as id lists, so the lattice holds no
reference cycles.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from functools import total_ordering
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple


logger = logging.getLogger(__name__)


class Anonymity(Enum):
    """Privacy classification of a transformation."""
    ANONYMOUS = "anonymous"
    NOT_ANONYMOUS = "not_anonymous"
    PROBABLY_ANONYMOUS = "probably_anonymous"
    PROBABLY_NOT_ANONYMOUS = "probably_not_anonymous"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, text: str) -> "Anonymity":
        """Parse a classification from its value or member name."""
        key = str(text).strip().lower()
        for member in cls:
            if key == member.value or key == member.name.lower():
                return member
        raise ValueError(f"Unknown anonymity classification: {text!r}")


UNKNOWN_GROUP = frozenset({
    Anonymity.PROBABLY_ANONYMOUS,
    Anonymity.PROBABLY_NOT_ANONYMOUS,
    Anonymity.UNKNOWN,
})


@total_ordering
@dataclass(frozen=True, eq=False)
class InformationLoss:
    """Utility cost of a transformation."""
    value: float

    def relative_to(self, minimum: "InformationLoss", maximum: "InformationLoss") -> float:
        """
        Normalize this value against the lattice-wide extremes.

        Returns:
            (value - min) / (max - min), or 0.0 for a degenerate range
        """
        span = maximum.value - minimum.value
        if span == 0:
            return 0.0
        return (self.value - minimum.value) / span

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InformationLoss):
            return NotImplemented
        return self.value == other.value

    def __lt__(self, other: "InformationLoss") -> bool:
        if not isinstance(other, InformationLoss):
            return NotImplemented
        return self.value < other.value

    def __hash__(self) -> int:
        return hash(self.value)

    def __float__(self) -> float:
        return float(self.value)

    def __repr__(self) -> str:
        return f"InformationLoss({self.value})"


NODE_COMMENT = "comment"


@dataclass(eq=False)
class Node:
    """
    A single transformation in the lattice.

    Equality and hashing are by identity: two nodes with the same
    transformation vector are still different nodes.
    """
    id: int
    transformation: Tuple[int, ...]
    anonymity: Anonymity = Anonymity.UNKNOWN
    min_loss: Optional[InformationLoss] = None
    max_loss: Optional[InformationLoss] = None
    predecessors: List[int] = field(default_factory=list)
    successors: List[int] = field(default_factory=list)
    attributes: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.transformation = tuple(int(level) for level in self.transformation)

    @property
    def lowest_score(self) -> Optional[InformationLoss]:
        return self.min_loss

    @property
    def highest_score(self) -> Optional[InformationLoss]:
        return self.max_loss

    @property
    def height(self) -> int:
        """Total generalization height (sum of levels)."""
        return sum(self.transformation)

    @property
    def comment(self) -> Optional[str]:
        return self.attributes.get(NODE_COMMENT)

    def __repr__(self) -> str:
        return f"Node({self.id}, {list(self.transformation)}, {self.anonymity.name})"


class Lattice:
    """
    Immutable lattice of transformations grouped into levels by height.

    Attributes:
        nodes: Arena of nodes; a node's id is its index
        levels: Node ids per height, ascending
    """

    def __init__(
        self,
        nodes: Sequence[Node],
        minimum_loss: Optional[InformationLoss] = None,
        maximum_loss: Optional[InformationLoss] = None
    ):
        """
        Initialize lattice.

        Args:
            nodes: All nodes, with ids matching their position
            minimum_loss: Lattice-wide minimum (derived from nodes if None)
            maximum_loss: Lattice-wide maximum (derived from nodes if None)
        """
        if not nodes:
            raise ValueError("Lattice must contain at least one node")

        self._nodes: List[Node] = list(nodes)
        for index, node in enumerate(self._nodes):
            if node.id != index:
                raise ValueError(f"Node id {node.id} does not match arena position {index}")

        self._dimensions = len(self._nodes[0].transformation)
        for node in self._nodes:
            if len(node.transformation) != self._dimensions:
                raise ValueError(
                    f"Node {node.id} has {len(node.transformation)} dimensions, "
                    f"expected {self._dimensions}"
                )

        self._index: Dict[Tuple[int, ...], int] = {}
        for node in self._nodes:
            if node.transformation in self._index:
                raise ValueError(f"Duplicate transformation: {list(node.transformation)}")
            self._index[node.transformation] = node.id

        # Group by height; within a level nodes keep arena order
        heights: Dict[int, List[int]] = {}
        for node in self._nodes:
            heights.setdefault(node.height, []).append(node.id)
        self._levels: List[List[int]] = [heights[h] for h in sorted(heights)]

        self._bottom = min(self._nodes, key=lambda n: n.height)
        self._top = max(self._nodes, key=lambda n: n.height)

        # Bottom and top must bound every node in every dimension
        for node in self._nodes:
            if any(level > top for level, top in zip(node.transformation, self._top.transformation)):
                raise ValueError(
                    f"Node {list(node.transformation)} exceeds top {list(self._top.transformation)}; "
                    f"no single node holds the highest level of every dimension"
                )
            if any(level < low for level, low in zip(node.transformation, self._bottom.transformation)):
                raise ValueError(
                    f"Node {list(node.transformation)} is below bottom {list(self._bottom.transformation)}; "
                    f"no single node holds the lowest level of every dimension"
                )

        self._minimum_loss = minimum_loss if minimum_loss is not None else self._derive_minimum()
        self._maximum_loss = maximum_loss if maximum_loss is not None else self._derive_maximum()

        logger.debug(
            f"Lattice built: {len(self._nodes)} nodes, {len(self._levels)} levels, "
            f"{self._dimensions} dimensions"
        )

    def _derive_minimum(self) -> InformationLoss:
        values = [n.min_loss.value for n in self._nodes if n.min_loss is not None]
        return InformationLoss(min(values) if values else 0.0)

    def _derive_maximum(self) -> InformationLoss:
        values = [n.max_loss.value for n in self._nodes if n.max_loss is not None]
        return InformationLoss(max(values) if values else 0.0)

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def size(self) -> int:
        return len(self._nodes)

    @property
    def bottom(self) -> Node:
        """Least generalized node."""
        return self._bottom

    @property
    def top(self) -> Node:
        """Most generalized node."""
        return self._top

    @property
    def max_levels(self) -> Tuple[int, ...]:
        """Highest level per dimension (the top node's transformation)."""
        return self._top.transformation

    @property
    def minimum_loss(self) -> InformationLoss:
        return self._minimum_loss

    @property
    def maximum_loss(self) -> InformationLoss:
        return self._maximum_loss

    @property
    def levels(self) -> List[List[Node]]:
        """Nodes grouped by height, ascending."""
        return [[self._nodes[i] for i in level] for level in self._levels]

    @property
    def nodes(self) -> Iterator[Node]:
        """All nodes in level order."""
        for level in self._levels:
            for node_id in level:
                yield self._nodes[node_id]

    def get_node(self, node_id: int) -> Node:
        return self._nodes[node_id]

    def find(self, transformation: Sequence[int]) -> Optional[Node]:
        """Look up a node by its transformation vector."""
        node_id = self._index.get(tuple(int(x) for x in transformation))
        return None if node_id is None else self._nodes[node_id]

    def get_predecessors(self, node: Node) -> List[Node]:
        return [self._nodes[i] for i in node.predecessors]

    def get_successors(self, node: Node) -> List[Node]:
        return [self._nodes[i] for i in node.successors]

    def relative_loss(self, node: Node) -> Tuple[float, float]:
        """
        Normalized [min, max] loss of a node.

        A missing bound normalizes to the widest value (0.0 or 1.0).
        """
        low = (node.min_loss.relative_to(self._minimum_loss, self._maximum_loss)
               if node.min_loss is not None else 0.0)
        high = (node.max_loss.relative_to(self._minimum_loss, self._maximum_loss)
                if node.max_loss is not None else 1.0)
        return low, high

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self) -> str:
        return f"Lattice(size={len(self._nodes)}, dimensions={self._dimensions})"


@dataclass
class SearchResult:
    """Output of the anonymization engine: the lattice and its optimum."""
    lattice: Lattice
    global_optimum: Optional[Node] = None

    def is_result_available(self) -> bool:
        """Whether a globally-optimal anonymous transformation was found."""
        return self.global_optimum is not None
