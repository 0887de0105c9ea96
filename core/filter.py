"""
Node Filter for the Generalization Lattice.

Decides which transformations are visible. A node passes when its
classification is allowed, its normalized information loss overlaps the
acceptance interval, and each of its generalization levels is allowed.

initialize() seeds a default view from a search result under a node budget:
starting from the optimum (or the bottom if there is none) it opens one
level at a time, dimension by dimension, and stops at the first step that
exceeds the budget. The result can be smaller than the budget; that is the
expected behavior of this heuristic.
"""

import logging
import math
from typing import Any, Dict, List, Sequence, Set

from schema.lattice import UNKNOWN_GROUP, Anonymity, Lattice, Node, SearchResult


logger = logging.getLogger(__name__)


class NodeFilter:
    """
    Filter over the nodes of a lattice.

    The number of dimensions is fixed at construction. The node budget is
    only an argument of initialize() and is not part of the filter state.
    """

    def __init__(self, max_levels: Sequence[int]):
        """
        Initialize an empty filter (nothing allowed).

        Args:
            max_levels: Highest generalization level per dimension
        """
        self._max_levels = tuple(int(level) for level in max_levels)
        self._anonymity: Set[Anonymity] = set()
        self._generalizations: List[Set[int]] = [set() for _ in self._max_levels]
        self._min_information_loss = 0.0
        self._max_information_loss = 1.0

    @property
    def dimensions(self) -> int:
        return len(self._max_levels)

    @property
    def max_levels(self):
        return self._max_levels

    def _check_dimension(self, dimension: int) -> None:
        if not 0 <= dimension < len(self._generalizations):
            raise IndexError(
                f"dimension must be in [0, {len(self._generalizations)}), got {dimension}"
            )

    # -------------------------------------------------------------------------
    # Classification
    # -------------------------------------------------------------------------

    def allow(self, anonymity: Anonymity) -> None:
        self._anonymity.add(anonymity)

    def disallow(self, anonymity: Anonymity) -> None:
        self._anonymity.discard(anonymity)

    def allow_anonymous(self) -> None:
        self.allow(Anonymity.ANONYMOUS)

    def disallow_anonymous(self) -> None:
        self.disallow(Anonymity.ANONYMOUS)

    def allow_non_anonymous(self) -> None:
        self.allow(Anonymity.NOT_ANONYMOUS)

    def disallow_non_anonymous(self) -> None:
        self.disallow(Anonymity.NOT_ANONYMOUS)

    def allow_unknown(self) -> None:
        """Allow the probabilistic and unknown classifications."""
        self._anonymity.update(UNKNOWN_GROUP)

    def disallow_unknown(self) -> None:
        self._anonymity.difference_update(UNKNOWN_GROUP)

    def is_allowed_anonymous(self) -> bool:
        return Anonymity.ANONYMOUS in self._anonymity

    def is_allowed_non_anonymous(self) -> bool:
        return Anonymity.NOT_ANONYMOUS in self._anonymity

    def is_allowed_unknown(self) -> bool:
        return bool(self._anonymity & UNKNOWN_GROUP)

    @property
    def allowed_anonymity(self) -> Set[Anonymity]:
        return set(self._anonymity)

    # -------------------------------------------------------------------------
    # Generalization levels
    # -------------------------------------------------------------------------

    def allow_generalization(self, dimension: int, level: int) -> None:
        """
        Allow a generalization level in one dimension.

        Raises:
            IndexError: If the dimension does not exist
            ValueError: If the level is outside [0, max level]
        """
        self._check_dimension(dimension)
        if not 0 <= level <= self._max_levels[dimension]:
            raise ValueError(
                f"level for dimension {dimension} must be in "
                f"[0, {self._max_levels[dimension]}], got {level}"
            )
        self._generalizations[dimension].add(level)

    def disallow_generalization(self, dimension: int, level: int) -> None:
        self._check_dimension(dimension)
        self._generalizations[dimension].discard(level)

    def get_allowed_generalizations(self, dimension: int) -> Set[int]:
        self._check_dimension(dimension)
        return set(self._generalizations[dimension])

    def is_allowed_generalization(self, dimension: int, level: int) -> bool:
        self._check_dimension(dimension)
        return level in self._generalizations[dimension]

    # -------------------------------------------------------------------------
    # Information loss
    # -------------------------------------------------------------------------

    def allow_information_loss(self, minimum: float, maximum: float) -> None:
        """
        Set the acceptance interval for normalized information loss.

        minimum > maximum is accepted as given; such an interval only
        passes nodes whose loss range spans it.

        Raises:
            ValueError: If a bound is outside [0, 1]
        """
        if not 0.0 <= minimum <= 1.0 or not 0.0 <= maximum <= 1.0:
            raise ValueError(
                f"information loss bounds must be in [0, 1], got [{minimum}, {maximum}]"
            )
        self._min_information_loss = float(minimum)
        self._max_information_loss = float(maximum)

    def allow_all_information_loss(self) -> None:
        self._min_information_loss = 0.0
        self._max_information_loss = 1.0

    @property
    def allowed_min_information_loss(self) -> float:
        return self._min_information_loss

    @property
    def allowed_max_information_loss(self) -> float:
        return self._max_information_loss

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def disallow_all(self) -> None:
        """Block every node. The loss interval is reset to [0, 1]."""
        self._anonymity.clear()
        self._min_information_loss = 0.0
        self._max_information_loss = 1.0
        for levels in self._generalizations:
            levels.clear()

    def is_allowed(self, lattice: Lattice, node: Node) -> bool:
        """Whether the node passes the filter."""
        if node.anonymity not in self._anonymity:
            return False

        low, high = lattice.relative_loss(node)
        if high < self._min_information_loss:
            return False
        if low > self._max_information_loss:
            return False

        for dimension, level in enumerate(node.transformation):
            if level not in self._generalizations[dimension]:
                return False
        return True

    def apply(self, lattice: Lattice) -> List[Node]:
        """Nodes passing the filter, in lattice order."""
        return [node for node in lattice.nodes if self.is_allowed(lattice, node)]

    def copy(self) -> "NodeFilter":
        """Deep copy; the clone shares no sets with this filter."""
        clone = NodeFilter(self._max_levels)
        clone._anonymity = set(self._anonymity)
        clone._generalizations = [set(levels) for levels in self._generalizations]
        clone._min_information_loss = self._min_information_loss
        clone._max_information_loss = self._max_information_loss
        return clone

    # -------------------------------------------------------------------------
    # Initialization
    # -------------------------------------------------------------------------

    def initialize(self, result: SearchResult, max_nodes: int) -> None:
        """
        Configure the filter to show a default view of the result.

        With an optimum: anonymous nodes around the optimum, first opening
        less generalized levels, then more generalized ones. Without: non-
        anonymous nodes above the bottom. Either sweep returns immediately
        (after revoking the offending level) once more than max_nodes nodes
        would be visible.

        Args:
            result: Search result to explore
            max_nodes: Node budget for the initial view
        """
        lattice = result.lattice
        self.disallow_all()

        if result.is_result_available():
            seed = result.global_optimum
            anonymity = Anonymity.ANONYMOUS
            directions = (-1, 1)
            logger.info(f"Initializing filter around optimum {list(seed.transformation)} "
                        f"(budget={max_nodes})")
        else:
            seed = lattice.bottom
            anonymity = Anonymity.NOT_ANONYMOUS
            directions = (1,)
            logger.info(f"No solution available, initializing filter above bottom "
                        f"{list(seed.transformation)} (budget={max_nodes})")

        self.allow(anonymity)
        self.allow_information_loss(0.0, 1.0)
        for dimension, level in enumerate(seed.transformation):
            self.allow_generalization(dimension, level)

        visible = {seed}
        hidden = set()
        for level in lattice.levels:
            for node in level:
                if node.anonymity == anonymity and node is not seed:
                    hidden.add(node)

        for direction in directions:
            if not self._sweep(lattice, visible, hidden, seed.transformation, direction, max_nodes):
                return

        self.clean(lattice, visible)
        logger.debug(f"Filter initialized: {len(visible)} visible nodes, "
                     f"levels={self._describe_levels()}")

    def _sweep(
        self,
        lattice: Lattice,
        visible: Set[Node],
        hidden: Set[Node],
        seed: Sequence[int],
        direction: int,
        max_nodes: int
    ) -> bool:
        """
        Open levels at distance 1, 2, ... from the seed, dimension by
        dimension, in one direction (-1 = less, +1 = more generalized).

        Returns:
            False if the budget overflowed and initialization must stop
        """
        top = lattice.max_levels
        max_generalization = max(top, default=0)
        for j in range(1, max_generalization + 1):
            for dimension in range(len(seed)):
                level = seed[dimension] + direction * j
                if 0 <= level <= top[dimension]:
                    if not self._try_open(lattice, visible, hidden, dimension, level, max_nodes):
                        return False
        return True

    def _try_open(
        self,
        lattice: Lattice,
        visible: Set[Node],
        hidden: Set[Node],
        dimension: int,
        level: int,
        max_nodes: int
    ) -> bool:
        """Open one level; revoke it and report False if the budget overflows."""
        self.allow_generalization(dimension, level)
        current = self.count(lattice, visible, hidden)
        if current > max_nodes:
            self.disallow_generalization(dimension, level)
            logger.debug(f"Budget exceeded opening level {level} of dimension {dimension} "
                         f"({current} > {max_nodes}), stopping")
            return False
        return True

    def count(self, lattice: Lattice, visible: Set[Node], hidden: Set[Node]) -> int:
        """
        Move every allowed node from hidden to visible.

        Returns:
            Number of visible nodes
        """
        moved = [node for node in hidden if self.is_allowed(lattice, node)]
        for node in moved:
            hidden.discard(node)
            visible.add(node)
        return len(visible)

    def clean(self, lattice: Lattice, visible: Set[Node]) -> None:
        """
        Drop nodes that no longer pass from visible, then remove every
        allowed level that no visible node uses.
        """
        for node in [n for n in visible if not self.is_allowed(lattice, n)]:
            visible.discard(node)

        required: List[Set[int]] = [set() for _ in self._generalizations]
        for node in visible:
            for dimension, level in enumerate(node.transformation):
                required[dimension].add(level)

        for dimension, levels in enumerate(self._generalizations):
            levels.intersection_update(required[dimension])

    def _describe_levels(self) -> List[List[int]]:
        return [sorted(levels) for levels in self._generalizations]

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_levels": list(self._max_levels),
            "anonymity": sorted(a.value for a in self._anonymity),
            "generalizations": self._describe_levels(),
            "min_information_loss": self._min_information_loss,
            "max_information_loss": self._max_information_loss,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NodeFilter":
        """
        Restore a filter from to_dict() output.

        Out-of-range loss bounds are clamped into [0, 1].
        """
        node_filter = cls(data["max_levels"])
        for value in data.get("anonymity", []):
            node_filter.allow(Anonymity.parse(value))

        generalizations = data.get("generalizations", [])
        if len(generalizations) != node_filter.dimensions:
            raise ValueError(
                f"Snapshot has {len(generalizations)} level sets, "
                f"expected {node_filter.dimensions}"
            )
        for dimension, levels in enumerate(generalizations):
            for level in levels:
                node_filter.allow_generalization(dimension, int(level))

        node_filter._min_information_loss = _clamp(float(data.get("min_information_loss", 0.0)), 0.0)
        node_filter._max_information_loss = _clamp(float(data.get("max_information_loss", 1.0)), 1.0)
        return node_filter

    def __repr__(self) -> str:
        return (
            f"NodeFilter(anonymity={sorted(a.name for a in self._anonymity)}, "
            f"levels={self._describe_levels()}, "
            f"loss=[{self._min_information_loss}, {self._max_information_loss}])"
        )


def _clamp(value: float, default: float) -> float:
    if math.isnan(value):
        logger.warning(f"Replacing NaN information loss bound with {default}")
        return default
    if value < 0.0:
        logger.warning(f"Clamping information loss bound {value} to 0.0")
        return 0.0
    if value > 1.0:
        logger.warning(f"Clamping information loss bound {value} to 1.0")
        return 1.0
    return value
