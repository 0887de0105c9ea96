"""
Clipboard of Bookmarked Transformations.

An ordered, user-reorderable list of nodes with a modification flag.
add_interesting_transformations() bookmarks a few transformations
automatically, using two rankings:

- utility: ascending by highest information loss, seeded with the optimum
- generalization: ascending by mean relative generalization degree

Both rankings are built in a single pass over the lattice with
insert_bounded(), a bounded online insertion that only compares a candidate
against the tail of the list. Once a ranking is full, a candidate enters only
if it ranks before the current last entry.
"""

import logging
from dataclasses import dataclass, field
from functools import cmp_to_key
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from schema.lattice import NODE_COMMENT, Anonymity, InformationLoss, Lattice, Node, SearchResult


logger = logging.getLogger(__name__)


Comparator = Callable[[Node, Node], int]

DEFAULT_MAX_INTERESTING = 10


def compare_scores(first: Optional[InformationLoss], second: Optional[InformationLoss]) -> int:
    """Three-way comparison; None sorts before any value, two Nones are equal."""
    if first is None and second is None:
        return 0
    if first is None:
        return -1
    if second is None:
        return 1
    if first < second:
        return -1
    if second < first:
        return 1
    return 0


def compare_by_lowest_score(first: Node, second: Node) -> int:
    return compare_scores(first.lowest_score, second.lowest_score)


def compare_by_highest_score(first: Node, second: Node) -> int:
    return compare_scores(first.highest_score, second.highest_score)


def generalization_degree(node: Node, max_levels) -> float:
    """Mean of level / max(1, max level) over all dimensions."""
    if not node.transformation:
        return 0.0
    total = 0.0
    for level, max_level in zip(node.transformation, max_levels):
        total += level / max(1, max_level)
    return total / len(node.transformation)


def generalization_comparator(lattice: Lattice) -> Comparator:
    """Ascending by generalization degree, ties broken by highest score."""
    max_levels = lattice.max_levels

    def compare(first: Node, second: Node) -> int:
        degree1 = generalization_degree(first, max_levels)
        degree2 = generalization_degree(second, max_levels)
        if degree1 < degree2:
            return -1
        if degree1 > degree2:
            return 1
        return compare_by_highest_score(first, second)

    return compare


def insert_bounded(entries: List[Node], node: Node, comparator: Comparator, limit: int) -> None:
    """
    Insert a node into a ranked list capped at limit entries.

    Scans backwards from the tail while the node ranks strictly before the
    entry, and inserts it before the last such entry. If it ranks before
    none of the tail entries, it is appended only while the list is not full.
    Nodes already in the list (by identity) are ignored.
    """
    if any(entry is node for entry in entries):
        return

    index = -1
    for position in range(len(entries) - 1, -1, -1):
        if comparator(node, entries[position]) < 0:
            index = position
        else:
            break

    if index != -1:
        entries.insert(index, node)
        while len(entries) > limit:
            entries.pop()
    elif len(entries) < limit:
        entries.append(node)


@dataclass
class InterestingTransformations:
    """Rankings produced by add_interesting_transformations()."""
    utility: List[Node] = field(default_factory=list)
    generalization: List[Node] = field(default_factory=list)

    @property
    def unique_nodes(self) -> List[Node]:
        """Nodes of both rankings without duplicates, utility first."""
        nodes: List[Node] = []
        for node in self.utility + self.generalization:
            if not any(existing is node for existing in nodes):
                nodes.append(node)
        return nodes


class Clipboard:
    """
    Ordered collection of bookmarked nodes.

    Membership is by identity. Mutators set the modification flag only when
    they actually change the list.
    """

    def __init__(self):
        self._entries: List[Node] = []
        self._modified = False

    def _index(self, node: Node) -> int:
        for position, entry in enumerate(self._entries):
            if entry is node:
                return position
        return -1

    def add(self, node: Node) -> None:
        """Append a node unless it is already on the clipboard."""
        if self._index(node) == -1:
            self._entries.append(node)
            self._modified = True

    def add_all(self, nodes: Iterable[Node]) -> None:
        """Append all nodes. Unlike add(), duplicates are not filtered."""
        nodes = list(nodes)
        if nodes:
            self._entries.extend(nodes)
            self._modified = True

    def remove(self, node: Node) -> None:
        position = self._index(node)
        if position != -1:
            del self._entries[position]
            self._modified = True

    def clear(self) -> None:
        if self._entries:
            self._entries.clear()
            self._modified = True

    def move_up(self, node: Node) -> None:
        """Swap the node with its predecessor; no-op at the top."""
        position = self._index(node)
        if position > 0:
            self._swap(position, position - 1)

    def move_down(self, node: Node) -> None:
        """Swap the node with its successor; no-op at the bottom."""
        position = self._index(node)
        if position != -1 and position < len(self._entries) - 1:
            self._swap(position, position + 1)

    def _swap(self, first: int, second: int) -> None:
        self._entries[first], self._entries[second] = self._entries[second], self._entries[first]
        self._modified = True

    def sort(self) -> None:
        """Stable sort ascending by lowest score, missing scores first."""
        self._entries.sort(key=cmp_to_key(compare_by_lowest_score))
        self._modified = True

    def get_entries(self) -> List[Node]:
        """Copy of the entries, in clipboard order."""
        return list(self._entries)

    def is_modified(self) -> bool:
        return self._modified

    def set_unmodified(self) -> None:
        self._modified = False

    def add_interesting_transformations(
        self,
        result: Optional[SearchResult],
        max_entries: int = DEFAULT_MAX_INTERESTING
    ) -> Optional[InterestingTransformations]:
        """
        Bookmark transformations ranked by utility and by generalization.

        Args:
            result: Search result; nothing happens without an optimum
            max_entries: Capacity of each ranking

        Returns:
            Both rankings (each including its head), or None if there was
            no result to rank
        """
        if result is None or not result.is_result_available():
            logger.info("No result available, skipping interesting transformations")
            return None

        lattice = result.lattice
        optimum = result.global_optimum
        by_generalization = generalization_comparator(lattice)

        utility: List[Node] = [optimum]
        generalization: List[Node] = []
        for level in lattice.levels:
            for node in level:
                if node.anonymity == Anonymity.ANONYMOUS:
                    insert_bounded(utility, node, compare_by_highest_score, max_entries)
        for level in lattice.levels:
            for node in level:
                if node.anonymity == Anonymity.ANONYMOUS:
                    insert_bounded(generalization, node, by_generalization, max_entries)

        rankings = InterestingTransformations(list(utility), list(generalization))

        utility_primary = utility.pop(0) if utility else None
        generalization_primary = generalization.pop(0) if generalization else None

        # Later annotations win for nodes that appear in both rankings
        if utility_primary is not None:
            utility_primary.attributes[NODE_COMMENT] = "Best utility"
        for rank, node in enumerate(utility, start=2):
            node.attributes[NODE_COMMENT] = f"Utility rank {rank}"
        if generalization_primary is not None:
            generalization_primary.attributes[NODE_COMMENT] = "Least generalized"
        for rank, node in enumerate(generalization, start=2):
            node.attributes[NODE_COMMENT] = f"Generalization rank {rank}"

        for node in (utility_primary, generalization_primary):
            if node is not None:
                self.add(node)
        for node in utility + generalization:
            self.add(node)

        self._modified = True
        logger.info(
            f"Added interesting transformations: {len(rankings.utility)} by utility, "
            f"{len(rankings.generalization)} by generalization, "
            f"clipboard size {len(self._entries)}"
        )
        return rankings

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entries": [
                {"transformation": list(node.transformation), "comment": node.comment}
                for node in self._entries
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], lattice: Lattice) -> "Clipboard":
        """
        Restore a clipboard, resolving transformations against a lattice.

        Entries without a matching node are skipped.
        """
        clipboard = cls()
        for entry in data.get("entries", []):
            node = lattice.find(entry["transformation"])
            if node is None:
                logger.warning(f"Skipping clipboard entry {entry['transformation']}: not in lattice")
                continue
            if entry.get("comment") is not None:
                node.attributes[NODE_COMMENT] = entry["comment"]
            clipboard.add(node)
        clipboard.set_unmodified()
        return clipboard

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, node: object) -> bool:
        return any(entry is node for entry in self._entries)

    def __iter__(self) -> Iterator[Node]:
        return iter(list(self._entries))

    def __repr__(self) -> str:
        return f"Clipboard(entries={len(self._entries)}, modified={self._modified})"
