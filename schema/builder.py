"""
Lattice construction helpers.

Builds a complete generalization lattice (every combination of levels) from
per-dimension maximum levels, or wires generalization relations for an
arbitrary set of transformations.
"""

import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from schema.lattice import Anonymity, InformationLoss, Lattice, Node


logger = logging.getLogger(__name__)


Classifier = Callable[[Tuple[int, ...]], Anonymity]
LossFunction = Callable[[Tuple[int, ...]], Optional[float]]


def enumerate_transformations(max_levels: Sequence[int]) -> List[Tuple[int, ...]]:
    """
    All transformations of a complete lattice, ordered by height and then
    lexicographically.
    """
    if any(level < 0 for level in max_levels):
        raise ValueError(f"max_levels must be non-negative, got {list(max_levels)}")

    shape = tuple(int(level) + 1 for level in max_levels)
    grid = np.array(list(np.ndindex(*shape)), dtype=np.int64).reshape(-1, len(shape))
    heights = grid.sum(axis=1)

    # Stable sort keeps ndindex (lexicographic) order within a height
    order = np.argsort(heights, kind="stable")
    return [tuple(int(x) for x in grid[i]) for i in order]


def link_generalizations(nodes: Sequence[Node]) -> None:
    """
    Fill predecessor/successor id lists.

    A successor differs from its node by +1 in exactly one dimension.
    """
    index: Dict[Tuple[int, ...], int] = {node.transformation: node.id for node in nodes}
    for node in nodes:
        node.predecessors = []
        node.successors = []
    for node in nodes:
        for dim in range(len(node.transformation)):
            step = list(node.transformation)
            step[dim] += 1
            successor = index.get(tuple(step))
            if successor is not None:
                node.successors.append(successor)
                nodes[successor].predecessors.append(node.id)


def build_lattice(
    max_levels: Sequence[int],
    classify: Classifier,
    min_loss: Optional[LossFunction] = None,
    max_loss: Optional[LossFunction] = None
) -> Lattice:
    """
    Build a complete lattice.

    Args:
        max_levels: Highest generalization level per dimension
        classify: Maps a transformation to its anonymity classification
        min_loss: Lower utility-cost bound per transformation (default: height)
        max_loss: Upper utility-cost bound per transformation (default: min_loss)

    Returns:
        Lattice with ids assigned in height-then-lexicographic order
    """
    if min_loss is None:
        min_loss = lambda t: float(sum(t))
    if max_loss is None:
        max_loss = min_loss

    nodes: List[Node] = []
    for node_id, transformation in enumerate(enumerate_transformations(max_levels)):
        low = min_loss(transformation)
        high = max_loss(transformation)
        nodes.append(Node(
            id=node_id,
            transformation=transformation,
            anonymity=classify(transformation),
            min_loss=None if low is None else InformationLoss(float(low)),
            max_loss=None if high is None else InformationLoss(float(high)),
        ))

    link_generalizations(nodes)
    logger.debug(f"Built complete lattice for max_levels={list(max_levels)}: {len(nodes)} nodes")
    return Lattice(nodes)
