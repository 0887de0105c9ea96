"""
Tests for the node filter.

Covers the visibility predicate, the mutators and their argument checks,
and the budget-bounded initialization on hand-traced lattices.
"""

import itertools
import json

import pytest

from core.filter import NodeFilter
from schema.builder import build_lattice
from schema.lattice import Anonymity, InformationLoss, Lattice, Node, SearchResult


def anonymous_from_height(min_height):
    def classify(transformation):
        if sum(transformation) >= min_height:
            return Anonymity.ANONYMOUS
        return Anonymity.NOT_ANONYMOUS
    return classify


def always(anonymity):
    return lambda transformation: anonymity


def transformations(nodes):
    return {node.transformation for node in nodes}


def levels_of(node_filter):
    return [node_filter.get_allowed_generalizations(d) for d in range(node_filter.dimensions)]


# =============================================================================
# Predicate
# =============================================================================

def test_is_allowed_matches_definition():
    """is_allowed is the conjunction of classification, loss and level tests."""
    lattice = build_lattice([2, 1], anonymous_from_height(2))
    node_filter = NodeFilter(lattice.max_levels)
    node_filter.allow(Anonymity.ANONYMOUS)
    node_filter.allow_generalization(0, 1)
    node_filter.allow_generalization(0, 2)
    node_filter.allow_generalization(1, 1)
    node_filter.allow_information_loss(0.5, 1.0)

    for node in lattice.nodes:
        low, high = lattice.relative_loss(node)
        expected = (
            node.anonymity in {Anonymity.ANONYMOUS}
            and not (high < 0.5 or low > 1.0)
            and node.transformation[0] in {1, 2}
            and node.transformation[1] in {1}
        )
        assert node_filter.is_allowed(lattice, node) == expected, node


def test_information_loss_interval_uses_normalized_range():
    """Loss is normalized against lattice-wide extremes before comparison."""
    lattice = build_lattice([3], always(Anonymity.ANONYMOUS))
    node_filter = NodeFilter(lattice.max_levels)
    node_filter.allow_anonymous()
    for level in range(4):
        node_filter.allow_generalization(0, level)

    node_filter.allow_information_loss(0.5, 1.0)
    assert transformations(node_filter.apply(lattice)) == {(2,), (3,)}

    node_filter.allow_information_loss(0.0, 0.4)
    assert transformations(node_filter.apply(lattice)) == {(0,), (1,)}


def test_inverted_interval_is_accepted_as_given():
    """min > max is not rejected; only nodes whose range spans it pass."""
    point = Node(0, (0,), Anonymity.ANONYMOUS, InformationLoss(1.0), InformationLoss(1.0))
    wide = Node(1, (1,), Anonymity.ANONYMOUS, InformationLoss(0.0), InformationLoss(3.0))
    top = Node(2, (2,), Anonymity.ANONYMOUS, InformationLoss(3.0), InformationLoss(3.0))
    lattice = Lattice([point, wide, top])

    node_filter = NodeFilter(lattice.max_levels)
    node_filter.allow_anonymous()
    for level in range(3):
        node_filter.allow_generalization(0, level)
    node_filter.allow_information_loss(0.8, 0.2)

    assert node_filter.allowed_min_information_loss == 0.8
    assert node_filter.allowed_max_information_loss == 0.2
    assert node_filter.apply(lattice) == [wide]


def test_missing_loss_never_rejected_by_interval():
    """A node without loss values is only judged by classification and levels."""
    unknown = Node(0, (0,), Anonymity.ANONYMOUS)
    known = Node(1, (1,), Anonymity.ANONYMOUS, InformationLoss(0.0), InformationLoss(0.0))
    other = Node(2, (2,), Anonymity.ANONYMOUS, InformationLoss(10.0), InformationLoss(10.0))
    lattice = Lattice([unknown, known, other])

    node_filter = NodeFilter(lattice.max_levels)
    node_filter.allow_anonymous()
    for level in range(3):
        node_filter.allow_generalization(0, level)
    node_filter.allow_information_loss(0.4, 0.6)

    assert node_filter.apply(lattice) == [unknown]


def test_disallow_all_blocks_every_node():
    """Empty classification and level sets dominate the reset loss interval."""
    lattice = build_lattice([2, 2, 1], anonymous_from_height(2))
    node_filter = NodeFilter(lattice.max_levels)
    node_filter.allow_anonymous()
    node_filter.allow_non_anonymous()
    node_filter.allow_unknown()
    for dimension, max_level in enumerate(lattice.max_levels):
        for level in range(max_level + 1):
            node_filter.allow_generalization(dimension, level)
    node_filter.allow_information_loss(0.3, 0.4)

    node_filter.disallow_all()

    assert node_filter.allowed_anonymity == set()
    assert node_filter.allowed_min_information_loss == 0.0
    assert node_filter.allowed_max_information_loss == 1.0
    assert all(levels == set() for levels in levels_of(node_filter))
    assert not any(node_filter.is_allowed(lattice, node) for node in lattice.nodes)


# =============================================================================
# Mutators
# =============================================================================

def test_classification_toggles_are_idempotent():
    node_filter = NodeFilter([1])
    node_filter.allow(Anonymity.ANONYMOUS)
    node_filter.allow(Anonymity.ANONYMOUS)
    assert node_filter.allowed_anonymity == {Anonymity.ANONYMOUS}

    node_filter.disallow(Anonymity.NOT_ANONYMOUS)
    node_filter.disallow(Anonymity.ANONYMOUS)
    node_filter.disallow(Anonymity.ANONYMOUS)
    assert node_filter.allowed_anonymity == set()


def test_unknown_group_toggles():
    node_filter = NodeFilter([1])
    node_filter.allow_unknown()
    assert node_filter.is_allowed_unknown()
    assert not node_filter.is_allowed_anonymous()
    assert node_filter.allowed_anonymity == {
        Anonymity.PROBABLY_ANONYMOUS, Anonymity.PROBABLY_NOT_ANONYMOUS, Anonymity.UNKNOWN
    }

    node_filter.disallow(Anonymity.UNKNOWN)
    assert node_filter.is_allowed_unknown()

    node_filter.disallow_unknown()
    assert not node_filter.is_allowed_unknown()


@pytest.mark.parametrize("minimum, maximum", [(-0.1, 0.5), (0.5, 1.1), (1.5, 0.5), (0.0, -1.0)])
def test_allow_information_loss_rejects_out_of_range(minimum, maximum):
    node_filter = NodeFilter([1])
    node_filter.allow_information_loss(0.2, 0.3)

    with pytest.raises(ValueError):
        node_filter.allow_information_loss(minimum, maximum)

    assert node_filter.allowed_min_information_loss == 0.2
    assert node_filter.allowed_max_information_loss == 0.3


def test_dimension_out_of_range_raises():
    node_filter = NodeFilter([2, 1])
    with pytest.raises(IndexError):
        node_filter.allow_generalization(2, 0)
    with pytest.raises(IndexError):
        node_filter.disallow_generalization(-1, 0)
    with pytest.raises(IndexError):
        node_filter.is_allowed_generalization(5, 0)


def test_level_out_of_range_raises():
    node_filter = NodeFilter([2, 1])
    with pytest.raises(ValueError):
        node_filter.allow_generalization(1, 2)
    with pytest.raises(ValueError):
        node_filter.allow_generalization(0, -1)

    # Removing a level that was never allowed is a no-op
    node_filter.disallow_generalization(1, 7)
    assert node_filter.get_allowed_generalizations(1) == set()


def test_copy_is_independent():
    node_filter = NodeFilter([2, 2])
    node_filter.allow_anonymous()
    node_filter.allow_generalization(0, 1)
    node_filter.allow_information_loss(0.1, 0.9)

    clone = node_filter.copy()
    clone.allow_non_anonymous()
    clone.allow_generalization(0, 2)
    clone.allow_generalization(1, 0)
    clone.allow_information_loss(0.0, 0.5)

    assert node_filter.allowed_anonymity == {Anonymity.ANONYMOUS}
    assert levels_of(node_filter) == [{1}, set()]
    assert node_filter.allowed_max_information_loss == 0.9
    assert levels_of(clone) == [{1, 2}, {0}]


# =============================================================================
# Initialization
# =============================================================================

def test_initialize_three_dimensions_budget_three():
    """
    max levels [2, 2, 1], optimum [1, 1, 0], budget 3, anonymous iff height >= 2.

    Less generalized: opening 0 in dims 0 and 1 adds no anonymous node.
    More generalized: level 2 in dim 0 adds [2,0,0] and [2,1,0] (3 visible);
    level 2 in dim 1 would reach 6, so it is revoked and initialization stops.
    """
    lattice = build_lattice([2, 2, 1], anonymous_from_height(2))
    optimum = lattice.find([1, 1, 0])
    result = SearchResult(lattice, optimum)

    node_filter = NodeFilter(lattice.max_levels)
    node_filter.initialize(result, 3)

    assert node_filter.allowed_anonymity == {Anonymity.ANONYMOUS}
    assert levels_of(node_filter) == [{0, 1, 2}, {0, 1}, {0}]
    assert node_filter.allowed_min_information_loss == 0.0
    assert node_filter.allowed_max_information_loss == 1.0
    assert transformations(node_filter.apply(lattice)) == {(1, 1, 0), (2, 0, 0), (2, 1, 0)}


def test_initialize_respects_budget_on_fifty_nodes():
    """
    50 anonymous nodes (max levels [4, 4, 1]), optimum [2, 2, 0], budget 5.

    Level 1 in dim 0 gives 2 nodes, level 1 in dim 1 gives 4, level 0 in
    dim 0 would give 6 and stops the sweep.
    """
    lattice = build_lattice([4, 4, 1], always(Anonymity.ANONYMOUS))
    assert lattice.size == 50
    result = SearchResult(lattice, lattice.find([2, 2, 0]))

    node_filter = NodeFilter(lattice.max_levels)
    node_filter.initialize(result, 5)

    visible = node_filter.apply(lattice)
    assert len(visible) <= 5
    assert len(visible) == 4
    assert levels_of(node_filter) == [{1, 2}, {1, 2}, {0}]


def test_initialize_cleans_unused_levels_when_budget_suffices():
    """Levels opened without adding a visible node are removed at the end."""
    anonymous = {(0, 1), (1, 1)}
    lattice = build_lattice(
        [1, 1],
        lambda t: Anonymity.ANONYMOUS if t in anonymous else Anonymity.NOT_ANONYMOUS
    )
    result = SearchResult(lattice, lattice.find([0, 1]))

    node_filter = NodeFilter(lattice.max_levels)
    node_filter.initialize(result, 100)

    assert levels_of(node_filter) == [{0, 1}, {1}]
    assert transformations(node_filter.apply(lattice)) == anonymous


def test_initialize_without_solution_generalizes_bottom():
    """Without an optimum, non-anonymous nodes above the bottom are shown."""
    lattice = build_lattice(
        [1, 1],
        lambda t: Anonymity.ANONYMOUS if t == (1, 1) else Anonymity.NOT_ANONYMOUS
    )
    result = SearchResult(lattice, None)

    node_filter = NodeFilter(lattice.max_levels)
    node_filter.initialize(result, 10)

    assert node_filter.allowed_anonymity == {Anonymity.NOT_ANONYMOUS}
    assert levels_of(node_filter) == [{0, 1}, {0, 1}]
    assert transformations(node_filter.apply(lattice)) == {(0, 0), (1, 0), (0, 1)}


def test_initialize_without_solution_stops_on_overflow():
    lattice = build_lattice(
        [1, 1],
        lambda t: Anonymity.ANONYMOUS if t == (1, 1) else Anonymity.NOT_ANONYMOUS
    )
    node_filter = NodeFilter(lattice.max_levels)
    node_filter.initialize(SearchResult(lattice, None), 2)

    assert levels_of(node_filter) == [{0, 1}, {0}]
    assert transformations(node_filter.apply(lattice)) == {(0, 0), (1, 0)}


def test_initialize_resets_previous_state():
    lattice = build_lattice([1, 1], always(Anonymity.ANONYMOUS))
    node_filter = NodeFilter(lattice.max_levels)
    node_filter.allow_unknown()
    node_filter.allow_information_loss(0.9, 1.0)

    node_filter.initialize(SearchResult(lattice, lattice.find([0, 0])), 1)

    assert node_filter.allowed_anonymity == {Anonymity.ANONYMOUS}
    assert node_filter.allowed_min_information_loss == 0.0
    assert transformations(node_filter.apply(lattice)) == {(0, 0)}


@pytest.mark.parametrize("budget", [1, 2, 3, 5, 8, 13, 100])
def test_initialize_never_exceeds_budget(budget):
    lattice = build_lattice([3, 2, 2], anonymous_from_height(2))
    result = SearchResult(lattice, lattice.find([1, 1, 1]))

    node_filter = NodeFilter(lattice.max_levels)
    node_filter.initialize(result, budget)

    assert len(node_filter.apply(lattice)) <= budget


def test_count_moves_allowed_nodes_once():
    lattice = build_lattice([1, 1], always(Anonymity.ANONYMOUS))
    node_filter = NodeFilter(lattice.max_levels)
    node_filter.allow_anonymous()
    node_filter.allow_generalization(0, 0)
    node_filter.allow_generalization(1, 0)
    node_filter.allow_generalization(1, 1)

    bottom = lattice.bottom
    visible = {bottom}
    hidden = set(lattice.nodes) - visible

    assert node_filter.count(lattice, visible, hidden) == 2
    assert transformations(visible) == {(0, 0), (0, 1)}
    assert transformations(hidden) == {(1, 0), (1, 1)}

    # Revoking a level does not move nodes back
    node_filter.disallow_generalization(1, 1)
    assert node_filter.count(lattice, visible, hidden) == 2


def test_clean_is_idempotent():
    lattice = build_lattice([2, 2, 1], anonymous_from_height(2))
    node_filter = NodeFilter(lattice.max_levels)
    node_filter.allow_anonymous()
    for dimension, max_level in enumerate(lattice.max_levels):
        for level in range(max_level + 1):
            node_filter.allow_generalization(dimension, level)
    node_filter.disallow_generalization(0, 2)

    visible = set(lattice.nodes)
    node_filter.clean(lattice, visible)
    first = levels_of(node_filter)
    first_visible = set(visible)

    node_filter.clean(lattice, visible)
    assert levels_of(node_filter) == first
    assert visible == first_visible
    assert all(node.anonymity == Anonymity.ANONYMOUS for node in visible)


# =============================================================================
# Snapshot
# =============================================================================

def test_snapshot_round_trip():
    node_filter = NodeFilter([2, 1])
    node_filter.allow_anonymous()
    node_filter.allow_unknown()
    node_filter.allow_generalization(0, 2)
    node_filter.allow_generalization(1, 0)
    node_filter.allow_information_loss(0.25, 0.75)

    restored = NodeFilter.from_dict(node_filter.to_dict())

    assert restored.max_levels == (2, 1)
    assert restored.allowed_anonymity == node_filter.allowed_anonymity
    assert levels_of(restored) == levels_of(node_filter)
    assert restored.allowed_min_information_loss == 0.25
    assert restored.allowed_max_information_loss == 0.75


def test_snapshot_clamps_loss_bounds():
    state = NodeFilter([1]).to_dict()
    state["min_information_loss"] = -0.5
    state["max_information_loss"] = 1.7

    restored = NodeFilter.from_dict(state)

    assert restored.allowed_min_information_loss == 0.0
    assert restored.allowed_max_information_loss == 1.0


def test_snapshot_replaces_nan_loss_bounds():
    """NaN bounds (accepted by json.load) fall back to the full interval."""
    state = json.loads(
        '{"max_levels": [1], "anonymity": ["anonymous"], "generalizations": [[0, 1]], '
        '"min_information_loss": NaN, "max_information_loss": NaN}'
    )

    restored = NodeFilter.from_dict(state)

    assert restored.allowed_min_information_loss == 0.0
    assert restored.allowed_max_information_loss == 1.0

    lattice = build_lattice([1], always(Anonymity.ANONYMOUS))
    assert transformations(restored.apply(lattice)) == {(0,), (1,)}


def test_snapshot_rejects_wrong_dimensionality():
    state = NodeFilter([1, 1]).to_dict()
    state["generalizations"] = [[0]]
    with pytest.raises(ValueError):
        NodeFilter.from_dict(state)


def test_apply_returns_lattice_order():
    lattice = build_lattice([1, 1], always(Anonymity.ANONYMOUS))
    node_filter = NodeFilter(lattice.max_levels)
    node_filter.allow_anonymous()
    for dimension, level in itertools.product(range(2), range(2)):
        node_filter.allow_generalization(dimension, level)

    assert [n.transformation for n in node_filter.apply(lattice)] == [(0, 0), (0, 1), (1, 0), (1, 1)]
