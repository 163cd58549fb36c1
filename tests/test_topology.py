"""
Unit tests for Topology construction, validation and lookups.
"""

import pytest

from errors import InvalidTopology
from routing import UNREACHABLE
from topology import Link, Topology, max_link_weight


def test_build_links_and_incident_order():
    t = Topology.build(["A", "B", "C"], [("A", "B", 2), ("B", "C", 3), ("A", "C", 7)])

    assert list(t.nodes()) == ["A", "B", "C"]
    assert [link.key for link in t.links()] == [
        frozenset("AB"),
        frozenset("BC"),
        frozenset("AC"),
    ]
    # Declaration order is kept per node
    assert [link.other("A") for link in t.incident("A")] == ["B", "C"]
    assert [link.other("B") for link in t.incident("B")] == ["A", "C"]
    assert t.outgoing("C") == {"B": 3, "A": 7}


def test_links_are_symmetric():
    t = Topology.build(["A", "B"], [("A", "B", 4)])

    assert t.weight("A", "B") == 4
    assert t.weight("B", "A") == 4
    assert t.link(("B", "A")) is t.link(("A", "B"))


@pytest.mark.parametrize("count", [1, 9])
def test_node_count_out_of_range(count):
    nodes = [chr(65 + i) for i in range(count)]
    with pytest.raises(InvalidTopology):
        Topology.build(nodes, [])


@pytest.mark.parametrize("weight", [0, -3, 2.5, True, "4"])
def test_rejects_bad_weights(weight):
    with pytest.raises(InvalidTopology):
        Topology.build(["A", "B"], [("A", "B", weight)])


def test_rejects_unknown_node_and_self_link():
    with pytest.raises(InvalidTopology, match="unknown node 'Z'"):
        Topology.build(["A", "B"], [("A", "Z", 1)])
    with pytest.raises(InvalidTopology):
        Topology.build(["A", "B"], [("A", "A", 1)])


def test_duplicate_links():
    """Identical duplicates collapse; conflicting duplicates are rejected."""
    t = Topology.build(["A", "B"], [("A", "B", 1), ("B", "A", 1)])
    assert len(t.links()) == 1

    with pytest.raises(InvalidTopology):
        Topology.build(["A", "B"], [("A", "B", 1), ("B", "A", 2)])


def test_duplicate_node_ids_rejected():
    with pytest.raises(InvalidTopology):
        Topology.build(["A", "A"], [])


def test_from_matrix_uses_lower_triangle_order():
    t = Topology.from_matrix(3, [[0, 2, None], [2, 0, 3], [None, 3, 0]])

    assert list(t.nodes()) == ["A", "B", "C"]
    assert t.links() == (Link("A", "B", 2), Link("B", "C", 3))


def test_from_matrix_mirrors_one_sided_entries():
    t = Topology.from_matrix(3, [[0, 2, None], [None, 0, None], [None, 3, 0]])

    assert t.weight("A", "B") == 2
    assert t.weight("C", "B") == 3


def test_from_matrix_no_link_sentinels():
    inf = float("inf")
    t = Topology.from_matrix(3, [[0, 999999, inf], [999999, 0, 1], [inf, 1, 0]])

    assert t.links() == (Link("B", "C", 1),)


def test_from_matrix_ignores_diagonal():
    t = Topology.from_matrix(2, [[-5, 1], [1, 7]])
    assert t.links() == (Link("A", "B", 1),)


@pytest.mark.parametrize(
    "matrix",
    [
        [[0, 2], [3, 0]],          # asymmetric
        [[0, 0], [0, 0]],          # zero weight
        [[0, 1.5], [1.5, 0]],      # fractional weight
        [[0, 1, 1], [1, 0, 1]],    # wrong shape
        [[0, "x"], ["x", 0]],      # not numeric
    ],
)
def test_from_matrix_rejects_bad_input(matrix):
    with pytest.raises(InvalidTopology):
        Topology.from_matrix(2, matrix)


def test_from_matrix_node_count_range():
    with pytest.raises(InvalidTopology):
        Topology.from_matrix(1, [[0]])


def test_set_weight_keeps_declaration_order():
    t = Topology.build(["A", "B", "C"], [("A", "B", 2), ("B", "C", 3)])

    updated = t.set_weight(("B", "A"), 10)

    assert updated == Link("A", "B", 10)
    assert t.links() == (Link("A", "B", 10), Link("B", "C", 3))
    assert t.incident("B")[0].weight == 10


def test_unknown_link_lookup():
    t = Topology.build(["A", "B", "C"], [("A", "B", 2)])
    with pytest.raises(InvalidTopology):
        t.link(("A", "C"))
    with pytest.raises(InvalidTopology):
        t.set_weight(("B", "C"), 4)


def test_max_link_weight_keeps_paths_below_sentinel():
    assert max_link_weight(2) == UNREACHABLE - 1
    assert max_link_weight(3) == 499999
    for count in range(2, 9):
        assert (count - 1) * max_link_weight(count) < UNREACHABLE


def test_rejects_weights_whose_paths_reach_unreachable():
    """Two 600000 links would sum past the sentinel; build refuses them."""
    with pytest.raises(InvalidTopology, match="at most 499999"):
        Topology.build(["A", "B", "C"], [("A", "B", 600000), ("B", "C", 600000)])

    t = Topology.build(["A", "B", "C"], [("A", "B", 499999), ("B", "C", 499999)])
    assert t.max_weight == 499999


def test_from_matrix_applies_weight_cap():
    with pytest.raises(InvalidTopology):
        Topology.from_matrix(3, [[0, 600000, None], [600000, 0, 1], [None, 1, 0]])


def test_set_weight_applies_weight_cap():
    t = Topology.build(["A", "B", "C"], [("A", "B", 2), ("B", "C", 3)])

    with pytest.raises(InvalidTopology):
        t.set_weight(("A", "B"), 500000)
    with pytest.raises(InvalidTopology):
        t.check_weight(("B", "C"), 0)

    assert t.check_weight(("B", "C"), 499999) == 499999
    assert t.weight("A", "B") == 2
