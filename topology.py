"""
Concrete undirected, weighted topology for the DV simulator.

Implements the Graph interface with an ordered link list plus a
node -> incident-links index. Link order is declaration order and drives the
engine's iteration order, so it must stay stable for reproducible runs.
"""

from dataclasses import dataclass, replace
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from errors import InvalidTopology
from graph import Graph, NodeId
from routing import UNREACHABLE


MIN_NODES = 2
MAX_NODES = 8

LinkSpec = Tuple[NodeId, NodeId, int]
LinkRef = Union["Link", Tuple[NodeId, NodeId]]


def letter_id(index: int) -> str:
    """Matrix index -> node id (0 -> 'A', 1 -> 'B', ...)."""
    return chr(65 + index)


@dataclass(frozen=True)
class Link:
    """
    Undirected link between two nodes with a positive integer weight.
    """
    a: NodeId
    b: NodeId
    weight: int

    @property
    def key(self) -> FrozenSet[NodeId]:
        return frozenset((self.a, self.b))

    def other(self, node: NodeId) -> NodeId:
        """Endpoint opposite ``node``."""
        if node == self.a:
            return self.b
        if node == self.b:
            return self.a
        raise InvalidTopology(f"Node {node!r} is not an endpoint of link {self.a}-{self.b}.")


def max_link_weight(node_count: int) -> int:
    """
    Largest weight for which a simple path over ``node_count`` nodes stays
    below UNREACHABLE.
    """
    return (UNREACHABLE - 1) // max(node_count - 1, 1)


def check_weight(weight: object, where: str, limit: Optional[int] = None) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(weight, bool) or not isinstance(weight, (int, np.integer)):
        raise InvalidTopology(f"Weight for {where} must be an integer, got {weight!r}.")
    if weight <= 0:
        raise InvalidTopology(f"Weight for {where} must be positive, got {weight}.")
    if limit is not None and weight > limit:
        raise InvalidTopology(f"Weight for {where} must be at most {limit}, got {weight}.")
    return int(weight)


class Topology(Graph):
    """
    Undirected graph backed by an ordered link list.

    Nodes are fixed for the session; link weights change only through
    :meth:`set_weight`, which the edit coordinator calls.
    """

    def __init__(self, node_ids: Sequence[NodeId], links: Sequence[Link]) -> None:
        self._nodes: Tuple[NodeId, ...] = tuple(node_ids)
        self._links: List[Link] = list(links)
        self._reindex()

    # --- Construction --------------------------------------------------------

    @classmethod
    def build(cls, node_ids: Sequence[NodeId], link_specs: Iterable[LinkSpec]) -> "Topology":
        """
        Validate node ids and link specs and return a new topology.

        Identical duplicate link specs collapse into one link; a second spec
        for the same pair with a different weight is rejected. Weights are
        capped at :func:`max_link_weight` so no path cost reaches the
        unreachable sentinel.
        """
        nodes = list(node_ids)
        if not MIN_NODES <= len(nodes) <= MAX_NODES:
            raise InvalidTopology(
                f"Node count must be in [{MIN_NODES}, {MAX_NODES}], got {len(nodes)}."
            )
        if len(set(nodes)) != len(nodes):
            raise InvalidTopology(f"Node ids must be unique, got {nodes}.")

        known = set(nodes)
        limit = max_link_weight(len(nodes))
        links: List[Link] = []
        seen: Dict[FrozenSet[NodeId], Link] = {}
        for a, b, weight in link_specs:
            for endpoint in (a, b):
                if endpoint not in known:
                    raise InvalidTopology(f"Link {a}-{b} references unknown node {endpoint!r}.")
            if a == b:
                raise InvalidTopology(f"Self-link on node {a!r} is not allowed.")
            link = Link(a, b, check_weight(weight, f"link {a}-{b}", limit))
            existing = seen.get(link.key)
            if existing is not None:
                if existing.weight != link.weight:
                    raise InvalidTopology(
                        f"Duplicate link {a}-{b} with weights {existing.weight} and {link.weight}."
                    )
                continue
            seen[link.key] = link
            links.append(link)
        return cls(nodes, links)

    @classmethod
    def from_matrix(cls, node_count: int, matrix: Sequence[Sequence[Optional[float]]]) -> "Topology":
        """
        Build a topology from an N x N distance matrix.

        The diagonal is ignored. ``None``, NaN, inf or anything at or above
        ``UNREACHABLE`` means "no link". An entry given on one side only is
        mirrored; two finite entries that disagree are rejected. Nodes are
        named ``A``, ``B``, ... in row order and links are declared row by
        row over the lower triangle, (node_j, node_i) for j < i.
        """
        if not MIN_NODES <= node_count <= MAX_NODES:
            raise InvalidTopology(
                f"Node count must be in [{MIN_NODES}, {MAX_NODES}], got {node_count}."
            )
        try:
            grid = np.array(matrix, dtype=float)
        except (TypeError, ValueError) as exc:
            raise InvalidTopology(f"Distance matrix is not numeric: {exc}") from exc
        if grid.shape != (node_count, node_count):
            raise InvalidTopology(
                f"Distance matrix must be {node_count}x{node_count}, got shape {grid.shape}."
            )

        no_link = ~np.isfinite(grid) | (grid >= UNREACHABLE)
        np.fill_diagonal(no_link, True)
        present = ~no_link

        weights = np.where(present, grid, 1.0)
        bad = present & ((weights <= 0) | (np.mod(weights, 1) != 0))
        if bad.any():
            i, j = np.argwhere(bad)[0]
            raise InvalidTopology(
                f"Weight for {letter_id(i)}-{letter_id(j)} must be a positive integer, got {grid[i, j]}."
            )

        conflict = present & present.T & (grid != grid.T)
        if conflict.any():
            i, j = np.argwhere(conflict)[0]
            raise InvalidTopology(
                f"Distance matrix is not symmetric at {letter_id(i)}-{letter_id(j)}: "
                f"{grid[i, j]} vs {grid[j, i]}."
            )

        # Mirror one-sided entries onto the lower triangle.
        lower = np.where(present, grid, grid.T)
        has_link = present | present.T

        nodes = [letter_id(i) for i in range(node_count)]
        specs: List[LinkSpec] = []
        for i in range(node_count):
            for j in range(i):
                if has_link[i, j]:
                    specs.append((nodes[j], nodes[i], int(lower[i, j])))
        return cls.build(nodes, specs)

    # --- Graph interface -----------------------------------------------------

    def nodes(self) -> Sequence[NodeId]:
        return self._nodes

    def links(self) -> Sequence[Link]:
        return tuple(self._links)

    def incident(self, node: NodeId) -> Sequence[Link]:
        return tuple(self._incident.get(node, ()))

    # --- Lookups -------------------------------------------------------------

    def __contains__(self, node: object) -> bool:
        return node in self._incident

    def __len__(self) -> int:
        return len(self._nodes)

    def link(self, ref: LinkRef) -> Link:
        """
        Resolve a link by ``Link`` or ``(a, b)`` pair, in either orientation.
        """
        a, b = (ref.a, ref.b) if isinstance(ref, Link) else ref
        for link in self._links:
            if link.key == frozenset((a, b)):
                return link
        raise InvalidTopology(f"No link between {a!r} and {b!r}.")

    def weight(self, a: NodeId, b: NodeId) -> int:
        return self.link((a, b)).weight

    @property
    def max_weight(self) -> int:
        return max_link_weight(len(self._nodes))

    def check_weight(self, ref: LinkRef, weight: object) -> int:
        """Validate a new weight for an existing link without applying it."""
        current = self.link(ref)
        return check_weight(weight, f"link {current.a}-{current.b}", self.max_weight)

    # --- Mutation (edit coordinator only) ------------------------------------

    def set_weight(self, ref: LinkRef, weight: int) -> Link:
        """
        Replace the weight of an existing link. Returns the updated link.
        """
        current = self.link(ref)
        updated = replace(current, weight=self.check_weight(current, weight))
        self._links = [updated if link is current else link for link in self._links]
        self._reindex()
        return updated

    def _reindex(self) -> None:
        self._incident: Dict[NodeId, List[Link]] = {node: [] for node in self._nodes}
        for link in self._links:
            self._incident[link.a].append(link)
            self._incident[link.b].append(link)
