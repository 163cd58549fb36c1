"""
Routing-table data structures for the DV simulator.

Defines the per-destination RoutingEntry, the unreachable sentinel and the
RoutingTableStore that holds one row per node. The convergence engine is the
only writer; observers read snapshots.
"""

from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Dict, Mapping

from errors import InternalInconsistency
from graph import Graph, NodeId


# Finite stand-in for "no known path". Never used as true infinity.
UNREACHABLE = 999999
NO_HOP = "-"


def add_distance(weight: int, distance: int) -> int:
    """
    Sentinel-aware addition: anything plus UNREACHABLE stays UNREACHABLE.
    """
    if distance >= UNREACHABLE:
        return UNREACHABLE
    return min(weight + distance, UNREACHABLE)


@dataclass(frozen=True)
class RoutingEntry:
    """
    One node's knowledge of a single destination.

    processing is set only while the engine recomputes this entry; updated
    marks a distance change in the step that just completed and stays set
    until the observer acknowledges it; calculated marks entries the engine
    has written since the last reset.
    """
    distance: int = UNREACHABLE
    next_hop: NodeId = NO_HOP
    processing: bool = False
    updated: bool = False
    calculated: bool = False

    @property
    def reachable(self) -> bool:
        return self.distance < UNREACHABLE


BLANK_ENTRY = RoutingEntry()

Table = Mapping[NodeId, RoutingEntry]


class RoutingTableStore:
    """
    node -> (dest -> RoutingEntry) for every ordered pair of distinct nodes.
    """

    def __init__(self, topology: Graph) -> None:
        self._tables: Dict[NodeId, Dict[NodeId, RoutingEntry]] = {}
        self.reset(topology)

    def reset(self, topology: Graph) -> None:
        """Drop all knowledge: every entry unreachable, no next hop, unflagged."""
        nodes = list(topology.nodes())
        self._tables = {
            node: {dest: BLANK_ENTRY for dest in nodes if dest != node}
            for node in nodes
        }

    def get(self, node: NodeId, dest: NodeId) -> RoutingEntry:
        try:
            return self._tables[node][dest]
        except KeyError:
            raise InternalInconsistency(f"No routing entry for {node!r} -> {dest!r}.") from None

    def distance(self, node: NodeId, dest: NodeId) -> int:
        """
        Current distance, or UNREACHABLE when the pair has no entry (including node == dest).
        """
        entry = self._tables.get(node, {}).get(dest)
        return entry.distance if entry is not None else UNREACHABLE

    def set(self, node: NodeId, dest: NodeId, entry: RoutingEntry) -> None:
        """
        Overwrite one entry. Only the convergence engine calls this.
        """
        row = self._tables.get(node)
        if row is None or dest not in row:
            raise InternalInconsistency(f"Cannot write entry {node!r} -> {dest!r}: unknown pair.")
        row[dest] = entry

    def clear_updated(self) -> None:
        for row in self._tables.values():
            for dest, entry in row.items():
                if entry.updated:
                    row[dest] = replace(entry, updated=False)

    def table(self, node: NodeId) -> Table:
        row = self._tables.get(node)
        if row is None:
            raise InternalInconsistency(f"No routing table for {node!r}.")
        return MappingProxyType(dict(row))

    def snapshot(self) -> Mapping[NodeId, Table]:
        """
        Read-only copy for observers. Entries are frozen, so rows are copied shallowly.
        """
        return MappingProxyType(
            {node: MappingProxyType(dict(row)) for node, row in self._tables.items()}
        )
