"""
Undirected, weighted graph abstraction for the DV simulator.

Nodes are string identifiers.
Links are undirected: weight(u, v) == weight(v, u), positive integers.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Iterable, Mapping, Sequence

if TYPE_CHECKING:
    from topology import Link

NodeId = str


class Graph(ABC):
    """Undirected, weighted graph over node identifiers."""

    @abstractmethod
    def nodes(self) -> Sequence[NodeId]:
        """Return all nodes in declaration order."""
        raise NotImplementedError

    @abstractmethod
    def links(self) -> Iterable["Link"]:
        """Return all links in declaration order."""
        raise NotImplementedError

    @abstractmethod
    def incident(self, node: NodeId) -> Sequence["Link"]:
        """
        Links touching ``node``, in declaration order.
        """
        raise NotImplementedError

    def outgoing(self, node: NodeId) -> Mapping[NodeId, int]:
        """
        Neighbours and link weights for a given node.

        Returns: dict[NodeId, int]
        """
        return {link.other(node): link.weight for link in self.incident(node)}
