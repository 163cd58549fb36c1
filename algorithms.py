"""
Algorithm interfaces for routing.

Keeps the reference shortest-path oracle separate from the step-wise
distance-vector engine it is used to check.
"""

from abc import ABC, abstractmethod
from typing import Dict

from graph import Graph, NodeId


class DijkstraEngine(ABC):
    """
    Interface for single-source shortest-path computation.
    """

    @abstractmethod
    def shortest_path_costs(self, graph: Graph, source: NodeId) -> Dict[NodeId, int]:
        """
        Compute shortest-path costs from source to all reachable nodes.

        Returns:
            Mapping dest_node -> path_cost(source -> dest_node).
        """
        raise NotImplementedError

    @abstractmethod
    def shortest_paths(
        self, graph: Graph, source: NodeId
    ) -> tuple[Dict[NodeId, int], Dict[NodeId, NodeId]]:
        """
        Compute shortest-path costs plus the predecessor chain for each dest.

        Returns:
            (dist, prev) where dist is the cost map and prev records parents.
        """
        raise NotImplementedError
