"""
Heap-based DijkstraEngine implementation used as a reference oracle.

Uses Python's heapq to compute single-source shortest paths over any Graph,
and numpy to lay the all-pairs result out as a distance matrix comparable
with converged DV tables.
"""

from typing import Dict, Optional
import heapq

import numpy as np

from algorithms import DijkstraEngine
from graph import Graph, NodeId
from routing import UNREACHABLE


class SimpleDijkstraEngine(DijkstraEngine):
    """
    Single-source Dijkstra using a binary heap.

    Complexity:
        O(E log V) over the nodes reachable from the source.
    """

    def shortest_path_costs(self, graph: Graph, source: NodeId) -> Dict[NodeId, int]:
        """
        Compute only the cost map for all reachable nodes from source.
        """
        dist, _ = self.shortest_paths(graph, source)
        return dist

    def shortest_paths(
        self, graph: Graph, source: NodeId
    ) -> tuple[Dict[NodeId, int], Dict[NodeId, NodeId]]:
        """
        Dijkstra variant that also records predecessors for path reconstruction.

        The predecessor map omits the source itself because it has no parent;
        unreachable nodes appear in neither map.
        """
        dist: Dict[NodeId, int] = {source: 0}
        prev: Dict[NodeId, NodeId] = {}
        pq = [(0, source)]  # priority queue of (distance, node)

        while pq:
            d_u, u = heapq.heappop(pq)
            # Skip outdated entries
            if d_u != dist.get(u):
                continue

            for v, w in graph.outgoing(u).items():
                alt = d_u + w
                if v not in dist or alt < dist[v]:
                    dist[v] = alt
                    prev[v] = u
                    heapq.heappush(pq, (alt, v))

        return dist, prev


def all_pairs_distances(graph: Graph, engine: Optional[DijkstraEngine] = None) -> np.ndarray:
    """
    N x N matrix of shortest-path costs in ``graph.nodes()`` order.

    Unreachable pairs hold UNREACHABLE; the diagonal is zero.
    """
    engine = engine if engine is not None else SimpleDijkstraEngine()
    nodes = list(graph.nodes())
    index = {node: i for i, node in enumerate(nodes)}
    matrix = np.full((len(nodes), len(nodes)), UNREACHABLE, dtype=np.int64)
    for source in nodes:
        for dest, cost in engine.shortest_path_costs(graph, source).items():
            matrix[index[source], index[dest]] = cost
    return matrix
