"""
graph metrics, delegated to networkx.
"""

from typing import Dict, List

import networkx as nx


class GraphAlgorithms:
    """ranking and component helpers over built graphs."""

    def page_rank(
        self,
        graph: nx.Graph,
        damping: float = 0.85,
        max_iterations: int = 100,
        tolerance: float = 1e-6,
    ) -> Dict[str, float]:
        if graph.number_of_nodes() == 0:
            return {}
        return nx.pagerank(graph, alpha=damping, max_iter=max_iterations, tol=tolerance, weight="weight")

    def betweenness(self, graph: nx.Graph, normalized: bool = True) -> Dict[str, float]:
        return nx.betweenness_centrality(graph, normalized=normalized)

    def connected_components(self, graph: nx.Graph) -> List[List[str]]:
        """largest first; weak components for directed graphs."""
        if graph.is_directed():
            components = nx.weakly_connected_components(graph)
        else:
            components = nx.connected_components(graph)
        return _ordered(components)

    def strongly_connected_components(self, graph: nx.Graph) -> List[List[str]]:
        if not graph.is_directed():
            raise ValueError("strongly connected components need a directed graph")
        return _ordered(nx.strongly_connected_components(graph))


def _ordered(components) -> List[List[str]]:
    result = [sorted(component) for component in components]
    result.sort(key=lambda c: (-len(c), c))
    return result
