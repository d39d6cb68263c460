"""
graph export - plain structures, JSON, GraphML and GEXF.

the array form is what callers persist or ship to a front end:
{
    "directed": true,
    "nodes": [{"id": "...", "attributes": {...}}],
    "edges": [{"from": "...", "to": "...", "attributes": {"weight": 1, ...}}]
}
"""

import json
import logging
from typing import Any, Dict, Optional

import networkx as nx

logger = logging.getLogger("scholarnet.export")


def to_array(graph: nx.Graph) -> Dict[str, Any]:
    nodes = [
        {"id": node_id, "attributes": dict(attrs)}
        for node_id, attrs in graph.nodes(data=True)
    ]
    edges = [
        {"from": source, "to": target, "attributes": dict(attrs)}
        for source, target, attrs in graph.edges(data=True)
    ]
    return {
        "directed": graph.is_directed(),
        "nodes": nodes,
        "edges": edges,
    }


def to_json(graph: nx.Graph) -> str:
    return json.dumps(to_array(graph), indent=2, ensure_ascii=False)


def _flatten_attributes(graph: nx.Graph) -> nx.Graph:
    """copy with list/dict attributes json-encoded (xml formats need scalars)."""
    G = graph.copy()
    for node_id in G.nodes():
        for key, value in list(G.nodes[node_id].items()):
            if isinstance(value, (list, dict)):
                G.nodes[node_id][key] = json.dumps(value)

    for u, v in G.edges():
        for key, value in list(G.edges[u, v].items()):
            if isinstance(value, (list, dict)):
                G.edges[u, v][key] = json.dumps(value)
    return G


class GraphExporter:
    """writes citation / collaboration graphs to files."""

    def to_json(self, graph: nx.Graph, filepath: Optional[str] = None) -> Dict[str, Any]:
        """array form; also written to filepath when given."""
        result = to_array(graph)
        if filepath:
            with open(filepath, "w", encoding="utf-8") as f:
                json.dump(result, f, indent=2, ensure_ascii=False)
            logger.info(f"exported JSON to {filepath}")
        return result

    def to_graphml(self, graph: nx.Graph, filepath: str):
        """
        export graph to GraphML format (for Gephi, Cytoscape).
        """
        nx.write_graphml(_flatten_attributes(graph), filepath)
        logger.info(f"exported GraphML to {filepath}")

    def to_gexf(self, graph: nx.Graph, filepath: str):
        nx.write_gexf(_flatten_attributes(graph), filepath)
        logger.info(f"exported GEXF to {filepath}")
