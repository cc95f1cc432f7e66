"""
In-memory causal hypergraph.

A hyperedge connects a set of source entries to a set of target entries, so
multi-cause and multi-effect relations are kept whole instead of being split
into pairwise edges. Persistence lives in SQLAlchemyCausalStore; this module
only does traversal.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from lineage_memory.causal.models import (
    CausalGraphStats,
    CausalNode,
    CausalPath,
    CausalQuery,
    CausalTraversalResult,
    Hyperedge,
)
from lineage_memory.models import CausalRelation
from lineage_memory.utils.timestamps import utc_now

logger = logging.getLogger(__name__)


class Hypergraph:
    """
    Adjacency structure over causal hyperedges.

    Example:
        graph = Hypergraph()
        graph.add_relation(relation)
        result = graph.traverse(CausalQuery(start_ids=["x"], max_depth=2))
    """

    def __init__(self):
        self.nodes: Dict[str, CausalNode] = {}
        self.edges: Dict[str, Hyperedge] = {}

    def add_node(self, node_id: str) -> CausalNode:
        node = self.nodes.get(node_id)
        if node is None:
            node = CausalNode(id=node_id)
            self.nodes[node_id] = node
        return node

    def add_edge(self, edge: Hyperedge):
        if edge.id in self.edges:
            self.remove_edge(edge.id)

        self.edges[edge.id] = edge
        for source_id in edge.source_ids:
            self.add_node(source_id).outgoing_edges.add(edge.id)
        for target_id in edge.target_ids:
            self.add_node(target_id).incoming_edges.add(edge.id)

    def add_relation(self, relation: CausalRelation):
        """Add a persisted relation as a hyperedge."""
        self.add_edge(
            Hyperedge(
                id=relation.id,
                type=relation.type,
                source_ids=set(relation.source_ids),
                target_ids=set(relation.target_ids),
                strength=relation.strength,
                metadata=relation.metadata,
                expires_at=relation.expires_at,
            )
        )

    def remove_edge(self, edge_id: str) -> bool:
        edge = self.edges.pop(edge_id, None)
        if edge is None:
            return False
        for source_id in edge.source_ids:
            node = self.nodes.get(source_id)
            if node is not None:
                node.outgoing_edges.discard(edge_id)
        for target_id in edge.target_ids:
            node = self.nodes.get(target_id)
            if node is not None:
                node.incoming_edges.discard(edge_id)
        return True

    def get_node(self, node_id: str) -> Optional[CausalNode]:
        return self.nodes.get(node_id)

    def get_edge(self, edge_id: str) -> Optional[Hyperedge]:
        return self.edges.get(edge_id)

    def traverse(self, query: CausalQuery, now: Optional[datetime] = None) -> CausalTraversalResult:
        """
        Enumerate simple paths from the start nodes.

        A path never revisits a node already on it, so cycles terminate.
        Paths contain at most ``query.max_depth`` edges. Edges that have
        expired by ``now`` are skipped but left in place.

        Args:
            query: Start nodes, direction, depth bound and filters
            now: Reference time for expiry checks (defaults to the current time)

        Returns:
            Every path found, plus the nodes and edges touched on the way

        Raises:
            ValueError: If query.direction is not forward, backward or both
        """
        if query.direction not in ("forward", "backward", "both"):
            raise ValueError(f"Unknown direction: {query.direction}")

        now = now or utc_now()
        result = CausalTraversalResult()

        def dfs(node_id: str, path: List[str], edges: List[str], strength: float, types: list):
            result.visited_nodes.add(node_id)
            node = self.nodes.get(node_id)
            if node is None or len(edges) >= query.max_depth:
                return

            for edge in self._candidate_edges(node, query, now):
                result.visited_edges.add(edge.id)
                for next_id in self._next_nodes(edge, node_id, query.direction):
                    if next_id in path:
                        continue
                    next_path = path + [next_id]
                    next_edges = edges + [edge.id]
                    next_strength = strength * edge.strength
                    next_types = types + [edge.type]
                    result.paths.append(
                        CausalPath(
                            nodes=next_path,
                            edges=next_edges,
                            total_strength=next_strength,
                            relation_types=next_types,
                        )
                    )
                    dfs(next_id, next_path, next_edges, next_strength, next_types)

        for start_id in dict.fromkeys(query.start_ids):
            dfs(start_id, [start_id], [], 1.0, [])

        logger.debug(
            f"Traversal from {query.start_ids} ({query.direction}, max_depth={query.max_depth}): "
            f"{len(result.paths)} paths, {len(result.visited_nodes)} nodes"
        )
        return result

    def _candidate_edges(
        self, node: CausalNode, query: CausalQuery, now: datetime
    ) -> Iterable[Hyperedge]:
        if query.direction == "forward":
            edge_ids = sorted(node.outgoing_edges)
        elif query.direction == "backward":
            edge_ids = sorted(node.incoming_edges)
        else:
            edge_ids = sorted(node.outgoing_edges | node.incoming_edges)

        for edge_id in edge_ids:
            edge = self.edges.get(edge_id)
            if edge is None or edge.is_expired(now):
                continue
            if query.relation_types is not None and edge.type not in query.relation_types:
                continue
            if query.min_strength is not None and edge.strength < query.min_strength:
                continue
            yield edge

    @staticmethod
    def _next_nodes(edge: Hyperedge, node_id: str, direction: str) -> List[str]:
        if direction == "forward":
            return sorted(edge.target_ids)
        if direction == "backward":
            return sorted(edge.source_ids)
        return sorted((edge.source_ids | edge.target_ids) - {node_id})

    def find_paths(self, source_id: str, target_id: str, max_depth: int = 10) -> List[CausalPath]:
        """Forward paths from source_id that end at target_id."""
        result = self.traverse(
            CausalQuery(start_ids=[source_id], direction="forward", max_depth=max_depth)
        )
        return [path for path in result.paths if path.nodes[-1] == target_id]

    def get_stats(self) -> CausalGraphStats:
        type_counts: Dict[str, int] = {}
        for edge in self.edges.values():
            type_counts[edge.type] = type_counts.get(edge.type, 0) + 1

        node_count = len(self.nodes)
        total_out = sum(len(node.outgoing_edges) for node in self.nodes.values())
        total_in = sum(len(node.incoming_edges) for node in self.nodes.values())
        return CausalGraphStats(
            node_count=node_count,
            edge_count=len(self.edges),
            avg_out_degree=total_out / node_count if node_count else 0.0,
            avg_in_degree=total_in / node_count if node_count else 0.0,
            relation_type_counts=type_counts,
        )

    def export(self) -> dict:
        """Plain-data snapshot of the graph for visualisation."""
        return {
            "nodes": [
                {
                    "id": node.id,
                    "out_degree": len(node.outgoing_edges),
                    "in_degree": len(node.incoming_edges),
                }
                for node in self.nodes.values()
            ],
            "edges": [
                {
                    "id": edge.id,
                    "type": edge.type,
                    "sources": sorted(edge.source_ids),
                    "targets": sorted(edge.target_ids),
                    "strength": edge.strength,
                }
                for edge in self.edges.values()
            ],
        }

    def to_mermaid(self) -> str:
        """Render the graph as a Mermaid flowchart, one line per source/target pair."""
        lines = ["graph LR"]
        for edge in self.edges.values():
            label = f"{edge.type}({edge.strength:.2f})"
            for source_id in sorted(edge.source_ids):
                for target_id in sorted(edge.target_ids):
                    lines.append(f"    {source_id} -->|{label}| {target_id}")
        return "\n".join(lines)

    def clear(self):
        self.nodes.clear()
        self.edges.clear()

    def __len__(self) -> int:
        return len(self.edges)
