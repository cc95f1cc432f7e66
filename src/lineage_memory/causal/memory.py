"""
Causal memory: persisted causal relations plus an in-memory hypergraph.

Writes go to the causal store first and are then mirrored into the graph.
The graph is loaded lazily with the active (non-expired) relations the
first time it is needed.
"""

import logging
import uuid
from typing import List, Optional

from lineage_memory.causal.hypergraph import Hypergraph
from lineage_memory.causal.models import (
    CausalGraphStats,
    CausalPath,
    CausalQuery,
    CausalTraversalResult,
    CleanupResult,
)
from lineage_memory.models import (
    CausalDirection,
    CausalRelation,
    CausalRelationType,
)
from lineage_memory.storage.protocols import CausalStore
from lineage_memory.utils.timestamps import expiry_from_ttl, utc_now

logger = logging.getLogger(__name__)

DEFAULT_EFFECT_DEPTH = 5


class CausalMemory:
    """
    High-level API for causal relationships between memory entries.

    Example:
        causal = CausalMemory(SQLAlchemyCausalStore(engine))
        causal.initialize()
        relation = causal.add_relation(["rain"], ["wet-streets"], "causes", 0.9)
        causal.find_effects("rain")  # ["wet-streets"]
    """

    def __init__(self, store: CausalStore):
        self.store = store
        self.graph = Hypergraph()
        self.initialized = False

    def initialize(self):
        """Load every active relation from storage into the graph (idempotent)."""
        if self.initialized:
            return

        relations = self.store.get_active_causal_relations()
        for relation in relations:
            self.graph.add_relation(relation)
        self.initialized = True
        logger.info(f"CausalMemory initialized with {len(relations)} active relations")

    def reload(self):
        """Rebuild the graph from storage, e.g. after another writer changed it."""
        self.graph.clear()
        self.initialized = False
        self.initialize()

    def add_relation(
        self,
        source_ids: List[str],
        target_ids: List[str],
        type: CausalRelationType = "causes",
        strength: float = 0.8,
        metadata: Optional[dict] = None,
        ttl: Optional[int] = None,
    ) -> CausalRelation:
        """
        Create and persist a causal relation.

        Args:
            source_ids: Entries that jointly act as the cause
            target_ids: Entries that jointly receive the effect
            type: Relation type
            strength: Relation strength (0.0-1.0)
            metadata: Optional free-form metadata
            ttl: Optional time-to-live in milliseconds

        Returns:
            The stored relation

        Raises:
            ValueError: If source_ids or target_ids is empty
        """
        if not source_ids or not target_ids:
            raise ValueError("A causal relation needs at least one source and one target")

        self.initialize()
        now = utc_now()
        relation = CausalRelation(
            id=str(uuid.uuid4()),
            type=type,
            source_ids=list(dict.fromkeys(source_ids)),
            target_ids=list(dict.fromkeys(target_ids)),
            strength=strength,
            metadata=metadata,
            created_at=now,
            ttl=ttl,
            expires_at=expiry_from_ttl(now, ttl),
        )

        self.store.store_causal_relation(relation)
        self.graph.add_relation(relation)
        return relation

    def get_relation(self, relation_id: str) -> Optional[CausalRelation]:
        return self.store.get_causal_relation(relation_id)

    def get_relations_for_entry(
        self, entry_id: str, direction: CausalDirection = "both"
    ) -> List[CausalRelation]:
        return self.store.get_causal_relations_for_entry(entry_id, direction)

    def get_all_relations(self) -> List[CausalRelation]:
        return self.store.get_all_causal_relations()

    def get_active_relations(self) -> List[CausalRelation]:
        return self.store.get_active_causal_relations()

    def get_expired_relations(self) -> List[CausalRelation]:
        return self.store.get_expired_causal_relations()

    def get_expired_count(self) -> int:
        return self.store.get_expired_causal_relation_count()

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def traverse(self, query: CausalQuery) -> CausalTraversalResult:
        self.initialize()
        return self.graph.traverse(query)

    def find_paths(self, source_id: str, target_id: str, max_depth: int = 10) -> List[CausalPath]:
        self.initialize()
        return self.graph.find_paths(source_id, target_id, max_depth)

    def find_effects(self, entry_id: str, max_depth: int = DEFAULT_EFFECT_DEPTH) -> List[str]:
        """Entries reachable from entry_id following cause -> effect."""
        return self._reachable(entry_id, "forward", max_depth)

    def find_causes(self, entry_id: str, max_depth: int = DEFAULT_EFFECT_DEPTH) -> List[str]:
        """Entries reachable from entry_id following effect -> cause."""
        return self._reachable(entry_id, "backward", max_depth)

    def _reachable(self, entry_id: str, direction: CausalDirection, max_depth: int) -> List[str]:
        result = self.traverse(
            CausalQuery(start_ids=[entry_id], direction=direction, max_depth=max_depth)
        )
        reached = {}
        for path in result.paths:
            for node_id in path.nodes:
                if node_id != entry_id:
                    reached[node_id] = None
        return list(reached)

    def get_causal_strength(self, source_id: str, target_id: str, max_depth: int = 10) -> float:
        """Strength of the strongest path from source to target (0.0 if none)."""
        paths = self.find_paths(source_id, target_id, max_depth)
        return max((path.total_strength for path in paths), default=0.0)

    def has_causal_path(self, source_id: str, target_id: str, max_depth: int = 10) -> bool:
        return bool(self.find_paths(source_id, target_id, max_depth))

    # ------------------------------------------------------------------
    # Maintenance and export
    # ------------------------------------------------------------------

    def cleanup_expired(self) -> CleanupResult:
        """
        Delete expired relations from storage and drop them from the graph.

        Meant to be called periodically by an external scheduler; reads never
        delete anything on their own.
        """
        relation_ids = [relation.id for relation in self.store.get_expired_causal_relations()]
        if not relation_ids:
            return CleanupResult(cleaned=0)

        for relation_id in relation_ids:
            self.graph.remove_edge(relation_id)
        cleaned = self.store.delete_expired_causal_relations()

        logger.info(f"Cleaned up {cleaned} expired causal relations")
        return CleanupResult(cleaned=cleaned, relation_ids=relation_ids)

    def get_stats(self) -> CausalGraphStats:
        self.initialize()
        return self.graph.get_stats()

    def export(self) -> dict:
        self.initialize()
        return self.graph.export()

    def to_mermaid(self) -> str:
        self.initialize()
        return self.graph.to_mermaid()
