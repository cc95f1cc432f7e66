"""
Provenance store: lineage traversal and L-Score maintenance.

Scores are cached on each entry's provenance record. A cached score is only
an optimisation over a value that can always be re-derived, so whenever a
parent link is attached or an ancestor's confidence/relevance changes,
propagate_l_score_update() must be called for the affected entry.

Every traversal keeps one visited set for the whole call, so diamonds are
walked once and cyclic ancestry (which the store does not forbid) terminates.
"""

import logging
from collections import deque
from typing import Dict, List, Optional, Set

from lineage_memory.models import MemoryEntry, ProvenanceInfo, ReliabilityCategory
from lineage_memory.provenance.lscore import LScoreCalculator, LScoreConfig
from lineage_memory.provenance.models import (
    LineageCache,
    LineageNode,
    LineageTraceResult,
    ParentLink,
    ProvenanceChain,
)
from lineage_memory.storage.protocols import EntryStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 10


class ProvenanceStore:
    """
    Lineage queries and L-Score bookkeeping on top of an entry store.

    Entries without a provenance record are treated as roots (L-Score 1.0)
    rather than as errors.

    Example:
        provenance = ProvenanceStore(entry_store, LScoreConfig(depth_decay=0.9))
        provenance.calculate_and_store_l_score(entry_id)
        chain = provenance.trace_lineage(entry_id)
    """

    def __init__(self, entry_store: EntryStore, config: Optional[LScoreConfig] = None):
        self.entry_store = entry_store
        self.calculator = LScoreCalculator(config)
        self.cache = LineageCache()
        logger.info(
            f"ProvenanceStore initialized (depth_decay={self.calculator.config.depth_decay}, "
            f"min_score={self.calculator.config.min_score})"
        )

    # ------------------------------------------------------------------
    # Scores
    # ------------------------------------------------------------------

    def calculate_and_store_l_score(self, entry_id: str) -> float:
        """
        Recompute an entry's L-Score from its own and its direct parents'
        confidence/relevance, and persist it.

        Returns:
            The new score (1.0 without a write when the entry has no provenance)
        """
        provenance = self.entry_store.get_provenance(entry_id)
        if provenance is None:
            return 1.0

        l_score = self._score_for(provenance)
        self.entry_store.update_l_score(entry_id, l_score)
        self.cache.clear()

        logger.debug(f"Stored L-Score {l_score:.4f} for {entry_id}")
        return l_score

    def get_l_score(self, entry_id: str) -> float:
        """Cached score if present, otherwise computed on the fly (not stored)."""
        provenance = self.entry_store.get_provenance(entry_id)
        if provenance is None:
            return 1.0
        if provenance.l_score is not None:
            return provenance.l_score
        return self._score_for(provenance)

    def resolve_l_score(self, entry: MemoryEntry) -> float:
        """Score cached on an already loaded entry, computed and stored if missing."""
        if entry.provenance.l_score is not None:
            return entry.provenance.l_score
        return self.calculate_and_store_l_score(entry.id)

    def _score_for(self, provenance: ProvenanceInfo) -> float:
        if provenance.is_root:
            return 1.0

        # Only direct parents are sampled; depth decay carries deeper history
        confidences = [provenance.confidence]
        relevances = [provenance.relevance]
        for parent_id in provenance.parent_ids:
            parent = self.entry_store.get_provenance(parent_id)
            if parent is not None:
                confidences.append(parent.confidence)
                relevances.append(parent.relevance)

        return self.calculator.calculate(confidences, relevances, provenance.lineage_depth)

    def is_reliable(self, entry_id: str, threshold: float = 0.5) -> bool:
        return self.calculator.is_reliable(self.get_l_score(entry_id), threshold)

    def get_reliability_category(self, entry_id: str) -> ReliabilityCategory:
        return self.calculator.get_reliability_category(self.get_l_score(entry_id))

    # ------------------------------------------------------------------
    # Lineage
    # ------------------------------------------------------------------

    def trace_lineage(self, entry_id: str, max_depth: int = DEFAULT_MAX_DEPTH) -> ProvenanceChain:
        """
        Trace an entry's ancestry into a tree.

        Each ancestor appears once in ``nodes`` even when reachable through
        several paths; an ancestor that closes a cycle is not expanded again.

        Args:
            entry_id: Entry to trace from
            max_depth: Maximum number of hops to walk up

        Returns:
            ProvenanceChain with the tree, the node map and an aggregate L-Score
        """
        cached = self.cache.get(entry_id, max_depth)
        if cached is not None:
            return cached

        nodes: Dict[str, LineageNode] = {}
        in_progress: Set[str] = set()

        def build(node_id: str, depth: int) -> Optional[LineageNode]:
            if depth > max_depth or node_id in in_progress:
                return None
            if node_id in nodes:
                return nodes[node_id]

            provenance = self.entry_store.get_provenance(node_id)
            if provenance is None:
                return None

            in_progress.add(node_id)
            children = []
            for parent_id in provenance.parent_ids:
                child = build(parent_id, depth + 1)
                if child is not None:
                    children.append(child)
            in_progress.discard(node_id)

            l_score = (
                provenance.l_score
                if provenance.l_score is not None
                else self._score_for(provenance)
            )
            node = LineageNode(
                entry_id=node_id,
                depth=depth,
                confidence=provenance.confidence,
                relevance=provenance.relevance,
                l_score=l_score,
                children=children,
            )
            nodes[node_id] = node
            return node

        root = build(entry_id, 0)
        chain = ProvenanceChain(
            root_id=entry_id,
            root=root,
            nodes=nodes,
            max_depth=max((node.depth for node in nodes.values()), default=0),
            aggregate_l_score=self.calculator.aggregate_from_parents(
                [node.l_score for node in nodes.values()]
            ),
        )
        self.cache.put(entry_id, max_depth, chain)
        return chain

    def get_lineage_trace(
        self, entry_id: str, max_depth: int = DEFAULT_MAX_DEPTH
    ) -> LineageTraceResult:
        """Flattened list of ancestors (each once) plus the entry's own score."""
        provenance = self.entry_store.get_provenance(entry_id)
        if provenance is None:
            return LineageTraceResult(entry_id=entry_id, depth=0, l_score=1.0)

        parent_chain: List[ParentLink] = []
        visited = {entry_id}
        frontier = [(entry_id, provenance)]
        depth = 0
        while frontier and depth < max_depth:
            next_frontier = []
            for _, current in frontier:
                for parent_id in current.parent_ids:
                    if parent_id in visited:
                        continue
                    visited.add(parent_id)
                    parent = self.entry_store.get_provenance(parent_id)
                    if parent is None:
                        continue
                    parent_chain.append(
                        ParentLink(
                            id=parent_id,
                            confidence=parent.confidence,
                            relevance=parent.relevance,
                        )
                    )
                    next_frontier.append((parent_id, parent))
            frontier = next_frontier
            depth += 1

        l_score = (
            provenance.l_score if provenance.l_score is not None else self._score_for(provenance)
        )
        return LineageTraceResult(
            entry_id=entry_id,
            depth=provenance.lineage_depth,
            l_score=l_score,
            parent_chain=parent_chain,
        )

    def get_descendants(
        self, entry_id: str, max_depth: Optional[int] = DEFAULT_MAX_DEPTH
    ) -> List[str]:
        """
        Entries derived (directly or transitively) from an entry.

        Args:
            entry_id: Entry to start from (not included in the result)
            max_depth: Maximum number of generations, None for unbounded

        Returns:
            Descendant IDs in breadth-first order, each exactly once
        """
        descendants: List[str] = []
        visited = {entry_id}
        queue = deque([(entry_id, 0)])

        while queue:
            current, generation = queue.popleft()
            if max_depth is not None and generation >= max_depth:
                continue
            for child_id in self.entry_store.get_child_ids(current):
                if child_id in visited:
                    continue
                visited.add(child_id)
                descendants.append(child_id)
                queue.append((child_id, generation + 1))

        return descendants

    def propagate_l_score_update(
        self, entry_id: str, max_depth: Optional[int] = None
    ) -> List[str]:
        """
        Recompute the score of an entry and of every descendant.

        Not atomic across the descendant set: a concurrent write to a
        descendant mid-propagation can leave that descendant stale.

        Returns:
            IDs whose score was recomputed, starting with entry_id
        """
        updated = [entry_id]
        self.calculate_and_store_l_score(entry_id)
        for descendant_id in self.get_descendants(entry_id, max_depth=max_depth):
            self.calculate_and_store_l_score(descendant_id)
            updated.append(descendant_id)

        logger.info(f"Propagated L-Score update from {entry_id} to {len(updated) - 1} descendants")
        return updated

    def refresh_lineage_depth(self, entry_id: str) -> int:
        """
        Re-derive lineage depth (1 + deepest parent, 0 for roots) for an entry
        and its descendants, e.g. after attaching a new parent link.

        Returns:
            The entry's depth after the refresh
        """
        affected = [entry_id] + self.get_descendants(entry_id, max_depth=None)
        depths: Dict[str, int] = {}

        # A cycle would grow depths forever; one pass per node is enough otherwise
        for _ in range(len(affected)):
            changed = False
            for node_id in affected:
                provenance = self.entry_store.get_provenance(node_id)
                if provenance is None:
                    continue
                new_depth = self._derived_depth(provenance, depths)
                if new_depth != depths.get(node_id, provenance.lineage_depth):
                    changed = True
                depths[node_id] = new_depth
                if new_depth != provenance.lineage_depth:
                    self.entry_store.set_lineage_depth(node_id, new_depth)
            if not changed:
                break

        self.cache.clear()
        return depths.get(entry_id, 0)

    def _derived_depth(self, provenance: ProvenanceInfo, known: Dict[str, int]) -> int:
        if provenance.is_root:
            return 0
        parent_depths = []
        for parent_id in provenance.parent_ids:
            if parent_id in known:
                parent_depths.append(known[parent_id])
                continue
            parent = self.entry_store.get_provenance(parent_id)
            parent_depths.append(parent.lineage_depth if parent is not None else 0)
        return 1 + max(parent_depths)

    def clear_cache(self):
        self.cache.clear()
