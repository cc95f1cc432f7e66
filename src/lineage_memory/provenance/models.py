"""
Data structures for lineage tracing.

- LineageNode: one entry in a traced lineage tree (children are its parents)
- ProvenanceChain: result of tracing an entry's full ancestry
- LineageTraceResult: flattened parent chain for display
- LineageCache: explicit, invalidatable cache of traced chains
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


@dataclass
class LineageNode:
    """
    One entry in a lineage tree.

    The tree grows from the traced entry towards its roots, so the
    ``children`` of a node are the entries it was derived from.

    Attributes:
        entry_id: ID of the entry
        depth: Distance from the traced entry (0 = the entry itself)
        confidence: Confidence of this entry's derivation step
        relevance: Relevance of this entry's parents
        l_score: Cached or freshly computed L-Score
        children: Nodes for the entry's parents
    """

    entry_id: str
    depth: int
    confidence: float
    relevance: float
    l_score: float
    children: List["LineageNode"] = field(default_factory=list)


@dataclass
class ProvenanceChain:
    """
    Result of tracing an entry's ancestry.

    Attributes:
        root_id: The traced entry
        root: Tree root node (None when the entry has no provenance)
        nodes: Every visited node, each entry exactly once
        max_depth: Deepest level reached
        aggregate_l_score: Harmonic aggregate over all visited nodes
    """

    root_id: str
    root: Optional[LineageNode] = None
    nodes: Dict[str, LineageNode] = field(default_factory=dict)
    max_depth: int = 0
    aggregate_l_score: float = 1.0


@dataclass
class ParentLink:
    id: str
    confidence: float
    relevance: float


@dataclass
class LineageTraceResult:
    entry_id: str
    depth: int
    l_score: float
    parent_chain: List[ParentLink] = field(default_factory=list)


class LineageCache:
    """
    Cache of traced lineage chains, owned by a ProvenanceStore.

    Any L-Score write can change the scores inside cached chains, so the
    store clears the cache whenever it persists a score.
    """

    def __init__(self):
        self._chains: Dict[Tuple[str, int], ProvenanceChain] = {}
        self.hits = 0
        self.misses = 0

    def get(self, entry_id: str, max_depth: int) -> Optional[ProvenanceChain]:
        chain = self._chains.get((entry_id, max_depth))
        if chain is None:
            self.misses += 1
        else:
            self.hits += 1
        return chain

    def put(self, entry_id: str, max_depth: int, chain: ProvenanceChain):
        self._chains[(entry_id, max_depth)] = chain

    def clear(self):
        self._chains.clear()

    def __len__(self) -> int:
        return len(self._chains)

    def __contains__(self, key: Tuple[str, int]) -> bool:
        return key in self._chains
