"""
Data structures for causal hypergraph traversal.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Set

from lineage_memory.models import CausalDirection, CausalRelationType


@dataclass
class Hyperedge:
    """
    In-memory form of a causal relation.

    Attributes:
        id: Relation ID
        type: Relation type
        source_ids: Entries that jointly act as the cause
        target_ids: Entries that jointly receive the effect
        strength: Edge strength (0.0-1.0)
        metadata: Free-form relation metadata
        expires_at: When the edge stops being traversable (None = never)
    """

    id: str
    type: CausalRelationType
    source_ids: Set[str]
    target_ids: Set[str]
    strength: float
    metadata: Optional[dict] = None
    expires_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now


@dataclass
class CausalNode:
    """A memory entry taking part in at least one hyperedge."""

    id: str
    outgoing_edges: Set[str] = field(default_factory=set)
    incoming_edges: Set[str] = field(default_factory=set)


@dataclass
class CausalPath:
    """
    One simple path found by a traversal.

    Attributes:
        nodes: Entry IDs along the path, starting with the start node
        edges: Relation IDs traversed, one per hop
        total_strength: Product of the traversed edge strengths
        relation_types: Relation type of each hop, in order
    """

    nodes: List[str]
    edges: List[str]
    total_strength: float
    relation_types: List[CausalRelationType]

    @property
    def length(self) -> int:
        return len(self.edges)


@dataclass
class CausalQuery:
    """
    Traversal request.

    Attributes:
        start_ids: Entries to start from
        direction: forward (cause -> effect), backward (effect -> cause) or both
        max_depth: Maximum number of edges per path
        relation_types: Only follow these relation types (None = all)
        min_strength: Only follow edges at least this strong (None = all)
    """

    start_ids: List[str]
    direction: CausalDirection = "forward"
    max_depth: int = 10
    relation_types: Optional[List[CausalRelationType]] = None
    min_strength: Optional[float] = None


@dataclass
class CausalTraversalResult:
    paths: List[CausalPath] = field(default_factory=list)
    visited_nodes: Set[str] = field(default_factory=set)
    visited_edges: Set[str] = field(default_factory=set)


@dataclass
class CausalGraphStats:
    node_count: int
    edge_count: int
    avg_out_degree: float
    avg_in_degree: float
    relation_type_counts: Dict[str, int] = field(default_factory=dict)


@dataclass
class CleanupResult:
    """Outcome of removing expired relations."""

    cleaned: int
    relation_ids: List[str] = field(default_factory=list)
