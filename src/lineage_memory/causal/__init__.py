"""Causal relationships between memory entries (N-to-M hyperedges)."""

from lineage_memory.causal.hypergraph import Hypergraph
from lineage_memory.causal.memory import CausalMemory
from lineage_memory.causal.models import (
    CausalGraphStats,
    CausalNode,
    CausalPath,
    CausalQuery,
    CausalTraversalResult,
    CleanupResult,
    Hyperedge,
)

__all__ = [
    "CausalGraphStats",
    "CausalMemory",
    "CausalNode",
    "CausalPath",
    "CausalQuery",
    "CausalTraversalResult",
    "CleanupResult",
    "Hyperedge",
    "Hypergraph",
]
