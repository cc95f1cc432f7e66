"""
lineage-memory: provenance-tracked memory store.

Entries carry derivation provenance scored by the L-Score reliability
metric, can be linked by N-to-M causal relations, and can be checked for
contradicting content with shadow (inverted-vector) search.
"""

from lineage_memory.adversarial import (
    Contradiction,
    ShadowSearch,
    ShadowSearchConfig,
    ShadowSearchOptions,
    ShadowSearchResult,
)
from lineage_memory.causal import CausalMemory, CausalPath, CausalQuery, Hypergraph
from lineage_memory.config import LineageMemorySettings
from lineage_memory.exceptions import (
    CorruptRecordError,
    LineageMemoryError,
    ProvenanceThresholdError,
)
from lineage_memory.memory_service import MemoryService
from lineage_memory.models import (
    CausalRelation,
    MemoryEntry,
    MemoryQueryFilter,
    ProvenanceInfo,
    QueryResult,
    StoreStats,
    VectorMapping,
)
from lineage_memory.provenance import LScoreCalculator, LScoreConfig, ProvenanceStore

__version__ = "0.1.0"

__all__ = [
    "CausalMemory",
    "CausalPath",
    "CausalQuery",
    "CausalRelation",
    "Contradiction",
    "CorruptRecordError",
    "Hypergraph",
    "LScoreCalculator",
    "LScoreConfig",
    "LineageMemoryError",
    "LineageMemorySettings",
    "MemoryEntry",
    "MemoryQueryFilter",
    "MemoryService",
    "ProvenanceInfo",
    "ProvenanceStore",
    "ProvenanceThresholdError",
    "QueryResult",
    "ShadowSearch",
    "ShadowSearchConfig",
    "ShadowSearchOptions",
    "ShadowSearchResult",
    "StoreStats",
    "VectorMapping",
]
