"""Provenance tracking and L-Score reliability scoring."""

from lineage_memory.provenance.lscore import LScoreCalculator, LScoreConfig
from lineage_memory.provenance.models import (
    LineageCache,
    LineageNode,
    LineageTraceResult,
    ParentLink,
    ProvenanceChain,
)
from lineage_memory.provenance.store import ProvenanceStore

__all__ = [
    "LScoreCalculator",
    "LScoreConfig",
    "LineageCache",
    "LineageNode",
    "LineageTraceResult",
    "ParentLink",
    "ProvenanceChain",
    "ProvenanceStore",
]
