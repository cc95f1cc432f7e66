"""
Storage protocols and implementations for the memory store.

Relational persistence uses SQLAlchemy (any compatible database); the vector
index is an external capability with in-memory and Qdrant adapters.
"""

from lineage_memory.storage.causal.sqlalchemy import SQLAlchemyCausalStore
from lineage_memory.storage.entries.sqlalchemy import SQLAlchemyEntryStore
from lineage_memory.storage.protocols import CausalStore, EntryStore, VectorIndex
from lineage_memory.storage.vector.memory import InMemoryVectorIndex
from lineage_memory.storage.vector.models import VectorSearchHit

__all__ = [
    "CausalStore",
    "EntryStore",
    "VectorIndex",
    "VectorSearchHit",
    "SQLAlchemyEntryStore",
    "SQLAlchemyCausalStore",
    "InMemoryVectorIndex",
]

try:
    from lineage_memory.storage.vector.qdrant import QdrantVectorIndex  # noqa: F401

    __all__.append("QdrantVectorIndex")
except ImportError:
    pass
