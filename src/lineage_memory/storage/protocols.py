"""
Storage protocol definitions for the memory store.

These protocols define the interface that storage implementations must
provide. The vector index is an external capability (an approximate nearest
neighbour index keyed by stable integer labels); the entry and causal stores
are the relational persistence substrate.
"""

from typing import List, Optional, Protocol, Sequence

from lineage_memory.models import (
    CausalDirection,
    CausalRelation,
    MemoryEntry,
    ProvenanceInfo,
)
from lineage_memory.storage.vector.models import VectorSearchHit


class VectorIndex(Protocol):
    """
    Protocol for an approximate nearest-neighbour vector index.

    Implementations rank by cosine similarity. Labels are allocated by the
    entry store (see EntryStore.store_vector_mapping), never by the index.
    """

    def search(self, vector: Sequence[float], top_k: int = 10) -> List[VectorSearchHit]:
        """
        Find the labels closest to a vector.

        Args:
            vector: Query vector
            top_k: Maximum number of hits to return

        Returns:
            Hits sorted by similarity, highest first
        """
        ...

    def insert(self, label: int, vector: Sequence[float]) -> None:
        """
        Insert (or replace) the vector stored under a label.

        Args:
            label: Stable integer label of the entry
            vector: The embedding vector
        """
        ...

    def remove(self, label: int) -> bool:
        """
        Remove a label from the index.

        Args:
            label: Label to remove

        Returns:
            True if something was removed
        """
        ...


class EntryStore(Protocol):
    """
    Protocol for memory entry and provenance persistence.

    Only the operations used by the provenance and search layers are listed;
    SQLAlchemyEntryStore provides the full CRUD surface.
    """

    def get_entry(self, entry_id: str) -> Optional[MemoryEntry]:
        """Retrieve an entry, or None if it doesn't exist."""
        ...

    def get_provenance(self, entry_id: str) -> Optional[ProvenanceInfo]:
        """Retrieve an entry's provenance record, or None if it has none."""
        ...

    def get_child_ids(self, entry_id: str) -> List[str]:
        """IDs of entries that list this entry as a parent."""
        ...

    def update_l_score(self, entry_id: str, l_score: float) -> None:
        """Persist a freshly computed L-Score."""
        ...

    def set_lineage_depth(self, entry_id: str, depth: int) -> None:
        """Persist a re-derived lineage depth."""
        ...

    def get_entry_id_by_label(self, label: int) -> Optional[str]:
        """Resolve a vector index label back to an entry ID."""
        ...


class CausalStore(Protocol):
    """Protocol for causal hyperedge persistence."""

    def store_causal_relation(self, relation: CausalRelation) -> str:
        """Store a relation with its source and target sets; returns its ID."""
        ...

    def get_causal_relation(self, relation_id: str) -> Optional[CausalRelation]:
        """Retrieve a relation by ID."""
        ...

    def get_causal_relations_for_entry(
        self, entry_id: str, direction: CausalDirection = "both"
    ) -> List[CausalRelation]:
        """Relations where the entry is a source (forward) and/or target (backward)."""
        ...

    def get_all_causal_relations(self) -> List[CausalRelation]:
        """Every stored relation, expired or not."""
        ...

    def get_active_causal_relations(self) -> List[CausalRelation]:
        """Relations that have not expired. Must not delete anything."""
        ...

    def get_expired_causal_relations(self) -> List[CausalRelation]:
        """Relations whose expiry has passed. Must not delete anything."""
        ...

    def get_expired_causal_relation_count(self) -> int:
        """Number of expired relations."""
        ...

    def delete_expired_causal_relations(self) -> int:
        """Delete expired relations and their junction rows; returns the count."""
        ...
