"""
SQLAlchemy-based entry storage implementation.

Persists memory entries, their tags, their provenance records and parent
links, and the mappings between entries and labels in the external vector
index. Works with any SQLAlchemy-compatible database (SQLite, PostgreSQL, ...).
"""

import json
import logging
from typing import Dict, List, Optional

from sqlalchemy import Engine, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lineage_memory.exceptions import CorruptRecordError
from lineage_memory.models import (
    CompressionTier,
    MemoryEntry,
    MemorySource,
    ProvenanceInfo,
    StoreStats,
    VectorMapping,
)
from lineage_memory.storage.schema import (
    CausalRelationRow,
    CausalSourceRow,
    CausalTargetRow,
    MemoryEntryRow,
    MemoryTagRow,
    ProvenanceLinkRow,
    ProvenanceRow,
    VectorMappingRow,
    create_all,
    session_scope,
)
from lineage_memory.utils.timestamps import from_iso, optional_datetime, to_iso, utc_now

logger = logging.getLogger(__name__)

DEFAULT_LABEL_RETRIES = 3


def _decode_json(raw: Optional[str], table: str, record_id: str, column: str) -> Optional[dict]:
    """Decode a JSON column, failing loudly on corrupt data."""
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise CorruptRecordError(table, record_id, column, str(e)) from e


class SQLAlchemyEntryStore:
    """
    SQLAlchemy-based entry storage.

    An entry and its provenance are always written together in one
    transaction. Vector labels are allocated from an in-process counter that
    is refreshed from the database whenever a label collision shows that
    another writer got there first.

    Example:
        from sqlalchemy import create_engine
        engine = create_engine("sqlite:///memory.db")
        store = SQLAlchemyEntryStore(engine)
        store.create_tables()
    """

    def __init__(self, engine: Engine, label_retry_attempts: int = DEFAULT_LABEL_RETRIES):
        """
        Initialize the SQLAlchemy entry store.

        Args:
            engine: SQLAlchemy engine for database connection
            label_retry_attempts: Label collisions tolerated before the final refresh+retry
        """
        self.engine = engine
        self.label_retry_attempts = label_retry_attempts
        self._next_label: Optional[int] = None
        logger.info(f"SQLAlchemyEntryStore initialized (engine={engine.url})")

    def _session(self):
        return session_scope(self.engine)

    def create_tables(self):
        """Create database tables if they don't exist."""
        create_all(self.engine)

    # ------------------------------------------------------------------
    # Memory entries
    # ------------------------------------------------------------------

    def store_entry(self, entry: MemoryEntry) -> str:
        """Store an entry with its tags, provenance and parent links atomically."""
        with self._session() as session:
            session.add(
                MemoryEntryRow(
                    id=entry.id,
                    content=entry.content,
                    source=entry.source,
                    importance=entry.importance,
                    session_id=entry.session_id,
                    agent_id=entry.agent_id,
                    context=json.dumps(entry.context) if entry.context is not None else None,
                    created_at=to_iso(entry.created_at),
                    updated_at=to_iso(entry.updated_at),
                )
            )
            for tag in entry.tags:
                session.add(MemoryTagRow(entry_id=entry.id, tag=tag))

            prov = entry.provenance
            session.add(
                ProvenanceRow(
                    entry_id=entry.id,
                    lineage_depth=prov.lineage_depth,
                    confidence=prov.confidence,
                    relevance=prov.relevance,
                    l_score=prov.l_score,
                )
            )
            for parent_id in dict.fromkeys(prov.parent_ids):
                session.add(ProvenanceLinkRow(child_id=entry.id, parent_id=parent_id))

            logger.debug(
                f"Stored entry {entry.id} (depth={prov.lineage_depth}, "
                f"parents={len(prov.parent_ids)}): '{entry.content[:50]}'"
            )
            return entry.id

    def get_entry(self, entry_id: str) -> Optional[MemoryEntry]:
        """Retrieve an entry by ID, or None if it doesn't exist."""
        with self._session() as session:
            row = session.get(MemoryEntryRow, entry_id)
            if row is None:
                return None
            return self._row_to_entry(session, row)

    def get_all_entries(self) -> List[MemoryEntry]:
        """Get every entry, newest first."""
        with self._session() as session:
            rows = session.query(MemoryEntryRow).order_by(MemoryEntryRow.created_at.desc()).all()
            return [self._row_to_entry(session, row) for row in rows]

    def update_entry(
        self,
        entry_id: str,
        tags: Optional[List[str]] = None,
        importance: Optional[float] = None,
        source: Optional[MemorySource] = None,
        context: Optional[dict] = None,
    ) -> bool:
        """
        Replace selected fields of an entry.

        Content is immutable; derive a new entry instead of rewriting it.

        Returns:
            True if the entry exists, False otherwise
        """
        with self._session() as session:
            row = session.get(MemoryEntryRow, entry_id)
            if row is None:
                logger.warning(f"Cannot update entry {entry_id}: not found")
                return False

            if importance is not None:
                if not 0.0 <= importance <= 1.0:
                    raise ValueError(f"importance must be in [0, 1], got {importance}")
                row.importance = importance
            if source is not None:
                row.source = source
            if context is not None:
                row.context = json.dumps(context)
            if tags is not None:
                session.query(MemoryTagRow).filter(MemoryTagRow.entry_id == entry_id).delete()
                for tag in dict.fromkeys(tags):
                    session.add(MemoryTagRow(entry_id=entry_id, tag=tag))

            row.updated_at = to_iso(utc_now())
            logger.debug(f"Updated entry {entry_id}")
            return True

    def delete_entry(self, entry_id: str) -> bool:
        """Delete an entry together with every row that references it."""
        with self._session() as session:
            self._delete_dependents(session, [entry_id])
            count = session.query(MemoryEntryRow).filter(MemoryEntryRow.id == entry_id).delete()
            if count:
                logger.info(f"Deleted entry {entry_id}")
            return count > 0

    def delete_entries_except_tags(self, preserve_tags: List[str]) -> int:
        """
        Delete all entries except those carrying any of the given tags.

        Returns:
            Number of deleted entries
        """
        preserve_ids = set(self.get_entry_ids_by_tags(preserve_tags))
        with self._session() as session:
            doomed = [
                entry_id
                for (entry_id,) in session.query(MemoryEntryRow.id).all()
                if entry_id not in preserve_ids
            ]
            if not doomed:
                return 0
            self._delete_dependents(session, doomed)
            count = (
                session.query(MemoryEntryRow)
                .filter(MemoryEntryRow.id.in_(doomed))
                .delete(synchronize_session=False)
            )
            logger.info(f"Deleted {count} entries (preserved tags={preserve_tags})")
            return count

    def _delete_dependents(self, session: Session, entry_ids: List[str]):
        session.query(MemoryTagRow).filter(MemoryTagRow.entry_id.in_(entry_ids)).delete(
            synchronize_session=False
        )
        session.query(ProvenanceRow).filter(ProvenanceRow.entry_id.in_(entry_ids)).delete(
            synchronize_session=False
        )
        session.query(ProvenanceLinkRow).filter(
            ProvenanceLinkRow.child_id.in_(entry_ids) | ProvenanceLinkRow.parent_id.in_(entry_ids)
        ).delete(synchronize_session=False)
        session.query(VectorMappingRow).filter(VectorMappingRow.entry_id.in_(entry_ids)).delete(
            synchronize_session=False
        )
        session.query(CausalSourceRow).filter(CausalSourceRow.entry_id.in_(entry_ids)).delete(
            synchronize_session=False
        )
        session.query(CausalTargetRow).filter(CausalTargetRow.entry_id.in_(entry_ids)).delete(
            synchronize_session=False
        )

    # ------------------------------------------------------------------
    # Provenance
    # ------------------------------------------------------------------

    def get_parent_ids(self, entry_id: str) -> List[str]:
        with self._session() as session:
            return self._parent_ids(session, entry_id)

    def get_child_ids(self, entry_id: str) -> List[str]:
        with self._session() as session:
            rows = (
                session.query(ProvenanceLinkRow.child_id)
                .filter(ProvenanceLinkRow.parent_id == entry_id)
                .all()
            )
            return [child_id for (child_id,) in rows]

    def get_provenance(self, entry_id: str) -> Optional[ProvenanceInfo]:
        """Get the provenance record for an entry, or None if it has none."""
        with self._session() as session:
            row = session.get(ProvenanceRow, entry_id)
            if row is None:
                return None
            return self._row_to_provenance(row, self._parent_ids(session, entry_id))

    def update_l_score(self, entry_id: str, l_score: float):
        with self._session() as session:
            session.query(ProvenanceRow).filter(ProvenanceRow.entry_id == entry_id).update(
                {ProvenanceRow.l_score: l_score}
            )

    def update_provenance(
        self,
        entry_id: str,
        confidence: Optional[float] = None,
        relevance: Optional[float] = None,
    ) -> bool:
        """
        Change the confidence and/or relevance of a derivation.

        The cached L-Score is cleared; callers must propagate the change to
        descendants (see ProvenanceStore.propagate_l_score_update).

        Returns:
            True if the provenance record exists, False otherwise
        """
        for name, value in (("confidence", confidence), ("relevance", relevance)):
            if value is not None and not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")

        with self._session() as session:
            row = session.get(ProvenanceRow, entry_id)
            if row is None:
                logger.warning(f"Cannot update provenance for {entry_id}: not found")
                return False
            if confidence is not None:
                row.confidence = confidence
            if relevance is not None:
                row.relevance = relevance
            row.l_score = None
            return True

    def add_provenance_link(self, child_id: str, parent_id: str) -> bool:
        """
        Attach a new parent to an existing entry.

        Returns:
            True if a link was added, False if it already existed
        """
        if child_id == parent_id:
            raise ValueError(f"Entry {child_id} cannot be derived from itself")

        with self._session() as session:
            existing = session.get(ProvenanceLinkRow, (child_id, parent_id))
            if existing is not None:
                return False
            session.add(ProvenanceLinkRow(child_id=child_id, parent_id=parent_id))
            if session.get(ProvenanceRow, child_id) is None:
                session.add(ProvenanceRow(entry_id=child_id, lineage_depth=0))
            logger.debug(f"Linked {child_id} -> parent {parent_id}")
            return True

    def set_lineage_depth(self, entry_id: str, depth: int):
        if depth < 0:
            raise ValueError(f"lineage depth must be >= 0, got {depth}")
        with self._session() as session:
            session.query(ProvenanceRow).filter(ProvenanceRow.entry_id == entry_id).update(
                {ProvenanceRow.lineage_depth: depth}
            )

    # ------------------------------------------------------------------
    # Vector mappings
    # ------------------------------------------------------------------

    def store_vector_mapping(self, entry_id: str) -> int:
        """
        Allocate a stable integer label for an entry in the vector index.

        Returns the existing label if the entry is already mapped. On a label
        collision the counter is refreshed from the database and the insert
        retried; after the retries are exhausted one last refresh+insert is
        attempted and any error from it propagates.
        """
        existing = self.get_vector_label(entry_id)
        if existing is not None:
            return existing

        for attempt in range(self.label_retry_attempts):
            label = self._allocate_label()
            try:
                self._insert_vector_mapping(entry_id, label)
                return label
            except IntegrityError:
                logger.warning(
                    f"Vector label {label} already taken (attempt {attempt + 1}), "
                    f"refreshing label counter"
                )
                self._load_next_label()

        self._load_next_label()
        label = self._allocate_label()
        self._insert_vector_mapping(entry_id, label)
        return label

    def _insert_vector_mapping(self, entry_id: str, label: int):
        with self._session() as session:
            session.add(VectorMappingRow(entry_id=entry_id, label=label))

    def _allocate_label(self) -> int:
        if self._next_label is None:
            self._load_next_label()
        label = self._next_label
        self._next_label += 1
        return label

    def _load_next_label(self):
        with self._session() as session:
            max_label = session.query(func.max(VectorMappingRow.label)).scalar()
        self._next_label = (max_label if max_label is not None else -1) + 1

    def get_vector_label(self, entry_id: str) -> Optional[int]:
        with self._session() as session:
            row = session.get(VectorMappingRow, entry_id)
            return row.label if row else None

    def get_entry_id_by_label(self, label: int) -> Optional[str]:
        with self._session() as session:
            row = session.query(VectorMappingRow).filter(VectorMappingRow.label == label).first()
            return row.entry_id if row else None

    def get_vector_mapping(self, label: int) -> Optional[VectorMapping]:
        with self._session() as session:
            row = session.query(VectorMappingRow).filter(VectorMappingRow.label == label).first()
            if row is None:
                return None
            return VectorMapping(
                entry_id=row.entry_id,
                label=row.label,
                access_count=row.access_count or 0,
                last_accessed_at=optional_datetime(row.last_accessed_at),
                compression_tier=row.compression_tier or "hot",
            )

    def record_vector_access(self, label: int):
        """Bump the access counter used by external tiering policies."""
        with self._session() as session:
            session.query(VectorMappingRow).filter(VectorMappingRow.label == label).update(
                {
                    VectorMappingRow.access_count: VectorMappingRow.access_count + 1,
                    VectorMappingRow.last_accessed_at: to_iso(utc_now()),
                }
            )

    def update_vector_tier(self, label: int, tier: CompressionTier):
        if tier not in ("hot", "warm", "cold"):
            raise ValueError(f"Unknown compression tier: {tier}")
        with self._session() as session:
            session.query(VectorMappingRow).filter(VectorMappingRow.label == label).update(
                {VectorMappingRow.compression_tier: tier}
            )

    def get_vectors_by_tier(self, tier: CompressionTier) -> List[int]:
        with self._session() as session:
            rows = (
                session.query(VectorMappingRow.label)
                .filter(VectorMappingRow.compression_tier == tier)
                .all()
            )
            return [label for (label,) in rows]

    def get_compression_tier_counts(self) -> Dict[str, int]:
        with self._session() as session:
            rows = (
                session.query(VectorMappingRow.compression_tier, func.count())
                .group_by(VectorMappingRow.compression_tier)
                .all()
            )
            return {tier: count for tier, count in rows}

    def clear_orphaned_vector_mappings(self) -> int:
        """Delete mappings whose entry no longer exists; returns the count."""
        with self._session() as session:
            entry_ids = select(MemoryEntryRow.id)
            count = (
                session.query(VectorMappingRow)
                .filter(VectorMappingRow.entry_id.not_in(entry_ids))
                .delete(synchronize_session=False)
            )
        self._load_next_label()
        logger.info(f"Cleared {count} orphaned vector mappings")
        return count

    def clear_all_vector_mappings(self) -> int:
        """Delete every mapping (for a full index rebuild); returns the count."""
        with self._session() as session:
            count = session.query(VectorMappingRow).delete()
        self._next_label = 0
        logger.info(f"Cleared all vector mappings ({count} total)")
        return count

    # ------------------------------------------------------------------
    # Tag lookups and statistics
    # ------------------------------------------------------------------

    def get_entry_ids_by_tags(self, tags: List[str]) -> List[str]:
        """Get IDs of entries carrying ANY of the given tags."""
        if not tags:
            return []
        with self._session() as session:
            rows = (
                session.query(MemoryTagRow.entry_id)
                .filter(MemoryTagRow.tag.in_(tags))
                .distinct()
                .all()
            )
            return [entry_id for (entry_id,) in rows]

    def get_vector_labels_by_tags(self, tags: List[str]) -> List[int]:
        """Get vector labels of entries carrying ANY of the given tags."""
        if not tags:
            return []
        with self._session() as session:
            rows = (
                session.query(VectorMappingRow.label)
                .join(MemoryTagRow, MemoryTagRow.entry_id == VectorMappingRow.entry_id)
                .filter(MemoryTagRow.tag.in_(tags))
                .distinct()
                .all()
            )
            return [label for (label,) in rows]

    def get_stats(self) -> StoreStats:
        with self._session() as session:
            total_entries = session.query(func.count(MemoryEntryRow.id)).scalar() or 0
            vector_count = session.query(func.count(VectorMappingRow.entry_id)).scalar() or 0
            causal_relations = session.query(func.count(CausalRelationRow.id)).scalar() or 0
            avg_l_score = (
                session.query(func.avg(ProvenanceRow.l_score))
                .filter(ProvenanceRow.l_score.is_not(None))
                .scalar()
            )
        return StoreStats(
            total_entries=total_entries,
            vector_count=vector_count,
            causal_relations=causal_relations,
            avg_l_score=float(avg_l_score) if avg_l_score is not None else 0.0,
            compression_tiers=self.get_compression_tier_counts(),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _parent_ids(session: Session, entry_id: str) -> List[str]:
        rows = (
            session.query(ProvenanceLinkRow.parent_id)
            .filter(ProvenanceLinkRow.child_id == entry_id)
            .all()
        )
        return [parent_id for (parent_id,) in rows]

    @staticmethod
    def _row_to_provenance(row: ProvenanceRow, parent_ids: List[str]) -> ProvenanceInfo:
        return ProvenanceInfo(
            parent_ids=parent_ids,
            lineage_depth=row.lineage_depth or 0,
            confidence=row.confidence if row.confidence is not None else 1.0,
            relevance=row.relevance if row.relevance is not None else 1.0,
            l_score=row.l_score,
        )

    def _row_to_entry(self, session: Session, row: MemoryEntryRow) -> MemoryEntry:
        tags = [
            tag
            for (tag,) in session.query(MemoryTagRow.tag)
            .filter(MemoryTagRow.entry_id == row.id)
            .all()
        ]
        parent_ids = self._parent_ids(session, row.id)
        prov_row = session.get(ProvenanceRow, row.id)
        if prov_row is not None:
            provenance = self._row_to_provenance(prov_row, parent_ids)
        else:
            provenance = ProvenanceInfo(parent_ids=parent_ids)

        return MemoryEntry(
            id=row.id,
            content=row.content,
            tags=tags,
            importance=row.importance if row.importance is not None else 0.5,
            source=row.source,
            session_id=row.session_id,
            agent_id=row.agent_id,
            context=_decode_json(row.context, "memory_entries", row.id, "context"),
            provenance=provenance,
            created_at=from_iso(row.created_at),
            updated_at=from_iso(row.updated_at),
        )
