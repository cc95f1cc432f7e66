"""
SQLAlchemy-based causal relation storage.

A causal relation is a hyperedge: one row in causal_relations plus one
junction row per source entry (causal_sources) and per target entry
(causal_targets). Reads never delete anything; expired relations are only
removed by the explicit delete_expired_causal_relations() maintenance call.
"""

import json
import logging
from typing import List, Optional

from sqlalchemy import Engine, func, or_
from sqlalchemy.orm import Session

from lineage_memory.exceptions import CorruptRecordError
from lineage_memory.models import CausalDirection, CausalRelation
from lineage_memory.storage.schema import (
    CausalRelationRow,
    CausalSourceRow,
    CausalTargetRow,
    create_all,
    session_scope,
)
from lineage_memory.utils.timestamps import (
    from_iso,
    optional_datetime,
    optional_iso,
    to_iso,
    utc_now,
)

logger = logging.getLogger(__name__)


class SQLAlchemyCausalStore:
    """
    SQLAlchemy-based storage for causal hyperedges.

    Example:
        engine = create_engine("sqlite:///memory.db")
        store = SQLAlchemyCausalStore(engine)
        store.create_tables()
    """

    def __init__(self, engine: Engine):
        """
        Initialize the causal store.

        Args:
            engine: SQLAlchemy engine for database connection
        """
        self.engine = engine
        logger.info(f"SQLAlchemyCausalStore initialized (engine={engine.url})")

    def _session(self):
        return session_scope(self.engine)

    def create_tables(self):
        """Create database tables if they don't exist."""
        create_all(self.engine)

    def store_causal_relation(self, relation: CausalRelation) -> str:
        """Store a relation and its source/target junction rows in one transaction."""
        with self._session() as session:
            session.add(
                CausalRelationRow(
                    id=relation.id,
                    type=relation.type,
                    strength=relation.strength,
                    metadata_json=(
                        json.dumps(relation.metadata) if relation.metadata is not None else None
                    ),
                    created_at=to_iso(relation.created_at),
                    ttl=relation.ttl,
                    expires_at=optional_iso(relation.expires_at),
                )
            )
            for source_id in dict.fromkeys(relation.source_ids):
                session.add(CausalSourceRow(relation_id=relation.id, entry_id=source_id))
            for target_id in dict.fromkeys(relation.target_ids):
                session.add(CausalTargetRow(relation_id=relation.id, entry_id=target_id))

            logger.info(
                f"Stored causal relation {relation.id}: {relation.type} "
                f"{relation.source_ids} -> {relation.target_ids} (strength={relation.strength})"
            )
            return relation.id

    def get_causal_relation(self, relation_id: str) -> Optional[CausalRelation]:
        """Retrieve a relation by ID."""
        with self._session() as session:
            row = session.get(CausalRelationRow, relation_id)
            if row is None:
                return None
            return self._row_to_relation(session, row)

    def get_causal_relations_for_entry(
        self, entry_id: str, direction: CausalDirection = "both"
    ) -> List[CausalRelation]:
        """
        Get relations touching an entry.

        Args:
            entry_id: The entry ID
            direction: "forward" = entry is a source, "backward" = entry is a
                target, "both" = either

        Returns:
            Relations without duplicates, forward matches first
        """
        if direction not in ("forward", "backward", "both"):
            raise ValueError(f"Unknown direction: {direction}")

        relation_ids: List[str] = []
        with self._session() as session:
            if direction in ("forward", "both"):
                rows = (
                    session.query(CausalSourceRow.relation_id)
                    .filter(CausalSourceRow.entry_id == entry_id)
                    .all()
                )
                relation_ids.extend(relation_id for (relation_id,) in rows)
            if direction in ("backward", "both"):
                rows = (
                    session.query(CausalTargetRow.relation_id)
                    .filter(CausalTargetRow.entry_id == entry_id)
                    .all()
                )
                relation_ids.extend(relation_id for (relation_id,) in rows)

            relations = []
            for relation_id in dict.fromkeys(relation_ids):
                row = session.get(CausalRelationRow, relation_id)
                if row is not None:
                    relations.append(self._row_to_relation(session, row))
            return relations

    def get_all_causal_relations(self) -> List[CausalRelation]:
        with self._session() as session:
            rows = session.query(CausalRelationRow).all()
            return [self._row_to_relation(session, row) for row in rows]

    def get_active_causal_relations(self) -> List[CausalRelation]:
        """Get relations that never expire or whose expiry is still in the future."""
        now = to_iso(utc_now())
        with self._session() as session:
            rows = (
                session.query(CausalRelationRow)
                .filter(
                    or_(
                        CausalRelationRow.expires_at.is_(None),
                        CausalRelationRow.expires_at > now,
                    )
                )
                .all()
            )
            return [self._row_to_relation(session, row) for row in rows]

    def get_expired_causal_relations(self) -> List[CausalRelation]:
        """Get expired relations (for reporting before cleanup)."""
        now = to_iso(utc_now())
        with self._session() as session:
            rows = self._expired_query(session, now).all()
            return [self._row_to_relation(session, row) for row in rows]

    def get_expired_causal_relation_count(self) -> int:
        now = to_iso(utc_now())
        with self._session() as session:
            return self._expired_query(session, now).count()

    def delete_expired_causal_relations(self) -> int:
        """
        Delete expired relations and their junction rows.

        Returns:
            Number of relations deleted
        """
        now = to_iso(utc_now())
        with self._session() as session:
            expired_ids = [row.id for row in self._expired_query(session, now).all()]
            if not expired_ids:
                return 0

            session.query(CausalSourceRow).filter(
                CausalSourceRow.relation_id.in_(expired_ids)
            ).delete(synchronize_session=False)
            session.query(CausalTargetRow).filter(
                CausalTargetRow.relation_id.in_(expired_ids)
            ).delete(synchronize_session=False)
            count = (
                session.query(CausalRelationRow)
                .filter(CausalRelationRow.id.in_(expired_ids))
                .delete(synchronize_session=False)
            )

            logger.info(f"Deleted {count} expired causal relations")
            return count

    def get_causal_relation_count(self) -> int:
        with self._session() as session:
            return session.query(func.count(CausalRelationRow.id)).scalar() or 0

    @staticmethod
    def _expired_query(session: Session, now: str):
        return session.query(CausalRelationRow).filter(
            CausalRelationRow.expires_at.is_not(None),
            CausalRelationRow.expires_at <= now,
        )

    @staticmethod
    def _row_to_relation(session: Session, row: CausalRelationRow) -> CausalRelation:
        sources = (
            session.query(CausalSourceRow.entry_id)
            .filter(CausalSourceRow.relation_id == row.id)
            .all()
        )
        targets = (
            session.query(CausalTargetRow.entry_id)
            .filter(CausalTargetRow.relation_id == row.id)
            .all()
        )

        metadata = None
        if row.metadata_json is not None:
            try:
                metadata = json.loads(row.metadata_json)
            except json.JSONDecodeError as e:
                raise CorruptRecordError("causal_relations", row.id, "metadata", str(e)) from e

        return CausalRelation(
            id=row.id,
            type=row.type,
            source_ids=[entry_id for (entry_id,) in sources],
            target_ids=[entry_id for (entry_id,) in targets],
            strength=row.strength if row.strength is not None else 0.8,
            metadata=metadata,
            created_at=from_iso(row.created_at),
            ttl=row.ttl,
            expires_at=optional_datetime(row.expires_at),
        )
