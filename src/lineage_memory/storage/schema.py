"""
SQLAlchemy schema for the persistent memory store.

Column names and meanings match the relational layout shared with other
tools reading the same database:

- memory_entries / memory_tags: entries and their tags
- provenance / provenance_links: derivation records and parent links
- causal_relations / causal_sources / causal_targets: causal hyperedges
- vector_mappings: entry <-> ANN index label bridge

Timestamps are ISO-8601 UTC text (see lineage_memory.utils.timestamps) and
structured columns are JSON text.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import Column, Engine, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base

logger = logging.getLogger(__name__)

Base = declarative_base()


class MemoryEntryRow(Base):
    __tablename__ = "memory_entries"

    id = Column(String, primary_key=True)
    content = Column(Text, nullable=False)
    source = Column(String, nullable=False, default="user_input", index=True)
    importance = Column(Float, default=0.5, index=True)
    session_id = Column(String, nullable=True, index=True)
    agent_id = Column(String, nullable=True)
    context = Column(Text, nullable=True)
    created_at = Column(String, nullable=False, index=True)
    updated_at = Column(String, nullable=False)


class MemoryTagRow(Base):
    __tablename__ = "memory_tags"

    entry_id = Column(
        String, ForeignKey("memory_entries.id", ondelete="CASCADE"), primary_key=True
    )
    tag = Column(String, primary_key=True, index=True)


class ProvenanceRow(Base):
    __tablename__ = "provenance"

    entry_id = Column(
        String, ForeignKey("memory_entries.id", ondelete="CASCADE"), primary_key=True
    )
    lineage_depth = Column(Integer, default=0)
    confidence = Column(Float, default=1.0)
    relevance = Column(Float, default=1.0)
    l_score = Column(Float, nullable=True)


class ProvenanceLinkRow(Base):
    __tablename__ = "provenance_links"

    child_id = Column(
        String, ForeignKey("memory_entries.id", ondelete="CASCADE"), primary_key=True
    )
    parent_id = Column(
        String, ForeignKey("memory_entries.id", ondelete="CASCADE"), primary_key=True
    )

    __table_args__ = (
        Index("idx_prov_child", "child_id"),
        Index("idx_prov_parent", "parent_id"),
    )


class CausalRelationRow(Base):
    __tablename__ = "causal_relations"

    id = Column(String, primary_key=True)
    type = Column(String, nullable=False, default="causes", index=True)
    strength = Column(Float, default=0.8)
    # "metadata" is reserved on declarative classes
    metadata_json = Column("metadata", Text, nullable=True)
    created_at = Column(String, nullable=False)
    ttl = Column(Integer, nullable=True)
    expires_at = Column(String, nullable=True, index=True)


class CausalSourceRow(Base):
    __tablename__ = "causal_sources"

    relation_id = Column(
        String, ForeignKey("causal_relations.id", ondelete="CASCADE"), primary_key=True
    )
    entry_id = Column(String, primary_key=True, index=True)


class CausalTargetRow(Base):
    __tablename__ = "causal_targets"

    relation_id = Column(
        String, ForeignKey("causal_relations.id", ondelete="CASCADE"), primary_key=True
    )
    entry_id = Column(String, primary_key=True, index=True)


class VectorMappingRow(Base):
    __tablename__ = "vector_mappings"

    entry_id = Column(
        String, ForeignKey("memory_entries.id", ondelete="CASCADE"), primary_key=True
    )
    label = Column(Integer, unique=True, nullable=False)
    access_count = Column(Integer, default=0)
    last_accessed_at = Column(String, nullable=True)
    compression_tier = Column(String, default="hot", index=True)

    __table_args__ = (Index("idx_vector_access", "access_count"),)


def create_all(engine: Engine) -> None:
    """Create every table if it does not exist yet."""
    Base.metadata.create_all(engine)
    logger.info("Database tables created/verified")


@contextmanager
def session_scope(engine: Engine) -> Iterator[Session]:
    """Context manager for database sessions with automatic commit/rollback."""
    session = Session(engine)
    try:
        yield session
        session.commit()
    except IntegrityError:
        # Label allocation retries on these
        session.rollback()
        logger.debug("Integrity error, transaction rolled back")
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Database error: {e}")
        raise
    finally:
        session.close()
