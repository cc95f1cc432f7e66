"""
Tests for CausalMemory over a real SQLAlchemy causal store.
"""

from datetime import timedelta

import pytest
from sqlalchemy import create_engine

from lineage_memory.causal import CausalMemory, CausalQuery
from lineage_memory.models import CausalRelation
from lineage_memory.storage.causal.sqlalchemy import SQLAlchemyCausalStore
from lineage_memory.utils.timestamps import utc_now


@pytest.fixture
def causal_store():
    engine = create_engine("sqlite:///:memory:")
    store = SQLAlchemyCausalStore(engine)
    store.create_tables()
    return store


@pytest.fixture
def causal(causal_store):
    memory = CausalMemory(causal_store)
    memory.initialize()
    return memory


def _store_expired(causal_store, relation_id, sources, targets):
    now = utc_now()
    causal_store.store_causal_relation(
        CausalRelation(
            id=relation_id,
            source_ids=sources,
            target_ids=targets,
            created_at=now - timedelta(minutes=2),
            ttl=60000,
            expires_at=now - timedelta(minutes=1),
        )
    )


def test_single_causes_relation_one_hop(causal):
    """CAUSES from {X} to {Y} with strength 0.8 yields exactly one path."""
    causal.add_relation(["X"], ["Y"], "causes", 0.8)

    result = causal.traverse(CausalQuery(start_ids=["X"], direction="forward", max_depth=1))

    assert len(result.paths) == 1
    assert result.paths[0].nodes == ["X", "Y"]
    assert result.paths[0].total_strength == pytest.approx(0.8)
    assert result.paths[0].relation_types == ["causes"]


def test_add_relation_persists(causal, causal_store):
    relation = causal.add_relation(
        ["a", "b"], ["c"], "prevents", 0.4, metadata={"source": "analyst"}
    )

    stored = causal_store.get_causal_relation(relation.id)
    assert stored.type == "prevents"
    assert sorted(stored.source_ids) == ["a", "b"]
    assert stored.metadata == {"source": "analyst"}
    assert stored.expires_at is None
    assert causal.get_relation(relation.id).id == relation.id


def test_add_relation_with_ttl_sets_expiry(causal):
    relation = causal.add_relation(["a"], ["b"], ttl=60000)

    assert relation.ttl == 60000
    assert relation.expires_at - relation.created_at == timedelta(milliseconds=60000)


def test_add_relation_requires_sources_and_targets(causal):
    with pytest.raises(ValueError):
        causal.add_relation([], ["b"])
    with pytest.raises(ValueError):
        causal.add_relation(["a"], [])


def test_add_relation_rejects_bad_strength(causal):
    with pytest.raises(ValueError):
        causal.add_relation(["a"], ["b"], strength=1.5)


def test_find_effects_and_causes(causal):
    causal.add_relation(["rain"], ["wet"])
    causal.add_relation(["wet"], ["slippery"], "enables")

    assert causal.find_effects("rain") == ["wet", "slippery"]
    assert causal.find_effects("rain", max_depth=1) == ["wet"]
    assert causal.find_causes("slippery") == ["wet", "rain"]


def test_relations_for_entry(causal):
    forward = causal.add_relation(["a"], ["b"])
    backward = causal.add_relation(["z"], ["a"])

    assert [r.id for r in causal.get_relations_for_entry("a", "forward")] == [forward.id]
    assert [r.id for r in causal.get_relations_for_entry("a", "backward")] == [backward.id]
    assert len(causal.get_relations_for_entry("a")) == 2


def test_causal_strength_takes_strongest_path(causal):
    causal.add_relation(["a"], ["b"], strength=0.9)
    causal.add_relation(["b"], ["c"], strength=0.9)
    causal.add_relation(["a"], ["c"], strength=0.5)

    assert causal.get_causal_strength("a", "c") == pytest.approx(0.81)
    assert causal.get_causal_strength("c", "a") == 0.0
    assert causal.has_causal_path("a", "c")
    assert not causal.has_causal_path("c", "a")


def test_initialize_loads_only_active_relations(causal_store):
    _store_expired(causal_store, "old", ["a"], ["b"])
    causal_store.store_causal_relation(
        CausalRelation(id="live", source_ids=["a"], target_ids=["c"])
    )

    memory = CausalMemory(causal_store)
    memory.initialize()

    assert memory.graph.get_edge("live") is not None
    assert memory.graph.get_edge("old") is None
    assert memory.find_effects("a") == ["c"]
    assert causal_store.get_causal_relation("old") is not None


def test_queries_initialize_lazily(causal_store):
    causal_store.store_causal_relation(
        CausalRelation(id="r", source_ids=["a"], target_ids=["b"])
    )

    memory = CausalMemory(causal_store)

    assert memory.find_effects("a") == ["b"]
    assert memory.initialized


def test_reload_picks_up_external_writes(causal, causal_store):
    causal_store.store_causal_relation(
        CausalRelation(id="external", source_ids=["p"], target_ids=["q"])
    )
    assert causal.find_effects("p") == []

    causal.reload()

    assert causal.find_effects("p") == ["q"]


def test_cleanup_expired(causal, causal_store):
    live = causal.add_relation(["a"], ["b"])
    _store_expired(causal_store, "old", ["a"], ["c"])
    causal.reload()

    assert causal.get_expired_count() == 1
    assert [r.id for r in causal.get_expired_relations()] == ["old"]

    result = causal.cleanup_expired()

    assert result.cleaned == 1
    assert result.relation_ids == ["old"]
    assert causal.get_expired_count() == 0
    assert [r.id for r in causal.get_active_relations()] == [live.id]
    assert [r.id for r in causal.get_all_relations()] == [live.id]


def test_cleanup_with_nothing_expired(causal):
    causal.add_relation(["a"], ["b"])

    result = causal.cleanup_expired()

    assert result.cleaned == 0
    assert result.relation_ids == []


def test_stats_export_and_mermaid(causal):
    causal.add_relation(["a"], ["b"], "triggers", 0.25)

    assert causal.get_stats().edge_count == 1
    assert causal.export()["edges"][0]["type"] == "triggers"
    assert "a -->|triggers(0.25)| b" in causal.to_mermaid()
