"""
Tests for ProvenanceStore lineage traversal and score maintenance.

Uses a real SQLAlchemy entry store over in-memory SQLite.
"""

import math

import pytest
from sqlalchemy import create_engine

from lineage_memory.models import MemoryEntry, ProvenanceInfo
from lineage_memory.provenance import LScoreConfig, ProvenanceStore
from lineage_memory.storage.entries.sqlalchemy import SQLAlchemyEntryStore


@pytest.fixture
def entry_store():
    engine = create_engine("sqlite:///:memory:")
    store = SQLAlchemyEntryStore(engine)
    store.create_tables()
    return store


@pytest.fixture
def provenance(entry_store):
    return ProvenanceStore(entry_store, LScoreConfig(depth_decay=0.9, min_score=0.01))


@pytest.fixture
def add_entry(entry_store):
    """Store an entry with the given parents and return its ID."""

    def _add(entry_id, parents=(), depth=None, confidence=1.0, relevance=1.0):
        if depth is None:
            depth = 0
            for parent_id in parents:
                parent = entry_store.get_provenance(parent_id)
                depth = max(depth, parent.lineage_depth + 1)
        entry_store.store_entry(
            MemoryEntry(
                id=entry_id,
                content=f"content of {entry_id}",
                provenance=ProvenanceInfo(
                    parent_ids=list(parents),
                    lineage_depth=depth,
                    confidence=confidence,
                    relevance=relevance,
                ),
            )
        )
        return entry_id

    return _add


@pytest.fixture
def diamond(add_entry):
    """A -> B, A -> C, (B, C) -> D"""
    add_entry("A")
    add_entry("B", ["A"], confidence=0.9)
    add_entry("C", ["A"], confidence=0.7)
    add_entry("D", ["B", "C"], confidence=0.8)


def test_root_entry_scores_one(provenance, entry_store, add_entry):
    add_entry("root")

    assert provenance.calculate_and_store_l_score("root") == 1.0
    assert entry_store.get_provenance("root").l_score == 1.0


def test_missing_entry_treated_as_root(provenance):
    assert provenance.calculate_and_store_l_score("nope") == 1.0
    assert provenance.get_reliability_category("nope") == "high"
    assert provenance.is_reliable("nope")


def test_derived_score_samples_self_and_direct_parents(provenance, entry_store, add_entry):
    add_entry("A")
    add_entry("B", ["A"], confidence=0.8, relevance=0.9)

    score = provenance.calculate_and_store_l_score("B")

    expected = math.sqrt(0.8 * 1.0) * ((0.9 + 1.0) / 2) * 0.9
    assert score == pytest.approx(expected)
    assert entry_store.get_provenance("B").l_score == pytest.approx(expected)


def test_only_direct_parents_are_sampled(provenance, add_entry):
    """A weak grandparent does not enter the geometric mean, only depth does."""
    add_entry("A", confidence=0.1)
    add_entry("B", ["A"], confidence=1.0)
    add_entry("C", ["B"], confidence=1.0)

    score = provenance.calculate_and_store_l_score("C")

    assert score == pytest.approx(0.9**2)


def test_get_l_score_does_not_store(provenance, entry_store, add_entry):
    add_entry("A")
    add_entry("B", ["A"], confidence=0.5)

    provenance.get_l_score("B")

    assert entry_store.get_provenance("B").l_score is None


def test_resolve_l_score_prefers_cached_value(provenance, entry_store, add_entry):
    add_entry("A")
    add_entry("B", ["A"])
    entry_store.update_l_score("B", 0.42)

    assert provenance.resolve_l_score(entry_store.get_entry("B")) == 0.42


def test_descendants_diamond_counted_once(provenance, diamond):
    descendants = provenance.get_descendants("A")

    assert sorted(descendants) == ["B", "C", "D"]
    assert len(descendants) == len(set(descendants))


def test_descendants_exclude_start(provenance, diamond):
    assert "A" not in provenance.get_descendants("A")


def test_descendants_max_depth_counts_generations(provenance, add_entry):
    add_entry("A")
    add_entry("B", ["A"])
    add_entry("C", ["B"])

    assert provenance.get_descendants("A", max_depth=1) == ["B"]
    assert provenance.get_descendants("A", max_depth=None) == ["B", "C"]


def test_descendants_terminate_on_cycle(provenance, entry_store, add_entry):
    add_entry("A")
    add_entry("B", ["A"])
    entry_store.add_provenance_link("A", "B")

    assert provenance.get_descendants("A", max_depth=None) == ["B"]


def test_propagate_updates_reachable_nodes_only(provenance, entry_store, diamond, add_entry):
    add_entry("E")
    add_entry("F", ["E"], confidence=0.5)
    entry_store.update_l_score("F", 0.123)

    updated = provenance.propagate_l_score_update("A")

    assert updated[0] == "A"
    assert sorted(updated) == ["A", "B", "C", "D"]
    for entry_id in ["A", "B", "C", "D"]:
        assert entry_store.get_provenance(entry_id).l_score is not None
    assert entry_store.get_provenance("F").l_score == 0.123


def test_propagate_after_confidence_change(provenance, entry_store, add_entry):
    add_entry("A")
    add_entry("B", ["A"], confidence=0.9)
    add_entry("C", ["B"], confidence=0.9)
    provenance.propagate_l_score_update("A")
    before = entry_store.get_provenance("C").l_score

    entry_store.update_provenance("B", confidence=0.2)
    provenance.propagate_l_score_update("B")

    assert entry_store.get_provenance("C").l_score < before


def test_trace_lineage_chain(provenance, add_entry):
    add_entry("A")
    add_entry("B", ["A"], confidence=0.9)
    add_entry("C", ["B"], confidence=0.8)

    chain = provenance.trace_lineage("C")

    assert chain.root_id == "C"
    assert set(chain.nodes) == {"A", "B", "C"}
    assert chain.max_depth == 2
    assert chain.root.entry_id == "C"
    assert chain.root.children[0].entry_id == "B"
    assert chain.root.children[0].children[0].entry_id == "A"
    assert chain.nodes["A"].l_score == 1.0


def test_trace_lineage_diamond_visits_ancestor_once(provenance, diamond):
    chain = provenance.trace_lineage("D")

    assert set(chain.nodes) == {"A", "B", "C", "D"}
    b_node, c_node = sorted(chain.root.children, key=lambda node: node.entry_id)
    assert b_node.children[0] is c_node.children[0]


def test_trace_lineage_respects_max_depth(provenance, add_entry):
    add_entry("A")
    add_entry("B", ["A"])
    add_entry("C", ["B"])

    chain = provenance.trace_lineage("C", max_depth=1)

    assert set(chain.nodes) == {"B", "C"}
    assert chain.max_depth == 1


def test_trace_lineage_aggregate_is_harmonic(provenance, entry_store, add_entry):
    add_entry("A")
    add_entry("B", ["A"])
    entry_store.update_l_score("B", 0.5)

    chain = provenance.trace_lineage("B")

    assert chain.aggregate_l_score == pytest.approx(2 / (1 / 0.5 + 1 / 1.0))


def test_trace_lineage_missing_entry(provenance):
    chain = provenance.trace_lineage("ghost")

    assert chain.root is None
    assert chain.nodes == {}
    assert chain.aggregate_l_score == 1.0


def test_trace_lineage_terminates_on_cycle(provenance, entry_store, add_entry):
    add_entry("A")
    add_entry("B", ["A"])
    entry_store.add_provenance_link("A", "B")

    chain = provenance.trace_lineage("B")

    assert set(chain.nodes) == {"A", "B"}


def test_trace_lineage_is_cached_until_score_write(provenance, add_entry):
    add_entry("A")
    add_entry("B", ["A"])

    first = provenance.trace_lineage("B")
    assert provenance.trace_lineage("B") is first
    assert ("B", 10) in provenance.cache

    provenance.calculate_and_store_l_score("B")

    assert len(provenance.cache) == 0
    assert provenance.trace_lineage("B") is not first


def test_clear_cache(provenance, add_entry):
    add_entry("A")
    provenance.trace_lineage("A")

    provenance.clear_cache()

    assert len(provenance.cache) == 0


def test_get_lineage_trace_flattens_ancestors(provenance, entry_store, add_entry):
    add_entry("A")
    add_entry("B", ["A"], confidence=0.9, relevance=0.8)
    add_entry("C", ["B"], confidence=0.7)

    trace = provenance.get_lineage_trace("C")

    assert trace.entry_id == "C"
    assert trace.depth == 2
    assert [link.id for link in trace.parent_chain] == ["B", "A"]
    assert trace.parent_chain[0].confidence == 0.9
    assert trace.parent_chain[0].relevance == 0.8


def test_get_lineage_trace_diamond_lists_ancestor_once(provenance, diamond):
    trace = provenance.get_lineage_trace("D")

    ids = [link.id for link in trace.parent_chain]
    assert sorted(ids) == ["A", "B", "C"]


def test_get_lineage_trace_missing_entry(provenance):
    trace = provenance.get_lineage_trace("ghost")

    assert trace.l_score == 1.0
    assert trace.depth == 0
    assert trace.parent_chain == []


def test_refresh_lineage_depth_after_new_link(provenance, entry_store, add_entry):
    add_entry("A")
    add_entry("X", ["A"])
    add_entry("B")
    add_entry("C", ["B"])
    add_entry("D", ["C"])

    entry_store.add_provenance_link("C", "X")
    depth = provenance.refresh_lineage_depth("C")

    assert depth == 2
    assert entry_store.get_provenance("C").lineage_depth == 2
    assert entry_store.get_provenance("D").lineage_depth == 3


def test_reliability_uses_stored_score(provenance, entry_store, add_entry):
    add_entry("A")
    add_entry("B", ["A"])
    entry_store.update_l_score("B", 0.3)

    assert provenance.get_reliability_category("B") == "low"
    assert not provenance.is_reliable("B")
    assert provenance.is_reliable("B", threshold=0.25)


def test_get_lineage_trace_respects_max_depth(provenance, add_entry):
    add_entry("A")
    add_entry("B", ["A"])
    add_entry("C", ["B"])
    add_entry("D", ["C"])

    trace = provenance.get_lineage_trace("D", max_depth=1)
    chain = provenance.trace_lineage("D", max_depth=1)

    assert [link.id for link in trace.parent_chain] == ["C"]
    ancestors = sorted(node_id for node_id in chain.nodes if node_id != "D")
    assert ancestors == ["C"]
    assert [link.id for link in provenance.get_lineage_trace("D", max_depth=2).parent_chain] == [
        "C",
        "B",
    ]
