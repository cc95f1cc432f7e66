"""Unit tests for the in-memory causal hypergraph."""

from datetime import timedelta

import pytest

from lineage_memory.causal.hypergraph import Hypergraph
from lineage_memory.causal.models import CausalQuery, Hyperedge
from lineage_memory.models import CausalRelation
from lineage_memory.utils.timestamps import utc_now


def _edge(edge_id, sources, targets, strength=0.8, type="causes", expires_at=None):
    return Hyperedge(
        id=edge_id,
        type=type,
        source_ids=set(sources),
        target_ids=set(targets),
        strength=strength,
        expires_at=expires_at,
    )


@pytest.fixture
def graph():
    return Hypergraph()


@pytest.fixture
def chain(graph):
    """x -causes(0.8)-> y -enables(0.5)-> z"""
    graph.add_edge(_edge("e1", ["x"], ["y"], 0.8))
    graph.add_edge(_edge("e2", ["y"], ["z"], 0.5, type="enables"))
    return graph


def test_single_edge_single_hop(graph):
    graph.add_edge(_edge("e1", ["x"], ["y"], 0.8))

    result = graph.traverse(CausalQuery(start_ids=["x"], direction="forward", max_depth=1))

    assert len(result.paths) == 1
    path = result.paths[0]
    assert path.nodes == ["x", "y"]
    assert path.edges == ["e1"]
    assert path.total_strength == pytest.approx(0.8)
    assert path.relation_types == ["causes"]


def test_max_depth_bounds_edges_per_path(chain):
    one_hop = chain.traverse(CausalQuery(start_ids=["x"], max_depth=1))
    two_hops = chain.traverse(CausalQuery(start_ids=["x"], max_depth=2))

    assert [p.nodes for p in one_hop.paths] == [["x", "y"]]
    assert [p.nodes for p in two_hops.paths] == [["x", "y"], ["x", "y", "z"]]
    assert two_hops.paths[1].total_strength == pytest.approx(0.4)
    assert two_hops.paths[1].relation_types == ["causes", "enables"]
    assert all(p.length <= 2 for p in two_hops.paths)


def test_backward_traversal(chain):
    result = chain.traverse(CausalQuery(start_ids=["z"], direction="backward", max_depth=5))

    assert [p.nodes for p in result.paths] == [["z", "y"], ["z", "y", "x"]]


def test_both_directions(chain):
    result = chain.traverse(CausalQuery(start_ids=["y"], direction="both", max_depth=1))

    assert sorted(p.nodes[-1] for p in result.paths) == ["x", "z"]


def test_hyperedge_fans_out_to_all_targets(graph):
    graph.add_edge(_edge("h", ["a", "b"], ["c", "d"], 0.7))

    from_a = graph.traverse(CausalQuery(start_ids=["a"], max_depth=1))
    from_b = graph.traverse(CausalQuery(start_ids=["b"], max_depth=1))

    assert sorted(p.nodes[-1] for p in from_a.paths) == ["c", "d"]
    assert sorted(p.nodes[-1] for p in from_b.paths) == ["c", "d"]


def test_cycle_terminates_with_simple_paths(graph):
    graph.add_edge(_edge("e1", ["a"], ["b"]))
    graph.add_edge(_edge("e2", ["b"], ["c"]))
    graph.add_edge(_edge("e3", ["c"], ["a"]))

    result = graph.traverse(CausalQuery(start_ids=["a"], max_depth=10))

    assert [p.nodes for p in result.paths] == [["a", "b"], ["a", "b", "c"]]
    assert result.visited_nodes == {"a", "b", "c"}
    assert result.visited_edges == {"e1", "e2", "e3"}


def test_relation_type_filter(chain):
    result = chain.traverse(
        CausalQuery(start_ids=["x"], max_depth=5, relation_types=["causes"])
    )

    assert [p.nodes for p in result.paths] == [["x", "y"]]


def test_min_strength_filter(chain):
    result = chain.traverse(CausalQuery(start_ids=["x"], max_depth=5, min_strength=0.6))

    assert [p.nodes for p in result.paths] == [["x", "y"]]


def test_expired_edges_skipped_but_kept(graph):
    graph.add_edge(_edge("old", ["a"], ["b"], expires_at=utc_now() - timedelta(seconds=1)))
    graph.add_edge(_edge("new", ["a"], ["c"], expires_at=utc_now() + timedelta(hours=1)))

    result = graph.traverse(CausalQuery(start_ids=["a"], max_depth=1))

    assert [p.nodes[-1] for p in result.paths] == ["c"]
    assert graph.get_edge("old") is not None


def test_unknown_start_node(graph):
    result = graph.traverse(CausalQuery(start_ids=["nobody"]))

    assert result.paths == []
    assert result.visited_nodes == {"nobody"}


def test_remove_edge_updates_nodes(chain):
    assert chain.remove_edge("e1") is True
    assert chain.remove_edge("e1") is False

    assert chain.get_node("x").outgoing_edges == set()
    assert chain.get_node("y").incoming_edges == set()
    assert chain.traverse(CausalQuery(start_ids=["x"])).paths == []


def test_add_relation_from_model(graph):
    relation = CausalRelation(id="r", source_ids=["s"], target_ids=["t"], strength=0.3)

    graph.add_relation(relation)

    assert graph.get_edge("r").strength == 0.3
    assert "r" in graph.get_node("s").outgoing_edges


def test_find_paths(graph):
    graph.add_edge(_edge("e1", ["a"], ["b"], 0.9))
    graph.add_edge(_edge("e2", ["b"], ["c"], 0.9))
    graph.add_edge(_edge("e3", ["a"], ["c"], 0.5))

    paths = graph.find_paths("a", "c")

    assert sorted(p.edges for p in paths) == [["e1", "e2"], ["e3"]]


def test_stats(chain):
    stats = chain.get_stats()

    assert stats.node_count == 3
    assert stats.edge_count == 2
    assert stats.avg_out_degree == pytest.approx(2 / 3)
    assert stats.avg_in_degree == pytest.approx(2 / 3)
    assert stats.relation_type_counts == {"causes": 1, "enables": 1}


def test_export(chain):
    exported = chain.export()

    assert {node["id"] for node in exported["nodes"]} == {"x", "y", "z"}
    edge = next(e for e in exported["edges"] if e["id"] == "e1")
    assert edge == {
        "id": "e1",
        "type": "causes",
        "sources": ["x"],
        "targets": ["y"],
        "strength": 0.8,
    }


def test_to_mermaid(chain):
    mermaid = chain.to_mermaid()

    assert mermaid.splitlines() == [
        "graph LR",
        "    x -->|causes(0.80)| y",
        "    y -->|enables(0.50)| z",
    ]


def test_unknown_direction_rejected(chain):
    with pytest.raises(ValueError, match="Unknown direction"):
        chain.traverse(CausalQuery(start_ids=["a"], direction="sideways"))
