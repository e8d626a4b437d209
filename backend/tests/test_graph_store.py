from __future__ import annotations

import logging
from decimal import Decimal

import pytest

import drive_router.graph_store as graph_store_module
from drive_router.graph_source import GraphSourceError
from drive_router.graph_store import (
    GraphStore,
    _parse_edge,
    _parse_node,
    build_graph_index,
    canonical_node_id,
    edge_weight,
)
from drive_router.route_errors import DATA_UNAVAILABLE, RouteError


def _nodes() -> list[dict[str, object]]:
    return [
        {"id": 1, "lat": 0.0, "lng": 0.0},
        {"id": "2", "lat": 0.0, "lng": 1.0},
        {"id": 3.0, "lat": 0.0, "lng": 2.0},
        {"id": "lonely", "lat": 5.0, "lng": 5.0},
    ]


def _edges() -> dict[str, object]:
    return {
        "1": [{"node": 2, "weight": 1}],
        "2": [{"node": "3", "weight": 1.5}, {"node": "ghost", "weight": 4}],
    }


def test_canonical_node_id_unifies_numeric_and_text_forms() -> None:
    assert canonical_node_id(12) == "12"
    assert canonical_node_id(12.0) == "12"
    assert canonical_node_id(Decimal("12")) == "12"
    assert canonical_node_id(" 12 ") == "12"
    assert canonical_node_id(1.5) == "1.5"
    assert canonical_node_id("abc") == "abc"


@pytest.mark.parametrize("raw", [None, True, "", "   ", float("nan"), float("inf"), [1], {"id": 1}])
def test_canonical_node_id_rejects_unusable_values(raw: object) -> None:
    assert canonical_node_id(raw) is None


def test_parse_node_accepts_decimal_and_lon_alias() -> None:
    assert _parse_node({"id": "n1", "lat": Decimal("52.5"), "lon": Decimal("-1.9")}) == ("n1", 52.5, -1.9)
    assert _parse_node({"id": 7, "lat": "1.0", "lng": 2}) == ("7", 1.0, 2.0)


@pytest.mark.parametrize(
    "raw",
    [
        {"lat": 1.0, "lng": 1.0},
        {"id": "n", "lat": 91.0, "lng": 0.0},
        {"id": "n", "lat": 0.0, "lng": 181.0},
        {"id": "n", "lat": True, "lng": 0.0},
        {"id": "n", "lat": "x", "lng": 0.0},
        ["n", 0.0, 0.0],
    ],
)
def test_parse_node_rejects_malformed_records(raw: object) -> None:
    assert _parse_node(raw) is None


def test_parse_edge_accepts_mapping_and_pair_forms() -> None:
    assert _parse_edge({"node": 5, "weight": Decimal("2.5")}) == ("5", 2.5)
    assert _parse_edge({"to": "b", "weight": 0}) == ("b", 0.0)
    assert _parse_edge(["c", 3]) == ("c", 3.0)
    assert _parse_edge({"node": "c", "weight": -1}) is None
    assert _parse_edge({"node": "c"}) is None
    assert _parse_edge({"weight": 1}) is None


def test_build_graph_index_keeps_only_routable_nodes() -> None:
    index = build_graph_index(_nodes(), _edges())

    assert set(index.nodes) == {"1", "2", "3"}
    assert "lonely" not in index.nodes
    assert index.routable_ids == frozenset({"1", "2", "3", "ghost"})
    assert index.nodes_seen == 4
    assert index.nodes_dropped == 1
    assert index.edges_kept == 3


def test_build_graph_index_builds_reverse_adjacency_in_input_order() -> None:
    index = build_graph_index(_nodes(), _edges())

    assert index.adjacency["1"] == (("2", 1.0),)
    assert index.adjacency["2"] == (("3", 1.5), ("ghost", 4.0))
    assert index.reverse_adjacency["2"] == (("1", 1.0),)
    assert index.reverse_adjacency["ghost"] == (("2", 4.0),)
    assert "1" not in index.reverse_adjacency


def test_destination_only_nodes_are_routable() -> None:
    index = build_graph_index(_nodes(), _edges())

    # "3" never appears as an edge source but must still be a snap target.
    assert "3" not in index.adjacency
    assert "3" in index.nodes


def test_source_without_valid_edges_is_not_routable() -> None:
    nodes = [{"id": "a", "lat": 0, "lng": 0}, {"id": "b", "lat": 0, "lng": 1}, {"id": "c", "lat": 1, "lng": 1}]
    edges = {"a": [{"node": "b", "weight": 1}], "c": [], "d": [{"node": "b", "weight": -3}]}

    index = build_graph_index(nodes, edges)

    assert set(index.nodes) == {"a", "b"}
    assert "c" not in index.routable_ids
    assert "d" not in index.routable_ids


def test_duplicate_node_records_keep_first_coordinates() -> None:
    nodes = [{"id": "a", "lat": 0, "lng": 0}, {"id": "a", "lat": 9, "lng": 9}, {"id": "b", "lat": 0, "lng": 1}]
    index = build_graph_index(nodes, {"a": [{"node": "b", "weight": 1}]})

    assert index.nodes["a"] == (0.0, 0.0)


@pytest.mark.parametrize(
    ("nodes", "edges"),
    [
        (None, {"a": [{"node": "b", "weight": 1}]}),
        ([], {"a": [{"node": "b", "weight": 1}]}),
        ({"id": "a"}, {"a": [{"node": "b", "weight": 1}]}),
        ([{"id": "a", "lat": 0, "lng": 0}], None),
        ([{"id": "a", "lat": 0, "lng": 0}], {}),
        ([{"id": "a", "lat": 0, "lng": 0}], [["a", "b", 1]]),
        ([{"id": "a", "lat": 0, "lng": 0}], {"a": [{"node": "b", "weight": "heavy"}]}),
        ([{"bad": True}], {"a": [{"node": "b", "weight": 1}]}),
    ],
)
def test_build_graph_index_rejects_missing_or_malformed_inputs(nodes: object, edges: object) -> None:
    with pytest.raises(RouteError) as exc_info:
        build_graph_index(nodes, edges)
    assert exc_info.value.reason_code == DATA_UNAVAILABLE


def test_edge_weight_picks_cheapest_parallel_edge() -> None:
    nodes = [{"id": "a", "lat": 0, "lng": 0}, {"id": "b", "lat": 0, "lng": 1}]
    index = build_graph_index(nodes, {"a": [{"node": "b", "weight": 5}, {"node": "b", "weight": 2}]})

    assert edge_weight(index, "a", "b") == 2.0
    assert edge_weight(index, "b", "a") is None


def test_graph_store_requires_index_until_loaded() -> None:
    store = GraphStore()
    assert store.state == "idle"
    with pytest.raises(RouteError) as exc_info:
        store.require_index()
    assert exc_info.value.reason_code == DATA_UNAVAILABLE

    index = store.load_records(_nodes(), _edges())

    assert store.state == "ready"
    assert store.require_index() is index
    assert store.wait_ready(0.0) is True


def test_graph_store_never_replaces_a_ready_index() -> None:
    store = GraphStore()
    first = store.load_records(_nodes(), _edges())

    second = store.load_records(
        [{"id": "x", "lat": 1, "lng": 1}, {"id": "y", "lat": 1, "lng": 2}],
        {"x": [{"node": "y", "weight": 1}]},
    )
    store.run_warmup(lambda: ([], {}))

    assert second is first
    assert store.require_index() is first
    assert store.state == "ready"


def test_graph_store_records_build_failure_and_stays_unavailable() -> None:
    store = GraphStore()
    with pytest.raises(RouteError):
        store.load_records([], {})

    assert store.state == "failed"
    assert store.index is None
    assert store.status()["last_error"]


def test_warmup_failure_is_recorded_not_raised() -> None:
    store = GraphStore()

    def _broken_loader() -> tuple[object, object]:
        raise GraphSourceError("nodes fetch failed: boom")

    store.run_warmup(_broken_loader)

    status = store.status()
    assert status["state"] == "failed"
    assert "GraphSourceError" in status["last_error"]
    with pytest.raises(RouteError):
        store.require_index()


def test_begin_warmup_builds_index_in_background_thread() -> None:
    store = GraphStore()

    thread = store.begin_warmup(lambda: (_nodes(), _edges()))

    assert thread is not None
    assert thread.name == "graph-warmup"
    thread.join(timeout=10.0)
    assert store.wait_ready(1.0) is True
    status = store.status()
    assert status["state"] == "ready"
    assert status["routable_nodes"] == 3
    assert status["edges_kept"] == 3
    assert store.begin_warmup(lambda: (_nodes(), _edges())) is None


def test_warmup_failure_and_dropped_records_log_at_warning(monkeypatch) -> None:
    events: list[tuple[str, int]] = []

    def _record(event: str, *, level: int = logging.INFO, **fields: object) -> None:
        events.append((event, level))

    monkeypatch.setattr(graph_store_module, "log_event", _record)

    build_graph_index(_nodes(), _edges())

    def _broken_loader() -> tuple[object, object]:
        raise GraphSourceError("edges fetch failed: boom")

    GraphStore().run_warmup(_broken_loader)

    assert ("graph_index_records_dropped", logging.WARNING) in events
    assert ("graph_warmup_started", logging.INFO) in events
    assert ("graph_warmup_failed", logging.WARNING) in events
