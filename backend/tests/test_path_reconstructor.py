from __future__ import annotations

import pytest

from drive_router.graph_store import build_graph_index
from drive_router.path_reconstructor import path_weight, reconstruct_path


def test_reconstruct_joins_both_chains_without_duplicating_meeting_node() -> None:
    path = reconstruct_path(
        meeting="M",
        start="S",
        end="T",
        forward_pred={"A": "S", "M": "A"},
        backward_pred={"M": "B", "B": "T"},
    )

    assert path == ("S", "A", "M", "B", "T")


def test_reconstruct_when_meeting_is_an_endpoint() -> None:
    assert reconstruct_path(meeting="S", start="S", end="T", forward_pred={}, backward_pred={"S": "T"}) == ("S", "T")
    assert reconstruct_path(meeting="T", start="S", end="T", forward_pred={"T": "S"}, backward_pred={}) == ("S", "T")


def test_reconstruct_rejects_broken_chains() -> None:
    with pytest.raises(ValueError):
        reconstruct_path(meeting="M", start="S", end="T", forward_pred={}, backward_pred={"M": "T"})
    with pytest.raises(ValueError):
        reconstruct_path(meeting="M", start="S", end="T", forward_pred={"M": "S"}, backward_pred={"M": "X"})
    with pytest.raises(ValueError):
        reconstruct_path(meeting="M", start="S", end="T", forward_pred={"M": "A", "A": "M"}, backward_pred={"M": "T"})


def test_path_weight_sums_edges_and_rejects_missing_ones() -> None:
    nodes = [{"id": n, "lat": 0.0, "lng": float(i)} for i, n in enumerate("ABC")]
    index = build_graph_index(nodes, {"A": [{"node": "B", "weight": 0.25}], "B": [{"node": "C", "weight": 0.5}]})

    assert path_weight(index, ("A", "B", "C")) == 0.75
    assert path_weight(index, ("B",)) == 0.0
    with pytest.raises(ValueError):
        path_weight(index, ("C", "A"))
