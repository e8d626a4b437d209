from __future__ import annotations

from collections.abc import Mapping, Sequence

from .graph_store import GraphIndex, edge_weight


def reconstruct_path(
    *,
    meeting: str,
    start: str,
    end: str,
    forward_pred: Mapping[str, str],
    backward_pred: Mapping[str, str],
) -> tuple[str, ...]:
    """Join the two half-searches at ``meeting`` into one start..end sequence.

    ``forward_pred`` maps a node to the node it was reached from on the way out
    of ``start``; ``backward_pred`` maps a node to the next node on its way to
    ``end``. The meeting node appears once.
    """
    head: list[str] = [meeting]
    seen: set[str] = {meeting}
    node = meeting
    while node != start:
        prev = forward_pred.get(node)
        if prev is None or prev in seen:
            raise ValueError(f"forward predecessor chain broken at {node!r}")
        head.append(prev)
        seen.add(prev)
        node = prev
    head.reverse()

    tail: list[str] = []
    seen = {meeting}
    node = meeting
    while node != end:
        nxt = backward_pred.get(node)
        if nxt is None or nxt in seen:
            raise ValueError(f"backward predecessor chain broken at {node!r}")
        tail.append(nxt)
        seen.add(nxt)
        node = nxt
    return (*head, *tail)


def path_weight(index: GraphIndex, path: Sequence[str]) -> float:
    """Sum the cheapest edge weight between each consecutive pair of ``path``."""
    total = 0.0
    for src, dst in zip(path, path[1:]):
        weight = edge_weight(index, src, dst)
        if weight is None:
            raise ValueError(f"no edge {src!r} -> {dst!r}")
        total += weight
    return total
