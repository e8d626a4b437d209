from __future__ import annotations

import heapq
import time
from dataclasses import dataclass, field
from math import inf

from .graph_store import Adjacency, GraphIndex
from .path_reconstructor import reconstruct_path

FOUND = "found"
UNREACHABLE = "unreachable"


class PathSearchTimeout(TimeoutError):
    pass


@dataclass
class SearchStats:
    steps: int = 0
    forward_settled: int = 0
    backward_settled: int = 0
    relaxations: int = 0
    termination_reason: str = "trivial"


@dataclass(frozen=True)
class SearchOutcome:
    status: str
    nodes: tuple[str, ...]
    distance: float
    meeting_node: str | None
    stats: SearchStats

    @property
    def found(self) -> bool:
        return self.status == FOUND and bool(self.nodes)


@dataclass
class _Direction:
    adjacency: Adjacency
    dist: dict[str, float] = field(default_factory=dict)
    pred: dict[str, str] = field(default_factory=dict)
    visited: set[str] = field(default_factory=set)
    heap: list[tuple[float, str]] = field(default_factory=list)

    def seed(self, node: str) -> None:
        self.dist[node] = 0.0
        heapq.heappush(self.heap, (0.0, node))

    def min_key(self) -> float:
        # Lazy deletion: drop settled or superseded entries before peeking.
        heap = self.heap
        while heap:
            d, node = heap[0]
            if node in self.visited or d > self.dist.get(node, inf):
                heapq.heappop(heap)
                continue
            return d
        return inf


@dataclass
class SearchState:
    """Private per-query search state; never shared between requests."""

    forward: _Direction
    backward: _Direction
    best: float = inf
    meeting: str | None = None
    stats: SearchStats = field(default_factory=SearchStats)

    def offer(self, node: str, total: float) -> None:
        if total < self.best:
            self.best = total
            self.meeting = node


def _advance(state: SearchState, side: _Direction, other: _Direction) -> int:
    d, node = heapq.heappop(side.heap)
    side.visited.add(node)
    if node in other.visited:
        state.offer(node, side.dist[node] + other.dist[node])
    relaxed = 0
    for nxt, weight in side.adjacency.get(node, ()):
        if nxt in side.visited:
            continue
        nd = d + weight
        if nd < side.dist.get(nxt, inf):
            side.dist[nxt] = nd
            side.pred[nxt] = node
            heapq.heappush(side.heap, (nd, nxt))
            relaxed += 1
            other_d = other.dist.get(nxt)
            if other_d is not None:
                state.offer(nxt, nd + other_d)
    return relaxed


def find_path(
    index: GraphIndex,
    start: str,
    end: str,
    *,
    deadline_monotonic_s: float | None = None,
) -> SearchOutcome:
    """Bidirectional Dijkstra between two already-snapped node ids.

    The forward search follows outgoing edges from ``start``; the backward
    search follows incoming edges (the reverse adjacency) from ``end``. Each
    step advances the side with the smaller frontier minimum, forward on ties.
    The search stops once ``min_f + min_b >= best``, which makes ``best`` the
    exact shortest distance.
    """
    if start == end:
        return SearchOutcome(
            status=FOUND,
            nodes=(start,),
            distance=0.0,
            meeting_node=start,
            stats=SearchStats(),
        )

    state = SearchState(
        forward=_Direction(adjacency=index.adjacency),
        backward=_Direction(adjacency=index.reverse_adjacency),
    )
    state.forward.seed(start)
    state.backward.seed(end)
    stats = state.stats
    while True:
        if deadline_monotonic_s is not None and time.monotonic() >= float(deadline_monotonic_s):
            raise PathSearchTimeout("search deadline exceeded")
        min_f = state.forward.min_key()
        min_b = state.backward.min_key()
        # Also true once both frontiers are empty.
        if min_f + min_b >= state.best:
            stats.termination_reason = "optimal" if state.meeting is not None else "unreachable"
            break
        stats.steps += 1
        if min_f <= min_b:
            stats.forward_settled += 1
            stats.relaxations += _advance(state, state.forward, state.backward)
        else:
            stats.backward_settled += 1
            stats.relaxations += _advance(state, state.backward, state.forward)

    if state.meeting is None:
        return SearchOutcome(
            status=UNREACHABLE,
            nodes=(),
            distance=inf,
            meeting_node=None,
            stats=stats,
        )
    nodes = reconstruct_path(
        meeting=state.meeting,
        start=start,
        end=end,
        forward_pred=state.forward.pred,
        backward_pred=state.backward.pred,
    )
    return SearchOutcome(
        status=FOUND,
        nodes=nodes,
        distance=state.best,
        meeting_node=state.meeting,
        stats=stats,
    )
