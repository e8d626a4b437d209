from __future__ import annotations

import logging
import math
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from .logging_utils import log_event
from .route_errors import DATA_UNAVAILABLE, RouteError, route_error

Adjacency = dict[str, tuple[tuple[str, float], ...]]
GraphLoader = Callable[[], tuple[Any, Any]]


@dataclass(frozen=True)
class GraphIndex:
    nodes: dict[str, tuple[float, float]]
    adjacency: Adjacency
    reverse_adjacency: Adjacency
    routable_ids: frozenset[str]
    nodes_seen: int
    nodes_dropped: int
    edges_seen: int
    edges_kept: int

    @property
    def node_count(self) -> int:
        return len(self.nodes)


def canonical_node_id(raw: object) -> str | None:
    """Map a raw node id onto the single string form used for every comparison.

    Integers and integral floats become their decimal text so that ``12``,
    ``12.0`` and ``"12"`` all name the same node. Strings are stripped.
    Booleans, blanks and non-finite numbers are rejected.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return str(raw)
    if isinstance(raw, (float, Decimal)):
        value = float(raw)
        if not math.isfinite(value):
            return None
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(raw, str):
        text = raw.strip()
        return text or None
    return None


def _finite_float(raw: object) -> float | None:
    if not isinstance(raw, (int, float, str, Decimal)) or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return value


def _parse_node(raw: object) -> tuple[str, float, float] | None:
    if not isinstance(raw, Mapping):
        return None
    node_id = canonical_node_id(raw.get("id"))
    if node_id is None:
        return None
    lat = _finite_float(raw.get("lat"))
    lng = _finite_float(raw.get("lng", raw.get("lon")))
    if lat is None or lng is None:
        return None
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
        return None
    return (node_id, lat, lng)


def _parse_edge(raw: object) -> tuple[str, float] | None:
    if isinstance(raw, Mapping):
        dest_raw = raw.get("node", raw.get("to"))
        weight_raw = raw.get("weight")
    elif isinstance(raw, (list, tuple)) and len(raw) >= 2:
        dest_raw, weight_raw = raw[0], raw[1]
    else:
        return None
    dest = canonical_node_id(dest_raw)
    weight = _finite_float(weight_raw)
    if dest is None or weight is None or weight < 0.0:
        return None
    return (dest, weight)


def _is_record_sequence(value: object) -> bool:
    return isinstance(value, (list, tuple))


def build_graph_index(nodes: Any, edges: Any) -> GraphIndex:
    """Build the immutable routing index from raw node and edge documents.

    ``nodes`` is a sequence of ``{id, lat, lng}`` records and ``edges`` maps a
    source id to an ordered sequence of ``{node, weight}`` records. Only nodes
    that appear as an edge source or destination are kept, so the locator can
    never snap onto a node without connectivity.
    """
    if not _is_record_sequence(nodes) or not nodes:
        raise route_error(DATA_UNAVAILABLE, "Node records are missing or malformed.")
    if not isinstance(edges, Mapping) or not edges:
        raise route_error(DATA_UNAVAILABLE, "Edge records are missing or malformed.")

    forward_mut: dict[str, list[tuple[str, float]]] = {}
    reverse_mut: dict[str, list[tuple[str, float]]] = {}
    routable: set[str] = set()
    edges_seen = 0
    edges_kept = 0
    for src_raw, records in edges.items():
        if not _is_record_sequence(records):
            continue
        edges_seen += len(records)
        src = canonical_node_id(src_raw)
        if src is None:
            continue
        for record in records:
            parsed = _parse_edge(record)
            if parsed is None:
                continue
            dest, weight = parsed
            forward_mut.setdefault(src, []).append((dest, weight))
            reverse_mut.setdefault(dest, []).append((src, weight))
            routable.add(src)
            routable.add(dest)
            edges_kept += 1
    if not edges_kept:
        raise route_error(DATA_UNAVAILABLE, "Edge records contain no valid edges.")

    kept_nodes: dict[str, tuple[float, float]] = {}
    valid_nodes = 0
    for raw_node in nodes:
        parsed_node = _parse_node(raw_node)
        if parsed_node is None:
            continue
        valid_nodes += 1
        node_id, lat, lng = parsed_node
        if node_id in routable and node_id not in kept_nodes:
            kept_nodes[node_id] = (lat, lng)
    if not valid_nodes:
        raise route_error(DATA_UNAVAILABLE, "Node records contain no valid nodes.")

    index = GraphIndex(
        nodes=kept_nodes,
        adjacency={src: tuple(out) for src, out in forward_mut.items()},
        reverse_adjacency={dst: tuple(inc) for dst, inc in reverse_mut.items()},
        routable_ids=frozenset(routable),
        nodes_seen=len(nodes),
        nodes_dropped=len(nodes) - len(kept_nodes),
        edges_seen=edges_seen,
        edges_kept=edges_kept,
    )
    if index.nodes_dropped or edges_seen != edges_kept:
        log_event(
            "graph_index_records_dropped",
            level=logging.WARNING,
            nodes_seen=index.nodes_seen,
            nodes_kept=index.node_count,
            nodes_invalid=len(nodes) - valid_nodes,
            edges_seen=edges_seen,
            edges_kept=edges_kept,
        )
    return index


def edge_weight(index: GraphIndex, from_id: str, to_id: str) -> float | None:
    best: float | None = None
    for dest, weight in index.adjacency.get(from_id, ()):
        if dest == to_id and (best is None or weight < best):
            best = weight
    return best


def _iso_utc_now() -> str:
    return datetime.now(UTC).replace(microsecond=0).isoformat().replace("+00:00", "Z")


class GraphStore:
    """Process-wide holder of the single routing index.

    The index moves through ``idle -> loading -> ready`` exactly once and is
    never replaced afterwards. A failed load leaves it unset (``failed``), so
    every later request keeps failing with ``data_unavailable``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ready = threading.Event()
        self._index: GraphIndex | None = None
        self._state = "idle"  # idle | loading | ready | failed
        self._started_at_utc: str | None = None
        self._ready_at_utc: str | None = None
        self._started_monotonic: float | None = None
        self._build_ms: float | None = None
        self._last_error: str | None = None
        self._thread: threading.Thread | None = None

    @property
    def state(self) -> str:
        with self._lock:
            return self._state

    @property
    def index(self) -> GraphIndex | None:
        return self._index

    def require_index(self) -> GraphIndex:
        index = self._index
        if index is None:
            raise route_error(DATA_UNAVAILABLE, state=self.state)
        return index

    def wait_ready(self, timeout_s: float | None = None) -> bool:
        return self._ready.wait(timeout_s)

    def _mark_loading(self) -> bool:
        with self._lock:
            if self._state in {"loading", "ready"}:
                return False
            self._state = "loading"
            self._started_at_utc = _iso_utc_now()
            self._started_monotonic = time.monotonic()
            self._last_error = None
            return True

    def _mark_ready(self, index: GraphIndex) -> None:
        with self._lock:
            self._index = index
            self._state = "ready"
            self._ready_at_utc = _iso_utc_now()
            if self._started_monotonic is not None:
                self._build_ms = round((time.monotonic() - self._started_monotonic) * 1000.0, 2)
        self._ready.set()

    def _mark_failed(self, error: str) -> None:
        with self._lock:
            self._state = "failed"
            self._last_error = str(error).strip() or "unknown"

    def load_records(self, nodes: Any, edges: Any) -> GraphIndex:
        """Build and publish the index synchronously."""
        if not self._mark_loading():
            return self.require_index()
        try:
            index = build_graph_index(nodes, edges)
        except RouteError as exc:
            self._mark_failed(exc.message)
            raise
        self._mark_ready(index)
        return index

    def run_warmup(self, loader: GraphLoader) -> None:
        if not self._mark_loading():
            return
        log_event("graph_warmup_started")
        try:
            nodes, edges = loader()
            index = build_graph_index(nodes, edges)
        except Exception as exc:  # startup boundary: record and keep serving
            message = f"{type(exc).__name__}: {str(exc).strip()}"
            self._mark_failed(message)
            log_event(
                "graph_warmup_failed",
                level=logging.WARNING,
                error_type=type(exc).__name__,
                error_message=str(exc).strip() or type(exc).__name__,
            )
            return
        self._mark_ready(index)
        log_event(
            "graph_warmup_ready",
            node_count=index.node_count,
            adjacency_count=len(index.adjacency),
            edge_count=index.edges_kept,
            build_ms=self._build_ms,
        )

    def begin_warmup(self, loader: GraphLoader) -> threading.Thread | None:
        with self._lock:
            if self._state in {"loading", "ready"}:
                return None
            if self._thread is not None and self._thread.is_alive():
                return None
            thread = threading.Thread(
                target=self.run_warmup,
                args=(loader,),
                name="graph-warmup",
                daemon=True,
            )
            self._thread = thread
        thread.start()
        return thread

    def status(self) -> dict[str, Any]:
        with self._lock:
            index = self._index
            started_monotonic = self._started_monotonic
            snapshot: dict[str, Any] = {
                "state": self._state,
                "started_at_utc": self._started_at_utc,
                "ready_at_utc": self._ready_at_utc,
                "build_ms": self._build_ms,
                "last_error": self._last_error,
                "thread_alive": bool(self._thread is not None and self._thread.is_alive()),
            }
        elapsed_ms: float | None = None
        if started_monotonic is not None:
            elapsed_ms = round(max(0.0, (time.monotonic() - started_monotonic) * 1000.0), 2)
        snapshot["elapsed_ms"] = elapsed_ms
        if index is not None:
            snapshot.update(
                {
                    "nodes_seen": index.nodes_seen,
                    "routable_nodes": index.node_count,
                    "routable_ids": len(index.routable_ids),
                    "edges_seen": index.edges_seen,
                    "edges_kept": index.edges_kept,
                }
            )
        return snapshot


GRAPH_STORE = GraphStore()
