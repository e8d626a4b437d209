from __future__ import annotations

import time
from pathlib import Path
from typing import Any

import httpx
import ijson

from .logging_utils import log_event
from .settings import settings


class GraphSourceError(RuntimeError):
    pass


def _read_node_file(path: Path) -> list[Any]:
    try:
        with path.open("rb") as fh:
            return list(ijson.items(fh, "item"))
    except OSError as exc:
        raise GraphSourceError(f"cannot read node file {path}: {exc}") from exc
    except ijson.JSONError as exc:
        raise GraphSourceError(f"node file {path} is not a JSON array: {exc}") from exc


def _read_edge_file(path: Path) -> dict[str, Any]:
    edges: dict[str, Any] = {}
    try:
        with path.open("rb") as fh:
            # Streams one adjacency list at a time instead of the whole document.
            for src, records in ijson.kvitems(fh, ""):
                edges[src] = records
    except OSError as exc:
        raise GraphSourceError(f"cannot read edge file {path}: {exc}") from exc
    except ijson.JSONError as exc:
        raise GraphSourceError(f"edge file {path} is not a JSON object: {exc}") from exc
    return edges


def load_graph_files(nodes_path: str | Path, edges_path: str | Path) -> tuple[list[Any], dict[str, Any]]:
    nodes = _read_node_file(Path(nodes_path))
    edges = _read_edge_file(Path(edges_path))
    return nodes, edges


def _fetch_json(client: httpx.Client, url: str, *, label: str) -> Any:
    try:
        resp = client.get(url)
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        raise GraphSourceError(f"{label} fetch failed: {exc}") from exc
    try:
        return resp.json()
    except ValueError as exc:
        raise GraphSourceError(f"{label} payload is not JSON") from exc


def fetch_graph_documents(
    nodes_url: str,
    edges_url: str,
    *,
    timeout_s: float,
    transport: httpx.BaseTransport | None = None,
) -> tuple[Any, Any]:
    with httpx.Client(
        timeout=httpx.Timeout(timeout_s, connect=10.0),
        follow_redirects=True,
        headers={"accept": "application/json"},
        transport=transport,
    ) as client:
        nodes = _fetch_json(client, nodes_url, label="nodes")
        edges = _fetch_json(client, edges_url, label="edges")
    return nodes, edges


def load_graph_documents() -> tuple[Any, Any]:
    """Load raw node and edge documents from the configured source."""
    t0 = time.perf_counter()
    if settings.uses_local_graph_files():
        source = "file"
        nodes, edges = load_graph_files(settings.graph_nodes_path, settings.graph_edges_path)
    else:
        source = "http"
        nodes, edges = fetch_graph_documents(
            settings.graph_nodes_url,
            settings.graph_edges_url,
            timeout_s=settings.graph_fetch_timeout_s,
        )
    log_event(
        "graph_source_loaded",
        source=source,
        node_records=len(nodes) if isinstance(nodes, (list, dict)) else None,
        edge_sources=len(edges) if isinstance(edges, (list, dict)) else None,
        duration_ms=round((time.perf_counter() - t0) * 1000, 2),
    )
    return nodes, edges
