from __future__ import annotations

# ruff: noqa: E402
import argparse
import json
import math
import sys
from pathlib import Path
from typing import Any

import numpy as np
from scipy.spatial import cKDTree

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from drive_router.graph_source import load_graph_files
from drive_router.graph_store import GraphIndex, build_graph_index
from drive_router.route_errors import RouteError

EARTH_RADIUS_M = 6_371_000.0


def _to_xy_m(points: list[tuple[float, float]]) -> np.ndarray:
    if not points:
        return np.zeros((0, 2), dtype=np.float64)
    arr = np.asarray(points, dtype=np.float64)
    lat_rad = np.radians(arr[:, 0])
    lng_rad = np.radians(arr[:, 1])
    mean_lat = float(np.mean(lat_rad))
    x = lng_rad * (EARTH_RADIUS_M * math.cos(mean_lat))
    y = lat_rad * EARTH_RADIUS_M
    return np.column_stack((x, y))


def node_spacing_m(index: GraphIndex) -> dict[str, float | None]:
    """Nearest-neighbour spacing between routable nodes (equirectangular metres)."""
    xy = _to_xy_m(list(index.nodes.values()))
    if xy.shape[0] < 2:
        return {"min_spacing_m": None, "median_spacing_m": None, "max_spacing_m": None}
    tree = cKDTree(xy)
    distances_m, _indices = tree.query(xy, k=2)
    nearest = distances_m[:, 1]
    return {
        "min_spacing_m": round(float(np.min(nearest)), 3),
        "median_spacing_m": round(float(np.median(nearest)), 3),
        "max_spacing_m": round(float(np.max(nearest)), 3),
    }


def validate(*, nodes_path: Path, edges_path: Path, min_routable_nodes: int) -> dict[str, Any]:
    nodes, edges = load_graph_files(nodes_path, edges_path)
    try:
        index = build_graph_index(nodes, edges)
    except RouteError as exc:
        raise RuntimeError(f"Graph index build failed: {exc.message}") from exc
    if index.node_count < min_routable_nodes:
        raise RuntimeError(
            f"Routable node count too low: {index.node_count} < {min_routable_nodes}"
        )
    unlocatable = len(index.routable_ids.difference(index.nodes))
    return {
        "nodes_path": str(nodes_path),
        "edges_path": str(edges_path),
        "nodes_seen": index.nodes_seen,
        "routable_nodes": index.node_count,
        "unlocatable_edge_endpoints": unlocatable,
        "edges_seen": index.edges_seen,
        "edges_kept": index.edges_kept,
        "source_nodes": len(index.adjacency),
        "sink_nodes": len(index.reverse_adjacency),
        **node_spacing_m(index),
    }


def main() -> None:
    parser = argparse.ArgumentParser(description="Validate raw road-graph exports before serving them.")
    parser.add_argument("--nodes", type=Path, required=True, help="Node records JSON array.")
    parser.add_argument("--edges", type=Path, required=True, help="Edge adjacency JSON object.")
    parser.add_argument("--min-routable-nodes", type=int, default=2)
    args = parser.parse_args()
    report = validate(
        nodes_path=args.nodes,
        edges_path=args.edges,
        min_routable_nodes=max(1, int(args.min_routable_nodes)),
    )
    print(json.dumps(report, indent=2))


if __name__ == "__main__":
    main()
