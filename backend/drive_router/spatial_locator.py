from __future__ import annotations

import math

from .graph_store import GraphIndex

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = phi2 - phi1
    dlambda = math.radians(lng2 - lng1)
    a = (
        math.sin(dphi / 2.0) ** 2
        + (math.cos(phi1) * math.cos(phi2) * (math.sin(dlambda / 2.0) ** 2))
    )
    return 2.0 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(max(0.0, a))))


def nearest_node_with_distance(
    index: GraphIndex,
    *,
    lat: float,
    lng: float,
    exclude: str | None = None,
) -> tuple[str | None, float]:
    """Linear scan of the routable nodes; distance is returned in metres.

    Ties keep the first candidate in the index's iteration order.
    """
    nearest: str | None = None
    best_km = math.inf
    for node_id, (n_lat, n_lng) in index.nodes.items():
        if node_id == exclude:
            continue
        dist_km = haversine_km(lat, lng, n_lat, n_lng)
        if dist_km < best_km:
            best_km = dist_km
            nearest = node_id
    if nearest is None:
        return None, math.inf
    return nearest, best_km * 1000.0


def nearest_node(
    index: GraphIndex,
    lat: float,
    lng: float,
    exclude: str | None = None,
) -> str | None:
    node_id, _distance_m = nearest_node_with_distance(index, lat=lat, lng=lng, exclude=exclude)
    return node_id
