from __future__ import annotations

import math
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from .graph_store import GRAPH_STORE, GraphStore
from .logging_utils import log_event
from .metrics_store import record_failure
from .path_finder import PathSearchTimeout, find_path
from .route_errors import (
    MALFORMED_INPUT,
    NO_NEARBY_NODE,
    NO_ROUTE,
    ROUTE_COMPUTE_TIMEOUT,
    TOO_CLOSE,
    RouteError,
    route_error,
)
from .spatial_locator import nearest_node


@dataclass(frozen=True)
class RouteResult:
    ok: bool
    route: tuple[tuple[float, float], ...] = ()
    distance: float = math.inf
    node_ids: tuple[str, ...] = ()
    reason_code: str | None = None
    message: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failure(cls, err: RouteError) -> "RouteResult":
        return cls(
            ok=False,
            reason_code=err.reason_code,
            message=err.message,
            details=dict(err.details or {}),
        )

    @classmethod
    def failure_for(cls, reason_code: str) -> "RouteResult":
        return cls.failure(route_error(reason_code))


def _coordinate(raw: object, *, label: str) -> tuple[float, float]:
    if not isinstance(raw, Mapping):
        raise route_error(MALFORMED_INPUT, f"{label} must be an object with lat and lng.")
    lat_raw = raw.get("lat")
    lng_raw = raw.get("lng", raw.get("lon"))
    values: list[float] = []
    for value in (lat_raw, lng_raw):
        if not isinstance(value, (int, float, Decimal)) or isinstance(value, bool):
            raise route_error(MALFORMED_INPUT, f"{label} must carry numeric lat and lng.")
        values.append(float(value))
    lat, lng = values
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise route_error(MALFORMED_INPUT, f"{label} coordinates must be finite.")
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
        raise route_error(MALFORMED_INPUT, f"{label} coordinates are out of range.")
    return lat, lng


class RouteService:
    def __init__(self, store: GraphStore | None = None) -> None:
        self._store = store if store is not None else GRAPH_STORE

    def _route(
        self,
        start: object,
        end: object,
        *,
        deadline_monotonic_s: float | None,
    ) -> RouteResult:
        index = self._store.require_index()
        start_lat, start_lng = _coordinate(start, label="start")
        end_lat, end_lng = _coordinate(end, label="end")

        start_id = nearest_node(index, start_lat, start_lng)
        end_id = nearest_node(index, end_lat, end_lng)
        same_point = (start_lat, start_lng) == (end_lat, end_lng)
        if start_id is not None and start_id == end_id and not same_point:
            # Distinct points on one node: retry the end snap away from it.
            end_id = nearest_node(index, end_lat, end_lng, exclude=start_id) or end_id
            if end_id == start_id:
                raise route_error(TOO_CLOSE, node_id=start_id)
        if start_id is None or end_id is None:
            raise route_error(NO_NEARBY_NODE)

        try:
            outcome = find_path(index, start_id, end_id, deadline_monotonic_s=deadline_monotonic_s)
        except PathSearchTimeout as exc:
            raise route_error(ROUTE_COMPUTE_TIMEOUT, start_node=start_id, end_node=end_id) from exc
        if not outcome.found:
            raise route_error(NO_ROUTE, start_node=start_id, end_node=end_id)

        coords = tuple(index.nodes[node_id] for node_id in outcome.nodes if node_id in index.nodes)
        return RouteResult(
            ok=True,
            route=coords,
            distance=outcome.distance,
            node_ids=outcome.nodes,
            details={
                "meeting_node": outcome.meeting_node,
                "steps": outcome.stats.steps,
                "termination_reason": outcome.stats.termination_reason,
            },
        )

    def compute_route(
        self,
        start: object,
        end: object,
        *,
        timeout_s: float | None = None,
    ) -> RouteResult:
        """Snap both coordinates, search, and map the node path back to coordinates.

        Every failure comes back as a ``RouteResult`` carrying a reason code;
        nothing here raises to the caller.
        """
        t0 = time.perf_counter()
        deadline = time.monotonic() + float(timeout_s) if timeout_s is not None else None
        try:
            result = self._route(start, end, deadline_monotonic_s=deadline)
        except RouteError as err:
            result = RouteResult.failure(err)
            record_failure(err.reason_code)
        log_event(
            "route_request",
            ok=result.ok,
            reason_code=result.reason_code,
            node_count=len(result.node_ids),
            distance=result.distance if result.ok else None,
            duration_ms=round((time.perf_counter() - t0) * 1000, 2),
        )
        return result
