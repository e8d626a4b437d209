from __future__ import annotations

from dataclasses import dataclass
from typing import Any

DATA_UNAVAILABLE = "data_unavailable"
NO_NEARBY_NODE = "no_nearby_node"
TOO_CLOSE = "too_close"
NO_ROUTE = "no_route"
MALFORMED_INPUT = "malformed_input"
ROUTE_COMPUTE_TIMEOUT = "route_compute_timeout"

FROZEN_REASON_CODES: frozenset[str] = frozenset(
    {
        DATA_UNAVAILABLE,
        NO_NEARBY_NODE,
        TOO_CLOSE,
        NO_ROUTE,
        MALFORMED_INPUT,
        ROUTE_COMPUTE_TIMEOUT,
    }
)

# Human-facing messages returned in the "error" field of failed responses.
REASON_MESSAGES: dict[str, str] = {
    DATA_UNAVAILABLE: "Graph data not loaded yet.",
    NO_NEARBY_NODE: "No nearby node found.",
    TOO_CLOSE: "Start and end resolve to the same road node.",
    NO_ROUTE: "No route found.",
    MALFORMED_INPUT: "Start and end must both carry numeric lat and lng.",
    ROUTE_COMPUTE_TIMEOUT: "Route computation timed out.",
}


@dataclass
class RouteError(ValueError):
    reason_code: str
    message: str
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.message


def normalize_reason_code(reason_code: str, *, default: str = NO_ROUTE) -> str:
    code = str(reason_code or "").strip()
    if code in FROZEN_REASON_CODES:
        return code
    return default


def route_error(reason_code: str, message: str | None = None, **details: Any) -> RouteError:
    code = normalize_reason_code(reason_code)
    return RouteError(
        reason_code=code,
        message=message or REASON_MESSAGES[code],
        details=details or None,
    )
