from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, BaseModel, Field


class LatLng(BaseModel):
    lat: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    lng: float = Field(..., ge=-180, le=180, allow_inf_nan=False, validation_alias=AliasChoices("lng", "lon"))


class RouteRequest(BaseModel):
    start: LatLng
    end: LatLng


class RouteResponse(BaseModel):
    success: Literal[True] = True
    route: list[LatLng]
    distance: float
    node_ids: list[str]


class RouteFailureResponse(BaseModel):
    success: Literal[False] = False
    error: str
    reason_code: str


class HealthResponse(BaseModel):
    status: str
    graph_state: str
