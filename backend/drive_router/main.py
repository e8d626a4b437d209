from __future__ import annotations

import asyncio
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from .graph_source import load_graph_documents
from .graph_store import GRAPH_STORE
from .logging_utils import log_event
from .metrics_store import metrics_snapshot, record_failure, record_request
from .models import HealthResponse, LatLng, RouteFailureResponse, RouteRequest, RouteResponse
from .route_errors import DATA_UNAVAILABLE, MALFORMED_INPUT, REASON_MESSAGES
from .route_service import RouteResult, RouteService
from .settings import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.graph_warmup_on_startup:
        GRAPH_STORE.begin_warmup(load_graph_documents)
    yield


app = FastAPI(title="Drive Router", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

route_service = RouteService(GRAPH_STORE)

_STATUS_BY_REASON = {
    DATA_UNAVAILABLE: 503,
    MALFORMED_INPUT: 422,
}


def _failure_response(reason_code: str, message: str) -> JSONResponse:
    body = RouteFailureResponse(error=message, reason_code=reason_code)
    return JSONResponse(status_code=_STATUS_BY_REASON.get(reason_code, 200), content=body.model_dump())


@app.exception_handler(RequestValidationError)
async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    if request.url.path == "/calculate_route":
        record_failure(MALFORMED_INPUT)
        record_request("calculate_route", duration_ms=0.0, error=True)
    return _failure_response(MALFORMED_INPUT, REASON_MESSAGES[MALFORMED_INPUT])


@app.get("/", response_class=PlainTextResponse)
async def root() -> str:
    return "Route API is running!"


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(status="ok", graph_state=GRAPH_STORE.state)


@app.get("/graph/status")
async def graph_status() -> dict[str, object]:
    return GRAPH_STORE.status()


@app.get("/metrics")
async def metrics() -> dict[str, object]:
    return metrics_snapshot()


def _to_response(result: RouteResult) -> RouteResponse:
    return RouteResponse(
        route=[LatLng(lat=lat, lng=lng) for lat, lng in result.route],
        distance=result.distance,
        node_ids=list(result.node_ids),
    )


@app.post("/calculate_route")
async def calculate_route(req: RouteRequest) -> JSONResponse:
    request_id = str(uuid.uuid4())
    t0 = time.perf_counter()

    if GRAPH_STORE.index is None:
        # Fail fast; no queueing while the graph is still loading.
        record_failure(DATA_UNAVAILABLE)
        result = RouteResult.failure_for(DATA_UNAVAILABLE)
    else:
        result = await asyncio.to_thread(
            route_service.compute_route,
            req.start.model_dump(),
            req.end.model_dump(),
            timeout_s=settings.route_compute_timeout_s,
        )

    duration_ms = round((time.perf_counter() - t0) * 1000, 2)
    record_request("calculate_route", duration_ms=duration_ms, error=not result.ok)
    log_event(
        "calculate_route_request",
        request_id=request_id,
        start=req.start.model_dump(),
        end=req.end.model_dump(),
        ok=result.ok,
        reason_code=result.reason_code,
        duration_ms=duration_ms,
    )
    if not result.ok:
        return _failure_response(result.reason_code or DATA_UNAVAILABLE, result.message or "")
    return JSONResponse(status_code=200, content=_to_response(result).model_dump())


def cli_main() -> None:
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    cli_main()
