"""FastAPI application exposing live charts over HTTP."""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse, Response

from metricslive.chart import TelemetryChart
from metricslive.contracts.error import EnvelopeError
from metricslive.metrics.constants import AUTH_HEADER, PROMETHEUS_CONTENT_TYPE, TOKEN_ENV_VAR
from metricslive.metrics.core import render_prometheus

from .models import (
    ChartCreateRequest,
    ChartListResponse,
    ChartSnapshot,
    ColumnsResponse,
    FlushResponse,
    IngestResponse,
    MeasurementBatch,
)
from .registry import ChartRegistry


def _snapshot(name: str, chart: TelemetryChart) -> ChartSnapshot:
    return ChartSnapshot.model_validate({"name": name, **chart.snapshot()})


def create_app(registry: ChartRegistry | None = None) -> FastAPI:
    """Create a FastAPI application wired to the given chart registry."""

    chart_registry = ChartRegistry() if registry is None else registry

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        chart_registry.shutdown()

    app = FastAPI(title="metricslive", version="0.1.0", lifespan=lifespan)
    app.state.registry = chart_registry

    @app.exception_handler(EnvelopeError)
    async def envelope_error(_request: Request, exc: EnvelopeError) -> JSONResponse:
        payload = exc.envelope().to_dict()
        return JSONResponse(status_code=exc.http_status, content=payload)

    token_value = os.getenv(TOKEN_ENV_VAR)

    async def require_token(request: Request) -> None:
        if not token_value:
            return
        if request.headers.get(AUTH_HEADER) == f"Bearer {token_value}":
            return
        if request.query_params.get("token") == token_value:
            return
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    def get_registry() -> ChartRegistry:
        return app.state.registry  # type: ignore[no-any-return]

    registry_dep = Depends(get_registry)
    auth = [Depends(require_token)]

    def lookup(reg: ChartRegistry, name: str) -> TelemetryChart:
        try:
            return reg.get(name)
        except KeyError as exc:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail=f"Chart {name!r} not found"
            ) from exc

    @app.get("/healthz", response_model=dict)
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/charts", response_model=ChartListResponse, dependencies=auth)
    async def list_charts(
        reg: ChartRegistry = registry_dep,  # noqa: B008 - FastAPI dependency wiring
    ) -> ChartListResponse:
        return ChartListResponse(charts=[_snapshot(name, reg.get(name)) for name in reg])

    @app.post(
        "/api/charts",
        response_model=ChartSnapshot,
        status_code=status.HTTP_201_CREATED,
        dependencies=auth,
    )
    async def create_chart(
        request: ChartCreateRequest,
        reg: ChartRegistry = registry_dep,  # noqa: B008 - FastAPI dependency wiring
    ) -> ChartSnapshot:
        chart = reg.create(request.name, request.to_options())
        return _snapshot(request.name, chart)

    @app.get("/api/charts/{name}", response_model=ChartSnapshot, dependencies=auth)
    async def chart_detail(
        name: str,
        reg: ChartRegistry = registry_dep,  # noqa: B008 - FastAPI dependency wiring
    ) -> ChartSnapshot:
        return _snapshot(name, lookup(reg, name))

    @app.delete(
        "/api/charts/{name}",
        status_code=status.HTTP_204_NO_CONTENT,
        response_class=Response,
        response_model=None,
        dependencies=auth,
    )
    async def delete_chart(
        name: str,
        reg: ChartRegistry = registry_dep,  # noqa: B008 - FastAPI dependency wiring
    ) -> Response:
        lookup(reg, name)
        reg.remove(name)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post(
        "/api/charts/{name}/measurements",
        response_model=IngestResponse,
        dependencies=auth,
    )
    async def push_measurements(
        name: str,
        batch: MeasurementBatch,
        response: Response,
        reg: ChartRegistry = registry_dep,  # noqa: B008 - FastAPI dependency wiring
    ) -> IngestResponse:
        chart = lookup(reg, name)
        measurements = [item.to_measurement() for item in batch.measurements]
        applied = chart.push_data(measurements)
        pending = len(chart.buffer) if chart.buffer is not None else 0
        if chart.buffer is not None:
            response.status_code = status.HTTP_202_ACCEPTED
        return IngestResponse(accepted=len(measurements), applied=applied, buffered=pending)

    @app.post("/api/charts/{name}/flush", response_model=FlushResponse, dependencies=auth)
    async def flush_chart(
        name: str,
        reg: ChartRegistry = registry_dep,  # noqa: B008 - FastAPI dependency wiring
    ) -> FlushResponse:
        chart = lookup(reg, name)
        return FlushResponse(applied=chart.flush())

    @app.get("/api/charts/{name}/columns", response_model=ColumnsResponse, dependencies=auth)
    async def chart_columns(
        name: str,
        reg: ChartRegistry = registry_dep,  # noqa: B008 - FastAPI dependency wiring
    ) -> ColumnsResponse:
        chart = lookup(reg, name)
        return ColumnsResponse(
            name=name,
            labels=chart.labels(),
            columns=chart.columns(),
        )

    @app.get("/metrics", dependencies=auth)
    async def metrics(
        reg: ChartRegistry = registry_dep,  # noqa: B008 - FastAPI dependency wiring
    ) -> Any:
        body = render_prometheus(reg.charts())
        return Response(content=body, media_type=PROMETHEUS_CONTENT_TYPE)

    return app


def serve(
    host: str,
    port: int,
    *,
    log_level: str = "info",
    registry: ChartRegistry | None = None,
) -> None:
    """Run the service with uvicorn until interrupted."""

    level = log_level.lower()
    logging.getLogger("metricslive.service").setLevel(level.upper())
    uvicorn.run(create_app(registry), host=host, port=port, log_level=level)


__all__ = ["create_app", "serve"]
