"""FastAPI app factory.

Endpoints are intentionally thin wrappers over the monitor service.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware

from freight_delay_monitor import __version__
from freight_delay_monitor.config import MonitorSettings
from freight_delay_monitor.context import AppContext, build_context
from freight_delay_monitor.errors import RunNotFound, RunStartFailed, ValidationError
from freight_delay_monitor.monitor.feed import NotificationEvent
from freight_delay_monitor.monitor.registry import Run
from freight_delay_monitor.server.models import (
    ClearedResponse,
    HealthResponse,
    StartRunRequest,
    TickResponse,
)

logger = logging.getLogger(__name__)


def create_app(context: AppContext | None = None) -> FastAPI:
    owns_context = context is None
    ctx = context or build_context(MonitorSettings())
    settings = ctx.settings

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        settings.report_credentials()
        if settings.observer_enabled:
            ctx.observer.start()
        try:
            yield
        finally:
            if owns_context:
                ctx.close()
            else:
                ctx.observer.stop()

    app = FastAPI(
        title="Freight Delay Monitor",
        version=__version__,
        description="REST API for starting route delay runs and reading their notifications.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    # Request handlers and tests reach the wiring through app.state.
    app.state.context = ctx

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    service = ctx.service

    @app.get("/api/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(
            status="ok",
            version=__version__,
            missing_credentials=settings.missing_credentials(),
            observer_running=ctx.observer.is_running,
        )

    @app.post("/api/runs", response_model=Run)
    def start_run(req: StartRunRequest) -> Run:
        try:
            return service.start_run(req.origin, req.destination, req.threshold)
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=str(e)) from e
        except RunStartFailed as e:
            raise HTTPException(status_code=502, detail=str(e)) from e

    @app.get("/api/runs", response_model=list[Run])
    def list_runs() -> list[Run]:
        return service.list_runs()

    @app.get("/api/runs/{run_id}", response_model=Run)
    def get_run(run_id: str) -> Run:
        try:
            return service.get_run(run_id)
        except RunNotFound as e:
            raise HTTPException(status_code=404, detail="Run not found") from e

    @app.post("/api/observer/tick", response_model=TickResponse)
    def observer_tick() -> TickResponse:
        summary = ctx.observer.tick()
        return TickResponse.model_validate(summary.to_json())

    @app.get("/api/notifications", response_model=list[NotificationEvent])
    def list_notifications() -> list[NotificationEvent]:
        return service.notifications()

    @app.delete("/api/notifications/{event_id}", status_code=204)
    def dismiss_notification(event_id: str) -> Response:
        if not service.dismiss_notification(event_id):
            raise HTTPException(status_code=404, detail="Notification not found")
        return Response(status_code=204)

    @app.delete("/api/notifications", response_model=ClearedResponse)
    def clear_notifications() -> ClearedResponse:
        return ClearedResponse(cleared=service.clear_notifications())

    return app
