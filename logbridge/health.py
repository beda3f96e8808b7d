"""FastAPI health endpoints for liveness and readiness probes."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from .models import ConnectorStatus, HealthStatus

if TYPE_CHECKING:
    from .runner import ConnectorRunner


def create_health_app(runner: ConnectorRunner) -> FastAPI:
    """Build a minimal FastAPI app with ``/health`` and ``/ready`` routes.

    ``/health`` reports the bridge counters and the source's own details;
    it answers 503 once the bridge has failed.
    """
    app = FastAPI(title=f"{runner.name} health", docs_url=None, redoc_url=None)

    @app.get("/health")
    async def health() -> JSONResponse:
        bridge = runner.bridge
        status = HealthStatus(
            connector_name=runner.name,
            status=bridge.status,
            uptime_seconds=time.monotonic() - runner.start_time,
            stats=bridge.stats,
            details=await bridge.source.health_check(),
        )
        code = 503 if bridge.status == ConnectorStatus.FAILED else 200
        return JSONResponse(content=status.model_dump(mode="json"), status_code=code)

    @app.get("/ready")
    async def ready() -> JSONResponse:
        is_ready = runner.bridge.status == ConnectorStatus.RUNNING
        return JSONResponse(
            content={"ready": is_ready},
            status_code=200 if is_ready else 503,
        )

    return app
