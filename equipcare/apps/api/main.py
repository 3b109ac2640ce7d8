from __future__ import annotations

import time
from uuid import uuid4

from fastapi import FastAPI, Request

from equipcare.apps.api.errors import register_exception_handlers
from equipcare.apps.api.response import API_VERSION
from equipcare.apps.api.routes import deletion, equipment, health, jobs, notifications, tickets
from equipcare.core.logging import configure_logging
from equipcare.services.telemetry import record_request


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="EquipCare API", version="0.1.0")

    @app.middleware("http")
    async def request_context(request: Request, call_next):  # type: ignore[override]
        request.state.request_id = request.headers.get("X-Request-Id") or str(uuid4())
        started = time.monotonic()
        response = await call_next(request)
        record_request(
            path=request.url.path,
            status_code=response.status_code,
            latency_ms=(time.monotonic() - started) * 1000.0,
        )
        response.headers.setdefault("X-Request-Id", request.state.request_id)
        return response

    register_exception_handlers(app)
    # Batch job routes are for operators; the arq worker runs the same jobs on cron.
    for module in (health, tickets, equipment, deletion, notifications, jobs):
        app.include_router(module.router, prefix=f"/{API_VERSION}")
    return app


app = create_app()
