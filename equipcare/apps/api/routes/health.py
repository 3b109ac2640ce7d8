from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from equipcare.apps.api.deps import Principal, require_role
from equipcare.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from equipcare.apps.api.response import SuccessEnvelope, success_response
from equipcare.persistence.db import pool_stats
from equipcare.services.telemetry import counters_snapshot, external_call_stats, request_stats

router = APIRouter(tags=["health"], responses=DEFAULT_ERROR_RESPONSES)


class HealthResponse(BaseModel):
    status: str


@router.get("/health", response_model=SuccessEnvelope[HealthResponse])
async def health(request: Request) -> dict:
    return success_response(request=request, data=HealthResponse(status="ok"))


@router.get("/ops/metrics")
async def ops_metrics(
    request: Request,
    principal: Principal = Depends(require_role("admin")),
) -> dict:
    # Process-local counters and latency summaries for the last five minutes.
    _ = principal
    return success_response(
        request=request,
        data={
            "counters": counters_snapshot(),
            "requests": request_stats(300),
            "external_calls": external_call_stats(300),
            "db_pool": pool_stats(),
        },
    )
