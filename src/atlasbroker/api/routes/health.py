from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from atlasbroker import __version__
from atlasbroker.api.deps import get_broker
from atlasbroker.broker import Broker

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str = __version__


class ReadinessResponse(BaseModel):
    status: str
    plans: int
    state_store: str


@router.get("/health", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health_check() -> HealthResponse:
    """Basic health check endpoint."""
    return HealthResponse(status="healthy")


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(
    response: Response,
    broker: Broker = Depends(get_broker),  # noqa: B008
) -> ReadinessResponse:
    """Readiness check: catalog loaded and state store reachable."""
    store_status = "connected" if await broker.store.ping() else "disconnected"
    plans = len(broker.catalog)

    ready = store_status == "connected" and plans > 0
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(
        status="ready" if ready else "not_ready",
        plans=plans,
        state_store=store_status,
    )
