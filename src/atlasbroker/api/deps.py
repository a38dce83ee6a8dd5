from __future__ import annotations

from fastapi import HTTPException, Request, status

from atlasbroker.broker import Broker


def get_broker(request: Request) -> Broker:
    broker: Broker | None = getattr(request.app.state, "broker", None)
    if broker is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="broker is not initialized",
        )
    return broker
