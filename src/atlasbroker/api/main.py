from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from atlasbroker import __version__
from atlasbroker.api.routes import health
from atlasbroker.broker import Broker
from atlasbroker.config import Settings, get_settings
from atlasbroker.logging import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = app.state.settings
    configure_logging(settings.log_level)

    owns_broker = getattr(app.state, "broker", None) is None
    if owns_broker:
        app.state.broker = Broker.from_settings(settings)
    yield
    if owns_broker:
        await app.state.broker.close()


def create_app(settings: Settings | None = None, broker: Broker | None = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="Atlas Broker",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.broker = broker

    app.include_router(health.router, tags=["health"])
    return app
