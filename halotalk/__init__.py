# Uvicorn application factory <https://www.uvicorn.org/#application-factories>
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from halotalk.connection_registry import ConnectionRegistry
from halotalk.logging import logger
from halotalk.managers.chat_broadcaster import ChatBroadcaster
from halotalk.managers.websocket_connection_manager import ConnectionManager
from halotalk.middlewares.correlation_id import CorrelationIDMiddleware
from halotalk.routing import collect_subrouters
from halotalk.settings import app_settings


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan.

    Startup creates the presence registry and the broadcaster that owns
    it; shutdown closes every live socket first and then ends the
    registry's lifecycle. Nothing re-creates the registry afterwards.
    """
    logger.info("Application startup initiated")

    registry = ConnectionRegistry()
    connections = ConnectionManager()
    app.state.broadcaster = ChatBroadcaster(registry, connections)
    logger.info("Created connection registry")

    try:
        yield
    finally:
        logger.info("Application shutdown initiated")
        await connections.close_all()
        registry.close()
        logger.info("Application shutdown complete")


def application() -> FastAPI:
    """
    Initializes and configures the FastAPI application.

    - Routers collected by `halotalk.routing.collect_subrouters()`: the
      entry page, the health check and the chat WebSocket.
    - Static assets from PUBLIC_DIR under /static, when the directory exists.
    - `CorrelationIDMiddleware` for HTTP requests and WebSocket upgrades.
    """
    app = FastAPI(
        title="HaloTalk",
        description="Real-time chat room with presence tracking",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.include_router(collect_subrouters())

    if os.path.isdir(app_settings.PUBLIC_DIR):
        app.mount(
            "/static",
            StaticFiles(directory=app_settings.PUBLIC_DIR),
            name="static",
        )

    app.add_middleware(CorrelationIDMiddleware)

    return app


app = application()  # Need for fastapi cli
