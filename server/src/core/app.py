from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI
from starlette.middleware.base import BaseHTTPMiddleware

from server.src.core.logging import get_logger

from ..api.routes import debug, health, loggers, status
from ..config import Settings
from ..services.poller import PollService
from ..services.snapshot_store import SnapshotStore

logger = get_logger(__name__)


class RequestFinishMiddleware(BaseHTTPMiddleware):
    """Emit one line per finished request on the `api.call` logger.

    Only active when that logger is enabled for DEBUG, so it can be toggled
    through logging configuration or the admin loggers endpoint.
    """

    async def dispatch(self, request, call_next):
        start = time.time()
        response = await call_next(request)
        access_logger = logging.getLogger("api.call")
        if access_logger.isEnabledFor(logging.DEBUG):
            client = request.client
            client_addr = client.host if client else "-"
            full_path = request.url.path or "/"
            if request.url.query:
                full_path = f"{full_path}?{request.url.query}"
            access_logger.debug(
                "Finished %s %s %s %s in %.3fms",
                client_addr,
                request.method,
                full_path,
                response.status_code,
                (time.time() - start) * 1000.0,
            )
        return response


def create_app(
    settings: Optional[Settings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Construct the FastAPI application with configured lifespan hooks.

    `transport` is handed to the poll service's HTTP client, which lets tests
    run the whole pipeline against an in-process upstream.
    """
    settings = settings or Settings()
    store = SnapshotStore()
    poll_service = PollService(settings, store, transport=transport)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Upstream RPC endpoint: %s", settings.rpc_endpoint)
        await poll_service.start()
        try:
            yield
        finally:
            await poll_service.stop()

    app = FastAPI(
        title="Statusgate",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url=None,
        openapi_url="/openapi.json",
    )
    app.add_middleware(RequestFinishMiddleware)

    # Expose state early so request handlers work even when lifespan hooks are
    # bypassed (e.g. httpx.ASGITransport in tests).
    app.state.settings = settings
    app.state.snapshot_store = store
    app.state.poll_service = poll_service

    app.include_router(status.router)
    app.include_router(health.router)
    app.include_router(debug.router)
    app.include_router(loggers.router)

    return app
