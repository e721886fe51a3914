# backend/booking_engine/main.py
"""
FastAPI application for the booking engine.

Run locally with:
    uvicorn booking_engine.main:app --reload
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncIterator, Awaitable, Callable, Optional

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from . import __version__
from .core.config import settings
from .core.exceptions import DomainException
from .core.logging_config import configure_logging
from .core.request_context import reset_request_id, set_request_id
from .core.ulid_helper import generate_ulid
from .database import init_db
from .monitoring.prometheus_metrics import prometheus_metrics
from .routes.booking import router as booking_router

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


async def _domain_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback for domain errors raised outside a route's own handling."""
    if not isinstance(exc, DomainException):
        raise exc
    logger.warning(
        "Unhandled domain exception",
        extra={"path": request.url.path, "error_code": exc.code},
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()})


def create_app(*, create_tables: Optional[bool] = None) -> FastAPI:
    configure_logging()
    should_create = settings.environment == "local" if create_tables is None else create_tables

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if should_create:
            init_db()
        yield

    app = FastAPI(title="Booking Engine", version=__version__, lifespan=lifespan)

    @app.middleware("http")
    async def attach_request_id(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or generate_ulid()
        token = set_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            reset_request_id(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    app.add_exception_handler(DomainException, _domain_exception_handler)
    app.include_router(booking_router)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "environment": settings.environment}

    @app.get("/metrics")
    def metrics() -> Response:
        return Response(content=prometheus_metrics.export(), media_type="text/plain; version=0.0.4")

    return app


app = create_app()
