"""
CourierDesk — Delivery Request Marketplace API

App assembly: lifespan (logging, schema sync, email outbox loop),
middleware (request id, catch-all 500), exception handlers that render
ErrorResponse, and router mounts.

Run:  uvicorn courierdesk.main:app --reload
"""

import asyncio
import contextlib
import os
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .database import SessionLocal
from .email_service import run_outbox_loop
from .errors import CourierDeskError, InvalidTransitionError
from .http_client import close_clients
from .logging_config import setup_logging
from .rate_limit import limiter
from .realtime import RoomHub
from .routers import admin, events, notifications, pricing, requests, resolutions
from .schemas.errors import ErrorResponse
from .services.notifier import LiveNotifier
from .startup import run_startup_migrations

APP_VERSION = "1.0.0"


# ── Lifespan ─────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    run_startup_migrations()

    outbox_task = None
    if settings.email_api_key and not os.environ.get("TESTING"):
        outbox_task = asyncio.create_task(run_outbox_loop(SessionLocal))
    logger.info("CourierDesk {} started", APP_VERSION)
    yield
    if outbox_task:
        outbox_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await outbox_task
    await close_clients()


app = FastAPI(title="CourierDesk", version=APP_VERSION, lifespan=lifespan)
app.state.limiter = limiter
app.state.hub = RoomHub(queue_size=settings.event_queue_size)
app.state.notifier = LiveNotifier(app.state.hub, SessionLocal)


# ── Middleware ───────────────────────────────────────────────────────


@app.middleware("http")
async def catch_unhandled(request: Request, call_next):
    """Store faults and bugs become a logged, generic 500."""
    try:
        return await call_next(request)
    except Exception as err:
        logger.exception(
            "Unhandled {} on {} {}", type(err).__name__, request.method, request.url.path
        )
        return _error(request, 500, "Internal server error", "internal_error")


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = str(uuid.uuid4())[:8]
    request.state.request_id = request_id
    start = time.perf_counter()
    with logger.contextualize(request_id=request_id):
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug("{} {} -> {} ({:.1f}ms)", request.method, request.url.path, response.status_code, elapsed_ms)
    response.headers["X-Request-ID"] = request_id
    return response


# ── Exception handlers ───────────────────────────────────────────────


def _error(request: Request, status_code: int, message: str, code: str, detail=None, headers=None):
    body = ErrorResponse(
        error=message,
        status_code=status_code,
        code=code,
        request_id=getattr(request.state, "request_id", ""),
        detail=detail,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


@app.exception_handler(CourierDeskError)
async def courierdesk_error_handler(request: Request, exc: CourierDeskError):
    detail = None
    if isinstance(exc, InvalidTransitionError):
        detail = {"current": exc.current, "requested": exc.requested}
    if exc.status_code >= 409:
        logger.info("{} {}: {}", exc.code, request.url.path, exc.message)
    return _error(request, exc.status_code, exc.message, exc.code, detail)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error(request, exc.status_code, str(exc.detail), "http_error", headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return _error(request, 422, "Validation error", "validation_error", jsonable_encoder(exc.errors()))


app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# ── Routes ───────────────────────────────────────────────────────────


@app.get("/health")
async def health():
    return {"status": "ok", "version": APP_VERSION}


app.include_router(requests.router)
app.include_router(resolutions.router)
app.include_router(pricing.router)
app.include_router(events.router)
app.include_router(notifications.router)
app.include_router(admin.router)
