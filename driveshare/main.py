import importlib
import logging
import uuid

import sentry_sdk
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from redis.exceptions import RedisError
from sentry_sdk.integrations.asgi import SentryAsgiMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from driveshare.config import settings
from driveshare.exceptions import (
    ReservationError,
    generic_exception_handler,
    http_exception_handler,
    reservation_error_handler,
    validation_exception_handler,
)
from driveshare.logging_setup import TRACE_ID_CTX, setup_logging
from driveshare.redis_client import redis_client

logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)

# initialize logging and Sentry
setup_logging(settings.LOG_LEVEL)
if settings.SENTRY_DSN:
    sentry_sdk.init(dsn=settings.SENTRY_DSN)
    app.add_middleware(SentryAsgiMiddleware)

app.add_exception_handler(ReservationError, reservation_error_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.middleware("http")
async def add_trace_id(request: Request, call_next):
    trace_id = request.headers.get("x-trace-id") or str(uuid.uuid4())
    TRACE_ID_CTX.set(trace_id)
    response = await call_next(request)
    response.headers["X-Trace-Id"] = trace_id
    return response

# modules mounted under /<name>
MODULES = [
    "trips",
    "bookings",
]


for mod in MODULES:
    pkg = importlib.import_module(f"driveshare.modules.{mod}.router")
    app.include_router(pkg.router, prefix=f"/{mod}")


@app.get("/")
async def root():
    return {"app": settings.APP_NAME, "status": "ok"}


@app.get("/metrics")
async def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/ready")
async def ready():
    # readiness: the Celery broker must be reachable
    try:
        await redis_client.ping()
    except RedisError:
        logger.warning("Readiness check failed: redis unavailable")
        return Response(status_code=503, content="redis unavailable")
    return {"status": "ready"}
