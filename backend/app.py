import logging
import re
import time
from typing import Dict
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from db import check_connection, init_db
from logging_config import bind_request_context, reset_request_context, setup_logging
from routers import admin, public
from settings import settings
from storage import s3
from utils import NO_STORE_HEADERS

setup_logging()
logger = logging.getLogger("kitreg.app")
request_logger = logging.getLogger("kitreg.requests")
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9\-_,.:]{4,128}$")
_EXCLUDED_PATHS = set(settings.REQUEST_LOG_EXCLUDE_PATHS)


def _resolve_client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "-"


app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION)
instrumentator = Instrumentator(excluded_handlers=["/metrics", "/health", "/healthz"])
instrumentator.instrument(app).expose(app, include_in_schema=False)

app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=settings.PROXY_TRUSTED_HOSTS)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    if request.url.path in _EXCLUDED_PATHS:
        return await call_next(request)

    raw_request_id = request.headers.get(settings.REQUEST_ID_HEADER, "")
    request_id = raw_request_id if _REQUEST_ID_PATTERN.match(raw_request_id) else uuid4().hex
    tokens = bind_request_context(request_id)
    request.state.request_id = request_id

    start_time = time.perf_counter()
    client_ip = _resolve_client_ip(request)
    user_agent = request.headers.get("user-agent", "-")

    try:
        response = await call_next(request)
    except Exception as exc:  # pragma: no cover - defensive logging path
        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        status_code = getattr(exc, "status_code", 500)
        request_logger.exception(
            "request_failed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": status_code,
                "duration_ms": duration_ms,
                "client_ip": client_ip,
                "user_agent": user_agent,
            },
        )
        raise
    else:
        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        response.headers.setdefault(settings.REQUEST_ID_HEADER, request_id)
        request_logger.info(
            "request_completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": duration_ms,
                "client_ip": client_ip,
                "user_agent": user_agent,
                "content_length": response.headers.get("content-length"),
            },
        )
        return response
    finally:
        reset_request_context(tokens)


# Public and admin API clients both expect failures as {"error": "..."}.
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    headers = {**NO_STORE_HEADERS, **(getattr(exc, "headers", None) or {})}
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", extra={"path": request.url.path})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "request_id": getattr(request.state, "request_id", None),
        },
    )


# DB init
init_db()


@app.on_event("startup")
async def on_startup() -> None:
    if settings.S3_ENSURE_BUCKET:
        try:
            s3.ensure_bucket_exists()
        except s3.S3StorageError:
            logger.warning("bucket_check_failed", extra={"bucket": settings.S3_BUCKET})
    logger.info(
        "startup_complete",
        extra={
            "environment": settings.ENV,
            "version": settings.APP_VERSION,
        },
    )


@app.get("/favicon.ico", include_in_schema=False)
async def favicon() -> Response:
    return Response(content=b"", media_type="image/x-icon")


# Routers
app.include_router(public.router, tags=["public"])
app.include_router(admin.router, tags=["admin"])


@app.get("/health", include_in_schema=False)
@app.get("/healthz", include_in_schema=False)
async def healthcheck() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/ready", include_in_schema=False)
def readiness_probe() -> JSONResponse:
    try:
        check_connection()
    except Exception:  # pragma: no cover - readiness diagnostics only
        logger.exception("readiness_check_failed")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unavailable"},
        )

    return JSONResponse(content={"status": "ok"})
