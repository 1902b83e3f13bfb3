from __future__ import annotations
import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from alunas.config.settings import get_settings
from alunas.logging_utils import RequestLoggingMiddleware, setup_logging
from alunas.repositories.alunas_repo import BackendError
from alunas.routers import alunas as alunas_router
from alunas.services.supabase_service import assert_supabase_ready

settings = get_settings()
VERSION = settings.VERSION
BASE = settings.BASE

setup_logging(settings.LOG_LEVEL, json_logs=settings.LOG_JSON)
logger = logging.getLogger("alunas.api")


# ---------------------------
# App & middleware
# ---------------------------
app = FastAPI(title="Alunas API", version=VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware, log_requests=settings.LOG_REQUESTS)

app.include_router(alunas_router.router, prefix=BASE)


@app.get("/health", response_class=PlainTextResponse)
async def health() -> str:
    return "ok"


@app.get("/version", response_class=PlainTextResponse)
async def version() -> str:
    return VERSION


# ---------------------------
# Error handlers
# ---------------------------
def _structured_error(
    request: Request, error: str, message: str, status_code: int
) -> JSONResponse:
    cid = getattr(request.state, "correlation_id", None) or uuid.uuid4().hex
    return JSONResponse(
        status_code=status_code,
        content={
            "ok": False,
            "error": error,
            "message": message,
            "correlation_id": cid,
        },
    )


@app.exception_handler(BackendError)
async def backend_error_handler(request: Request, exc: BackendError):
    logger.error(
        "backend error on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        extra={"event": {"code": exc.code, "details": exc.details}},
    )
    return _structured_error(request, "BackendError", str(exc), 502)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return _structured_error(request, exc.__class__.__name__, str(exc), 500)


# ---------------------------
# Lifespan hooks (light)
# ---------------------------
@app.on_event("startup")
async def on_startup():
    if settings.ALUNAS_REQUIRE_DB:
        assert_supabase_ready()
    logger.info("alunas api %s ready (base=%s)", VERSION, BASE)
