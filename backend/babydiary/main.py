"""
Baby Diary Backend — FastAPI Application Factory
==================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers, routers and
       (for the local storage backend) the /uploads static mount.
Who:   uvicorn imports `babydiary.main:app`; tests call create_app().

Application Architecture:
    ┌─────────────────────────────────────────────────────────┐
    │                      FastAPI App                        │
    │                                                         │
    │  Middleware:  Request ID → Logging → GZip → CORS        │
    │                                                         │
    │  Routes:                                                │
    │    /api/auth/*   /api/posts/*   /api/comments/*         │
    │    /api/upload/files            /health   /uploads/*    │
    │                                                         │
    │  Exception Handlers (uniform error envelope):           │
    │    ValidationError, RequestValidationError → 400        │
    │    Unauthorized 401 │ Forbidden 403 │ NotFound 404      │
    │    Conflict 409     │ storage / database / other → 500  │
    └─────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging → configuration check → upload directories
    Shutdown: dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from babydiary import __version__
from babydiary.config import settings
from babydiary.database import dispose_engine
from babydiary.exceptions import (
    DatabaseError,
    DiaryError,
    FileStorageError,
    ValidationError,
)
from babydiary.middleware.logging import RequestLoggingMiddleware
from babydiary.middleware.request_id import RequestIDMiddleware, request_id_var
from babydiary.routes import auth, comments, health, posts, upload
from babydiary.services.storage import IMAGES, THUMBNAILS, VIDEOS

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the whole process.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s, to stdout
    (Docker captures stdout). Level comes from LOG_LEVEL.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party loggers that are chatty at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)
    logging.getLogger("multipart").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("Baby Diary Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: health checks and local development still work
        logger.error("Configuration error: %s", str(e))

    if settings.storage_backend == "local":
        root = Path(settings.upload_root)
        for folder in (IMAGES, VIDEOS, THUMBNAILS):
            (root / folder).mkdir(parents=True, exist_ok=True)
        logger.info("Upload directory: %s", root.resolve())
    else:
        logger.info("Upload bucket: %s", settings.s3_bucket)

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Baby Diary Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def error_body(error: str, message: str, errors: Optional[List[str]] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "error": error, "message": message}
    if errors:
        body["errors"] = errors
    return body


def _format_validation_errors(exc: RequestValidationError) -> List[str]:
    messages = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path"))
        messages.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return messages


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions to HTTP status codes and the error envelope.

    Handler hierarchy:
        ValidationError          → 400 (+ errors)
        RequestValidationError   → 400 (+ one message per failed field)
        DatabaseError            → 500, generic message
        FileStorageError         → 500
        DiaryError (base)        → exc.status_code (401/403/404/409/...)
        HTTPException            → its status (unknown route, wrong method)
        Exception (fallback)     → 500 internal_server_error

    Responses never contain `context`, stack traces or SQL; those go to the log.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        rid = request_id_var.get("")
        logger.warning("[%s] Validation error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.error_code, exc.message, exc.errors),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        rid = request_id_var.get("")
        errors = _format_validation_errors(exc)
        logger.warning("[%s] Request validation failed: %s", rid, "; ".join(errors))
        return JSONResponse(
            status_code=400,
            content=error_body("validation_error", "Invalid input data", errors),
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        rid = request_id_var.get("")
        logger.error("[%s] Database error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content=error_body("server_error", "An internal error occurred. Please try again later."),
        )

    @app.exception_handler(FileStorageError)
    async def handle_file_storage_error(request: Request, exc: FileStorageError):
        rid = request_id_var.get("")
        logger.error("[%s] File storage error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content=error_body("server_error", exc.message),
        )

    @app.exception_handler(DiaryError)
    async def handle_diary_error(request: Request, exc: DiaryError):
        rid = request_id_var.get("")
        if exc.status_code >= 500:
            logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        else:
            logger.warning("[%s] %s: %s", rid, type(exc).__name__, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.error_code, exc.message),
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        error = "not_found" if exc.status_code == 404 else "http_error"
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(error, str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="Baby Diary API",
        description=(
            "Family photo and video diary. Members of a family share posts, "
            "comments and likes; uploads are resized and thumbnailed on the way in."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(auth.router)
    app.include_router(posts.router)
    app.include_router(comments.router)
    app.include_router(upload.router)
    app.include_router(health.router)

    if settings.storage_backend == "local":
        # check_dir=False: the lifespan creates the directory
        app.mount(
            "/" + settings.public_upload_path.strip("/"),
            StaticFiles(directory=settings.upload_root, check_dir=False),
            name="uploads",
        )

    return app


# uvicorn babydiary.main:app
app = create_app()
