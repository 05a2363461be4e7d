"""
FastAPI application entry point.

This module creates and configures the FastAPI application using an
application factory (create_app), so tests can build an app against
their own settings.

For local development:
    STORAGE_MOCK_MODE=true uvicorn src.main:app --reload

For production:
    gunicorn src.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles

from . import __version__
from .api.routes import buckets, folders, health, objects
from .config.buckets import BucketConfigError, load_bucket_configs
from .config.settings import get_settings

STATIC_DIR = Path(__file__).parent / "static"

# SDK loggers are chatty at INFO
for _noisy in ("botocore", "boto3", "s3transfer", "urllib3"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the configuration on startup. Problems are logged, not fatal."""
    settings = get_settings()

    logger.info(
        "Bucket Browser starting",
        extra={"version": settings.api_version, "mock_mode": settings.storage_mock_mode},
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields},
        )

    try:
        configs = load_bucket_configs(settings)
        logger.info(
            "Buckets configured",
            extra={"buckets": [f"{c.id} ({c.provider})" for c in configs]},
        )
    except BucketConfigError as e:
        # every bucket route will answer 500 until this is fixed
        logger.error("Invalid bucket configuration", extra={"error": str(e)})

    yield

    logger.info("Bucket Browser shutting down")


def create_app() -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title=settings.api_title,
        version=__version__,
        description="""
        File manager for S3-compatible buckets (Cloudflare R2 and AWS S3).

        Browse folders, upload, download, preview and delete objects across
        every configured bucket. Folders are emulated with key prefixes.

        ## Authentication

        None. Put the service behind your own access control.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        buckets.router,
        prefix="/api/buckets",
        tags=["Buckets"],
    )

    app.include_router(
        objects.router,
        prefix="/api/buckets/{bucket_id}/objects",
        tags=["Objects"],
    )

    app.include_router(
        folders.router,
        prefix="/api/buckets/{bucket_id}/folders",
        tags=["Folders"],
    )

    if STATIC_DIR.is_dir():
        app.mount("/ui", StaticFiles(directory=STATIC_DIR, html=True), name="ui")

    @app.get("/", include_in_schema=False)
    async def root():
        """Send browsers to the file manager UI."""
        return RedirectResponse(url="/ui/")

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request, exc: RequestValidationError):
        """Malformed requests are client errors: 400 with the first problem."""
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", "Invalid request")
        logger.info(
            "Rejected invalid request",
            extra={"path": request.url.path, "errors": len(errors)},
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": f"{location}: {message}" if location else message},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """
        Catch-all exception handler.

        The full error is logged server-side; the client gets a generic message.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


app = create_app()
