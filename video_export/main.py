"""
Video Export Service
Main FastAPI Application Entry Point
"""

from pathlib import Path
from contextlib import asynccontextmanager

import aiosqlite
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .config import get_settings
from .routers import exports_router, edit_router, export_worker_router
from .services.export_poller import ExportPoller
from .services.export_worker import get_export_worker
from .services.job_store import get_job_store
from .utils.exceptions import VideoExportError
from .utils.logger import setup_logger


# Set up logging
logger = setup_logger(debug=get_settings().debug)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    settings = get_settings()

    # Create required directories
    Path(settings.output_dir).mkdir(parents=True, exist_ok=True)
    Path(settings.data_dir).mkdir(parents=True, exist_ok=True)

    await get_job_store().initialize()

    logger.info("=" * 60)
    logger.info(f"{settings.app_name} v{settings.app_version}")
    logger.info("=" * 60)
    logger.info(f"Output directory: {settings.output_dir}")
    logger.info(f"Data directory: {settings.data_dir}")
    logger.info(f"Worker concurrency: {settings.export_worker_concurrency}")
    logger.info(f"Max jobs per batch: {settings.export_max_batch_size}")

    if settings.aws_access_key_id and settings.s3_bucket_name:
        logger.info("[OK] AWS S3 configured")
    else:
        logger.info("[-] AWS S3 not configured (exports served from /output)")

    if settings.cron_secret:
        logger.info("[OK] Export worker trigger protected by CRON_SECRET")
    else:
        logger.warning("[!] CRON_SECRET not set, export worker trigger is unprotected")

    if settings.api_key:
        logger.info("[OK] API key authentication enabled")
    else:
        logger.warning("[!] API key authentication disabled")

    poller = None
    if settings.export_poll_interval > 0:
        poller = ExportPoller(
            get_export_worker(),
            interval=settings.export_poll_interval,
            batch_size=settings.export_default_batch_size,
        )
        poller.start()
    else:
        logger.info("[-] In-process polling disabled, waiting for external triggers")

    logger.info("=" * 60)

    yield

    if poller:
        await poller.stop()
    logger.info(f"Shutting down {settings.app_name}...")


# Create FastAPI app
app = FastAPI(
    title="VideoExport",
    description="Export job queue and render worker for edited videos",
    version=get_settings().app_version,
    lifespan=lifespan
)

# CORS middleware
settings = get_settings()
cors_origins = settings.cors_allowed_origins or ["http://localhost:8000", "http://127.0.0.1:8000"]
cors_allow_credentials = "*" not in cors_origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


PUBLIC_PATHS = {
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
    # Guarded by CRON_SECRET instead
    "/api/video/export-worker",
}
PUBLIC_PREFIXES = ("/output",)


def _extract_api_key(request: Request) -> str:
    api_key = request.headers.get("x-api-key", "").strip()
    if api_key:
        return api_key

    auth_header = request.headers.get("authorization", "")
    if auth_header.lower().startswith("bearer "):
        return auth_header.split(" ", 1)[1].strip()
    return ""


@app.middleware("http")
async def api_key_auth_middleware(request: Request, call_next):
    settings = get_settings()
    if not settings.api_key:
        return await call_next(request)

    path = request.url.path
    if path in PUBLIC_PATHS or any(path.startswith(prefix) for prefix in PUBLIC_PREFIXES):
        return await call_next(request)

    provided_key = _extract_api_key(request)
    if provided_key != settings.api_key:
        return JSONResponse(
            status_code=401,
            content={"detail": "Unauthorized: invalid or missing API key"},
        )

    return await call_next(request)


# ============================================================================
# Global Exception Handlers
# ============================================================================

@app.exception_handler(VideoExportError)
async def video_export_exception_handler(request: Request, exc: VideoExportError):
    """Handle all export service exceptions"""
    if exc.status_code >= 500:
        logger.error(f"VideoExportError [{exc.code}]: {exc.message}")
    else:
        logger.warning(f"VideoExportError [{exc.code}]: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report malformed request bodies as itemized 400s"""
    errors = [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]
    logger.warning(f"Request validation failed: {errors}")
    return JSONResponse(
        status_code=400,
        content={
            "error": "VALIDATION_ERROR",
            "message": "Malformed request",
            "recoverable": True,
            "recovery_hint": "Check your input parameters and try again.",
            "details": {"errors": errors},
        }
    )


@app.exception_handler(aiosqlite.OperationalError)
async def database_exception_handler(request: Request, exc: aiosqlite.OperationalError):
    """Database unavailable or locked"""
    logger.error(f"Database error: {exc}")
    return JSONResponse(
        status_code=503,
        content={
            "error": "DATABASE_UNAVAILABLE",
            "message": "Database temporarily unavailable",
            "recoverable": True,
            "recovery_hint": "Retry the request shortly."
        }
    )


@app.exception_handler(ValueError)
async def validation_exception_handler(request: Request, exc: ValueError):
    """Handle validation errors"""
    logger.warning(f"Validation error: {exc}")
    return JSONResponse(
        status_code=400,
        content={
            "error": "VALIDATION_ERROR",
            "message": str(exc),
            "recoverable": True,
            "recovery_hint": "Check your input parameters and try again."
        }
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle any unhandled exceptions"""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred. Please try again.",
            "recoverable": True,
            "recovery_hint": "If this persists, check the server logs for details."
        }
    )


# Include routers
app.include_router(export_worker_router)
app.include_router(exports_router)
app.include_router(edit_router)

# Static file serving for rendered exports
output_path = Path(settings.output_dir)
output_path.mkdir(parents=True, exist_ok=True)
app.mount("/output", StaticFiles(directory=str(output_path)), name="output")


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {"status": "healthy", "app": settings.app_name}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "video_export.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
