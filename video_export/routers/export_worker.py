"""
Export Worker Router
Cron-triggered batch processing of pending export jobs and a queue status check.
"""

import hmac
from datetime import datetime

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..config import Settings, get_settings
from ..services.export_worker import ExportWorker, get_export_worker
from ..services.job_store import JobStore, get_job_store
from ..utils.logger import get_logger

router = APIRouter(prefix="/api/video", tags=["export-worker"])
logger = get_logger()


def _extract_cron_secret(request: Request) -> str:
    secret = request.headers.get("x-cron-secret", "").strip()
    if secret:
        return secret

    auth_header = request.headers.get("authorization", "")
    if auth_header.lower().startswith("bearer "):
        return auth_header.split(" ", 1)[1].strip()
    return ""


async def _requested_limit(request: Request, settings: Settings) -> int:
    limit = settings.export_default_batch_size
    try:
        body = await request.json()
    except ValueError:
        # No body or invalid JSON
        return limit

    value = body.get("limit") if isinstance(body, dict) else None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return limit
    # JSON clients may send 5.0 for 5
    if isinstance(value, float) and not value.is_integer():
        return limit
    if value > 0:
        limit = min(int(value), settings.export_max_batch_size)
    return limit


@router.post("/export-worker")
async def trigger_export_worker(
    request: Request,
    settings: Settings = Depends(get_settings),
    worker: ExportWorker = Depends(get_export_worker),
):
    """Process a batch of pending export jobs."""
    if not settings.cron_secret:
        logger.warning("CRON_SECRET not configured - export worker endpoint is unprotected")
    elif not hmac.compare_digest(_extract_cron_secret(request), settings.cron_secret):
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})

    limit = await _requested_limit(request, settings)
    logger.info(f"Export worker triggered, processing up to {limit} jobs")

    try:
        result = await worker.process_all_pending_jobs(limit)
    except Exception as exc:
        logger.exception(f"Export worker error: {exc}")
        return JSONResponse(status_code=500, content={"error": str(exc) or "Unknown error"})

    return {
        "processed": result.processed,
        "succeeded": result.succeeded,
        "failed": result.failed,
        "results": [
            {
                "jobId": item.job_id,
                "success": item.success,
                "outputCount": len(item.outputs),
                "error": item.error,
            }
            for item in result.results
        ],
    }


@router.get("/export-worker")
async def export_worker_status(store: JobStore = Depends(get_job_store)):
    """Report how many export jobs are waiting."""
    try:
        pending = await store.count_pending()
    except Exception as exc:
        logger.exception(f"Export worker status error: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "error": str(exc) or "Unknown error",
                "pendingJobs": 0,
                "timestamp": datetime.utcnow().isoformat(),
            },
        )

    return {
        "status": "ok",
        "pendingJobs": pending,
        "timestamp": datetime.utcnow().isoformat(),
    }
