"""Cron trigger endpoints for the scheduled notification jobs."""

from typing import Any, Callable, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.logging import get_logger
from app.runtime import Services
from app.utils.timestamps import utc_now

from .dependencies import get_services, require_cron_auth

logger = get_logger(__name__, component="api")

router = APIRouter(prefix="/cron/notifications", tags=["cron"], dependencies=[Depends(require_cron_auth)])


def _run_job(job: str, run: Callable[[], Any]) -> JSONResponse:
    try:
        result = run()
    except Exception as e:
        logger.error(
            f"Cron job {job} failed: {e}",
            exc_info=True,
            extra={"event": "api.cron.failed", "job": job, "error_type": type(e).__name__},
        )
        body: Dict[str, Any] = {"success": False, "error": str(e), "timestamp": utc_now().isoformat()}
        return JSONResponse(body, status_code=500)

    return JSONResponse(result.to_response())


@router.api_route("/reminders", methods=["GET", "POST"])
def trigger_reminders(services: Services = Depends(get_services)):
    return _run_job("reminders", services.runner.run_reminders)


@router.api_route("/retention", methods=["GET", "POST"])
def trigger_retention(services: Services = Depends(get_services)):
    return _run_job("retention", services.runner.run_retention)


@router.api_route("/retry", methods=["GET", "POST"])
def trigger_retry(services: Services = Depends(get_services)):
    return _run_job("retry", services.retry_processor.run)
