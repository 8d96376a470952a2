"""Admin log viewer and manual resend."""

import math
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from app.domain.models import Channel, NotificationLog, NotificationStatus, NotificationType
from app.notifications import ResendNotAllowedError
from app.persistence import (
    NotificationLogRepository,
    NotificationSettingsRepository,
    RecordNotFoundError,
    get_session,
)
from app.runtime import Services
from app.utils.timestamps import utc_now

from .dependencies import ApiError, get_services, require_admin_auth
from .validation import parse_date_filter, parse_enum_filter, parse_positive_int

router = APIRouter(prefix="/admin/notifications/log", tags=["logs"], dependencies=[Depends(require_admin_auth)])

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100


def serialize_log(log: NotificationLog, max_retries: Dict[NotificationType, int]) -> dict:
    """Log row as JSON, flagged ``exhausted`` once no automatic retry remains."""
    data = log.model_dump(mode="json")
    data["exhausted"] = log.is_exhausted(max_retries[log.type])
    return data


def _max_retries(session, services: Services) -> Dict[NotificationType, int]:
    repo = NotificationSettingsRepository(session, services.app_config.settings_overrides())
    return {settings.notification_type: settings.max_retries for settings in repo.list_all(utc_now())}


@router.get("")
def list_logs(
    notification_type: Optional[str] = Query(None, alias="type"),
    channel: Optional[str] = None,
    status: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    search: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    services: Services = Depends(get_services),
):
    page_number = parse_positive_int(page, 1, "Invalid page parameter. Must be a positive integer.")
    page_size = parse_positive_int(
        limit,
        DEFAULT_PAGE_SIZE,
        f"Invalid limit parameter. Must be between 1 and {MAX_PAGE_SIZE}.",
        maximum=MAX_PAGE_SIZE,
    )
    filters = dict(
        notification_type=parse_enum_filter(NotificationType, notification_type, "Invalid type parameter."),
        channel=parse_enum_filter(
            Channel, channel, 'Invalid channel parameter. Must be either "email" or "sms".'
        ),
        status=parse_enum_filter(
            NotificationStatus,
            status,
            'Invalid status parameter. Must be one of: "sent", "failed", "pending".',
        ),
        start=parse_date_filter(start_date, "start_date"),
        end=parse_date_filter(end_date, "end_date"),
        search=search.strip() if search and search.strip() else None,
    )

    with get_session() as session:
        rows, total = NotificationLogRepository(session).list_filtered(
            page=page_number, limit=page_size, **filters
        )
        max_retries = _max_retries(session, services)

    return JSONResponse(
        {
            "logs": [serialize_log(row, max_retries) for row in rows],
            "metadata": {
                "total": total,
                "page": page_number,
                "limit": page_size,
                "total_pages": math.ceil(total / page_size) if total else 0,
            },
        }
    )


@router.get("/{log_id}")
def get_log(log_id: str, services: Services = Depends(get_services)):
    with get_session() as session:
        log = NotificationLogRepository(session).get(log_id)
        max_retries = _max_retries(session, services)
    if log is None:
        raise ApiError(404, "Notification log entry not found")
    return JSONResponse({"log": serialize_log(log, max_retries)})


@router.post("/{log_id}/resend")
def resend_log(log_id: str, services: Services = Depends(get_services)):
    try:
        outcome = services.notification_service.resend(log_id)
    except RecordNotFoundError:
        raise ApiError(404, "Original notification log entry not found") from None
    except ResendNotAllowedError as e:
        raise ApiError(400, str(e)) from None

    if not outcome.success:
        return JSONResponse(
            {"success": False, "new_log_id": outcome.log_id, "error": outcome.error},
            status_code=500,
        )

    return JSONResponse(
        {"success": True, "new_log_id": outcome.log_id, "message": "Notification resent successfully"}
    )
