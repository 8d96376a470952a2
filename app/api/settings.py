"""Admin endpoints for per-type notification settings."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.domain.models import NotificationSettings, NotificationType
from app.logging import get_logger
from app.persistence import NotificationSettingsRepository, get_session
from app.runtime import Services
from app.utils.timestamps import utc_now

from .dependencies import ApiError, get_services, require_admin_auth
from .schemas import SettingsUpdateRequest

logger = get_logger(__name__, component="api")

router = APIRouter(
    prefix="/admin/notifications/settings",
    tags=["settings"],
    dependencies=[Depends(require_admin_auth)],
)


def serialize_settings(settings: NotificationSettings) -> dict:
    return settings.model_dump(mode="json")


def _notification_type(value: str) -> NotificationType:
    if not value or not value.strip():
        raise ApiError(400, "Invalid notification type")
    try:
        return NotificationType(value.strip())
    except ValueError:
        raise ApiError(404, "Notification type not found") from None


@router.get("")
def list_settings(services: Services = Depends(get_services)):
    defaults = services.app_config.settings_overrides()
    with get_session() as session:
        all_settings = NotificationSettingsRepository(session, defaults).list_all(utc_now())
    return JSONResponse({"settings": [serialize_settings(s) for s in all_settings]})


@router.get("/{notification_type}")
def get_settings(notification_type: str, services: Services = Depends(get_services)):
    resolved = _notification_type(notification_type)
    defaults = services.app_config.settings_overrides()
    with get_session() as session:
        settings = NotificationSettingsRepository(session, defaults).get_or_create(resolved, utc_now())
    return JSONResponse({"settings": serialize_settings(settings)})


@router.put("/{notification_type}")
def update_settings(
    notification_type: str,
    payload: SettingsUpdateRequest,
    services: Services = Depends(get_services),
):
    resolved = _notification_type(notification_type)
    changes = payload.changes()

    defaults = services.app_config.settings_overrides()
    with get_session() as session:
        settings = NotificationSettingsRepository(session, defaults).update(resolved, changes, utc_now())

    logger.info(
        f"Updated {resolved.value} settings: {', '.join(sorted(changes))}",
        extra={"event": "settings.updated", "notification_type": resolved.value, "fields": sorted(changes)},
    )

    if services.scheduler is not None:
        services.scheduler.sync_jobs()

    return JSONResponse({"settings": serialize_settings(settings)})
