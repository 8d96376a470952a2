"""Shared FastAPI dependencies."""

import hmac
from typing import Optional

from fastapi import Depends, Request

from app.logging import get_logger
from app.runtime import Services

logger = get_logger(__name__, component="api")


class ApiError(Exception):
    """Raised to answer with ``{"error": message}``. Handled in app.py."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def get_services(request: Request) -> Services:
    """Get the pipeline services from app state."""
    return request.app.state.services


def _bearer_matches(request: Request, secret: Optional[str]) -> bool:
    header = request.headers.get("authorization", "")
    if not secret or not header.startswith("Bearer "):
        return False
    return hmac.compare_digest(header[len("Bearer "):].strip(), secret)


def require_cron_auth(request: Request, services: Services = Depends(get_services)) -> None:
    """Cron callers present ``Bearer <CRON_SECRET>``; mock mode skips the check."""
    if services.env_config.use_mocks:
        return
    if not _bearer_matches(request, services.env_config.cron_secret):
        logger.warning(
            f"Rejected unauthorized cron request to {request.url.path}",
            extra={"event": "api.cron.unauthorized", "path": request.url.path},
        )
        raise ApiError(401, "Unauthorized")


def require_admin_auth(request: Request, services: Services = Depends(get_services)) -> None:
    """Admin callers present ``Bearer <ADMIN_API_TOKEN>`` when a token is configured."""
    token = services.env_config.admin_api_token
    if services.env_config.use_mocks or not token:
        return
    if not _bearer_matches(request, token):
        logger.warning(
            f"Rejected unauthorized admin request to {request.url.path}",
            extra={"event": "api.admin.unauthorized", "path": request.url.path},
        )
        raise ApiError(401, "Unauthorized")
