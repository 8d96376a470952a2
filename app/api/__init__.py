"""HTTP API: cron triggers and the admin endpoints."""

from .app import create_app
from .dependencies import ApiError

__all__ = ["create_app", "ApiError"]
