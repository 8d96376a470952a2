"""FastAPI application factory."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.logging import get_logger
from app.persistence import PersistenceError
from app.runtime import Services
from app.utils.timestamps import utc_now

from .admin import router as admin_router
from .cron import router as cron_router
from .dependencies import ApiError
from .logs import router as logs_router
from .schemas import error_message
from .settings import router as settings_router
from .validation import RequestValidationFailed

logger = get_logger(__name__, component="api")


def create_app(services: Services) -> FastAPI:
    """
    Create the HTTP application around already built services.

    The scheduler, when attached to ``services``, is started and stopped
    with the application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if services.scheduler is not None:
            services.scheduler.start()
        logger.info(
            "HTTP API started",
            extra={"event": "api.started", "scheduler": services.scheduler is not None},
        )
        yield
        if services.scheduler is not None:
            services.scheduler.shutdown(wait=False)
        logger.info("HTTP API stopped", extra={"event": "api.stopped"})

    app = FastAPI(title="Puppy Day Notifications", lifespan=lifespan)
    app.state.services = services

    # --- Exception handlers ---
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationFailed)
    async def validation_failed_handler(request: Request, exc: RequestValidationFailed):
        return JSONResponse({"error": exc.message}, status_code=400)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse({"error": error_message(exc.errors())}, status_code=400)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code)

    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(request: Request, exc: PersistenceError):
        logger.error(
            f"Datastore error on {request.method} {request.url.path}: {exc}",
            extra={"event": "api.persistence_error", "path": request.url.path},
        )
        return JSONResponse(
            {"success": False, "error": str(exc), "timestamp": utc_now().isoformat()},
            status_code=500,
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception on {request.method} {request.url.path}")
        return JSONResponse({"success": False, "error": "Internal server error"}, status_code=500)

    app.include_router(cron_router)
    app.include_router(settings_router)
    app.include_router(logs_router)
    app.include_router(admin_router)

    @app.get("/health")
    def health():
        return {"status": "ok", "mocks": services.env_config.use_mocks}

    return app
