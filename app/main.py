"""Main entry point for the Puppy Day notification service."""

from dotenv import load_dotenv
load_dotenv()

import argparse
import sys
import time
from pathlib import Path
from typing import Optional, Tuple

import uvicorn

from app.config.environment import EnvironmentConfig
from app.config.exceptions import ConfigurationError
from app.config.loader import load_config
from app.config.models import AppConfig
from app.logging import get_logger
from app.logging.config import configure_logging
from app.persistence.database import close_database, init_database
from app.runtime import Services, build_scheduler, build_services

logger = get_logger(__name__, component="cli")

JOBS = ("reminders", "retention", "retry")


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load configuration and settle the effective log level.

    Priority: CLI flag, then LOG_LEVEL, then the config file.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override
    elif not env_config.log_level:
        env_config.log_level = app_config.logging.level or "INFO"

    return app_config, env_config


def run_job(services: Services, job: str) -> int:
    """Run one job synchronously; non-zero exit when anything failed."""
    if job == "retry":
        result = services.retry_processor.run()
        failed = result.failed
    elif job == "retention":
        result = services.runner.run_retention()
        failed = result.failed
    else:
        result = services.runner.run_reminders()
        failed = result.failed

    logger.info(
        f"Job {job} finished: {result.to_response()}",
        extra={"event": "service.job.completed", "job": job, "failed": failed},
    )
    return 1 if failed else 0


def main(argv=None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    start_time = time.time()
    parser = argparse.ArgumentParser(
        description="Puppy Day notifications - reminders, retention, waitlist offers and retries"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml if present)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )
    parser.add_argument(
        "--run-job",
        choices=JOBS,
        default=None,
        help="Run a single job immediately and exit",
    )
    parser.add_argument("--host", default="127.0.0.1", help="HTTP bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="HTTP port (default: 8000)")
    parser.add_argument(
        "--no-scheduler",
        action="store_true",
        help="Serve the HTTP API without the in-process scheduler (jobs only run via cron endpoints)",
    )

    args = parser.parse_args(argv)

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)

        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=env_config.environment,
        )

        logger.info(
            "Puppy Day notifications starting",
            extra={
                "event": "service.starting",
                "config_path": str(args.config) if args.config else None,
                "log_level": env_config.log_level,
                "use_mocks": env_config.use_mocks,
                "run_job": args.run_job,
            },
        )

        init_database(env_config.database_url)
        services = build_services(app_config, env_config)

        if args.run_job:
            try:
                return run_job(services, args.run_job)
            finally:
                close_database()
                logger.info(
                    "Puppy Day notifications stopped",
                    extra={"event": "service.stopping", "uptime_seconds": round(time.time() - start_time, 2)},
                )

        if app_config.scheduler.enabled and not args.no_scheduler:
            build_scheduler(services)

        # Imported here so that one-off job runs do not load the web stack
        from app.api import create_app

        uvicorn.run(create_app(services), host=args.host, port=args.port, log_config=None)

        close_database()
        logger.info(
            "Puppy Day notifications stopped",
            extra={"event": "service.stopping", "uptime_seconds": round(time.time() - start_time, 2)},
        )
        return 0

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        logger.error(
            f"Configuration error: {e}",
            extra={"event": "config.error", "error_type": "ConfigurationError"},
        )
        return 1
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return 0
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        logger.critical(
            "Fatal error during startup",
            extra={"event": "service.startup.failed", "error_type": type(e).__name__, "error": str(e)},
            exc_info=True,
        )
        return 1


if __name__ == "__main__":
    sys.exit(main())
