"""Context propagation for structured logging.

Fields pushed here (run_id, job, log_id, notification_type, ...) are copied
onto every log record emitted inside the scope by ``ContextualFilter``.
Backed by ``contextvars`` so request handlers running in the FastAPI
threadpool and APScheduler worker threads each see their own context.
"""

from contextvars import ContextVar, Token
from typing import Any, Dict, Optional


LogContextVar: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the fields currently in scope."""
    return LogContextVar.get().copy()


def push_log_context(**fields) -> Token:
    """Merge fields into the current context.

    Args:
        **fields: Key-value pairs to add

    Returns:
        Token to hand back to pop_log_context()
    """
    return LogContextVar.set({**LogContextVar.get(), **fields})


def pop_log_context(token: Token) -> None:
    """Restore the context captured by push_log_context()."""
    LogContextVar.reset(token)


def clear_log_context() -> None:
    """Drop every field. Intended for tests."""
    LogContextVar.set({})


def current_run_id() -> Optional[str]:
    """Return the run_id of the job currently executing, if any."""
    return LogContextVar.get().get("run_id")


class log_context:
    """Context manager for scoped logging context.

    Example:
        >>> with log_context(run_id="abc123", job="reminders"):
        ...     logger.info("Scanning appointments")  # includes run_id and job
    """

    def __init__(self, **fields):
        self.fields = fields
        self.token: Optional[Token] = None

    def __enter__(self):
        self.token = push_log_context(**self.fields)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.token is not None:
            pop_log_context(self.token)
        return False
