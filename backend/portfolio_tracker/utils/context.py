# backend/portfolio_tracker/utils/context.py
"""
Request-scoped context for log correlation.

The correlation ID lives in a ContextVar so it follows a request through
every await without being passed around explicitly. Middleware sets it at
the start of a request and clears it at the end; the logging filter reads it.
"""

from contextvars import ContextVar

_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    """Return the current request's correlation ID, or None outside a request."""
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    _correlation_id_var.set(None)
