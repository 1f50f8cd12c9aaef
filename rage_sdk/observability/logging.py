"""
Structured logging for the enrichment core.

Log lines are rendered as ``[key=value ...] message`` on the standard
``logging`` hierarchy under ``rage_sdk``. The correlation ID of the current
request lives in a ``ContextVar`` so concurrent requests never share it.
"""

import contextvars
import logging
import time
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

_correlation: contextvars.ContextVar[Optional[Dict[str, Any]]] = contextvars.ContextVar(
    "rage_correlation", default=None
)

SENSITIVE_KEYS = (
    "password", "token", "key", "secret", "auth", "credential",
    "jwt", "bearer", "email", "phone", "ssn", "credit",
)

LOG_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "verbose": logging.DEBUG,
}


def generate_correlation_id(prefix: str = "rage") -> str:
    """Correlation ID of the form ``{prefix}_{epoch_ms}_{random}``."""
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def current_correlation_id() -> Optional[str]:
    scope = _correlation.get()
    return scope.get("correlation_id") if scope else None


def current_context() -> Dict[str, Any]:
    return dict(_correlation.get() or {})


@contextmanager
def correlation_scope(correlation_id: str, **fields: Any) -> Iterator[str]:
    """
    Bind a correlation ID (and extra fields) to the current async context.

    The previous binding is restored on exit, including on error.
    """
    token = _correlation.set({"correlation_id": correlation_id, **fields})
    try:
        yield correlation_id
    finally:
        _correlation.reset(token)


def mask_value(value: Any) -> str:
    text = str(value)
    if len(text) <= 8:
        return "***"
    return f"{text[:4]}***{text[-4:]}"


def sanitize_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Mask values whose key looks sensitive."""
    return {
        key: mask_value(value)
        if value is not None and any(s in key.lower() for s in SENSITIVE_KEYS)
        else value
        for key, value in fields.items()
    }


def configure_logging(level: str = "info", debug: bool = False) -> logging.Logger:
    """Set the package logger level from configuration."""
    package_logger = logging.getLogger("rage_sdk")
    package_logger.setLevel(logging.DEBUG if debug else LOG_LEVELS.get(level, logging.INFO))
    return package_logger


class RageLogger:
    """Structured logger bound to one component."""

    def __init__(self, component: str, audit_enabled: bool = False):
        """
        Initialize logger for a component.

        Args:
            component: Component name (e.g., "interceptor", "http_client")
            audit_enabled: Whether ``audit`` events are emitted
        """
        self.component = component
        self.audit_enabled = audit_enabled
        self.logger = logging.getLogger(f"rage_sdk.{component}")

    def _format_message(self, message: str, **kwargs) -> str:
        """Format message with structured fields."""
        fields = [f"component={self.component}"]

        scope = current_context()
        if "correlation_id" not in kwargs and scope.get("correlation_id"):
            kwargs["correlation_id"] = scope["correlation_id"]

        for key, value in sanitize_fields(kwargs).items():
            if value is not None:
                fields.append(f"{key}={value}")

        return f"[{' '.join(fields)}] {message}"

    def log(self, level: int, message: str, **fields):
        if self.logger.isEnabledFor(level):
            self.logger.log(level, self._format_message(message, **fields))

    def debug(self, message: str, **kwargs):
        self.log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        self.log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        self.log(logging.WARNING, message, **kwargs)

    def error(self, message: str, error: Optional[BaseException] = None, **kwargs):
        """Log error message with structured fields."""
        if error:
            kwargs['error_type'] = getattr(getattr(error, 'kind', None), 'value', None) \
                or type(error).__name__
            kwargs['error_msg'] = str(error)
        self.log(logging.ERROR, message, **kwargs)

    def enrichment(self, phase: str, message: str = "", **kwargs):
        """Debug-level event for one enrichment stage."""
        self.debug(message or f"Enrichment {phase}", phase=phase, **kwargs)

    def audit(self, event: str, **kwargs):
        if self.audit_enabled:
            self.info(f"AUDIT {event}", audit=True, **kwargs)

    @contextmanager
    def timer(self, operation: str, **kwargs) -> Iterator[Dict[str, Any]]:
        """
        Time a block and log its duration.

        Yields:
            Dict that receives ``duration_ms`` on exit
        """
        start = time.perf_counter()
        result: Dict[str, Any] = {"operation": operation}
        try:
            yield result
        finally:
            result["duration_ms"] = int((time.perf_counter() - start) * 1000)
            self.debug(
                f"{operation} finished",
                operation=operation,
                duration_ms=result["duration_ms"],
                **kwargs
            )
