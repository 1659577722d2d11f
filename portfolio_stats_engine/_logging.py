"""Logging surface for portfolio_stats_engine.

Stdlib logging plus the instrumentation decorators used across the engine:
``log_operation`` (debug-level start/finish span), ``log_timing`` (warning when a
step runs longer than a threshold) and ``log_errors`` (logs and re-raises).
"""

from __future__ import annotations

import functools
import logging
import time
from typing import Any, Callable, Union


portfolio_logger = logging.getLogger("portfolio_stats_engine")

_SEVERITY_LEVELS = {
    "low": logging.INFO,
    "medium": logging.WARNING,
    "high": logging.ERROR,
    "critical": logging.CRITICAL,
}


def log_operation(name: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Wrap a function in a debug-level span named ``name``."""

    def deco(fn: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            portfolio_logger.debug("[%s] started", name)
            result = fn(*args, **kwargs)
            portfolio_logger.debug("[%s] finished", name)
            return result

        return wrapper

    return deco


def log_timing(threshold: Union[float, Callable[[], float]] = 0.0) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Warn when the wrapped call takes longer than ``threshold`` seconds.

    A callable ``threshold`` is evaluated on every call.
    """

    def deco(fn: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            start = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                elapsed = time.perf_counter() - start
                limit = threshold() if callable(threshold) else threshold
                if limit and elapsed > limit:
                    portfolio_logger.warning("slow_operation: %s took %.3fs (threshold %.3fs)", fn.__qualname__, elapsed, limit)
                else:
                    portfolio_logger.debug("timing: %s took %.3fs", fn.__qualname__, elapsed)

        return wrapper

    return deco


def log_errors(severity: str = "medium") -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Log exceptions escaping the wrapped call at ``severity`` and re-raise them."""
    level = _SEVERITY_LEVELS.get(severity, logging.WARNING)

    def deco(fn: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return fn(*args, **kwargs)
            except Exception as exc:
                portfolio_logger.log(level, "%s failed: %s: %s", fn.__qualname__, type(exc).__name__, exc)
                raise

        return wrapper

    return deco


def log_portfolio_operation(event: str, details: dict[str, Any] | None = None, execution_time: float | None = None) -> dict[str, Any]:
    if details:
        portfolio_logger.info("[%s] %s", event, details)
    else:
        portfolio_logger.info("[%s]", event)
    return {"event": event, "details": details or {}, "execution_time": execution_time}


def log_critical_alert(alert_type: str, severity: str, message: str, action: str | None = None, details: dict[str, Any] | None = None) -> None:
    level = _SEVERITY_LEVELS.get(severity, logging.WARNING)
    portfolio_logger.log(level, "alert[%s]: %s %s%s", alert_type, message, details or {}, f" action={action}" if action else "")
