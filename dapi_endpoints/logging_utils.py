"""Logging setup and timing helpers for endpoint selection sessions.

- ``configure_logging``: install a per-session log file (plus optional stdout)
  whose records carry the selected network and a session identifier.
- ``perf``: decorator that logs one structured line per call with duration
  and success state.
- ``perf_span``: context manager that logs the same line for a code block.

Timing lines look like::

    event=perf name=prober.fan_out duration_ms=812.402 success=true tags={candidates=3}
"""

import functools
import logging
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from dapi_endpoints.config import AppConfig

DEFAULT_LOG_FORMAT = (
    "%(asctime)s %(levelname)s %(name)s [network=%(network)s session=%(session_id)s] %(message)s"
)


class _SessionContextFilter(logging.Filter):
    """Inject the network and session identifier into every log record."""

    def __init__(self, network: str, session_id: str) -> None:
        super().__init__()
        self._network = network
        self._session_id = session_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.network = self._network
        record.session_id = self._session_id
        return True


def _sanitize_session_id(session_id: str) -> str:
    """Convert a session identifier into a filesystem-friendly token."""
    return "".join(ch if ch.isalnum() or ch in ("-", "_") else "-" for ch in session_id)


def generate_session_id() -> str:
    """Return a default session identifier based on the current UTC timestamp."""
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def configure_logging(
    config: AppConfig,
    session_id: Optional[str] = None,
    include_console: bool = True,
    fmt: str = DEFAULT_LOG_FORMAT,
) -> Path:
    """Replace root handlers with a session log file (and stdout), returning the file path."""
    resolved_session_id = session_id or generate_session_id()
    safe_session_id = _sanitize_session_id(resolved_session_id)

    log_dir = config.log_directory
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / f"{config.app_name}-{config.network.value}-{safe_session_id}.log"

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handlers = [logging.FileHandler(log_path, encoding="utf-8")]
    if include_console:
        handlers.append(logging.StreamHandler(sys.stdout))

    for handler in handlers:
        handler.setFormatter(logging.Formatter(fmt))
        handler.addFilter(_SessionContextFilter(config.network.value, resolved_session_id))
        root_logger.addHandler(handler)

    level = getattr(logging, config.log_level.upper(), logging.INFO)
    root_logger.setLevel(level)

    return log_path


def _format_tags(tags: Optional[Mapping[str, Any]]) -> str:
    if not tags:
        return "{}"
    items = ", ".join(f"{k}={tags[k]!r}" for k in sorted(tags))
    return "{" + items + "}"


def _log_perf(
    logger: logging.Logger,
    level: int,
    name: str,
    duration_ms: float,
    success: bool,
    tags: Optional[Mapping[str, Any]],
) -> None:
    logger.log(
        level,
        "event=perf name=%s duration_ms=%.3f success=%s tags=%s",
        name,
        duration_ms,
        str(success).lower(),
        _format_tags(tags),
    )


def perf(
    name: Optional[str] = None,
    *,
    tags: Optional[Mapping[str, Any]] = None,
    level: int = logging.INFO,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator that logs execution time of a function.

    Args:
        name: Optional span name; defaults to ``<module>.<qualname>``.
        tags: Optional mapping of additional metadata to include in the log.
        level: Logging level to use (defaults to ``logging.INFO``).
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        span_name = name or f"{func.__module__}.{func.__qualname__}"
        logger = logging.getLogger(func.__module__)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            start_ns = time.monotonic_ns()
            success = False
            try:
                result = func(*args, **kwargs)
                success = True
                return result
            finally:
                duration_ms = (time.monotonic_ns() - start_ns) / 1_000_000.0
                _log_perf(logger, level, span_name, duration_ms, success, tags)

        return wrapper

    return decorator


class perf_span:
    """Context manager to time an arbitrary code block and log its duration.

    Example:
        with perf_span("prober.fan_out", tags={"candidates": 3}, logger=LOGGER):
            results = run_probes(...)
    """

    def __init__(
        self,
        name: str,
        *,
        tags: Optional[Mapping[str, Any]] = None,
        level: int = logging.INFO,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._name = name
        self._tags = tags or {}
        self._level = level
        self._logger = logger or logging.getLogger(__name__)
        self._start_ns: Optional[int] = None

    def __enter__(self) -> "perf_span":
        self._start_ns = time.monotonic_ns()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        end_ns = time.monotonic_ns()
        start_ns = self._start_ns or end_ns
        _log_perf(
            self._logger,
            self._level,
            self._name,
            (end_ns - start_ns) / 1_000_000.0,
            exc_type is None,
            self._tags,
        )
        return False


__all__ = [
    "configure_logging",
    "generate_session_id",
    "DEFAULT_LOG_FORMAT",
    "perf",
    "perf_span",
]
