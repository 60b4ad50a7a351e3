"""
policycache — Observability Monitoring

In-process metric counters, span tracing and structured JSON logging.
Counters live in memory for the lifetime of the process.
"""

import contextvars
import json
import logging
import threading
import time
from collections import defaultdict
from collections.abc import Generator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

# Trace ID context variable for correlating log records
_trace_id_ctx: contextvars.ContextVar[str | None] = contextvars.ContextVar("trace_id", default=None)

_ROOT_LOGGER = "policycache"


def _tag_key(tags: dict[str, str]) -> tuple[tuple[str, str], ...]:
    return tuple(sorted(tags.items()))


class ObservabilityAdapter:
    """
    Simple observability adapter.

    Provides:
    - Counters keyed by metric name and tags
    - Span tracing (debug log records with durations)
    - Trace IDs propagated through contextvars
    """

    def __init__(
        self,
        enable_metrics: bool = True,
        enable_tracing: bool = False,
    ):
        """
        Initialize observability adapter.

        Args:
            enable_metrics: Enable counter collection
            enable_tracing: Enable span tracing
        """
        self.enable_metrics = enable_metrics
        self.enable_tracing = enable_tracing

        self._counters: dict[str, dict[tuple[tuple[str, str], ...], float]] = defaultdict(dict)
        self._lock = threading.Lock()
        self.logger = logging.getLogger(f"{_ROOT_LOGGER}.observability")

    def increment(
        self,
        metric: str,
        value: float = 1.0,
        tags: dict[str, str] | None = None,
    ) -> None:
        """
        Increment a counter metric.

        Args:
            metric: Metric name (e.g., "cache.hit")
            value: Value to increment by
            tags: Optional metric tags/labels
        """
        if not self.enable_metrics:
            return

        key = _tag_key(tags or {})
        with self._lock:
            series = self._counters[metric]
            series[key] = series.get(key, 0.0) + value

    def get_count(self, metric: str, tags: dict[str, str] | None = None) -> float:
        """
        Get a counter value.

        Args:
            metric: Metric name
            tags: When given, only the series with exactly these tags is read;
                otherwise all series of the metric are summed

        Returns:
            Counter value (0.0 if never incremented)
        """
        with self._lock:
            series = self._counters.get(metric, {})
            if tags is not None:
                return series.get(_tag_key(tags), 0.0)
            return sum(series.values())

    def get_metrics(self, metric_name: str | None = None) -> list[dict[str, Any]]:
        """
        Snapshot all counters.

        Args:
            metric_name: Optional filter by metric name

        Returns:
            List of {"name", "tags", "value"} dictionaries
        """
        with self._lock:
            return [
                {"name": name, "tags": dict(tag_key), "value": value}
                for name, series in self._counters.items()
                if metric_name is None or name == metric_name
                for tag_key, value in series.items()
            ]

    def reset(self) -> None:
        """Clear all counters (testing/reset)."""
        with self._lock:
            self._counters.clear()

    @contextmanager
    def trace(self, span_name: str, tags: dict[str, str] | None = None) -> Generator[None, None, None]:
        """
        Context manager for tracing a span.

        Args:
            span_name: Name of the span
            tags: Optional span tags

        Example:
            with observability.trace("cache.evict"):
                await backend.delete_pattern(pattern)
        """
        if not self.enable_tracing:
            yield
            return

        start_time = time.perf_counter()
        trace_id = self.get_trace_id()
        tags = tags or {}

        try:
            yield
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            self.logger.debug(
                f"Span completed: {span_name}",
                extra={
                    "span_name": span_name,
                    "trace_id": trace_id,
                    "duration_ms": round(duration_ms, 2),
                    "tags": tags,
                },
            )

    def get_trace_id(self) -> str | None:
        """Get current trace ID from context."""
        return _trace_id_ctx.get()

    def set_trace_id(self, trace_id: str) -> None:
        """Set trace ID in context."""
        _trace_id_ctx.set(trace_id)

    def generate_trace_id(self) -> str:
        """Generate a new trace ID and set it in context."""
        trace_id = str(uuid4())
        self.set_trace_id(trace_id)
        return trace_id


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    _RESERVED = frozenset(
        (
            "args",
            "msg",
            "levelname",
            "levelno",
            "pathname",
            "filename",
            "module",
            "exc_info",
            "exc_text",
            "stack_info",
            "lineno",
            "funcName",
            "created",
            "msecs",
            "relativeCreated",
            "thread",
            "threadName",
            "processName",
            "process",
            "name",
            "message",
            "taskName",
        )
    )

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        trace_id = _trace_id_ctx.get()
        if trace_id:
            log_data["trace_id"] = trace_id

        # Extra fields passed through logger.<level>(..., extra={...})
        for key, value in record.__dict__.items():
            if key not in log_data and not key.startswith("_") and key not in self._RESERVED:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: str = "INFO", log_format: str = "text") -> logging.Logger:
    """
    Install a stream handler on the package logger.

    Args:
        level: Log level name
        log_format: "json" for JSONFormatter output, anything else for plain text

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(_ROOT_LOGGER)
    logger.handlers.clear()

    handler = logging.StreamHandler()
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False

    return logger


# Global observability adapter instance (singleton)
_observability_adapter: ObservabilityAdapter | None = None


def get_observability() -> ObservabilityAdapter:
    """
    Get the global observability adapter instance.

    Returns:
        Global ObservabilityAdapter instance
    """
    global _observability_adapter

    if _observability_adapter is None:
        from ..config import get_config

        config = get_config().observability
        _observability_adapter = ObservabilityAdapter(
            enable_metrics=config.enable_metrics,
            enable_tracing=config.enable_tracing,
        )

    return _observability_adapter


def initialize_observability(
    enable_metrics: bool = True,
    enable_tracing: bool = False,
) -> ObservabilityAdapter:
    """
    Initialize the global observability adapter.

    Args:
        enable_metrics: Enable counter collection
        enable_tracing: Enable span tracing

    Returns:
        Initialized ObservabilityAdapter instance
    """
    global _observability_adapter

    _observability_adapter = ObservabilityAdapter(
        enable_metrics=enable_metrics,
        enable_tracing=enable_tracing,
    )

    return _observability_adapter
