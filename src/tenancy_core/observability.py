"""Structured logging and metric hooks.

Every orchestration run logs through a StructuredLogger. Context variables
carry the request id, the tenant being operated on and the operation name,
so log lines emitted deep inside a collaborator call can still be tied back
to the admin action that caused them.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
tenant_id_var: ContextVar[str | None] = ContextVar("tenant_id", default=None)
operation_var: ContextVar[str | None] = ContextVar("operation", default=None)

_CONTEXT_VARS: tuple[tuple[str, ContextVar[str | None]], ...] = (
    ("request_id", request_id_var),
    ("tenant_id", tenant_id_var),
    ("operation", operation_var),
)


class LogLevel(str, Enum):
    """Level names shared with the logging module."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @property
    def numeric(self) -> int:
        return logging.getLevelName(self.value)


@dataclass
class LogContext:
    """Snapshot of the ambient request, tenant and operation."""

    request_id: str | None = None
    tenant_id: str | None = None
    operation: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def current(cls) -> "LogContext":
        return cls(**{name: var.get() for name, var in _CONTEXT_VARS})

    def to_dict(self) -> dict[str, Any]:
        """Set fields plus ``extra``; unset fields are omitted."""
        data = {
            name: getattr(self, name)
            for name, _ in _CONTEXT_VARS
            if getattr(self, name)
        }
        data.update(self.extra)
        return data


@dataclass
class LogEntry:
    """One JSON log line."""

    level: LogLevel
    message: str
    timestamp: str
    logger: str
    context: dict[str, Any] = field(default_factory=dict)
    error: dict[str, Any] | None = None
    duration_ms: float | None = None

    def to_json(self) -> str:
        data: dict[str, Any] = {
            "level": self.level.value,
            "message": self.message,
            "timestamp": self.timestamp,
            "logger": self.logger,
        }
        optional = {"context": self.context, "error": self.error}
        data.update({key: value for key, value in optional.items() if value})
        if self.duration_ms is not None:
            data["duration_ms"] = self.duration_ms
        return json.dumps(data, default=str)


def _describe_exception(exc_info: Any) -> dict[str, str] | None:
    if not exc_info:
        return None
    exc_type, exc_value = exc_info[0], exc_info[1]
    return {
        "type": exc_type.__name__ if exc_type else "Unknown",
        "message": str(exc_value) if exc_value else "",
    }


class StructuredFormatter(logging.Formatter):
    """Renders records as JSON, merging the ambient LogContext with the
    record's own ``context`` mapping."""

    def format(self, record: logging.LogRecord) -> str:
        context = LogContext.current().to_dict()
        record_context = getattr(record, "context", None)
        if isinstance(record_context, dict):
            context.update(record_context)

        return LogEntry(
            level=LogLevel(record.levelname),
            message=record.getMessage(),
            timestamp=datetime.now(timezone.utc).isoformat(),
            logger=record.name,
            context=context,
            error=_describe_exception(record.exc_info),
            duration_ms=getattr(record, "duration_ms", None),
        ).to_json()


class StructuredLogger:
    """Thin wrapper over a stdlib logger that accepts structured fields.

    Example:
        logger = get_logger(__name__)
        logger.info("Deploying chart", context={"namespace": "tenant-acme"})
        logger.error("Helm install failed", error=exc)

    Handlers and level come from the ``tenancy_core`` logger set up by
    :func:`configure_logging`.
    """

    def __init__(self, name: str) -> None:
        self.logger = logging.getLogger(name)

    def _log(
        self,
        level: LogLevel,
        message: str,
        context: dict[str, Any] | None = None,
        error: BaseException | None = None,
        duration_ms: float | None = None,
    ) -> None:
        extra: dict[str, Any] = {}
        if context:
            extra["context"] = context
        if duration_ms is not None:
            extra["duration_ms"] = duration_ms
        exc_info = (type(error), error, error.__traceback__) if error else None
        self.logger.log(level.numeric, message, exc_info=exc_info, extra=extra)

    def debug(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        duration_ms: float | None = None,
    ) -> None:
        self._log(LogLevel.DEBUG, message, context, duration_ms=duration_ms)

    def info(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        duration_ms: float | None = None,
    ) -> None:
        self._log(LogLevel.INFO, message, context, duration_ms=duration_ms)

    def warning(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        error: BaseException | None = None,
        duration_ms: float | None = None,
    ) -> None:
        self._log(LogLevel.WARNING, message, context, error, duration_ms)

    def error(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        error: BaseException | None = None,
        duration_ms: float | None = None,
    ) -> None:
        self._log(LogLevel.ERROR, message, context, error, duration_ms)


class RequestContext:
    """Binds request, tenant and operation for the duration of a block.

    Usable with ``with`` or ``async with``. A nested context inherits the
    active request id unless one is given, so every step of an admin action
    shares it.

    Example:
        async with RequestContext(tenant_id="acme-auto-1a2b3c", operation="provision"):
            logger.info("Provisioning started")
    """

    def __init__(
        self,
        request_id: str | None = None,
        tenant_id: str | None = None,
        operation: str | None = None,
    ) -> None:
        self.request_id = request_id or request_id_var.get() or str(uuid.uuid4())
        self.tenant_id = tenant_id
        self.operation = operation
        self._tokens: list[tuple[ContextVar[str | None], Any]] = []

    def __enter__(self) -> "RequestContext":
        for name, var in _CONTEXT_VARS:
            value = getattr(self, name)
            if value:
                self._tokens.append((var, var.set(value)))
        return self

    def __exit__(self, *args: Any) -> None:
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)

    async def __aenter__(self) -> "RequestContext":
        return self.__enter__()

    async def __aexit__(self, *args: Any) -> None:
        self.__exit__(*args)


class Timer:
    """Wall-clock timer for log ``duration_ms`` fields.

    Example:
        with Timer() as timer:
            await charts.install(...)
        logger.info("Chart installed", duration_ms=timer.duration_ms)
    """

    def __init__(self) -> None:
        self._started = 0.0
        self._stopped: float | None = None

    @property
    def duration_ms(self) -> float:
        """Elapsed time; still running timers report time so far."""
        stopped = self._stopped if self._stopped is not None else time.perf_counter()
        return (stopped - self._started) * 1000

    def __enter__(self) -> "Timer":
        self._started = time.perf_counter()
        self._stopped = None
        return self

    def __exit__(self, *args: Any) -> None:
        self._stopped = time.perf_counter()


MetricCallback = Callable[[str, float, dict[str, Any]], None]

_metric_callbacks: list[MetricCallback] = []


def register_metric_callback(callback: MetricCallback) -> None:
    """Subscribe ``callback(name, value, labels)`` to every emitted metric."""
    _metric_callbacks.append(callback)


def unregister_metric_callback(callback: MetricCallback) -> None:
    if callback in _metric_callbacks:
        _metric_callbacks.remove(callback)


def emit_metric(name: str, value: float, labels: dict[str, Any] | None = None) -> None:
    """Send a metric to the registered callbacks.

    The active tenant is added as a ``tenant_id`` label. A callback that
    raises is logged and the remaining callbacks still run.
    """
    labels = dict(labels or {})
    tenant_id = tenant_id_var.get()
    if tenant_id:
        labels.setdefault("tenant_id", tenant_id)

    for callback in list(_metric_callbacks):
        try:
            callback(name, value, labels)
        except Exception as e:
            _logger.warning("Metric callback failed", context={"metric": name}, error=e)


def emit_counter(name: str, labels: dict[str, Any] | None = None) -> None:
    emit_metric(name, 1.0, labels)


def emit_timer(name: str, duration_ms: float, labels: dict[str, Any] | None = None) -> None:
    emit_metric(name, duration_ms, labels)


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    format: str = "json",
) -> None:
    """Install a single stdout handler on the ``tenancy_core`` logger.

    Args:
        level: Minimum level, as a LogLevel or a case-insensitive name
        format: ``"json"`` for StructuredFormatter, anything else for plain text
    """
    level = LogLevel(level.upper()) if isinstance(level, str) else level

    package_logger = logging.getLogger("tenancy_core")
    package_logger.setLevel(level.numeric)
    package_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    if format == "json":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
    package_logger.addHandler(handler)


def get_logger(name: str) -> StructuredLogger:
    """Structured logger for a module; pass ``__name__``."""
    return StructuredLogger(name)


_logger = get_logger(__name__)
