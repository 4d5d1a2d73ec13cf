"""Tests for observability module."""

import json
import logging
import time

import pytest

from tenancy_core.observability import (
    LogContext,
    LogEntry,
    LogLevel,
    RequestContext,
    StructuredFormatter,
    StructuredLogger,
    Timer,
    configure_logging,
    emit_counter,
    emit_metric,
    emit_timer,
    get_logger,
    operation_var,
    register_metric_callback,
    request_id_var,
    tenant_id_var,
    unregister_metric_callback,
)


@pytest.fixture
def metrics():
    """Collect emitted metrics for the duration of a test."""
    collected: list[tuple[str, float, dict]] = []

    def callback(name, value, labels):
        collected.append((name, value, labels))

    register_metric_callback(callback)
    yield collected
    unregister_metric_callback(callback)


class TestLogContext:
    """Tests for LogContext."""

    def test_current_returns_empty_when_no_context(self) -> None:
        """Current returns empty context when no vars set."""
        context = LogContext.current()
        assert context.request_id is None
        assert context.tenant_id is None
        assert context.operation is None

    def test_to_dict_excludes_none_values(self) -> None:
        """to_dict excludes None values."""
        context = LogContext(request_id="req-123", tenant_id=None, operation="provision")
        result = context.to_dict()

        assert result == {"request_id": "req-123", "operation": "provision"}
        assert "tenant_id" not in result

    def test_to_dict_includes_extra(self) -> None:
        """to_dict includes extra fields."""
        context = LogContext(request_id="req-123", extra={"custom": "value"})
        assert context.to_dict() == {"request_id": "req-123", "custom": "value"}


class TestLogEntry:
    """Tests for LogEntry."""

    def test_to_json_basic(self) -> None:
        """Basic entry serializes to JSON."""
        entry = LogEntry(
            level=LogLevel.INFO,
            message="Tenant provisioned",
            timestamp="2026-01-01T00:00:00Z",
            logger="tenancy_core.provisioning",
        )

        data = json.loads(entry.to_json())

        assert data["level"] == "INFO"
        assert data["message"] == "Tenant provisioned"
        assert "context" not in data
        assert "error" not in data

    def test_to_json_with_duration(self) -> None:
        """Duration is included when set."""
        entry = LogEntry(
            level=LogLevel.INFO,
            message="done",
            timestamp="2026-01-01T00:00:00Z",
            logger="test",
            duration_ms=12.5,
        )

        assert json.loads(entry.to_json())["duration_ms"] == 12.5


class TestStructuredFormatter:
    """Tests for StructuredFormatter."""

    def test_format_includes_context_vars_and_extra(self) -> None:
        """Formatter merges context variables with record context."""
        formatter = StructuredFormatter()
        record = logging.LogRecord(
            name="tenancy_core.test",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="Helm chart deployed",
            args=(),
            exc_info=None,
        )
        record.context = {"namespace": "tenant-acme"}

        with RequestContext(request_id="req-1", tenant_id="acme", operation="provision"):
            data = json.loads(formatter.format(record))

        assert data["message"] == "Helm chart deployed"
        assert data["context"] == {
            "request_id": "req-1",
            "tenant_id": "acme",
            "operation": "provision",
            "namespace": "tenant-acme",
        }

    def test_format_includes_error(self) -> None:
        """Exception info becomes the error field."""
        formatter = StructuredFormatter()
        try:
            raise RuntimeError("helm exploded")
        except RuntimeError as e:
            record = logging.LogRecord(
                name="test",
                level=logging.ERROR,
                pathname=__file__,
                lineno=1,
                msg="failed",
                args=(),
                exc_info=(type(e), e, e.__traceback__),
            )

        data = json.loads(formatter.format(record))

        assert data["error"] == {"type": "RuntimeError", "message": "helm exploded"}


class TestStructuredLogger:
    """Tests for StructuredLogger."""

    def test_logs_with_context_and_duration(self, caplog) -> None:
        """Context and duration are attached to the record."""
        logger = StructuredLogger("tenancy_core.test")

        with caplog.at_level(logging.INFO, logger="tenancy_core.test"):
            logger.info("Namespace created", context={"namespace": "tenant-acme"}, duration_ms=3.0)

        record = caplog.records[-1]
        assert record.getMessage() == "Namespace created"
        assert record.context == {"namespace": "tenant-acme"}
        assert record.duration_ms == 3.0

    def test_error_attaches_exception(self, caplog) -> None:
        """Errors carry exc_info."""
        logger = get_logger("tenancy_core.test")

        with caplog.at_level(logging.ERROR, logger="tenancy_core.test"):
            logger.error("Deploy failed", error=ValueError("bad values"))

        record = caplog.records[-1]
        assert record.exc_info is not None
        assert record.exc_info[0] is ValueError


class TestRequestContext:
    """Tests for RequestContext."""

    def test_sets_and_resets_context_vars(self) -> None:
        """Variables are set inside the block and restored after."""
        with RequestContext(request_id="req-9", tenant_id="acme", operation="suspend"):
            assert request_id_var.get() == "req-9"
            assert tenant_id_var.get() == "acme"
            assert operation_var.get() == "suspend"

        assert request_id_var.get() is None
        assert tenant_id_var.get() is None
        assert operation_var.get() is None

    def test_generates_request_id(self) -> None:
        """A request id is generated when none is active."""
        with RequestContext() as ctx:
            assert ctx.request_id
            assert request_id_var.get() == ctx.request_id

    def test_nested_context_inherits_request_id(self) -> None:
        """Inner contexts keep the outer request id."""
        with RequestContext(request_id="outer"):
            with RequestContext(tenant_id="acme") as inner:
                assert inner.request_id == "outer"
                assert tenant_id_var.get() == "acme"
            assert tenant_id_var.get() is None

    @pytest.mark.asyncio
    async def test_async_context(self) -> None:
        """Works as an async context manager."""
        async with RequestContext(tenant_id="acme"):
            assert tenant_id_var.get() == "acme"
        assert tenant_id_var.get() is None


class TestTimer:
    """Tests for Timer."""

    def test_measures_duration(self) -> None:
        """Timer measures elapsed time."""
        with Timer() as timer:
            time.sleep(0.01)

        assert timer.duration_ms >= 10


class TestMetrics:
    """Tests for metric emission."""

    def test_emit_metric(self, metrics) -> None:
        """Callbacks receive name, value and labels."""
        emit_metric("custom.metric", 42.0, {"tier": "demo"})
        assert metrics == [("custom.metric", 42.0, {"tier": "demo"})]

    def test_emit_counter(self, metrics) -> None:
        emit_counter("provisioning.started")
        assert metrics == [("provisioning.started", 1.0, {})]

    def test_emit_timer(self, metrics) -> None:
        emit_timer("provisioning.duration", 125.0)
        assert metrics == [("provisioning.duration", 125.0, {})]

    def test_tenant_label_from_context(self, metrics) -> None:
        """The active tenant is added as a label."""
        with RequestContext(tenant_id="acme"):
            emit_counter("tenant.suspended")

        assert metrics[-1][2] == {"tenant_id": "acme"}

    def test_failing_callback_does_not_break_emission(self, metrics) -> None:
        """A broken sink does not stop other sinks."""

        def broken(name, value, labels):
            raise RuntimeError("sink down")

        register_metric_callback(broken)
        try:
            emit_counter("domain.verified")
        finally:
            unregister_metric_callback(broken)

        assert metrics == [("domain.verified", 1.0, {})]


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_json_format(self) -> None:
        """JSON format installs the structured formatter."""
        configure_logging("debug", format="json")

        root = logging.getLogger("tenancy_core")
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, StructuredFormatter)

    def test_text_format(self) -> None:
        """Text format uses a plain formatter."""
        configure_logging(LogLevel.WARNING, format="text")

        root = logging.getLogger("tenancy_core")
        assert root.level == logging.WARNING
        assert not isinstance(root.handlers[0].formatter, StructuredFormatter)
