# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Request logging and tracing for the FileMaker OData client.

Every adapter request runs inside :meth:`TelemetryManager.trace_request`, which
logs a one-line summary through :mod:`logging`, optionally opens an
OpenTelemetry client span, and dispatches to user supplied hooks.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Generator, List, Optional, Protocol, Union, runtime_checkable

from ..common.constants import (
    OTEL_ATTR_DB_NAME,
    OTEL_ATTR_DB_OPERATION,
    OTEL_ATTR_DB_SYSTEM,
    OTEL_ATTR_FMODATA_REQUEST_ID,
    OTEL_ATTR_FMODATA_TABLE,
    OTEL_ATTR_HTTP_METHOD,
    OTEL_ATTR_HTTP_STATUS_CODE,
    OTEL_ATTR_HTTP_URL,
)

# Optional OpenTelemetry imports
try:
    from opentelemetry import trace
    from opentelemetry.trace import Status, StatusCode

    _OTEL_AVAILABLE = True
except ImportError:
    _OTEL_AVAILABLE = False
    trace = None  # type: ignore
    Status = None  # type: ignore
    StatusCode = None  # type: ignore

_hook_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TelemetryConfig:
    """Configuration for request logging and tracing.

    Telemetry is opt-in.

    Example:
        Log every request at DEBUG and failures at WARNING::

            config = ODataConfig(
                telemetry=TelemetryConfig(enable_logging=True, log_level="DEBUG")
            )

        Trace requests when ``opentelemetry-api`` is installed::

            config = ODataConfig(telemetry=TelemetryConfig(enable_tracing=True))
    """

    enable_tracing: bool = False
    enable_logging: bool = False

    service_name: Optional[str] = None

    log_level: str = "WARNING"
    logger_name: str = "FileMaker.OData"

    hooks: List["TelemetryHook"] = field(default_factory=list)


@dataclass
class RequestContext:
    """Context passed to telemetry hooks for each HTTP request."""

    request_id: str
    method: str
    url: str
    operation: str  # e.g. "records.get", "schema.create_table"
    database: Optional[str] = None
    table_name: Optional[str] = None

    start_time: float = field(default_factory=time.perf_counter)

    # Scratch space for hooks
    custom_data: Dict[str, Any] = field(default_factory=dict)

    _span: Any = field(default=None, repr=False)


@dataclass
class ResponseContext:
    """Response information passed to telemetry hooks."""

    status_code: int
    duration_ms: float
    response_size: Optional[int] = None
    error: Optional[Exception] = None


@runtime_checkable
class TelemetryHook(Protocol):
    """Protocol for custom telemetry hooks.

    All methods are optional.

    Example:
        class TimingHook:
            def on_request_end(self, request, response):
                print(request.operation, response.duration_ms)
    """

    def on_request_start(self, context: RequestContext) -> None:
        ...

    def on_request_end(self, request: RequestContext, response: ResponseContext) -> None:
        ...

    def on_request_error(self, request: RequestContext, error: Exception) -> None:
        ...


class TelemetryManager:
    """Manages telemetry instrumentation. Internal."""

    def __init__(self, config: Optional[TelemetryConfig] = None) -> None:
        self._config = config or TelemetryConfig()
        self._tracer: Optional[Any] = None
        self._logger: Optional[logging.Logger] = None
        self._hooks = list(self._config.hooks)

        if self._config.enable_tracing and _OTEL_AVAILABLE:
            self._tracer = trace.get_tracer("FileMaker.OData")

        if self._config.enable_logging:
            self._logger = logging.getLogger(self._config.logger_name)
            self._logger.setLevel(getattr(logging, self._config.log_level.upper()))

    @property
    def is_tracing_enabled(self) -> bool:
        return self._tracer is not None

    @contextmanager
    def trace_request(
        self,
        operation: str,
        method: str,
        url: str,
        request_id: str,
        database: Optional[str] = None,
        table_name: Optional[str] = None,
    ) -> Generator[RequestContext, None, None]:
        """Wrap a single HTTP request.

        Usage::

            with telemetry.trace_request("records.list", "GET", url, rid) as ctx:
                response = self._http._request(...)
                telemetry.record_response(ctx, response.status_code)
        """
        ctx = RequestContext(
            request_id=request_id,
            method=method,
            url=url,
            operation=operation,
            database=database,
            table_name=table_name,
        )
        self._dispatch("on_request_start", ctx)

        span = None
        if self._tracer:
            span_name = f"FileMaker {operation}"
            if table_name:
                span_name = f"{span_name} {table_name}"
            attributes = {
                OTEL_ATTR_DB_SYSTEM: "filemaker",
                OTEL_ATTR_DB_OPERATION: operation,
                OTEL_ATTR_HTTP_METHOD: method,
                OTEL_ATTR_HTTP_URL: url,
                OTEL_ATTR_FMODATA_REQUEST_ID: request_id,
            }
            if database:
                attributes[OTEL_ATTR_DB_NAME] = database
            if table_name:
                attributes[OTEL_ATTR_FMODATA_TABLE] = table_name
            span = self._tracer.start_span(span_name, kind=trace.SpanKind.CLIENT, attributes=attributes)
            ctx._span = span

        try:
            yield ctx
        except Exception as e:
            if span:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                span.record_exception(e)
            if self._logger:
                self._logger.warning("%s %s failed: %s", ctx.operation, ctx.method, e)
            self._dispatch("on_request_error", ctx, e)
            raise
        finally:
            if span:
                span.end()

    def record_response(
        self,
        ctx: RequestContext,
        status_code: int,
        response_size: Optional[int] = None,
        error: Optional[Exception] = None,
    ) -> None:
        """Log the response and dispatch to hooks."""
        duration_ms = (time.perf_counter() - ctx.start_time) * 1000
        response = ResponseContext(
            status_code=status_code,
            duration_ms=duration_ms,
            response_size=response_size,
            error=error,
        )

        if ctx._span:
            ctx._span.set_attribute(OTEL_ATTR_HTTP_STATUS_CODE, status_code)

        if self._logger:
            level = logging.WARNING if status_code >= 400 else logging.DEBUG
            self._logger.log(
                level,
                f"{ctx.operation} {ctx.method} {status_code} {duration_ms:.1f}ms",
                extra={"request_id": ctx.request_id, "table": ctx.table_name},
            )

        self._dispatch("on_request_end", ctx, response)

    def _dispatch(self, name: str, *args: Any) -> None:
        for hook in self._hooks:
            fn = getattr(hook, name, None)
            if fn is None:
                continue
            try:
                fn(*args)
            except Exception:
                # Hooks must not break requests
                _hook_logger.debug("telemetry hook %s.%s raised", type(hook).__name__, name, exc_info=True)


class NoOpTelemetryManager:
    """Telemetry manager used when telemetry is disabled."""

    is_tracing_enabled = False

    @contextmanager
    def trace_request(
        self,
        operation: str,
        method: str,
        url: str,
        request_id: str,
        database: Optional[str] = None,
        table_name: Optional[str] = None,
    ) -> Generator[RequestContext, None, None]:
        yield RequestContext(
            request_id=request_id,
            method=method,
            url=url,
            operation=operation,
            database=database,
            table_name=table_name,
        )

    def record_response(self, *args: Any, **kwargs: Any) -> None:
        pass


def create_telemetry_manager(
    config: Optional[TelemetryConfig],
) -> Union[TelemetryManager, NoOpTelemetryManager]:
    """Factory returning a no-op manager unless some signal is enabled."""
    if config is None:
        return NoOpTelemetryManager()
    if not (config.enable_tracing or config.enable_logging or config.hooks):
        return NoOpTelemetryManager()
    return TelemetryManager(config)


__all__ = [
    "TelemetryConfig",
    "TelemetryHook",
    "TelemetryManager",
    "NoOpTelemetryManager",
    "RequestContext",
    "ResponseContext",
    "create_telemetry_manager",
]
