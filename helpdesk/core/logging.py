"""Request-scoped logging and OpenTelemetry tracing for the helpdesk API.

Every log line carries the ``X-Request-ID`` of the request that produced it.
:class:`~helpdesk.middleware.request_id.RequestIdMiddleware` binds the id for
the lifetime of a request and :class:`RequestIdFilter` copies it onto each
record, so the same id shows up in logs and in the error envelope returned to
the client.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar, Token
from logging.config import dictConfig

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from helpdesk.core.config import Settings

NO_REQUEST_ID = "-"

_request_id: ContextVar[str] = ContextVar("helpdesk_request_id", default=NO_REQUEST_ID)
_tracer_provider: TracerProvider | None = None

_QUIET_LOGGERS = ("sqlalchemy.engine", "uvicorn.access")


def bind_request_id(request_id: str) -> Token[str]:
    return _request_id.set(request_id)


def reset_request_id(token: Token[str]) -> None:
    _request_id.reset(token)


def current_request_id() -> str:
    return _request_id.get()


class RequestIdFilter(logging.Filter):
    """Stamp ``record.request_id`` with the id bound to the current context."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = _request_id.get()
        return True


def configure_logging(settings: Settings) -> logging.Logger:
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"request_id": {"()": RequestIdFilter}},
            "formatters": {"helpdesk": {"format": settings.log_format}},
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "helpdesk",
                    "filters": ["request_id"],
                    "level": level,
                }
            },
            "loggers": {name: {"level": max(level, logging.WARNING)} for name in _QUIET_LOGGERS},
            "root": {"handlers": ["console"], "level": level},
        }
    )
    return logging.getLogger("helpdesk")


def otlp_headers(raw: str | None) -> dict[str, str]:
    """Parse ``key=value,key2=value2`` into a header mapping, skipping junk."""

    pairs = (item.split("=", 1) for item in (raw or "").split(",") if "=" in item)
    return {key.strip(): value.strip() for key, value in pairs}


def init_tracer(settings: Settings) -> TracerProvider | None:
    """Install a global OTLP tracer provider once, when tracing is enabled."""

    global _tracer_provider

    if _tracer_provider is not None or not settings.otel_enabled:
        return None

    exporter = OTLPSpanExporter(
        endpoint=settings.otel_exporter_otlp_endpoint,
        headers=otlp_headers(settings.otel_exporter_otlp_headers) or None,
    )
    provider = TracerProvider(resource=Resource.create({"service.name": settings.otel_service_name}))
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    _tracer_provider = provider
    return provider


def shutdown_tracer(provider: TracerProvider | None) -> None:
    global _tracer_provider

    if provider is None:
        return
    provider.shutdown()
    if provider is _tracer_provider:
        _tracer_provider = None
