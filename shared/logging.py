"""
Structured JSON logging for the Collection Browser.

Per-request correlation (request id, browsing session) is carried in
structlog's context variables, so every log line emitted while handling a
request is tagged without threading ids through call signatures.
"""

import logging
import sys
import uuid
from typing import Any, Dict, Optional

import structlog
from opentelemetry import trace


def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Derive ``service`` from dotted logger names such as ``browser.orchestrator``."""
    logger_name = event_dict.get("logger", "")
    if "." in logger_name:
        event_dict.setdefault("service", logger_name.split(".", 1)[0])
    return event_dict


def add_trace_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Attach the active OpenTelemetry span, if one is recording."""
    span = trace.get_current_span()
    if span.is_recording():
        span_context = span.get_span_context()
        if span_context.trace_id:
            event_dict["trace_id"] = f"{span_context.trace_id:032x}"
        if span_context.span_id:
            event_dict["span_id"] = f"{span_context.span_id:016x}"
    return event_dict


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure structured logging for a service."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            add_service_context,
            add_trace_context,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger().setLevel(level)


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind the request id for the current request, generating one if absent."""
    request_id = request_id or str(uuid.uuid4())
    structlog.contextvars.bind_contextvars(request_id=request_id)
    return request_id


def set_session_context(session_id: Optional[str] = None, collection: Optional[str] = None) -> None:
    """Bind the browsing session (and collection) for the current request."""
    context = {}
    if session_id:
        context["session_id"] = session_id
    if collection:
        context["collection"] = collection
    if context:
        structlog.contextvars.bind_contextvars(**context)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
