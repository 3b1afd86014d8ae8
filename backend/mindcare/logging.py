"""
Structured logging with per-request correlation IDs.
"""
import logging
import time
import uuid
from contextvars import ContextVar
from typing import Any, Dict

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse

request_id: ContextVar[str] = ContextVar("request_id", default="")
request_context: ContextVar[Dict[str, Any]] = ContextVar("request_context", default={})


class TruncateProcessor:
    """Keep event payloads short."""

    def __init__(self, max_length: int = 200):
        self.max_length = max_length

    def __call__(self, logger, method_name, event_dict):
        for key in ("event", "error"):
            if key in event_dict:
                event_dict[key] = str(event_dict[key])[: self.max_length]
        return event_dict


class CorrelationProcessor:
    """Attach correlation id and request context to every event."""

    def __call__(self, logger, method_name, event_dict):
        correlation_id = request_id.get()
        if correlation_id:
            event_dict["correlation_id"] = correlation_id
        context = request_context.get()
        if context:
            for k, v in context.items():
                event_dict.setdefault(k, v)
        return event_dict


def setup_logging(debug: bool = False, level: str = "INFO", max_log_length: int = 200):
    """Configure structlog on top of the stdlib logging module."""
    log_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)

    processors = [
        structlog.stdlib.filter_by_level,
        CorrelationProcessor(),
        TruncateProcessor(max_length=max_log_length),
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if debug:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(level=log_level, format="%(message)s")


def get_logger(name: str = __name__):
    return structlog.get_logger(name)


def set_request_context(correlation_id: str, **context: Any):
    request_id.set(correlation_id)
    request_context.set(context)


def clear_request_context():
    request_id.set("")
    request_context.set({})


class LoggingMiddleware:
    """Per-request correlation id plus logging of slow or failing requests."""

    def __init__(self, slow_threshold: float = 2.0, log_requests: bool = False):
        self.slow_threshold = slow_threshold
        self.log_requests = log_requests
        self.logger = get_logger("mindcare.http")

    async def __call__(self, request: Request, call_next):
        correlation_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        set_request_context(correlation_id, path=request.url.path, method=request.method)
        request.state.correlation_id = correlation_id

        start = time.perf_counter()
        if self.log_requests:
            self.logger.info("request_start", query_params=dict(request.query_params))

        try:
            response = await call_next(request)
            duration = time.perf_counter() - start
            slow = duration > self.slow_threshold
            if self.log_requests or slow or response.status_code >= 400:
                self.logger.info(
                    "request_complete",
                    status_code=response.status_code,
                    duration=round(duration, 3),
                    slow=slow,
                )
            response.headers["X-Request-ID"] = correlation_id
            return response
        except Exception as e:
            # answered here, while the correlation id is still bound
            self.logger.error(
                "unhandled_error",
                error=str(e),
                error_type=type(e).__name__,
                duration=round(time.perf_counter() - start, 3),
            )
            return JSONResponse(
                status_code=500,
                content={"detail": "Internal server error", "correlation_id": correlation_id},
                headers={"X-Request-ID": correlation_id},
            )
        finally:
            clear_request_context()
