# taskboard/core/tracing.py - Request trace IDs and loguru structured logging

import os
import socket
import traceback
import sys
import json
import random
from datetime import datetime, timezone
from typing import Optional
from loguru import logger
from contextvars import ContextVar

from taskboard.core.config import settings

SERVICE_NAME = "taskboard-api"
SERVICE_VERSION = "1.0.0"
TRACE_HEADER = b"x-trace-id"

# Context variables for trace propagation across the request
_trace_id_context: ContextVar[str] = ContextVar('trace_id', default='no-trace')
_span_id_context: ContextVar[str] = ContextVar('span_id', default='no-span')


def generate_trace_id() -> str:
    """Generate a 128-bit trace ID as 32-character hex string"""
    return f"{random.getrandbits(128):032x}"


def generate_span_id() -> str:
    """Generate a 64-bit span ID as 16-character hex string"""
    return f"{random.getrandbits(64):016x}"


class TracingMiddleware:
    """ASGI middleware that gives every HTTP request a trace context.

    An inbound ``X-Trace-ID`` header is reused so that the browser client
    and upstream proxies can correlate their own logs; otherwise a fresh
    trace ID is generated. The trace ID is echoed on the response.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        trace_id = None
        for name, value in scope.get("headers", []):
            if name == TRACE_HEADER:
                trace_id = value.decode("latin-1").strip()[:64]
                break

        trace_id = trace_id or generate_trace_id()
        span_id = generate_span_id()
        trace_token = _trace_id_context.set(trace_id)
        span_token = _span_id_context.set(span_id)

        async def send_with_trace(message):
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                headers.append((TRACE_HEADER, trace_id.encode("latin-1")))
                message["headers"] = headers
            await send(message)

        try:
            await self.app(scope, receive, send_with_trace)
        finally:
            _trace_id_context.reset(trace_token)
            _span_id_context.reset(span_token)


def setup_tracing(app) -> bool:
    """Install the tracing middleware and configure structured logging"""
    app.add_middleware(TracingMiddleware)
    setup_structured_logging(enable_json=settings.should_use_json_logging)

    setup_logger = logger.bind(trace_id=generate_trace_id(), span_id=generate_span_id())
    setup_logger.info(
        f"Tracing enabled ({'JSON' if settings.should_use_json_logging else 'human-readable'} logs)"
    )
    return True


def format_stack_trace(exception_info) -> Optional[str]:
    """Format exception stack trace for logging"""
    if not exception_info:
        return None

    try:
        if hasattr(exception_info, 'type') and hasattr(exception_info, 'traceback'):
            if exception_info.traceback:
                return ''.join(traceback.format_exception(
                    exception_info.type,
                    exception_info.value,
                    exception_info.traceback
                ))
        return str(exception_info)
    except Exception:
        return "Error formatting stack trace"


def _bind_trace_context(record):
    """Stamp every record, including plain loguru calls, with the request trace"""
    record["extra"].setdefault("trace_id", _trace_id_context.get())
    record["extra"].setdefault("span_id", _span_id_context.get())


def setup_structured_logging(enable_json: bool = None):
    """Replace loguru's default sink with a trace-aware JSON or text sink"""
    if enable_json is None:
        enable_json = settings.should_use_json_logging

    logger.remove()
    logger.configure(patcher=_bind_trace_context)

    hostname = socket.gethostname()
    pid = os.getpid()
    environment = settings.ENVIRONMENT

    if enable_json:
        def json_sink(message):
            record = message.record

            trace_id = record["extra"].get("trace_id", "no-trace")
            span_id = record["extra"].get("span_id", "no-span")

            log_entry = {
                "@timestamp": datetime.now(timezone.utc).isoformat(),
                "level": record["level"].name,
                "message": record["message"],
                "service": {
                    "name": SERVICE_NAME,
                    "version": SERVICE_VERSION,
                    "environment": environment,
                },
                "host": {"hostname": hostname},
                "process": {"pid": pid},
                "log": {
                    "origin": {
                        "file": {
                            "name": record["file"].name,
                            "line": record["line"],
                        },
                        "function": record["function"]
                    },
                    "logger": record["name"]
                },
                "trace": {
                    "id": trace_id,
                    "span_id": span_id
                },
            }

            extra_filtered = {k: v for k, v in record["extra"].items()
                              if k not in ("trace_id", "span_id") and not k.startswith("_")}
            if extra_filtered:
                log_entry["custom"] = extra_filtered

            if record["exception"]:
                exc_type = record["exception"].type
                log_entry["error"] = {
                    "type": exc_type.__name__ if exc_type else "UnknownError",
                    "message": str(record["exception"].value) if record["exception"].value else "Unknown error",
                    "stack_trace": format_stack_trace(record["exception"]),
                    "fingerprint": f"{record['file'].name}:{record['function']}:{record['line']}",
                }

            try:
                sys.stderr.write(json.dumps(log_entry, ensure_ascii=False, default=str) + "\n")
            except Exception as e:
                fallback = {
                    "@timestamp": datetime.now(timezone.utc).isoformat(),
                    "level": record["level"].name,
                    "message": str(record["message"]),
                    "error": f"JSON serialization failed: {e}"
                }
                sys.stderr.write(json.dumps(fallback) + "\n")
            sys.stderr.flush()

        logger.add(json_sink, level=settings.LOG_LEVEL, enqueue=True, catch=True)
    else:
        def format_with_trace(record):
            trace_id = record["extra"].get("trace_id", "no-trace")
            trace_info = f" [trace:{trace_id[:8]}]" if trace_id != "no-trace" else ""
            return (
                "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
                "<cyan>{name}:{function}:{line}</cyan>" + trace_info + " - <level>{message}</level>\n{exception}"
            )

        logger.add(
            sys.stderr,
            format=format_with_trace,
            level=settings.LOG_LEVEL,
            colorize=True,
            enqueue=True,
            catch=True
        )


def get_current_trace_span_ids() -> tuple[str, str]:
    """Get current trace_id and span_id, generating them outside a request"""
    trace_id = _trace_id_context.get()
    span_id = _span_id_context.get()
    if trace_id != "no-trace" and span_id != "no-span":
        return trace_id, span_id

    trace_id = generate_trace_id()
    span_id = generate_span_id()
    _trace_id_context.set(trace_id)
    _span_id_context.set(span_id)
    return trace_id, span_id


def set_trace_context(trace_id: str, span_id: str):
    """Manually set trace context - useful for scripts and background work"""
    _trace_id_context.set(trace_id)
    _span_id_context.set(span_id)


def get_current_trace_id() -> str:
    trace_id, _ = get_current_trace_span_ids()
    return trace_id


def log_with_trace(level: str, message: str, **kwargs):
    """Log through loguru with the current trace context bound"""
    trace_id, span_id = get_current_trace_span_ids()
    bound = logger.bind(trace_id=trace_id, span_id=span_id, **kwargs)
    log_func = getattr(bound, level.lower(), None)
    if log_func is None:
        logger.error(f"Invalid log level: {level}")
        return
    log_func(message)


def log_error_with_context(message: str, exception: Exception = None, **kwargs):
    """Log error with full context and, when given, the stack trace"""
    error_context = {"event_type": "error", **kwargs}

    if exception is not None:
        trace_id, span_id = get_current_trace_span_ids()
        logger.bind(trace_id=trace_id, span_id=span_id, **error_context).opt(exception=exception).error(message)
    else:
        log_with_trace("error", message, **error_context)


# Convenience functions
def info(message: str, **kwargs):
    log_with_trace("info", message, **kwargs)


def debug(message: str, **kwargs):
    log_with_trace("debug", message, **kwargs)


def warning(message: str, **kwargs):
    log_with_trace("warning", message, **kwargs)


def error(message: str, **kwargs):
    log_with_trace("error", message, **kwargs)


__all__ = [
    'setup_tracing', 'setup_structured_logging', 'TracingMiddleware',
    'get_current_trace_span_ids', 'get_current_trace_id',
    'set_trace_context', 'log_with_trace', 'log_error_with_context',
    'info', 'debug', 'warning', 'error'
]
