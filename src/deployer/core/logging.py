"""Structured JSON logging with trace and deployment correlation."""
import sys
import json
import logging
from contextvars import ContextVar
from loguru import logger as loguru_logger
from opentelemetry import trace

from src.deployer.core.config import settings

# Deployment id of the run in flight, used when no span is active
deployment_id: ContextVar[str] = ContextVar("deployment_id", default="")


def get_trace_id() -> str:
    """Get trace ID from OpenTelemetry context or fallback to the deployment id."""
    span = trace.get_current_span()
    if span and span.is_recording():
        span_context = span.get_span_context()
        if span_context.is_valid:
            return format(span_context.trace_id, "032x")

    return deployment_id.get() or "no-trace"


class InterceptHandler(logging.Handler):
    """Intercept standard logging and redirect to loguru."""

    def emit(self, record):
        try:
            level = loguru_logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller
        frame = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        loguru_logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def json_formatter(record):
    """Format loguru record as a single JSON line."""
    log_entry = {
        "timestamp": record["time"].strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
        "level": record["level"].name,
        "message": record["message"],
        "trace_id": get_trace_id(),
        "deployment_id": deployment_id.get(),
        "service": settings.PROJECT_NAME,
        "environment": settings.ENVIRONMENT,
        "module": record["name"],
        "function": record["function"],
        "line": record["line"],
    }

    if record["exception"]:
        exc = record["exception"]
        log_entry["exception"] = {
            "type": exc.type.__name__ if exc.type else "Unknown",
            "value": str(exc.value) if exc.value else "",
        }

    if record["extra"]:
        log_entry.update(record["extra"])

    # loguru runs the result through str.format_map
    return json.dumps(log_entry, default=str).replace("{", "{{").replace("}", "}}") + "\n"


def setup_logging():
    """Setup structured logging for deployment runs."""
    log_level = "DEBUG" if settings.DEBUG else "INFO"

    loguru_logger.remove()

    # Production pipelines ship JSON lines to the log collector
    if settings.ENVIRONMENT == "production":
        loguru_logger.add(
            sys.stderr,
            format=json_formatter,
            level=log_level,
            serialize=False,
        )
    else:
        loguru_logger.add(
            sys.stderr,
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
            level=log_level,
            colorize=True,
        )

    # httpx and httpcore use standard logging
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for logger_name in ["httpx", "httpcore"]:
        logging.getLogger(logger_name).handlers = [InterceptHandler()]
        logging.getLogger(logger_name).setLevel(logging.WARNING)


logger = loguru_logger
