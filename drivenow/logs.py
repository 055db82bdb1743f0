"""Logging setup: one console handler for the `drivenow` namespace, request correlation ids."""
import logging
import logging.config
import time
import uuid

from flask import Flask, g, has_request_context, request

CORRELATION_HEADER = "X-Correlation-ID"

logger = logging.getLogger("drivenow.request")


class CorrelationIdFilter(logging.Filter):
    """Stamp every record with the current request's correlation id ("-" outside requests)."""

    def filter(self, record):
        cid = "-"
        if has_request_context():
            cid = g.get("correlation_id", "-")
        record.correlation_id = cid
        return True


def configure_logging(level: str = "INFO"):
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "correlation": {"()": CorrelationIdFilter},
        },
        "formatters": {
            "verbose": {
                "format": "{levelname} {asctime} [{correlation_id}] {name} {message}",
                "style": "{",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "verbose",
                "filters": ["correlation"],
            },
        },
        "loggers": {
            "drivenow": {
                "handlers": ["console"],
                "level": level.upper(),
                "propagate": False,
            },
        },
    })


def current_correlation_id() -> str:
    return g.get("correlation_id", "-")


def init_request_logging(app: Flask):
    @app.before_request
    def _start():
        g.correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex[:12]
        g.started = time.perf_counter()

    @app.after_request
    def _finish(response):
        response.headers[CORRELATION_HEADER] = g.get("correlation_id", "-")
        elapsed = (time.perf_counter() - g.get("started", time.perf_counter())) * 1000
        logger.info("%s %s -> %s (%.1f ms)", request.method, request.path,
                    response.status_code, elapsed)
        return response
