"""
Logging setup with per-request correlation IDs.

Every log line carries the ID of the HTTP request that produced it:

    2026-01-04 10:15:02,113 [INFO] vouchify.services.state_machine [rid=3f2a...]: Transaction ... pending -> failed

The request middleware takes the ID from an incoming X-Request-ID header
(or generates one), stores it in a context variable for the duration of
the request and echoes it back on the response. Log records emitted
outside a request show "-".
"""

import logging
import uuid
from contextvars import ContextVar

from fastapi import FastAPI, Request

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [rid=%(request_id)s]: %(message)s"
REQUEST_ID_HEADER = "X-Request-ID"

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")


class RequestIDFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


def configure_logging(level: str = "INFO") -> None:
    """Install the request-aware formatter on the root logger (idempotent)."""
    root = logging.getLogger()

    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.addFilter(RequestIDFilter())
        root.addHandler(handler)
    else:
        for handler in root.handlers:
            if not any(isinstance(f, RequestIDFilter) for f in handler.filters):
                handler.addFilter(RequestIDFilter())
            handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root.setLevel(level.upper())


def install_request_id_middleware(app: FastAPI) -> None:
    """Register the middleware that binds a request ID to each request."""

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
