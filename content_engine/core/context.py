"""
Log context for HTTP requests and background sweeps.

HTTP requests carry a correlation ID (``X-Correlation-ID``); sweeps started
by the periodic scheduler or the cron trigger are tagged with a sweep id and
the trigger that started them. Both end up on every structlog line emitted
underneath, so a publish can be traced back to whatever caused it.
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response


CORRELATION_HEADER = "X-Correlation-ID"

correlation_id_ctx: ContextVar[str] = ContextVar("correlation_id", default="")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Reuse or mint a correlation ID per request and echo it on the response."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
        # Left set after the call so the 500 handler can still read it
        correlation_id_ctx.set(correlation_id)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            http_method=request.method,
            http_path=request.url.path,
        )

        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response


def get_correlation_id() -> str:
    """Correlation ID of the current request, or empty string outside a request."""
    return correlation_id_ctx.get()


@contextmanager
def sweep_context(trigger: str) -> Iterator[str]:
    """Tag log lines emitted inside the block with a fresh sweep id and its trigger."""
    sweep_id = uuid.uuid4().hex[:12]
    with structlog.contextvars.bound_contextvars(sweep_id=sweep_id, sweep_trigger=trigger):
        yield sweep_id
