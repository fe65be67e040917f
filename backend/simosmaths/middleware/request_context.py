from __future__ import annotations

import logging
import time
import uuid

import sentry_sdk
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..logging_context import pop_request_context, push_request_context

access_logger = logging.getLogger("simosmaths.access")

MAX_REQUEST_ID_LENGTH = 128


def incoming_request_id(request: Request) -> str:
    """Reuse the caller's X-Request-ID when it is sane, otherwise mint one."""
    value = (request.headers.get("X-Request-ID") or "").strip()
    if value and len(value) <= MAX_REQUEST_ID_LENGTH and value.isprintable():
        return value
    return uuid.uuid4().hex


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id for logs, Sentry and the response, and log its outcome."""

    async def dispatch(self, request: Request, call_next):
        request_id = incoming_request_id(request)
        token = push_request_context(request_id, method=request.method, path=request.url.path)
        request.state.request_id = request_id
        sentry_sdk.get_isolation_scope().set_tag("request_id", request_id)
        started = time.perf_counter()
        try:
            response: Response = await call_next(request)
            access_logger.info(
                "%s %s %s",
                request.method,
                request.url.path,
                response.status_code,
                extra={
                    "status_code": response.status_code,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                },
            )
        finally:
            pop_request_context(token)
        response.headers["X-Request-ID"] = request_id
        return response
