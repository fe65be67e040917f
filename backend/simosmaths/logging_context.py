"""Per-request logging context.

``RequestContextMiddleware`` opens a context for every HTTP request and
``auth.get_current_user`` adds the caller's profile id; the filter copies the
fields onto each log record so the JSON formatter can emit them.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar, Token
from typing import Any

import sentry_sdk

CONTEXT_FIELDS = ("request_id", "method", "path", "profile_id")

_request_context: ContextVar[dict[str, Any] | None] = ContextVar(
    "simosmaths_request_context", default=None
)


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        context = _request_context.get() or {}
        for field in CONTEXT_FIELDS:
            setattr(record, field, context.get(field))
        return True


def push_request_context(
    request_id: str, *, method: str | None = None, path: str | None = None
) -> Token:
    return _request_context.set(
        {"request_id": request_id, "method": method, "path": path, "profile_id": None}
    )


def pop_request_context(token: Token) -> None:
    _request_context.reset(token)


def current_context() -> dict[str, Any]:
    return dict(_request_context.get() or {})


def get_request_id() -> str | None:
    return current_context().get("request_id")


def set_profile_context(profile_id: str | None) -> None:
    context = _request_context.get()
    if context is None:
        # Outside an HTTP request: scripts and service-level tests.
        _request_context.set({"request_id": None, "profile_id": profile_id})
    else:
        context["profile_id"] = profile_id
    sentry_sdk.set_user({"id": profile_id} if profile_id else None)


__all__ = [
    "CONTEXT_FIELDS",
    "RequestContextFilter",
    "current_context",
    "get_request_id",
    "pop_request_context",
    "push_request_context",
    "set_profile_context",
]
