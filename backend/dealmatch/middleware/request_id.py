# backend/dealmatch/middleware/request_id.py
from __future__ import annotations

import uuid
from contextvars import ContextVar
from typing import Any, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
# tenant_id / user_id of the authenticated caller, bound once auth resolves
log_context_ctx: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


def get_request_id() -> str | None:
    return request_id_ctx.get()


def get_log_context() -> dict[str, Any]:
    return log_context_ctx.get()


def bind_log_context(**values: Any) -> None:
    merged = dict(log_context_ctx.get())
    merged.update({k: v for k, v in values.items() if v is not None})
    log_context_ctx.set(merged)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Opens a fresh logging context per request.

    The caller's X-Request-ID is kept when present so retried match calls can
    be correlated; otherwise one is minted. Echoed on every response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rid = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = rid

        rid_token = request_id_ctx.set(rid)
        ctx_token = log_context_ctx.set({})
        try:
            resp = await call_next(request)
        finally:
            log_context_ctx.reset(ctx_token)
            request_id_ctx.reset(rid_token)
        resp.headers[REQUEST_ID_HEADER] = rid
        return resp
