# backend/dealmatch/middleware/structured_logging.py
from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

log = logging.getLogger("dealmatch.request")


def _tenant_hint(request: Request) -> Optional[str]:
    # path_params only exist once the router has matched the request
    params = request.scope.get("path_params") or {}
    return params.get("tenant_id") or request.headers.get("X-Tenant-Id")


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    One log line per request: method, path, status_code, latency_ms and the
    tenant id from the routed path or dev header. Runs inside
    RequestIDMiddleware so the formatter picks up the request id.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        t0 = time.perf_counter()

        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            latency_ms = int((time.perf_counter() - t0) * 1000)
            log.info(
                "%s %s -> %s (%d ms)",
                request.method,
                request.url.path,
                status_code,
                latency_ms,
                extra={"tenant_id": _tenant_hint(request)},
            )
