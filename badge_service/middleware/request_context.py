"""Request context middleware.

Every request gets an ID (the caller's X-Request-ID header, or a fresh
UUID) held in a ContextVar, so log lines written anywhere in the async
call chain, including the ledger and transaction coordinator, can be
tied back to the assignment call that caused them.  A summary line with
method, path, status and duration is logged when the response is ready.
"""

from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from badge_service.core.logging import request_id_var

logger = logging.getLogger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        token = request_id_var.set(req_id)
        start = time.monotonic()
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        logger.info(
            "%s %s → %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            extra={"request_id": req_id, "duration_ms": duration_ms},
        )
        response.headers["X-Request-ID"] = req_id
        return response
