# ============================================================================
# File: api/middleware.py
# ============================================================================

import logging
import time
import uuid
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
LATENCY_HEADER = "X-API-Latency-ms"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with a request id so operator calls can be matched
    with the ETL jobs they trigger.

    - reuses an incoming X-Request-ID header, otherwise generates one
    - exposes it as ``request.state.request_id`` and echoes it back
    - reports latency in X-API-Latency-ms
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or f"req_{uuid.uuid4().hex[:12]}"
        request.state.request_id = request_id
        started = time.perf_counter()

        try:
            response: Response = await call_next(request)
        except Exception:
            logger.exception(f"[{request_id}] {request.method} {request.url.path} raised")
            raise

        latency_ms = int((time.perf_counter() - started) * 1000)
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers[LATENCY_HEADER] = str(latency_ms)

        # manual triggers are the only writes; keep them visible at info level
        level = logging.INFO if request.method == "POST" else logging.DEBUG
        logger.log(
            level,
            f"[{request_id}] {request.method} {request.url.path} -> {response.status_code} ({latency_ms}ms)"
        )
        return response
