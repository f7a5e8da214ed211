"""
middleware.py - Per-request tagging and access logging
"""
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from logger import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
PROCESS_TIME_HEADER = "X-Process-Time"

# Liveness probes are frequent; keep them out of the info log
QUIET_PATHS = frozenset({"/ping"})


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag each request with an ID and log one summary line when it completes"""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id

        started = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - started

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers[PROCESS_TIME_HEADER] = f"{elapsed:.6f}"

        summary = (
            f"Request {request_id}: {request.method} {request.url.path} "
            f"body={request.headers.get('content-length', '0')}B "
            f"-> {response.status_code} {response.headers.get('content-type', '-')} "
            f"in {elapsed:.3f}s"
        )
        if request.url.path in QUIET_PATHS:
            logger.debug(summary)
        else:
            logger.info(summary)

        return response
