"""
Request ID Middleware
======================
Extracts X-Request-ID (or mints one), binds it for the lifetime of the
request and echoes it on the response.
"""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ..core.context import bind_request_id, get_request_id, unbind_request_id
from ..utils.logger import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Add LAST to the FastAPI app so it executes FIRST.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        token = bind_request_id(request.headers.get(REQUEST_ID_HEADER))
        request_id = get_request_id()
        started = time.perf_counter()
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            logger.debug(
                "request_served",
                method=request.method,
                path=request.url.path,
                status=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            return response
        finally:
            unbind_request_id(token)
