"""Request logging middleware.

One line per HTTP request with method, path, status, latency, caller and a
short request id. The id is stored on ``request.state`` so handlers echo it
in their ApiResponse.

Log format:
    INFO [POST] /api/v1/orders → 200 (12ms) user=42 req_a1b2c3d4e5f6
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.dx_gateway.auth import USER_ID_HEADER

logger = logging.getLogger("dx.request")


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.request_id = f"req_{uuid.uuid4().hex[:12]}"

        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        logger.info(
            "[%s] %s → %d (%.0fms) user=%s %s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request.headers.get(USER_ID_HEADER, "-"),
            request.state.request_id,
        )
        return response
