"""
API 미들웨어
"""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from marketplace.monitoring import get_logger, global_metrics

logger = get_logger(__name__)


class TimingMiddleware(BaseHTTPMiddleware):
    """요청 처리 시간 측정 미들웨어"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = uuid.uuid4().hex
        request.state.request_id = request_id

        start_time = time.time()
        global_metrics.increment("api.requests")

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            global_metrics.increment("api.errors")
            global_metrics.record("api.latency", process_time)
            logger.error(
                f"{request.method} {request.url.path} - "
                f"Exception: {str(e)} - {process_time:.3f}s [{request_id}]"
            )
            raise

        process_time = time.time() - start_time

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{process_time:.6f}"

        global_metrics.record("api.latency", process_time)
        if response.status_code >= 400:
            global_metrics.increment("api.errors")

        logger.bind(request_id=request_id).performance(
            f"{request.method} {request.url.path}",
            process_time,
            status_code=response.status_code,
        )
        return response
