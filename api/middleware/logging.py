"""
请求日志中间件

使用 structlog 结构化日志，并将请求耗时与状态码写入指标计数器
（应用指标采集据此计算错误率与平均响应时间）。
"""
import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
import structlog

from api.metrics import increment_request

logger = structlog.get_logger(__name__)

# 不计入应用指标的路径
EXCLUDED_PATHS = {"/metrics", "/health"}


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    请求日志中间件

    记录每个请求的:
    - 请求 ID
    - 请求方法、路径
    - 响应状态码
    - 处理时长
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID", f"req_{uuid.uuid4().hex[:12]}")

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start_time = time.perf_counter()
        path = request.url.path

        logger.debug(
            "request_started",
            method=request.method,
            path=path,
            client_ip=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.perf_counter() - start_time
            if path not in EXCLUDED_PATHS:
                increment_request(500, path, duration)
            logger.error(
                "request_failed",
                method=request.method,
                path=path,
                error=str(e),
                duration_ms=round(duration * 1000, 2),
                exc_info=True,
            )
            raise

        duration = time.perf_counter() - start_time
        if path not in EXCLUDED_PATHS:
            increment_request(response.status_code, path, duration)

        logger.info(
            "request_completed",
            method=request.method,
            path=path,
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 2),
        )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration * 1000:.2f}ms"
        return response
