"""
FastAPI 应用主入口

告警查询与生命周期 API、Prometheus 指标、健康检查，
以及按配置启动的定时告警检查器。
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import metrics
from api.routers import alerts
from api.dependencies import get_alert_checker, get_alert_notifier
from api.middleware.logging import LoggingMiddleware
from api.middleware.error_handler import (
    AlertNotFoundError,
    AlertServiceUnavailableError,
    InvalidParameterError,
    ErrorCode,
)
from api.schemas.response import success_response, error_response
from core.config import get_settings
from logging_config import setup_logging, get_logger

# 获取配置
settings = get_settings()

# 配置日志
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    应用生命周期管理

    启动时:
    - 启动定时告警检查器（monitoring.enabled 时）

    关闭时:
    - 停止检查器
    - 等待事件循环中未完成的通知，关闭通知器线程池
    """
    logger.info(
        "application_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        config=settings.display_config(),
    )

    app.state.start_time = datetime.now(timezone.utc)

    checker = None
    if settings.monitoring.enabled and settings.alerts.enabled:
        checker = get_alert_checker()
        await checker.start()

    logger.info("application_started", monitoring_enabled=checker is not None)

    yield

    logger.info("application_shutting_down")

    if checker is not None:
        await checker.stop()
    notifier = get_alert_notifier()
    await notifier.drain()
    notifier.shutdown(wait=False)

    logger.info("application_stopped")


# 创建 FastAPI 应用
app = FastAPI(
    title=settings.app_name,
    description="QuickStock Monitor - alert evaluation and lifecycle service",
    version=settings.app_version,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan,
)

# ===== 中间件 =====

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 请求日志
app.add_middleware(LoggingMiddleware)


# ===== 路由 =====

# API 版本前缀
API_PREFIX = settings.api_prefix


# 健康检查 (无前缀)
@app.get("/health")
async def health_check_root():
    """根路径健康检查"""
    return success_response(
        data={
            "status": "healthy",
            "version": settings.app_version,
        }
    )


# 带前缀的健康检查
@app.get(f"{API_PREFIX}/health")
async def health_check():
    """API 健康检查"""
    start_time = getattr(app.state, "start_time", None)
    uptime = (datetime.now(timezone.utc) - start_time).total_seconds() if start_time else 0

    return success_response(
        data={
            "status": "healthy",
            "version": settings.app_version,
            "uptime_seconds": round(uptime, 2),
            "environment": settings.environment,
            "alerts_enabled": settings.alerts.enabled,
        }
    )


# 注册路由
app.include_router(alerts.router, prefix=f"{API_PREFIX}/alerts", tags=["Alerts"])
app.include_router(metrics.router, prefix="/metrics", tags=["Metrics"])


# ===== 全局异常处理 =====

@app.exception_handler(AlertNotFoundError)
async def alert_not_found_handler(request: Request, exc: AlertNotFoundError):
    """告警未找到异常处理"""
    logger.warning("alert_not_found", alert_id=exc.alert_id, path=request.url.path)
    return JSONResponse(
        status_code=404,
        content=error_response(
            message="告警未找到",
            code=ErrorCode.ALERT_NOT_FOUND,
            error_type="AlertNotFoundError",
            detail=str(exc),
        ),
    )


@app.exception_handler(AlertServiceUnavailableError)
async def alert_service_unavailable_handler(request: Request, exc: AlertServiceUnavailableError):
    """告警服务不可用异常处理"""
    logger.warning("alert_service_unavailable", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=503,
        content=error_response(
            message="告警服务不可用",
            code=ErrorCode.ALERT_SERVICE_UNAVAILABLE,
            error_type="AlertServiceUnavailableError",
            detail=str(exc),
        ),
    )


@app.exception_handler(InvalidParameterError)
async def invalid_parameter_handler(request: Request, exc: InvalidParameterError):
    """参数错误异常处理"""
    logger.warning("invalid_parameter", field=exc.field, path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=400,
        content=error_response(
            message="参数错误",
            code=ErrorCode.PARAMETER_INVALID,
            error_type="InvalidParameterError",
            detail=str(exc),
            field=exc.field,
        ),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """请求体 / 参数校验失败"""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ())[1:]) or None

    logger.warning("request_validation_failed", path=request.url.path, errors=len(errors))
    return JSONResponse(
        status_code=400,
        content=error_response(
            message="参数错误",
            code=ErrorCode.BAD_REQUEST,
            error_type="ValidationError",
            detail=first.get("msg", "Invalid request"),
            field=field,
        ),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """全局异常处理器"""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content=error_response(
            message="内部服务器错误",
            code=ErrorCode.INTERNAL_ERROR,
            error_type="InternalError",
            detail="发生未预期的错误，请联系管理员" if not settings.debug else str(exc),
        ),
    )


# ===== 开发模式入口 =====

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
