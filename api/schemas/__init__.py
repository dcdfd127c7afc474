# API Pydantic 数据模型
from .response import APIResponse, ErrorDetail, success_response, error_response
from .alert import (
    AlertInfo,
    AlertListResponse,
    AlertStatistics,
    AlertRuleInfo,
    AlertRuleListResponse,
    LifecycleResult,
    CleanupRequest,
    CleanupResult,
)

__all__ = [
    "APIResponse",
    "ErrorDetail",
    "success_response",
    "error_response",
    "AlertInfo",
    "AlertListResponse",
    "AlertStatistics",
    "AlertRuleInfo",
    "AlertRuleListResponse",
    "LifecycleResult",
    "CleanupRequest",
    "CleanupResult",
]
