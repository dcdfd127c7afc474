"""
统一响应格式
"""
from pydantic import BaseModel, Field
from typing import TypeVar, Generic, Optional, Any
from datetime import datetime, timezone
import uuid

T = TypeVar("T")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _request_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


class ErrorDetail(BaseModel):
    """错误详情"""
    type: str = Field(..., description="错误类型")
    detail: str = Field(..., description="错误详细说明")
    field: Optional[str] = Field(None, description="相关字段")


class APIResponse(BaseModel, Generic[T]):
    """
    统一 API 响应格式

    成功响应:
    {
        "success": true,
        "code": 200,
        "message": "操作成功",
        "data": { ... },
        "timestamp": "2025-12-30T10:00:00+00:00",
        "request_id": "req_abc123"
    }

    错误响应:
    {
        "success": false,
        "code": 40404,
        "message": "告警未找到",
        "error": { ... },
        ...
    }
    """
    success: bool = Field(..., description="请求是否成功")
    code: int = Field(default=200, description="响应码")
    message: str = Field(default="操作成功", description="响应消息")
    data: Optional[T] = Field(None, description="响应数据")
    error: Optional[ErrorDetail] = Field(None, description="错误详情")
    timestamp: datetime = Field(default_factory=_now, description="响应时间")
    request_id: str = Field(default_factory=_request_id, description="请求 ID")


def success_response(
    data: Any = None,
    message: str = "操作成功",
    code: int = 200,
) -> dict:
    """构建成功响应"""
    return {
        "success": True,
        "code": code,
        "message": message,
        "data": data,
        "timestamp": _now().isoformat(),
        "request_id": _request_id(),
    }


def error_response(
    message: str,
    code: int,
    error_type: str = "Error",
    detail: str = "",
    field: Optional[str] = None,
) -> dict:
    """构建错误响应"""
    return {
        "success": False,
        "code": code,
        "message": message,
        "error": {
            "type": error_type,
            "detail": detail,
            "field": field,
        },
        "timestamp": _now().isoformat(),
        "request_id": _request_id(),
    }
