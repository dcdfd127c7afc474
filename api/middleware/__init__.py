# API 中间件
from .logging import LoggingMiddleware
from .error_handler import (
    ErrorCode,
    AlertNotFoundError,
    AlertServiceUnavailableError,
    InvalidParameterError,
)

__all__ = [
    "LoggingMiddleware",
    "ErrorCode",
    "AlertNotFoundError",
    "AlertServiceUnavailableError",
    "InvalidParameterError",
]
