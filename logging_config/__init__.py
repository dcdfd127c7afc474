# 结构化日志（structlog）
from .logging import setup_logging, get_logger, QUIET_LOGGERS

__all__ = [
    "setup_logging",
    "get_logger",
    "QUIET_LOGGERS",
]
