"""
告警引擎异常类型

只有配置错误会以异常形式抛出；"未找到" 等可预期情况通过返回值表达。
"""
from typing import Optional, Dict, Any


class AlertError(Exception):
    """
    告警模块基础异常类

    所有告警相关错误都继承自此类。
    """

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, code={self.code!r})"


class AlertConfigurationError(AlertError):
    """
    告警配置错误

    规则表格式错误、规则 ID 重复、冷却时间为负、缺少配置等。
    在引擎构造时抛出，阻止服务启动。
    """

    def __init__(self, message: str, *, rule_id: Optional[str] = None):
        details = {"rule_id": rule_id} if rule_id else {}
        super().__init__(message, code="ALERT_CONFIG_INVALID", details=details)
        self.rule_id = rule_id
