"""
API 错误类型与错误码

"未找到" -> 404，告警服务不可用 -> 503，参数错误 -> 400。
"""


class ErrorCode:
    """错误码定义"""
    # 通用错误 (40xxx)
    BAD_REQUEST = 40000
    PARAMETER_INVALID = 40002
    ALERT_NOT_FOUND = 40404

    # 服务器错误 (50xxx)
    INTERNAL_ERROR = 50000
    ALERT_SERVICE_UNAVAILABLE = 50301


class AlertNotFoundError(Exception):
    """告警未找到"""
    def __init__(self, alert_id: str):
        self.alert_id = alert_id
        super().__init__(f"Alert {alert_id} not found")


class AlertServiceUnavailableError(Exception):
    """告警服务不可用（告警功能已禁用）"""
    def __init__(self, message: str = "Alerting is disabled"):
        super().__init__(message)


class InvalidParameterError(Exception):
    """请求参数无效"""
    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)
