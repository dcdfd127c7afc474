"""
配置管理系统

支持:
1. 环境变量读取
2. .env 文件
3. 类型验证（阈值范围、日志级别、运行环境）
4. 敏感信息脱敏
"""
from functools import lru_cache
from typing import Optional, List, Dict
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AlertSettings(BaseSettings):
    """告警配置"""
    model_config = SettingsConfigDict(
        env_prefix="ALERTS_",
        extra="ignore"
    )

    enabled: bool = Field(default=True, description="是否启用告警")
    cooldown_minutes: float = Field(default=15, ge=0, description="默认冷却时间（分钟）")

    # 阈值
    cpu_usage: float = Field(default=80, ge=0, le=100, description="CPU 使用率阈值 (%)")
    memory_usage: float = Field(default=85, ge=0, le=100, description="内存使用率阈值 (%)")
    disk_usage: float = Field(default=90, ge=0, le=100, description="磁盘使用率阈值 (%)")
    response_time: float = Field(default=5000, ge=100, description="响应时间阈值 (ms)")
    error_rate: float = Field(default=5, ge=0, le=100, description="错误率阈值 (%)")

    @property
    def thresholds(self) -> Dict[str, float]:
        """阈值映射（键与规则表的阈值键一致）"""
        return {
            "cpu_usage": self.cpu_usage,
            "memory_usage": self.memory_usage,
            "disk_usage": self.disk_usage,
            "response_time": self.response_time,
            "error_rate": self.error_rate,
        }


class NotificationSettings(BaseSettings):
    """通知配置"""
    model_config = SettingsConfigDict(
        env_prefix="NOTIFY_",
        extra="ignore"
    )

    email: Optional[str] = Field(default=None, description="告警邮件收件人")
    webhook: Optional[str] = Field(default=None, description="告警 Webhook URL")
    webhook_timeout: float = Field(default=10.0, gt=0, description="Webhook 超时（秒）")

    smtp_host: str = Field(default="localhost", description="SMTP 主机")
    smtp_port: int = Field(default=587, ge=1, le=65535, description="SMTP 端口")
    smtp_username: Optional[str] = Field(default=None, description="SMTP 用户名")
    smtp_password: Optional[str] = Field(default=None, description="SMTP 密码")
    smtp_use_tls: bool = Field(default=True, description="是否使用 STARTTLS")
    from_address: str = Field(default="alerts@quickstock.local", description="发件人地址")


class RetentionSettings(BaseSettings):
    """数据保留配置"""
    model_config = SettingsConfigDict(
        env_prefix="RETENTION_",
        extra="ignore"
    )

    alert_days: int = Field(default=90, ge=1, description="告警历史保留天数")


class MonitoringSettings(BaseSettings):
    """监控调度配置"""
    model_config = SettingsConfigDict(
        env_prefix="MONITORING_",
        extra="ignore"
    )

    enabled: bool = Field(default=True, description="是否启动定时检查")
    check_interval: float = Field(default=30, ge=5, description="检查间隔（秒）")
    cleanup_interval: float = Field(default=86400, ge=60, description="历史清理间隔（秒）")

    # 内置健康检查的降级阈值
    cpu_degraded: float = Field(default=90, ge=0, le=100, description="CPU 降级阈值 (%)")
    memory_degraded: float = Field(default=90, ge=0, le=100, description="内存降级阈值 (%)")
    disk_degraded: float = Field(default=95, ge=0, le=100, description="磁盘降级阈值 (%)")
    slow_response_ms: float = Field(default=1000, ge=0, description="应用降级响应时间 (ms)")


class LoggingSettings(BaseSettings):
    """日志配置"""
    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        extra="ignore"
    )

    level: str = Field(default="INFO", description="日志级别")
    format: str = Field(default="json", description="日志格式: json, console")
    file_path: Optional[str] = Field(default=None, description="日志文件路径")
    max_size_mb: int = Field(default=100, ge=1, le=1000, description="日志文件最大大小 (MB)")
    backup_count: int = Field(default=7, ge=1, le=30, description="保留日志文件数")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.upper()
        if v not in allowed:
            raise ValueError(f"日志级别必须是 {allowed} 之一")
        return v


class Settings(BaseSettings):
    """
    主配置类

    层级:
    1. 环境变量 (最高优先级)
    2. .env 文件
    3. 默认值 (最低优先级)

    使用示例:
    >>> settings = Settings()
    >>> print(settings.alerts.thresholds)
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # 应用基础配置
    app_name: str = Field(default="QuickStock Monitor", description="应用名称")
    app_version: str = Field(default="1.0.0", description="应用版本")
    debug: bool = Field(default=False, description="调试模式")
    environment: str = Field(default="development", description="运行环境: development, staging, production")

    # API 配置
    api_host: str = Field(default="0.0.0.0", description="API 监听地址")
    api_port: int = Field(default=8000, ge=1, le=65535, description="API 监听端口")
    api_prefix: str = Field(default="/api/v1", description="API 路径前缀")
    cors_origins: str = Field(default="*", description="CORS 允许的源，逗号分隔")

    # 子配置
    alerts: AlertSettings = Field(default_factory=AlertSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    retention: RetentionSettings = Field(default_factory=RetentionSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = {"development", "staging", "production"}
        v = v.lower()
        if v not in allowed:
            raise ValueError(f"环境必须是 {allowed} 之一")
        return v

    @property
    def cors_origin_list(self) -> List[str]:
        """解析 CORS 源列表"""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def display_config(self) -> dict:
        """返回脱敏后的配置（用于日志/调试）"""
        return {
            "app_name": self.app_name,
            "app_version": self.app_version,
            "environment": self.environment,
            "debug": self.debug,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "alerts_enabled": self.alerts.enabled,
            "alert_thresholds": self.alerts.thresholds,
            "email_configured": self.notifications.email is not None,
            "webhook_configured": self.notifications.webhook is not None,
            "alert_retention_days": self.retention.alert_days,
        }


@lru_cache()
def get_settings() -> Settings:
    """获取配置单例（缓存）"""
    return Settings()
