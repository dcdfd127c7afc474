"""
告警相关数据模型
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime

from alerts import Alert, AlertRule


class AlertInfo(BaseModel):
    """告警信息"""
    id: str = Field(..., description="告警 ID")
    timestamp: datetime = Field(..., description="创建时间")
    severity: str = Field(..., description="告警级别")
    component: str = Field(..., description="组件")
    title: str = Field(..., description="标题")
    description: str = Field(default="", description="描述")
    metric: Optional[str] = Field(None, description="指标名称")
    value: Optional[float] = Field(None, description="观测值")
    threshold: Optional[float] = Field(None, description="阈值")
    status: str = Field(..., description="状态: active, acknowledged, resolved")
    acknowledged_at: Optional[datetime] = Field(None, description="确认时间")
    resolved_at: Optional[datetime] = Field(None, description="解决时间")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="附加信息")

    @classmethod
    def from_alert(cls, alert: Alert) -> "AlertInfo":
        return cls(
            id=alert.id,
            timestamp=alert.timestamp,
            severity=alert.severity.value,
            component=alert.component,
            title=alert.title,
            description=alert.description,
            metric=alert.metric,
            value=alert.value,
            threshold=alert.threshold,
            status=alert.status.value,
            acknowledged_at=alert.acknowledged_at,
            resolved_at=alert.resolved_at,
            metadata=alert.metadata,
        )


class AlertListResponse(BaseModel):
    """告警列表响应"""
    alerts: List[AlertInfo] = Field(..., description="告警列表")
    total: int = Field(..., description="数量")

    @classmethod
    def from_alerts(cls, alerts: List[Alert]) -> "AlertListResponse":
        return cls(alerts=[AlertInfo.from_alert(a) for a in alerts], total=len(alerts))


class AlertStatistics(BaseModel):
    """告警统计"""
    total: int
    active: int
    last_24h: int
    last_7d: int
    by_severity: Dict[str, int]
    by_component: Dict[str, int]
    average_resolution_time_seconds: float
    mttr_minutes: float


class AlertRuleInfo(BaseModel):
    """告警规则"""
    id: str = Field(..., description="规则 ID")
    component: str = Field(..., description="组件")
    metric: str = Field(..., description="指标")
    operator: str = Field(..., description="比较运算符")
    threshold: float = Field(..., description="阈值")
    severity: str = Field(..., description="告警级别")
    cooldown_minutes: float = Field(..., description="冷却时间（分钟）")
    enabled: bool = Field(..., description="是否启用")
    description: str = Field(default="", description="描述")

    @classmethod
    def from_rule(cls, rule: AlertRule) -> "AlertRuleInfo":
        return cls(**rule.to_dict())


class AlertRuleListResponse(BaseModel):
    """告警规则列表响应"""
    rules: List[AlertRuleInfo] = Field(..., description="规则列表")
    total: int = Field(..., description="规则总数")


class LifecycleResult(BaseModel):
    """生命周期操作结果"""
    alert_id: str
    status: str
    message: str


class CleanupRequest(BaseModel):
    """历史清理请求"""
    retention_days: Optional[float] = Field(None, gt=0, description="保留天数（默认使用配置）")


class CleanupResult(BaseModel):
    """历史清理结果"""
    cleared: int
    retention_days: float
