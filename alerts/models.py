"""
告警数据模型

- Alert: 引擎创建的告警实例（状态机: active -> acknowledged -> resolved）
- SystemMetrics / ApplicationMetrics / HealthCheckResult: 外部采集器提供的输入快照
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, Field

from .cooldown import utcnow
from .rules import AlertSeverity


class AlertStatus(str, Enum):
    """告警状态"""
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


@dataclass
class Alert:
    """
    告警实例

    timestamp / severity / component / title / description 创建后不再变化；
    status、acknowledged_at、resolved_at 只由生命周期控制器修改。
    """
    id: str
    timestamp: datetime
    severity: AlertSeverity
    component: str
    title: str
    description: str = ""
    metric: Optional[str] = None
    value: Optional[float] = None
    threshold: Optional[float] = None
    status: AlertStatus = AlertStatus.ACTIVE
    acknowledged_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def resolution_time_seconds(self) -> Optional[float]:
        """从创建到解决的耗时（秒）"""
        if self.resolved_at is None:
            return None
        return (self.resolved_at - self.timestamp).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "severity": self.severity.value,
            "component": self.component,
            "title": self.title,
            "description": self.description,
            "metric": self.metric,
            "value": self.value,
            "threshold": self.threshold,
            "status": self.status.value,
            "acknowledged_at": self.acknowledged_at.isoformat() if self.acknowledged_at else None,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "resolution_time_seconds": self.resolution_time_seconds,
            "metadata": self.metadata,
        }


# ===== 输入快照 =====

class CpuMetrics(BaseModel):
    """CPU 指标"""
    usage: float = Field(..., ge=0, description="CPU 使用率 (%)")
    cores: Optional[int] = Field(None, description="核心数")
    load_average: Optional[List[float]] = Field(None, description="1/5/15 分钟负载")


class MemoryMetrics(BaseModel):
    """内存指标"""
    usage_percentage: float = Field(..., ge=0, description="内存使用率 (%)")
    total_bytes: Optional[int] = Field(None, description="总内存 (bytes)")
    used_bytes: Optional[int] = Field(None, description="已用内存 (bytes)")


class DiskMetrics(BaseModel):
    """磁盘指标"""
    usage_percentage: float = Field(..., ge=0, description="磁盘使用率 (%)")
    total_bytes: Optional[int] = Field(None, description="总容量 (bytes)")
    free_bytes: Optional[int] = Field(None, description="可用容量 (bytes)")


class SystemMetrics(BaseModel):
    """系统指标快照"""
    timestamp: datetime = Field(default_factory=utcnow, description="采集时间")
    cpu: CpuMetrics
    memory: MemoryMetrics
    disk: DiskMetrics


class HttpMetrics(BaseModel):
    """HTTP 指标"""
    total_requests: int = Field(default=0, ge=0, description="请求总数")
    error_rate: Optional[float] = Field(None, ge=0, description="错误率 (%)")
    average_response_time: Optional[float] = Field(None, ge=0, description="平均响应时间 (ms)")


class ApplicationMetrics(BaseModel):
    """应用指标快照"""
    timestamp: datetime = Field(default_factory=utcnow, description="采集时间")
    http: HttpMetrics = Field(default_factory=HttpMetrics)


class HealthStatus(str, Enum):
    """健康检查状态"""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class HealthCheckResult(BaseModel):
    """健康检查结果"""
    component: str = Field(..., description="组件名称")
    status: HealthStatus = Field(..., description="健康状态")
    message: str = Field(default="", description="状态说明")
    response_time: float = Field(default=0, ge=0, description="检查耗时 (ms)")
    details: Optional[Dict[str, Any]] = Field(None, description="附加信息")
