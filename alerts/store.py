"""
告警存储

内存中的活跃告警索引 + 只追加的告警历史。
活跃索引与历史共享同一把锁（由引擎注入），所有变更在锁内完成。
"""
import threading
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any, Callable, Union

import structlog

from .cooldown import utcnow
from .models import Alert
from .rules import AlertSeverity

logger = structlog.get_logger(__name__)


def _newest_first(alerts: List[Alert]) -> List[Alert]:
    return sorted(alerts, key=lambda a: a.timestamp, reverse=True)


class AlertStore:
    """
    告警存储

    功能:
    - 活跃告警按 ID O(1) 查找
    - 告警历史（按插入顺序）
    - 过滤与统计
    - 过期历史清理
    """

    def __init__(
        self,
        lock: Optional[threading.RLock] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._lock = lock or threading.RLock()
        self._clock = clock
        self._active: Dict[str, Alert] = {}
        self._history: List[Alert] = []

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    # ===== 变更（仅供工厂和生命周期控制器调用） =====

    def add(self, alert: Alert) -> Optional[Alert]:
        """
        登记新告警

        同 ID 的活跃告警被替换；每次触发都追加一条历史记录。

        Returns:
            被替换的旧活跃告警（如果有）
        """
        with self._lock:
            previous = self._active.get(alert.id)
            self._active[alert.id] = alert
            self._history.append(alert)
        return previous

    def find_active(self, alert_id: str) -> Optional[Alert]:
        with self._lock:
            return self._active.get(alert_id)

    def discard_active(self, alert_id: str) -> Optional[Alert]:
        with self._lock:
            return self._active.pop(alert_id, None)

    # ===== 查询 =====

    def get_active(self) -> List[Alert]:
        """获取活跃告警（含已确认），按时间倒序"""
        with self._lock:
            alerts = list(self._active.values())
        return _newest_first(alerts)

    def get_history(self, limit: int = 100) -> List[Alert]:
        """获取最近 limit 条告警历史，按时间倒序"""
        if limit <= 0:
            return []
        with self._lock:
            recent = self._history[-limit:]
        return _newest_first(recent)

    def get_by_component(self, component: str) -> List[Alert]:
        """按组件过滤全部历史"""
        with self._lock:
            alerts = [a for a in self._history if a.component == component]
        return _newest_first(alerts)

    def get_by_severity(self, severity: Union[AlertSeverity, str]) -> List[Alert]:
        """按级别过滤全部历史；未知级别返回空列表"""
        try:
            severity = AlertSeverity(severity)
        except ValueError:
            return []
        with self._lock:
            alerts = [a for a in self._history if a.severity == severity]
        return _newest_first(alerts)

    def get_statistics(self) -> Dict[str, Any]:
        """
        获取告警统计

        解决时长只统计已设置 resolved_at 的告警；没有已解决告警时为 0。
        """
        now = self._clock()
        last_24h = now - timedelta(hours=24)
        last_7d = now - timedelta(days=7)

        with self._lock:
            history = self._history[:]
            active_count = len(self._active)

        by_severity = {severity.value: 0 for severity in AlertSeverity}
        by_component: Dict[str, int] = {}
        for alert in history:
            by_severity[alert.severity.value] += 1
            by_component[alert.component] = by_component.get(alert.component, 0) + 1

        resolved = [a for a in history if a.resolved_at is not None]
        if resolved:
            total_seconds = sum(a.resolution_time_seconds for a in resolved)
            average_seconds = round(total_seconds / len(resolved))
        else:
            average_seconds = 0

        return {
            "total": len(history),
            "active": active_count,
            "last_24h": len([a for a in history if a.timestamp > last_24h]),
            "last_7d": len([a for a in history if a.timestamp > last_7d]),
            "by_severity": by_severity,
            "by_component": by_component,
            "average_resolution_time_seconds": average_seconds,
            "mttr_minutes": round(average_seconds / 60, 2),
        }

    # ===== 清理 =====

    def clear_old_alerts(self, retention_days: float) -> int:
        """
        清理早于保留期的历史记录

        仍在活跃索引中的告警不会被清理，无论多旧。

        Returns:
            删除的条数
        """
        cutoff = self._clock() - timedelta(days=retention_days)

        with self._lock:
            initial = len(self._history)
            self._history = [
                a for a in self._history
                if a.timestamp > cutoff or self._active.get(a.id) is a
            ]
            remaining = len(self._history)

        cleared = initial - remaining
        if cleared > 0:
            logger.info(
                "old_alerts_cleared",
                cleared=cleared,
                remaining=remaining,
                cutoff=cutoff.isoformat(),
            )
        return cleared

    def __len__(self) -> int:
        with self._lock:
            return len(self._history)
