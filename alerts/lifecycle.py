"""
告警生命周期控制

状态机:
    ACTIVE --acknowledge--> ACKNOWLEDGED
    ACTIVE / ACKNOWLEDGED --resolve--> RESOLVED (终态)
"""
from datetime import datetime
from typing import Optional, Callable

import structlog

from .cooldown import utcnow
from .models import Alert, AlertStatus
from .store import AlertStore

logger = structlog.get_logger(__name__)


class AlertLifecycle:
    """
    告警生命周期控制器

    只操作活跃索引中的告警；找不到时返回 False，不抛异常。
    """

    def __init__(
        self,
        store: AlertStore,
        clock: Callable[[], datetime] = utcnow,
        on_resolved: Optional[Callable[[Alert], None]] = None,
    ):
        self.store = store
        self._clock = clock
        self._on_resolved = on_resolved

    def acknowledge(self, alert_id: str) -> bool:
        """
        确认告警

        对已确认的告警重复确认是幂等的（返回 True，状态不变）。
        """
        with self.store.lock:
            alert = self.store.find_active(alert_id)
            if alert is None:
                return False

            if alert.status == AlertStatus.ACTIVE:
                alert.status = AlertStatus.ACKNOWLEDGED
                alert.acknowledged_at = self._clock()
                logger.info("alert_acknowledged", alert_id=alert_id)

        return True

    def resolve(self, alert_id: str) -> bool:
        """
        解决告警

        设置 resolved_at 并移出活跃索引，历史记录保留。
        已解决的告警不在活跃索引中，因此无法再次解决。
        """
        with self.store.lock:
            alert = self.store.discard_active(alert_id)
            if alert is None:
                return False

            alert.status = AlertStatus.RESOLVED
            alert.resolved_at = self._clock()

        logger.info(
            "alert_resolved",
            alert_id=alert_id,
            duration_seconds=alert.resolution_time_seconds,
        )

        if self._on_resolved:
            try:
                self._on_resolved(alert)
            except Exception as e:
                logger.error("alert_resolved_callback_failed", alert_id=alert_id, error=str(e))

        return True
