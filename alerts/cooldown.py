"""
告警冷却跟踪

记录每个告警 ID（规则 ID 或健康检查合成 ID）最近一次触发时间，
在冷却窗口内抑制重复触发。
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Callable


def utcnow() -> datetime:
    """当前 UTC 时间（带时区）"""
    return datetime.now(timezone.utc)


class CooldownTracker:
    """
    冷却跟踪器

    本身不加锁；检查与记录必须在调用方持有的告警状态锁内完成，
    保证 "检查-记录" 序列对同一 ID 是原子的。
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock
        self._last_fired: Dict[str, datetime] = {}

    def should_fire(self, alert_id: str, cooldown_minutes: float) -> bool:
        """
        检查是否已过冷却期

        Args:
            alert_id: 告警 ID
            cooldown_minutes: 冷却时间（分钟）

        Returns:
            从未触发过，或距上次触发已超过冷却时间时返回 True
        """
        last = self._last_fired.get(alert_id)
        if last is None:
            return True
        return self._clock() - last > timedelta(minutes=cooldown_minutes)

    def record(self, alert_id: str, fired_at: Optional[datetime] = None) -> None:
        """记录一次触发（覆盖旧记录）"""
        self._last_fired[alert_id] = fired_at or self._clock()

    def last_fired(self, alert_id: str) -> Optional[datetime]:
        return self._last_fired.get(alert_id)

    def __len__(self) -> int:
        return len(self._last_fired)
