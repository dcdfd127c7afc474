"""
告警规则表与规则评估

定义内置阈值规则，支持从配置覆盖阈值。
评估函数为纯函数：给定规则和当前值，返回是否越过阈值。
"""
import operator as _op
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, List, Dict, Any, Iterable, Mapping, Callable
import structlog

from .exceptions import AlertConfigurationError

logger = structlog.get_logger(__name__)


class AlertSeverity(str, Enum):
    """告警级别"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AlertOperator(str, Enum):
    """比较运算符"""
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    EQ = "eq"


_COMPARATORS: Dict[AlertOperator, Callable[[float, float], bool]] = {
    AlertOperator.GT: _op.gt,
    AlertOperator.GTE: _op.ge,
    AlertOperator.LT: _op.lt,
    AlertOperator.LTE: _op.le,
    AlertOperator.EQ: _op.eq,
}


@dataclass
class AlertRule:
    """告警规则"""
    id: str
    component: str
    metric: str
    operator: AlertOperator
    threshold: float
    severity: AlertSeverity
    cooldown_minutes: float = 15
    enabled: bool = True
    description: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            raise AlertConfigurationError("告警规则缺少 id")
        try:
            self.operator = AlertOperator(self.operator)
        except ValueError:
            raise AlertConfigurationError(
                f"规则 {self.id} 的运算符无效: {self.operator}", rule_id=self.id
            )
        try:
            self.severity = AlertSeverity(self.severity)
        except ValueError:
            raise AlertConfigurationError(
                f"规则 {self.id} 的告警级别无效: {self.severity}", rule_id=self.id
            )
        if not _is_number(self.threshold):
            raise AlertConfigurationError(
                f"规则 {self.id} 的阈值必须是数值: {self.threshold!r}", rule_id=self.id
            )
        if not _is_number(self.cooldown_minutes) or self.cooldown_minutes < 0:
            raise AlertConfigurationError(
                f"规则 {self.id} 的冷却时间必须 >= 0: {self.cooldown_minutes!r}", rule_id=self.id
            )

    @property
    def cooldown_seconds(self) -> float:
        return self.cooldown_minutes * 60

    @property
    def is_percentage(self) -> bool:
        """指标名称是否表示百分比（用于描述文本）"""
        return "percentage" in self.metric or "usage" in self.metric or "rate" in self.metric

    def evaluate(self, value: float) -> bool:
        """评估当前值是否越过阈值；禁用的规则永不触发"""
        if not self.enabled:
            return False
        return _COMPARATORS[self.operator](value, self.threshold)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "component": self.component,
            "metric": self.metric,
            "operator": self.operator.value,
            "threshold": self.threshold,
            "severity": self.severity.value,
            "cooldown_minutes": self.cooldown_minutes,
            "enabled": self.enabled,
            "description": self.description,
        }


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def evaluate(rule: AlertRule, value: float) -> bool:
    """
    规则评估

    Args:
        rule: 告警规则
        value: 当前指标值

    Returns:
        是否触发
    """
    return rule.evaluate(value)


# 内置告警规则
BUILTIN_RULES: List[AlertRule] = [
    AlertRule(
        id="cpu_high",
        component="system",
        metric="cpu_usage",
        operator=AlertOperator.GT,
        threshold=80,
        severity=AlertSeverity.HIGH,
        cooldown_minutes=15,
        description="CPU usage above 80%",
    ),
    AlertRule(
        id="memory_high",
        component="system",
        metric="memory_usage",
        operator=AlertOperator.GT,
        threshold=85,
        severity=AlertSeverity.HIGH,
        cooldown_minutes=15,
        description="Memory usage above 85%",
    ),
    AlertRule(
        id="disk_high",
        component="system",
        metric="disk_usage",
        operator=AlertOperator.GT,
        threshold=90,
        severity=AlertSeverity.CRITICAL,
        cooldown_minutes=30,
        description="Disk usage above 90%",
    ),
    AlertRule(
        id="response_time_high",
        component="application",
        metric="response_time",
        operator=AlertOperator.GT,
        threshold=5000,
        severity=AlertSeverity.MEDIUM,
        cooldown_minutes=10,
        description="Response time above 5 seconds",
    ),
    AlertRule(
        id="error_rate_high",
        component="application",
        metric="error_rate",
        operator=AlertOperator.GT,
        threshold=5,
        severity=AlertSeverity.HIGH,
        cooldown_minutes=5,
        description="Error rate above 5%",
    ),
    AlertRule(
        id="database_down",
        component="database",
        metric="health_status",
        operator=AlertOperator.EQ,
        threshold=0,
        severity=AlertSeverity.CRITICAL,
        cooldown_minutes=1,
        description="Database connection failed",
    ),
]

# 规则 ID -> 配置中的阈值键
THRESHOLD_KEYS: Dict[str, str] = {
    "cpu_high": "cpu_usage",
    "memory_high": "memory_usage",
    "disk_high": "disk_usage",
    "response_time_high": "response_time",
    "error_rate_high": "error_rate",
}


class AlertRuleTable:
    """
    告警规则表

    功能:
    - 持有规则（内置或调用方提供），ID 唯一
    - 构造时从配置覆盖阈值
    """

    def __init__(self, rules: Optional[Iterable[AlertRule]] = None):
        # 每个引擎持有独立副本，阈值覆盖不会影响 BUILTIN_RULES
        source = BUILTIN_RULES if rules is None else rules
        self._rules: Dict[str, AlertRule] = {}

        for rule in source:
            if not isinstance(rule, AlertRule):
                raise AlertConfigurationError(f"规则表包含非法条目: {rule!r}")
            if rule.id in self._rules:
                raise AlertConfigurationError(f"规则 ID 重复: {rule.id}", rule_id=rule.id)
            self._rules[rule.id] = replace(rule)

        logger.info("alert_rules_loaded", count=len(self._rules))

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: str) -> bool:
        return rule_id in self._rules

    def get_rule(self, rule_id: str) -> Optional[AlertRule]:
        """获取规则"""
        return self._rules.get(rule_id)

    def list_rules(self, enabled_only: bool = False) -> List[AlertRule]:
        """列出所有规则"""
        rules = list(self._rules.values())
        if enabled_only:
            rules = [r for r in rules if r.enabled]
        return rules

    def apply_thresholds(self, thresholds: Mapping[str, Any]) -> None:
        """
        从配置覆盖阈值

        Args:
            thresholds: 阈值键 (cpu_usage, memory_usage, ...) 到数值的映射
        """
        for rule_id, key in THRESHOLD_KEYS.items():
            rule = self._rules.get(rule_id)
            if rule is None or key not in thresholds:
                continue

            value = thresholds[key]
            if not _is_number(value):
                raise AlertConfigurationError(
                    f"阈值 {key} 必须是数值: {value!r}", rule_id=rule_id
                )
            rule.threshold = float(value)

        logger.debug(
            "alert_thresholds_applied",
            thresholds={rid: self._rules[rid].threshold for rid in THRESHOLD_KEYS if rid in self._rules},
        )
