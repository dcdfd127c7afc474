# 告警模块
from .exceptions import AlertError, AlertConfigurationError
from .rules import (
    AlertRule,
    AlertRuleTable,
    AlertSeverity,
    AlertOperator,
    BUILTIN_RULES,
    evaluate,
)
from .cooldown import CooldownTracker
from .models import (
    Alert,
    AlertStatus,
    SystemMetrics,
    ApplicationMetrics,
    HealthCheckResult,
    HealthStatus,
)
from .store import AlertStore
from .lifecycle import AlertLifecycle
from .notifier import AlertNotifier
from .engine import AlertEngine
from .checker import AlertChecker, MetricsCollector, HealthCheckRunner, system_health_check

__all__ = [
    "AlertError",
    "AlertConfigurationError",
    "AlertRule",
    "AlertRuleTable",
    "AlertSeverity",
    "AlertOperator",
    "BUILTIN_RULES",
    "evaluate",
    "CooldownTracker",
    "Alert",
    "AlertStatus",
    "SystemMetrics",
    "ApplicationMetrics",
    "HealthCheckResult",
    "HealthStatus",
    "AlertStore",
    "AlertLifecycle",
    "AlertNotifier",
    "AlertEngine",
    "AlertChecker",
    "MetricsCollector",
    "HealthCheckRunner",
    "system_health_check",
]
