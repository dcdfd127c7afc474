"""
告警评估引擎

三个评估入口（系统指标、应用指标、健康检查）将输入快照转换为规则评估，
越过阈值且不在冷却期内的规则生成告警、登记存储、记录冷却并派发通知。

所有告警状态（活跃索引、历史、冷却记录）由同一把锁保护；
通知派发与指标计数在锁外进行。
"""
import threading
import uuid
from datetime import datetime
from typing import Optional, List, Dict, Any, Callable, Iterable, Union, Mapping

import structlog
from pydantic import ValidationError

from .cooldown import CooldownTracker, utcnow
from .exceptions import AlertConfigurationError
from .lifecycle import AlertLifecycle
from .models import (
    Alert,
    AlertStatus,
    SystemMetrics,
    ApplicationMetrics,
    HealthCheckResult,
    HealthStatus,
)
from .notifier import AlertNotifier
from .rules import AlertRule, AlertRuleTable, AlertSeverity, evaluate
from .store import AlertStore

logger = structlog.get_logger(__name__)

MetricsSink = Callable[[str, str], None]


def _format_number(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".")


class AlertEngine:
    """
    告警引擎

    功能:
    - 规则评估（阈值 + 冷却）
    - 告警创建、登记与通知
    - 查询、统计、生命周期操作
    - 历史保留清理
    """

    def __init__(
        self,
        settings,
        rules: Optional[Iterable[AlertRule]] = None,
        notifier: Optional[AlertNotifier] = None,
        metrics_sink: Optional[MetricsSink] = None,
        on_resolved: Optional[Callable[[Alert], None]] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Args:
            settings: 配置快照，需提供 alerts 与 retention 子配置
            rules: 自定义规则表，默认使用内置规则
            notifier: 通知派发器
            metrics_sink: 告警计数回调 (severity, component)
            on_resolved: 告警解决回调
            clock: 时间源
        """
        if settings is None:
            raise AlertConfigurationError("告警引擎缺少配置")
        try:
            alert_settings = settings.alerts
            retention_days = settings.retention.alert_days
        except AttributeError as e:
            raise AlertConfigurationError(f"告警配置不完整: {e}")

        self.enabled: bool = alert_settings.enabled
        self.default_cooldown_minutes: float = alert_settings.cooldown_minutes
        self.retention_days: int = retention_days

        self.rules = AlertRuleTable(rules)
        self.rules.apply_thresholds(alert_settings.thresholds)

        self._clock = clock
        self._lock = threading.RLock()
        self.store = AlertStore(lock=self._lock, clock=clock)
        self.cooldowns = CooldownTracker(clock=clock)
        self.lifecycle = AlertLifecycle(self.store, clock=clock, on_resolved=on_resolved)

        self.notifier = notifier
        self._metrics_sink = metrics_sink

        logger.info(
            "alert_engine_initialized",
            rules_count=len(self.rules),
            alerts_enabled=self.enabled,
            default_cooldown_minutes=self.default_cooldown_minutes,
        )

    # ===== 评估入口 =====

    def evaluate_system_metrics(
        self, metrics: Union[SystemMetrics, Mapping[str, Any]]
    ) -> List[Alert]:
        """
        评估系统指标（CPU、内存、磁盘）

        Returns:
            本次新触发的告警
        """
        if not self.enabled:
            return []

        if not isinstance(metrics, SystemMetrics):
            try:
                metrics = SystemMetrics.model_validate(metrics)
            except ValidationError as e:
                logger.warning("system_metrics_invalid", errors=e.error_count(), error=str(e))
                return []

        checks = [
            ("cpu_high", metrics.cpu.usage),
            ("memory_high", metrics.memory.usage_percentage),
            ("disk_high", metrics.disk.usage_percentage),
        ]
        return self._evaluate_all(checks)

    def evaluate_application_metrics(
        self, metrics: Union[ApplicationMetrics, Mapping[str, Any]]
    ) -> List[Alert]:
        """
        评估应用指标（错误率、平均响应时间）

        只有在指标存在且大于 0 时才评估，避免在没有流量时对 0 基线误报。
        """
        if not self.enabled:
            return []

        if not isinstance(metrics, ApplicationMetrics):
            try:
                metrics = ApplicationMetrics.model_validate(metrics)
            except ValidationError as e:
                logger.warning("application_metrics_invalid", errors=e.error_count(), error=str(e))
                return []

        checks = []
        error_rate = metrics.http.error_rate
        if error_rate is not None and error_rate > 0:
            checks.append(("error_rate_high", error_rate))

        response_time = metrics.http.average_response_time
        if response_time is not None and response_time > 0:
            checks.append(("response_time_high", response_time))

        return self._evaluate_all(checks)

    def evaluate_health_checks(
        self, checks: Iterable[Union[HealthCheckResult, Mapping[str, Any]]]
    ) -> List[Alert]:
        """
        评估健康检查结果

        - unhealthy -> health_<component>，critical
        - degraded  -> degraded_<component>，medium
        - healthy 不产生告警，也不自动解决已有告警
        - 格式无效的检查结果记录日志后跳过，其余结果照常评估
        """
        if not self.enabled:
            return []

        triggered = []
        for check in checks:
            if not isinstance(check, HealthCheckResult):
                try:
                    check = HealthCheckResult.model_validate(check)
                except ValidationError as e:
                    logger.warning("health_check_invalid", errors=e.error_count(), error=str(e))
                    continue

            if check.status == HealthStatus.UNHEALTHY:
                alert_id = f"health_{check.component}"
                severity = AlertSeverity.CRITICAL
                title = f"{check.component} Health Check Failed"
            elif check.status == HealthStatus.DEGRADED:
                alert_id = f"degraded_{check.component}"
                severity = AlertSeverity.MEDIUM
                title = f"{check.component} Performance Degraded"
            else:
                continue

            alert = self._fire(
                alert_id,
                self.default_cooldown_minutes,
                id=alert_id,
                component=check.component,
                severity=severity,
                title=title,
                description=check.message,
                metadata={
                    "response_time": check.response_time,
                    "details": check.details,
                },
            )
            if alert:
                triggered.append(alert)

        return triggered

    def evaluate_metric(self, rule_id: str, value: Optional[float]) -> Optional[Alert]:
        """
        用单个指标值评估指定规则

        规则不存在、已禁用、未越过阈值或处于冷却期时返回 None。
        """
        if not self.enabled or value is None:
            return None

        rule = self.rules.get_rule(rule_id)
        if rule is None or not rule.enabled:
            return None

        if not evaluate(rule, value):
            return None

        suffix = "%" if rule.is_percentage else ""
        return self._fire(
            rule.id,
            rule.cooldown_minutes,
            id=rule.id,
            component=rule.component,
            severity=rule.severity,
            title=rule.description or rule.id,
            description=(
                f"{rule.metric} is {_format_number(value)}{suffix}, "
                f"threshold: {_format_number(rule.threshold)}{suffix}"
            ),
            metric=rule.metric,
            value=value,
            threshold=rule.threshold,
        )

    def _evaluate_all(self, checks: List[tuple]) -> List[Alert]:
        triggered = []
        for rule_id, value in checks:
            alert = self.evaluate_metric(rule_id, value)
            if alert:
                triggered.append(alert)
        return triggered

    # ===== 告警工厂 =====

    def _fire(self, alert_id: str, cooldown_minutes: float, **partial: Any) -> Optional[Alert]:
        """冷却检查与登记在同一临界区内完成"""
        with self._lock:
            if not self.cooldowns.should_fire(alert_id, cooldown_minutes):
                logger.debug(
                    "alert_suppressed_cooldown",
                    alert_id=alert_id,
                    last_fired=self.cooldowns.last_fired(alert_id).isoformat(),
                    cooldown_minutes=cooldown_minutes,
                )
                return None
            alert = self._register(partial)

        self._publish(alert)
        return alert

    def create_alert(self, **partial: Any) -> Alert:
        """
        创建并登记告警

        Args:
            id: 告警 ID（缺省时自动生成）
            severity / component / title / description: 告警内容
            metric / value / threshold: 阈值规则告警附带
            metadata: 附加上下文

        Returns:
            创建的告警
        """
        with self._lock:
            alert = self._register(partial)
        self._publish(alert)
        return alert

    def _register(self, partial: Dict[str, Any]) -> Alert:
        now = self._clock()
        alert = Alert(
            id=partial.get("id") or f"alert_{uuid.uuid4().hex[:12]}",
            timestamp=now,
            severity=AlertSeverity(partial.get("severity") or AlertSeverity.MEDIUM),
            component=partial.get("component") or "unknown",
            title=partial.get("title") or "Alert",
            description=partial.get("description") or "",
            metric=partial.get("metric"),
            value=partial.get("value"),
            threshold=partial.get("threshold"),
            status=AlertStatus.ACTIVE,
            metadata=dict(partial.get("metadata") or {}),
        )

        previous = self.store.add(alert)
        self.cooldowns.record(alert.id, now)

        if previous is not None:
            logger.info(
                "alert_refired",
                alert_id=alert.id,
                previous_timestamp=previous.timestamp.isoformat(),
                previous_status=previous.status.value,
            )
        return alert

    def _publish(self, alert: Alert) -> None:
        """计数、日志与通知，均在锁外执行"""
        if self._metrics_sink:
            try:
                self._metrics_sink(alert.severity.value, alert.component)
            except Exception as e:
                logger.error("alert_metrics_sink_failed", alert_id=alert.id, error=str(e))

        logger.warning(
            "alert_triggered",
            alert_id=alert.id,
            severity=alert.severity.value,
            component=alert.component,
            title=alert.title,
            value=alert.value,
            threshold=alert.threshold,
        )

        if self.notifier is None:
            return
        try:
            self.notifier.dispatch(alert)
        except Exception as e:
            logger.error(
                "alert_notification_failed",
                alert_id=alert.id,
                severity=alert.severity.value,
                title=alert.title,
                error=str(e),
            )

    def create_test_alert(self) -> Alert:
        """创建测试告警，用于验证通知链路"""
        now = self._clock()
        return self.create_alert(
            id=f"test_alert_{int(now.timestamp() * 1000)}_{uuid.uuid4().hex[:4]}",
            component="test",
            severity=AlertSeverity.LOW,
            title="Test Alert",
            description="This is a test alert to verify the alert system is working",
            metadata={
                "type": "test",
                "timestamp": now.isoformat(),
            },
        )

    # ===== 查询 =====

    def get_active_alerts(self) -> List[Alert]:
        return self.store.get_active()

    def get_alert_history(self, limit: int = 100) -> List[Alert]:
        return self.store.get_history(limit)

    def get_alerts_by_component(self, component: str) -> List[Alert]:
        return self.store.get_by_component(component)

    def get_alerts_by_severity(self, severity: Union[AlertSeverity, str]) -> List[Alert]:
        return self.store.get_by_severity(severity)

    def get_statistics(self) -> Dict[str, Any]:
        return self.store.get_statistics()

    # ===== 生命周期 =====

    def acknowledge_alert(self, alert_id: str) -> bool:
        return self.lifecycle.acknowledge(alert_id)

    def resolve_alert(self, alert_id: str) -> bool:
        return self.lifecycle.resolve(alert_id)

    def clear_old_alerts(self, retention_days: Optional[float] = None) -> int:
        """按保留期清理历史，默认使用配置的保留天数"""
        days = self.retention_days if retention_days is None else retention_days
        return self.store.clear_old_alerts(days)
