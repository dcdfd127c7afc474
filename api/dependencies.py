"""
FastAPI 依赖注入

告警引擎、通知器、检查器均为进程内单例。
"""
from typing import Optional

from alerts import (
    AlertEngine,
    AlertNotifier,
    AlertChecker,
    MetricsCollector,
    HealthCheckRunner,
    HealthCheckResult,
    HealthStatus,
    system_health_check,
)
from core.config import get_settings


# 全局单例存储
_alert_notifier: Optional[AlertNotifier] = None
_alert_engine: Optional[AlertEngine] = None
_alert_checker: Optional[AlertChecker] = None


def get_alert_notifier() -> AlertNotifier:
    """获取告警通知器"""
    global _alert_notifier

    if _alert_notifier is None:
        settings = get_settings()
        _alert_notifier = AlertNotifier.from_settings(settings.notifications)

    return _alert_notifier


def get_alert_engine() -> AlertEngine:
    """
    获取告警引擎

    使用方式:
    @router.get("/example")
    async def example(engine: AlertEngine = Depends(get_alert_engine)):
        ...
    """
    global _alert_engine

    if _alert_engine is None:
        from api.metrics import increment_alert_counter, increment_alert_resolved

        _alert_engine = AlertEngine(
            get_settings(),
            notifier=get_alert_notifier(),
            metrics_sink=increment_alert_counter,
            on_resolved=increment_alert_resolved,
        )

    return _alert_engine


def _application_health_check() -> HealthCheckResult:
    """基于最近请求统计的应用健康检查"""
    from api.metrics import _metrics_state

    settings = get_settings()
    count = _metrics_state["request_count"]
    avg_ms = _metrics_state["request_duration_sum"] / count * 1000 if count else 0.0
    slow = avg_ms > settings.monitoring.slow_response_ms

    return HealthCheckResult(
        component="application",
        status=HealthStatus.DEGRADED if slow else HealthStatus.HEALTHY,
        message=f"Average response time {avg_ms:.0f}ms" if slow else "Application responding normally",
        details={"requests": count, "average_response_time_ms": round(avg_ms, 2)},
    )


def get_alert_checker() -> AlertChecker:
    """获取告警检查器（定时驱动）"""
    global _alert_checker

    if _alert_checker is None:
        from api.metrics import snapshot_application_metrics

        settings = get_settings()
        collector = MetricsCollector()

        health_runner = HealthCheckRunner()
        health_runner.register("system", system_health_check(
            collector,
            cpu_degraded=settings.monitoring.cpu_degraded,
            memory_degraded=settings.monitoring.memory_degraded,
            disk_degraded=settings.monitoring.disk_degraded,
        ))
        health_runner.register("application", _application_health_check)

        _alert_checker = AlertChecker(
            get_alert_engine(),
            system_collector=collector.collect,
            application_collector=snapshot_application_metrics,
            health_runner=health_runner,
            check_interval=settings.monitoring.check_interval,
            cleanup_interval=settings.monitoring.cleanup_interval,
        )

    return _alert_checker


def reset_singletons():
    """重置所有单例（用于测试）"""
    global _alert_notifier, _alert_engine, _alert_checker
    if _alert_notifier is not None:
        _alert_notifier.shutdown(wait=False)
    _alert_notifier = None
    _alert_engine = None
    _alert_checker = None
