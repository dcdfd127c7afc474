"""
告警检查器

定时采集系统/应用指标与健康检查结果，交给告警引擎评估；
按清理间隔执行历史保留清理。
"""
import asyncio
import inspect
import os
import time
from datetime import datetime
from typing import Optional, Dict, Any, List, Callable, Awaitable, Union

import psutil
import structlog

from .engine import AlertEngine
from .models import (
    Alert,
    SystemMetrics,
    ApplicationMetrics,
    HealthCheckResult,
    HealthStatus,
)
from .cooldown import utcnow

logger = structlog.get_logger(__name__)

HealthCheckFn = Callable[[], Union[HealthCheckResult, Awaitable[HealthCheckResult]]]


async def _resolve(value):
    if inspect.isawaitable(value):
        return await value
    return value


class MetricsCollector:
    """
    系统指标收集器

    使用 psutil 采集 CPU、内存、磁盘使用率
    """

    def __init__(self, disk_path: str = "/"):
        self.disk_path = disk_path

    def collect(self) -> SystemMetrics:
        memory = psutil.virtual_memory()
        disk = psutil.disk_usage(self.disk_path)

        try:
            load_average = list(os.getloadavg())
        except (AttributeError, OSError):
            load_average = None

        return SystemMetrics(
            cpu={
                "usage": psutil.cpu_percent(interval=None),
                "cores": psutil.cpu_count(),
                "load_average": load_average,
            },
            memory={
                "usage_percentage": memory.percent,
                "total_bytes": memory.total,
                "used_bytes": memory.used,
            },
            disk={
                "usage_percentage": disk.percent,
                "total_bytes": disk.total,
                "free_bytes": disk.free,
            },
        )


class HealthCheckRunner:
    """
    健康检查执行器

    每个组件注册一个检查函数（同步或异步），返回 HealthCheckResult。
    检查函数抛出异常时该组件记为 unhealthy。
    """

    def __init__(self):
        self._checks: Dict[str, HealthCheckFn] = {}

    def register(self, component: str, check: HealthCheckFn) -> None:
        """注册组件健康检查"""
        self._checks[component] = check

    @property
    def components(self) -> List[str]:
        return list(self._checks.keys())

    async def run(self) -> List[HealthCheckResult]:
        results = []
        for component, check in self._checks.items():
            start = time.perf_counter()
            try:
                result = await _resolve(check())
            except Exception as e:
                result = HealthCheckResult(
                    component=component,
                    status=HealthStatus.UNHEALTHY,
                    message=f"{component} health check failed: {e}",
                    response_time=round((time.perf_counter() - start) * 1000, 2),
                )
            results.append(result)
        return results


def system_health_check(
    collector: MetricsCollector,
    cpu_degraded: float = 90,
    memory_degraded: float = 90,
    disk_degraded: float = 95,
) -> HealthCheckFn:
    """构建基于系统资源使用率的健康检查"""

    def check() -> HealthCheckResult:
        start = time.perf_counter()
        metrics = collector.collect()
        elapsed = round((time.perf_counter() - start) * 1000, 2)

        issues = []
        if metrics.cpu.usage > cpu_degraded:
            issues.append(f"CPU usage {metrics.cpu.usage}%")
        if metrics.memory.usage_percentage > memory_degraded:
            issues.append(f"memory usage {metrics.memory.usage_percentage}%")
        if metrics.disk.usage_percentage > disk_degraded:
            issues.append(f"disk usage {metrics.disk.usage_percentage}%")

        return HealthCheckResult(
            component="system",
            status=HealthStatus.DEGRADED if issues else HealthStatus.HEALTHY,
            message="High resource usage: " + ", ".join(issues) if issues else "System resources within limits",
            response_time=elapsed,
            details={
                "cpu_usage": metrics.cpu.usage,
                "memory_usage": metrics.memory.usage_percentage,
                "disk_usage": metrics.disk.usage_percentage,
            },
        )

    return check


class AlertChecker:
    """
    告警检查器

    定时检查指标并触发告警
    """

    def __init__(
        self,
        engine: AlertEngine,
        system_collector: Optional[Callable[[], Any]] = None,
        application_collector: Optional[Callable[[], Any]] = None,
        health_runner: Optional[HealthCheckRunner] = None,
        check_interval: float = 30.0,  # 检查间隔（秒）
        cleanup_interval: float = 86400.0,  # 清理间隔（秒）
    ):
        self.engine = engine
        self.system_collector = system_collector
        self.application_collector = application_collector
        self.health_runner = health_runner
        self.check_interval = check_interval
        self.cleanup_interval = cleanup_interval

        self._running = False
        self._check_task: Optional[asyncio.Task] = None

        # 统计
        self._check_count = 0
        self._triggered_count = 0
        self._cleared_count = 0
        self._last_check: Optional[datetime] = None
        self._last_cleanup: Optional[datetime] = None
        self._last_cleanup_monotonic: Optional[float] = None
        self._last_error: Optional[str] = None

    async def start(self) -> None:
        """启动定时检查"""
        if self._running:
            return

        self._running = True
        self._check_task = asyncio.create_task(self._check_loop())
        logger.info(
            "alert_checker_started",
            interval=self.check_interval,
            cleanup_interval=self.cleanup_interval,
        )

    async def stop(self) -> None:
        """停止定时检查"""
        self._running = False
        if self._check_task:
            self._check_task.cancel()
            try:
                await self._check_task
            except asyncio.CancelledError:
                pass
            self._check_task = None
        logger.info("alert_checker_stopped")

    async def _check_loop(self) -> None:
        """检查循环"""
        while self._running:
            try:
                await self.check_once()
            except Exception as e:
                self._last_error = str(e)
                logger.error("alert_check_failed", error=str(e))

            if self._cleanup_due():
                self.cleanup_once()

            await asyncio.sleep(self.check_interval)

    def _cleanup_due(self) -> bool:
        if self._last_cleanup_monotonic is None:
            return True
        return time.monotonic() - self._last_cleanup_monotonic >= self.cleanup_interval

    async def check_once(self) -> List[Alert]:
        """
        执行一次检查

        某一类指标采集失败时记录日志并继续评估其他类别。

        Returns:
            本次触发的告警列表
        """
        triggered: List[Alert] = []

        if self.system_collector:
            try:
                metrics = await _resolve(self.system_collector())
                triggered.extend(self.engine.evaluate_system_metrics(metrics))
            except Exception as e:
                self._last_error = str(e)
                logger.warning("system_metrics_failed", error=str(e))

        if self.application_collector:
            try:
                metrics = await _resolve(self.application_collector())
                triggered.extend(self.engine.evaluate_application_metrics(metrics))
            except Exception as e:
                self._last_error = str(e)
                logger.warning("application_metrics_failed", error=str(e))

        if self.health_runner:
            try:
                results = await self.health_runner.run()
                unhealthy = [r.component for r in results if r.status == HealthStatus.UNHEALTHY]
                degraded = [r.component for r in results if r.status == HealthStatus.DEGRADED]
                if unhealthy or degraded:
                    logger.warning("health_check_issues", unhealthy=unhealthy, degraded=degraded)
                triggered.extend(self.engine.evaluate_health_checks(results))
            except Exception as e:
                self._last_error = str(e)
                logger.warning("health_checks_failed", error=str(e))

        self._check_count += 1
        self._triggered_count += len(triggered)
        self._last_check = utcnow()

        if triggered:
            logger.warning(
                "alert_evaluation_completed",
                triggered=len(triggered),
                alerts=[{"id": a.id, "severity": a.severity.value, "title": a.title} for a in triggered],
            )
        else:
            logger.debug("alert_evaluation_completed", triggered=0)

        return triggered

    def cleanup_once(self) -> int:
        """执行一次历史清理"""
        try:
            cleared = self.engine.clear_old_alerts()
        except Exception as e:
            self._last_error = str(e)
            logger.error("alert_cleanup_failed", error=str(e))
            return 0
        finally:
            self._last_cleanup = utcnow()
            self._last_cleanup_monotonic = time.monotonic()

        self._cleared_count += cleared
        logger.info("alert_cleanup_completed", cleared=cleared)
        return cleared

    def get_stats(self) -> Dict[str, Any]:
        """获取检查器统计"""
        return {
            "running": self._running,
            "check_interval": self.check_interval,
            "cleanup_interval": self.cleanup_interval,
            "check_count": self._check_count,
            "triggered_count": self._triggered_count,
            "cleared_count": self._cleared_count,
            "last_check": self._last_check.isoformat() if self._last_check else None,
            "last_cleanup": self._last_cleanup.isoformat() if self._last_cleanup else None,
            "last_error": self._last_error,
            "health_components": self.health_runner.components if self.health_runner else [],
            "alerts_enabled": self.engine.enabled,
        }
