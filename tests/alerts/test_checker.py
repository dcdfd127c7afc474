"""
告警检查器测试
"""
import asyncio
from unittest.mock import patch, MagicMock

import pytest

from alerts import (
    AlertChecker,
    HealthCheckResult,
    HealthCheckRunner,
    HealthStatus,
    MetricsCollector,
    SystemMetrics,
    system_health_check,
)


def fake_system_metrics(cpu=95, memory=10, disk=10):
    return SystemMetrics(
        cpu={"usage": cpu},
        memory={"usage_percentage": memory},
        disk={"usage_percentage": disk},
    )


class TestMetricsCollector:
    """psutil 采集测试"""

    def test_collect(self):
        """采集 CPU、内存、磁盘使用率"""
        memory = MagicMock(percent=42.0, total=8_000, used=3_360)
        disk = MagicMock(percent=71.5, total=100_000, free=28_500)

        with patch("alerts.checker.psutil") as mock_psutil:
            mock_psutil.cpu_percent.return_value = 12.5
            mock_psutil.cpu_count.return_value = 4
            mock_psutil.virtual_memory.return_value = memory
            mock_psutil.disk_usage.return_value = disk

            metrics = MetricsCollector(disk_path="/data").collect()

        mock_psutil.disk_usage.assert_called_once_with("/data")
        assert metrics.cpu.usage == 12.5
        assert metrics.cpu.cores == 4
        assert metrics.memory.usage_percentage == 42.0
        assert metrics.disk.usage_percentage == 71.5
        assert metrics.disk.free_bytes == 28_500


class TestHealthCheckRunner:
    """健康检查执行器测试"""

    @pytest.mark.asyncio
    async def test_sync_and_async_checks(self):
        """同步与异步检查函数都支持"""
        runner = HealthCheckRunner()

        async def database_check():
            return HealthCheckResult(component="database", status=HealthStatus.HEALTHY)

        runner.register("system", lambda: HealthCheckResult(component="system", status="degraded"))
        runner.register("database", database_check)

        results = await runner.run()

        assert runner.components == ["system", "database"]
        assert [r.status for r in results] == [HealthStatus.DEGRADED, HealthStatus.HEALTHY]

    @pytest.mark.asyncio
    async def test_check_exception_is_unhealthy(self):
        """检查函数抛出异常时组件记为 unhealthy"""
        runner = HealthCheckRunner()

        def broken():
            raise ConnectionError("connection refused")

        runner.register("database", broken)

        results = await runner.run()

        assert len(results) == 1
        assert results[0].component == "database"
        assert results[0].status == HealthStatus.UNHEALTHY
        assert "connection refused" in results[0].message


class TestSystemHealthCheck:
    """系统资源健康检查测试"""

    def test_healthy(self):
        """资源使用率正常"""
        collector = MagicMock()
        collector.collect.return_value = fake_system_metrics(cpu=10)

        result = system_health_check(collector)()

        assert result.component == "system"
        assert result.status == HealthStatus.HEALTHY

    def test_degraded(self):
        """资源使用率超过降级阈值"""
        collector = MagicMock()
        collector.collect.return_value = fake_system_metrics(cpu=50, disk=97)

        result = system_health_check(collector, cpu_degraded=40)()

        assert result.status == HealthStatus.DEGRADED
        assert "CPU usage 50.0%" in result.message
        assert "disk usage 97.0%" in result.message


class TestAlertChecker:
    """AlertChecker 测试"""

    @pytest.mark.asyncio
    async def test_check_once(self, engine):
        """一次检查评估所有类别"""
        runner = HealthCheckRunner()
        runner.register("database", lambda: HealthCheckResult(component="database", status="unhealthy"))

        checker = AlertChecker(
            engine,
            system_collector=lambda: fake_system_metrics(cpu=95),
            application_collector=lambda: {"http": {"error_rate": 20}},
            health_runner=runner,
        )

        triggered = await checker.check_once()

        assert {a.id for a in triggered} == {"cpu_high", "error_rate_high", "health_database"}
        stats = checker.get_stats()
        assert stats["check_count"] == 1
        assert stats["triggered_count"] == 3
        assert stats["health_components"] == ["database"]

    @pytest.mark.asyncio
    async def test_collector_failure_isolated(self, engine):
        """某一类采集失败不影响其他类别"""
        def broken():
            raise RuntimeError("psutil unavailable")

        async def application():
            return {"http": {"average_response_time": 8000}}

        checker = AlertChecker(engine, system_collector=broken, application_collector=application)

        triggered = await checker.check_once()

        assert [a.id for a in triggered] == ["response_time_high"]
        assert checker.get_stats()["last_error"] == "psutil unavailable"

    @pytest.mark.asyncio
    async def test_cooldown_across_checks(self, engine):
        """连续检查受冷却限制"""
        checker = AlertChecker(engine, system_collector=lambda: fake_system_metrics(cpu=95))

        assert len(await checker.check_once()) == 1
        assert await checker.check_once() == []

    def test_cleanup_once(self, make_settings, clock):
        """按配置保留期清理"""
        from alerts import AlertEngine

        engine = AlertEngine(make_settings(retention_days=1), clock=clock)
        engine.evaluate_system_metrics(fake_system_metrics(cpu=95))
        engine.resolve_alert("cpu_high")
        clock.advance(days=2)

        checker = AlertChecker(engine)

        assert checker.cleanup_once() == 1
        stats = checker.get_stats()
        assert stats["cleared_count"] == 1
        assert stats["last_cleanup"] is not None

    @pytest.mark.asyncio
    async def test_start_stop(self, engine):
        """启动后运行检查循环，停止后任务结束"""
        calls = []

        def collector():
            calls.append(1)
            return fake_system_metrics(cpu=10)

        checker = AlertChecker(engine, system_collector=collector, check_interval=0.01)

        await checker.start()
        await asyncio.sleep(0.05)
        await checker.stop()

        assert calls
        stats = checker.get_stats()
        assert stats["running"] is False
        assert stats["last_cleanup"] is not None
