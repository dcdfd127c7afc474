"""
告警 API 测试
"""
from unittest.mock import patch, AsyncMock

import pytest

from alerts import AlertEngine
from api.dependencies import get_alert_engine
from api.main import app


PREFIX = "/api/v1/alerts"

HIGH_CPU = {
    "cpu": {"usage": 95},
    "memory": {"usage_percentage": 10},
    "disk": {"usage_percentage": 10},
}


@pytest.fixture
def disabled_engine(make_settings):
    """告警禁用的引擎"""
    engine = AlertEngine(make_settings(enabled=False))
    app.dependency_overrides[get_alert_engine] = lambda: engine
    yield engine
    app.dependency_overrides.pop(get_alert_engine, None)


class TestHealthAPI:
    """健康检查测试"""

    def test_root_health(self, api_client):
        """根路径健康检查"""
        response = api_client.get("/health")
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "healthy"

    def test_prefixed_health(self, api_client):
        """带前缀的健康检查"""
        response = api_client.get("/api/v1/health")
        assert response.status_code == 200
        data = response.json()["data"]
        assert "uptime_seconds" in data
        assert data["alerts_enabled"] is True

    def test_request_id_header(self, api_client):
        """响应带请求 ID"""
        response = api_client.get("/health", headers={"X-Request-ID": "req_test"})
        assert response.headers["X-Request-ID"] == "req_test"


class TestAlertQueryAPI:
    """告警查询 API 测试"""

    def test_active_empty(self, api_client):
        """没有告警时活跃列表为空"""
        response = api_client.get(f"{PREFIX}/active")
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["data"] == {"alerts": [], "total": 0}

    def test_rules(self, api_client):
        """列出内置规则"""
        response = api_client.get(f"{PREFIX}/rules")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total"] == 6
        ids = {r["id"] for r in data["rules"]}
        assert {"cpu_high", "disk_high", "database_down"} <= ids

    def test_history_limit(self, api_client):
        """历史按 limit 截取"""
        api_client.post(f"{PREFIX}/evaluate/system", json={
            "cpu": {"usage": 95},
            "memory": {"usage_percentage": 95},
            "disk": {"usage_percentage": 10},
        })

        response = api_client.get(f"{PREFIX}/history", params={"limit": 1})
        assert response.status_code == 200
        assert response.json()["data"]["total"] == 1

    def test_history_invalid_limit(self, api_client):
        """limit 非法时返回 400"""
        response = api_client.get(f"{PREFIX}/history", params={"limit": 0})
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_filter_by_component(self, api_client):
        """按组件查询"""
        api_client.post(f"{PREFIX}/evaluate/system", json=HIGH_CPU)

        response = api_client.get(f"{PREFIX}/component/system")
        assert [a["id"] for a in response.json()["data"]["alerts"]] == ["cpu_high"]

        response = api_client.get(f"{PREFIX}/component/database")
        assert response.json()["data"]["total"] == 0

    def test_filter_by_severity(self, api_client):
        """按级别查询"""
        api_client.post(f"{PREFIX}/evaluate/system", json=HIGH_CPU)

        response = api_client.get(f"{PREFIX}/severity/high")
        assert response.status_code == 200
        assert response.json()["data"]["total"] == 1

    def test_filter_by_invalid_severity(self, api_client):
        """未知级别返回 400"""
        response = api_client.get(f"{PREFIX}/severity/urgent")
        assert response.status_code == 400
        data = response.json()
        assert data["code"] == 40002
        assert data["error"]["field"] == "severity"

    def test_stats(self, api_client):
        """统计信息"""
        api_client.post(f"{PREFIX}/evaluate/system", json=HIGH_CPU)

        response = api_client.get(f"{PREFIX}/stats")
        assert response.status_code == 200
        stats = response.json()["data"]
        assert stats["total"] == 1
        assert stats["active"] == 1
        assert stats["by_severity"]["high"] == 1
        assert stats["mttr_minutes"] == 0


class TestAlertEvaluationAPI:
    """手动评估 API 测试"""

    def test_evaluate_system(self, api_client):
        """系统指标越过阈值产生告警"""
        response = api_client.post(f"{PREFIX}/evaluate/system", json=HIGH_CPU)
        assert response.status_code == 200

        alerts = response.json()["data"]["alerts"]
        assert len(alerts) == 1
        assert alerts[0]["id"] == "cpu_high"
        assert alerts[0]["severity"] == "high"
        assert alerts[0]["value"] == 95
        assert alerts[0]["threshold"] == 80
        assert alerts[0]["status"] == "active"

        # 冷却期内再次评估不产生告警
        response = api_client.post(f"{PREFIX}/evaluate/system", json=HIGH_CPU)
        assert response.json()["data"]["total"] == 0

    def test_evaluate_application(self, api_client):
        """应用指标评估"""
        response = api_client.post(f"{PREFIX}/evaluate/application", json={
            "http": {"total_requests": 200, "error_rate": 12, "average_response_time": 150},
        })
        assert response.status_code == 200
        assert [a["id"] for a in response.json()["data"]["alerts"]] == ["error_rate_high"]

    def test_evaluate_health(self, api_client):
        """健康检查评估"""
        response = api_client.post(f"{PREFIX}/evaluate/health", json=[
            {"component": "database", "status": "unhealthy", "message": "timeout"},
            {"component": "cache", "status": "healthy"},
        ])
        assert response.status_code == 200
        alerts = response.json()["data"]["alerts"]
        assert [a["id"] for a in alerts] == ["health_database"]
        assert alerts[0]["severity"] == "critical"

    def test_evaluate_invalid_body(self, api_client):
        """请求体校验失败返回 400"""
        response = api_client.post(f"{PREFIX}/evaluate/system", json={"cpu": {"usage": 95}})
        assert response.status_code == 400
        assert response.json()["error"]["type"] == "ValidationError"

    def test_evaluate_disabled(self, api_client, disabled_engine):
        """告警禁用时评估不产生告警"""
        response = api_client.post(f"{PREFIX}/evaluate/system", json=HIGH_CPU)
        assert response.status_code == 200
        assert response.json()["data"]["total"] == 0
        assert disabled_engine.get_active_alerts() == []


class TestAlertLifecycleAPI:
    """确认 / 解决 API 测试"""

    def test_acknowledge(self, api_client):
        """确认告警（幂等）"""
        api_client.post(f"{PREFIX}/evaluate/system", json=HIGH_CPU)

        for _ in range(2):
            response = api_client.post(f"{PREFIX}/cpu_high/acknowledge")
            assert response.status_code == 200
            assert response.json()["data"]["status"] == "acknowledged"

        active = api_client.get(f"{PREFIX}/active").json()["data"]["alerts"]
        assert active[0]["status"] == "acknowledged"
        assert active[0]["acknowledged_at"] is not None

    def test_acknowledge_unknown(self, api_client):
        """确认不存在的告警返回 404"""
        response = api_client.post(f"{PREFIX}/nonexistent/acknowledge")
        assert response.status_code == 404
        data = response.json()
        assert data["success"] is False
        assert data["code"] == 40404

    def test_resolve(self, api_client):
        """解决后移出活跃列表，历史保留"""
        api_client.post(f"{PREFIX}/evaluate/system", json=HIGH_CPU)

        response = api_client.post(f"{PREFIX}/cpu_high/resolve")
        assert response.status_code == 200

        assert api_client.get(f"{PREFIX}/active").json()["data"]["total"] == 0
        history = api_client.get(f"{PREFIX}/history").json()["data"]["alerts"]
        assert history[0]["status"] == "resolved"
        assert history[0]["resolved_at"] is not None

        # 再次解决返回 404
        assert api_client.post(f"{PREFIX}/cpu_high/resolve").status_code == 404


class TestAlertMaintenanceAPI:
    """测试告警与清理 API"""

    def test_create_test_alert(self, api_client):
        """创建测试告警"""
        response = api_client.post(f"{PREFIX}/test")
        assert response.status_code == 200

        alert = response.json()["data"]
        assert alert["id"].startswith("test_alert_")
        assert alert["component"] == "test"
        assert alert["severity"] == "low"
        assert alert["metadata"]["type"] == "test"

    def test_create_test_alert_disabled(self, api_client, disabled_engine):
        """告警禁用时返回 503"""
        response = api_client.post(f"{PREFIX}/test")
        assert response.status_code == 503
        assert response.json()["code"] == 50301

    def test_cleanup_default_retention(self, api_client):
        """使用配置的保留天数清理"""
        api_client.post(f"{PREFIX}/evaluate/system", json=HIGH_CPU)

        response = api_client.post(f"{PREFIX}/cleanup")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["cleared"] == 0
        assert data["retention_days"] == 90

    def test_cleanup_custom_retention(self, api_client):
        """指定保留天数"""
        response = api_client.post(f"{PREFIX}/cleanup", json={"retention_days": 7})
        assert response.status_code == 200
        assert response.json()["data"]["retention_days"] == 7


class TestLifespan:
    """应用生命周期测试"""

    def test_startup_logs_config_and_shutdown_drains(self, api_client):
        """启动时输出脱敏配置，关闭时等待未完成的通知"""
        from fastapi.testclient import TestClient
        from alerts import AlertNotifier
        from core.config import Settings

        with patch.object(Settings, "display_config", return_value={}) as display, \
                patch.object(AlertNotifier, "drain", new_callable=AsyncMock) as drain:
            with TestClient(app) as client:
                assert client.get("/health").status_code == 200
                drain.assert_not_awaited()

        display.assert_called_once()
        drain.assert_awaited_once()
