"""
pytest 配置
"""
import os
from datetime import datetime, timedelta, timezone

import pytest

# 测试时不启动定时检查器，也不发送外部通知
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("MONITORING_ENABLED", "false")
os.environ.pop("NOTIFY_EMAIL", None)
os.environ.pop("NOTIFY_WEBHOOK", None)


class FakeClock:
    """可控时钟，用于冷却与保留期测试"""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    """可控时钟"""
    return FakeClock()


@pytest.fixture(scope="session")
def test_settings():
    """测试配置"""
    from core.config import Settings
    return Settings()


@pytest.fixture
def make_settings():
    """按需构造配置（覆盖告警 / 保留期子配置）"""
    from core.config import Settings, AlertSettings, RetentionSettings

    def _make(retention_days: int = 90, **alert_overrides):
        return Settings(
            alerts=AlertSettings(**alert_overrides),
            retention=RetentionSettings(alert_days=retention_days),
        )

    return _make


@pytest.fixture
def engine(make_settings, clock):
    """使用可控时钟、无通知器的告警引擎"""
    from alerts import AlertEngine
    return AlertEngine(make_settings(), clock=clock)


@pytest.fixture
def api_client():
    """API 测试客户端，每个测试使用全新的告警引擎和指标"""
    from fastapi.testclient import TestClient
    from api.main import app
    from api.dependencies import reset_singletons
    from api.metrics import reset_metrics

    reset_singletons()
    reset_metrics()
    yield TestClient(app)
    reset_singletons()
    reset_metrics()
