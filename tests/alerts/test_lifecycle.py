"""
告警生命周期测试
"""
from alerts.lifecycle import AlertLifecycle
from alerts.models import Alert, AlertStatus
from alerts.rules import AlertSeverity
from alerts.store import AlertStore


def setup_store(clock, *alert_ids):
    store = AlertStore(clock=clock)
    for alert_id in alert_ids:
        store.add(Alert(
            id=alert_id,
            timestamp=clock(),
            severity=AlertSeverity.HIGH,
            component="system",
            title=alert_id,
        ))
    return store


class TestAcknowledge:
    """确认测试"""

    def test_acknowledge_active(self, clock):
        """确认活跃告警"""
        store = setup_store(clock, "cpu_high")
        lifecycle = AlertLifecycle(store, clock=clock)
        clock.advance(minutes=3)

        assert lifecycle.acknowledge("cpu_high") is True

        alert = store.find_active("cpu_high")
        assert alert.status == AlertStatus.ACKNOWLEDGED
        assert alert.acknowledged_at == clock()

    def test_acknowledge_idempotent(self, clock):
        """重复确认返回 True，确认时间不变"""
        store = setup_store(clock, "cpu_high")
        lifecycle = AlertLifecycle(store, clock=clock)
        lifecycle.acknowledge("cpu_high")
        first_ack = store.find_active("cpu_high").acknowledged_at
        clock.advance(minutes=5)

        assert lifecycle.acknowledge("cpu_high") is True
        assert store.find_active("cpu_high").acknowledged_at == first_ack

    def test_acknowledge_unknown(self, clock):
        """确认不存在的告警返回 False"""
        lifecycle = AlertLifecycle(setup_store(clock), clock=clock)
        assert lifecycle.acknowledge("nonexistent") is False

    def test_acknowledged_still_active(self, clock):
        """已确认的告警仍在活跃列表中"""
        store = setup_store(clock, "cpu_high")
        AlertLifecycle(store, clock=clock).acknowledge("cpu_high")

        assert [a.id for a in store.get_active()] == ["cpu_high"]


class TestResolve:
    """解决测试"""

    def test_resolve_removes_from_active(self, clock):
        """解决后移出活跃列表，历史保留"""
        store = setup_store(clock, "cpu_high")
        lifecycle = AlertLifecycle(store, clock=clock)
        clock.advance(minutes=10)

        assert lifecycle.resolve("cpu_high") is True

        assert store.get_active() == []
        history = store.get_history()
        assert len(history) == 1
        assert history[0].status == AlertStatus.RESOLVED
        assert history[0].resolved_at >= history[0].timestamp
        assert history[0].resolution_time_seconds == 600

    def test_resolve_acknowledged(self, clock):
        """已确认的告警可以解决"""
        store = setup_store(clock, "cpu_high")
        lifecycle = AlertLifecycle(store, clock=clock)
        lifecycle.acknowledge("cpu_high")

        assert lifecycle.resolve("cpu_high") is True
        assert store.get_history()[0].status == AlertStatus.RESOLVED

    def test_resolve_twice(self, clock):
        """已解决的告警不能再次解决"""
        store = setup_store(clock, "cpu_high")
        lifecycle = AlertLifecycle(store, clock=clock)
        lifecycle.resolve("cpu_high")

        assert lifecycle.resolve("cpu_high") is False
        assert lifecycle.acknowledge("cpu_high") is False

    def test_resolve_unknown(self, clock):
        """解决不存在的告警返回 False"""
        lifecycle = AlertLifecycle(setup_store(clock), clock=clock)
        assert lifecycle.resolve("nonexistent") is False

    def test_on_resolved_callback(self, clock):
        """解决后调用回调"""
        resolved = []
        store = setup_store(clock, "cpu_high")
        lifecycle = AlertLifecycle(store, clock=clock, on_resolved=resolved.append)

        lifecycle.resolve("cpu_high")

        assert [a.id for a in resolved] == ["cpu_high"]

    def test_callback_failure_isolated(self, clock):
        """回调失败不影响解决结果"""
        def broken(alert):
            raise RuntimeError("sink down")

        store = setup_store(clock, "cpu_high")
        lifecycle = AlertLifecycle(store, clock=clock, on_resolved=broken)

        assert lifecycle.resolve("cpu_high") is True
        assert store.get_active() == []
