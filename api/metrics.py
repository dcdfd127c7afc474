"""
Prometheus 指标模块

内存中的请求与告警计数器：
- 请求计数由日志中间件写入，同时为应用指标采集提供窗口数据
- 告警计数由告警引擎通过 increment_alert_counter 回调写入
"""
import threading
import time
from typing import Optional, List, Tuple, Dict

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse
import structlog

from alerts.models import ApplicationMetrics
from core.config import get_settings

router = APIRouter()
settings = get_settings()
logger = structlog.get_logger(__name__)

METRIC_PREFIX = "quickstock_"

_lock = threading.Lock()

# 内存中的指标计数器
_metrics_state = {
    "requests_total": 0,
    "requests_by_status": {},
    "request_duration_sum": 0.0,
    "request_count": 0,
    "start_time": time.time(),

    # 采集窗口（每次生成应用指标快照后清零）
    "window_requests": 0,
    "window_errors": 0,
    "window_duration_sum": 0.0,

    # 告警指标
    "alerts_triggered_total": 0,
    "alerts_by_label": {},
    "alerts_resolved_total": 0,
}


def increment_request(status_code: int, endpoint: str, duration: float):
    """记录请求指标（duration 单位: 秒）"""
    with _lock:
        _metrics_state["requests_total"] += 1

        status_key = str(status_code)
        _metrics_state["requests_by_status"][status_key] = \
            _metrics_state["requests_by_status"].get(status_key, 0) + 1

        _metrics_state["request_duration_sum"] += duration
        _metrics_state["request_count"] += 1

        _metrics_state["window_requests"] += 1
        _metrics_state["window_duration_sum"] += duration
        if status_code >= 500:
            _metrics_state["window_errors"] += 1


def increment_alert_counter(severity: str, component: str):
    """记录告警触发（按级别和组件）"""
    with _lock:
        _metrics_state["alerts_triggered_total"] += 1
        key = (severity, component)
        _metrics_state["alerts_by_label"][key] = \
            _metrics_state["alerts_by_label"].get(key, 0) + 1


def increment_alert_resolved(*_):
    """记录告警解决"""
    with _lock:
        _metrics_state["alerts_resolved_total"] += 1


def snapshot_application_metrics() -> ApplicationMetrics:
    """
    生成应用指标快照并清零采集窗口

    窗口内没有请求时错误率与响应时间为 None（不参与告警评估）。
    """
    with _lock:
        requests = _metrics_state["window_requests"]
        errors = _metrics_state["window_errors"]
        duration_sum = _metrics_state["window_duration_sum"]

        _metrics_state["window_requests"] = 0
        _metrics_state["window_errors"] = 0
        _metrics_state["window_duration_sum"] = 0.0

    if requests == 0:
        return ApplicationMetrics(http={"total_requests": 0})

    return ApplicationMetrics(
        http={
            "total_requests": requests,
            "error_rate": round(errors / requests * 100, 2),
            "average_response_time": round(duration_sum / requests * 1000, 2),
        }
    )


def reset_metrics() -> None:
    """重置所有计数器（用于测试）"""
    with _lock:
        _metrics_state.update({
            "requests_total": 0,
            "requests_by_status": {},
            "request_duration_sum": 0.0,
            "request_count": 0,
            "window_requests": 0,
            "window_errors": 0,
            "window_duration_sum": 0.0,
            "alerts_triggered_total": 0,
            "alerts_by_label": {},
            "alerts_resolved_total": 0,
        })


def _format_prometheus_metric(
    name: str,
    samples: List[Tuple[Optional[Dict[str, str]], float]],
    help_text: str,
    metric_type: str = "gauge",
) -> str:
    """格式化 Prometheus 指标（一个指标可包含多个带标签的样本）"""
    full_name = f"{METRIC_PREFIX}{name}"
    lines = [
        f"# HELP {full_name} {help_text}",
        f"# TYPE {full_name} {metric_type}",
    ]

    for labels, value in samples:
        if labels:
            label_str = ",".join(f'{k}="{v}"' for k, v in labels.items())
            lines.append(f"{full_name}{{{label_str}}} {value}")
        else:
            lines.append(f"{full_name} {value}")

    return "\n".join(lines)


def _collect_active_alerts() -> Optional[str]:
    """当前活跃告警数（引擎不可用时跳过）"""
    from api.dependencies import get_alert_engine

    try:
        engine = get_alert_engine()
    except Exception as e:
        logger.warning("active_alerts_unavailable", error=str(e))
        return None

    by_severity: Dict[str, int] = {}
    for alert in engine.get_active_alerts():
        by_severity[alert.severity.value] = by_severity.get(alert.severity.value, 0) + 1

    samples = [({"severity": s}, c) for s, c in sorted(by_severity.items())]
    samples.append((None, sum(by_severity.values())))
    return _format_prometheus_metric(
        "alerts_active",
        samples,
        "Number of active (unresolved) alerts",
    )


@router.get("", response_class=PlainTextResponse)
async def get_metrics():
    """
    Prometheus 指标端点

    返回:
    - 应用信息与运行时间
    - HTTP 请求统计
    - 告警触发/解决计数
    - 活跃告警数
    """
    with _lock:
        state = {
            k: (dict(v) if isinstance(v, dict) else v)
            for k, v in _metrics_state.items()
        }

    blocks = [
        _format_prometheus_metric(
            "info",
            [({"version": settings.app_version, "environment": settings.environment}, 1)],
            "Application information",
        ),
        _format_prometheus_metric(
            "uptime_seconds",
            [(None, round(time.time() - state["start_time"], 2))],
            "Application uptime in seconds",
            metric_type="counter",
        ),
        _format_prometheus_metric(
            "http_requests_total",
            [(None, state["requests_total"])]
            + [({"status": s}, c) for s, c in sorted(state["requests_by_status"].items())],
            "Total number of HTTP requests",
            metric_type="counter",
        ),
    ]

    if state["request_count"] > 0:
        avg_duration = state["request_duration_sum"] / state["request_count"]
        blocks.append(_format_prometheus_metric(
            "http_request_duration_seconds_avg",
            [(None, round(avg_duration, 6))],
            "Average HTTP request duration in seconds",
        ))

    blocks.append(_format_prometheus_metric(
        "alerts_total",
        [(None, state["alerts_triggered_total"])]
        + [
            ({"severity": severity, "component": component}, count)
            for (severity, component), count in sorted(state["alerts_by_label"].items())
        ],
        "Total number of triggered alerts",
        metric_type="counter",
    ))
    blocks.append(_format_prometheus_metric(
        "alerts_resolved_total",
        [(None, state["alerts_resolved_total"])],
        "Total number of resolved alerts",
        metric_type="counter",
    ))

    active = _collect_active_alerts()
    if active:
        blocks.append(active)

    return "\n\n".join(blocks) + "\n"
