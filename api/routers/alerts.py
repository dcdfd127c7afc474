"""
告警 API 路由

查询、确认、解决告警，以及手动触发指标评估与历史清理。
"""
from fastapi import APIRouter, Query, Path, Depends, Body
from typing import List, Optional

from api.schemas.alert import (
    AlertInfo,
    AlertListResponse,
    AlertStatistics,
    AlertRuleInfo,
    AlertRuleListResponse,
    LifecycleResult,
    CleanupRequest,
    CleanupResult,
)
from api.schemas.response import APIResponse
from api.dependencies import get_alert_engine
from api.middleware.error_handler import (
    AlertNotFoundError,
    AlertServiceUnavailableError,
    InvalidParameterError,
)
from alerts import (
    AlertEngine,
    AlertSeverity,
    SystemMetrics,
    ApplicationMetrics,
    HealthCheckResult,
)

router = APIRouter()


@router.get("/active", response_model=APIResponse[AlertListResponse])
async def get_active_alerts(engine: AlertEngine = Depends(get_alert_engine)):
    """
    获取当前活跃的告警

    包括已确认但未解决的告警，按时间倒序排列。
    """
    return APIResponse(
        success=True,
        data=AlertListResponse.from_alerts(engine.get_active_alerts()),
    )


@router.get("/history", response_model=APIResponse[AlertListResponse])
async def get_alert_history(
    limit: int = Query(100, ge=1, le=1000, description="返回最近的告警数量"),
    engine: AlertEngine = Depends(get_alert_engine),
):
    """获取告警历史（最近 limit 条，按时间倒序）"""
    return APIResponse(
        success=True,
        data=AlertListResponse.from_alerts(engine.get_alert_history(limit)),
    )


@router.get("/component/{component}", response_model=APIResponse[AlertListResponse])
async def get_alerts_by_component(
    component: str = Path(..., description="组件名称"),
    engine: AlertEngine = Depends(get_alert_engine),
):
    """按组件获取告警历史"""
    return APIResponse(
        success=True,
        data=AlertListResponse.from_alerts(engine.get_alerts_by_component(component)),
    )


@router.get("/severity/{severity}", response_model=APIResponse[AlertListResponse])
async def get_alerts_by_severity(
    severity: str = Path(..., description="告警级别 (low, medium, high, critical)"),
    engine: AlertEngine = Depends(get_alert_engine),
):
    """按级别获取告警历史"""
    try:
        level = AlertSeverity(severity.lower())
    except ValueError:
        valid = ", ".join(s.value for s in AlertSeverity)
        raise InvalidParameterError(
            "severity",
            f"Invalid severity: {severity}. Valid values: {valid}",
        )

    return APIResponse(
        success=True,
        data=AlertListResponse.from_alerts(engine.get_alerts_by_severity(level)),
    )


@router.get("/stats", response_model=APIResponse[AlertStatistics])
async def get_alert_stats(engine: AlertEngine = Depends(get_alert_engine)):
    """
    获取告警统计信息

    返回总数、活跃数、24 小时 / 7 天内数量、按级别与组件分组，
    以及平均解决时间（MTTR）。
    """
    return APIResponse(
        success=True,
        data=AlertStatistics(**engine.get_statistics()),
    )


@router.get("/rules", response_model=APIResponse[AlertRuleListResponse])
async def list_alert_rules(
    enabled_only: bool = Query(False, description="仅返回启用的规则"),
    engine: AlertEngine = Depends(get_alert_engine),
):
    """获取告警规则列表（阈值已应用配置覆盖）"""
    rules = [AlertRuleInfo.from_rule(r) for r in engine.rules.list_rules(enabled_only=enabled_only)]

    return APIResponse(
        success=True,
        data=AlertRuleListResponse(rules=rules, total=len(rules)),
    )


@router.post("/{alert_id}/acknowledge", response_model=APIResponse[LifecycleResult])
async def acknowledge_alert(
    alert_id: str = Path(..., description="告警 ID"),
    engine: AlertEngine = Depends(get_alert_engine),
):
    """
    确认告警

    重复确认是幂等的；已解决或不存在的告警返回 404。
    """
    if not engine.acknowledge_alert(alert_id):
        raise AlertNotFoundError(alert_id)

    return APIResponse(
        success=True,
        message="告警已确认",
        data=LifecycleResult(
            alert_id=alert_id,
            status="acknowledged",
            message=f"Alert {alert_id} acknowledged",
        ),
    )


@router.post("/{alert_id}/resolve", response_model=APIResponse[LifecycleResult])
async def resolve_alert(
    alert_id: str = Path(..., description="告警 ID"),
    engine: AlertEngine = Depends(get_alert_engine),
):
    """解决告警，告警从活跃列表移除但保留在历史中"""
    if not engine.resolve_alert(alert_id):
        raise AlertNotFoundError(alert_id)

    return APIResponse(
        success=True,
        message="告警已解决",
        data=LifecycleResult(
            alert_id=alert_id,
            status="resolved",
            message=f"Alert {alert_id} resolved",
        ),
    )


@router.post("/test", response_model=APIResponse[AlertInfo])
async def create_test_alert(engine: AlertEngine = Depends(get_alert_engine)):
    """创建测试告警，验证通知链路"""
    if not engine.enabled:
        raise AlertServiceUnavailableError()

    alert = engine.create_test_alert()

    return APIResponse(
        success=True,
        message="测试告警已创建",
        data=AlertInfo.from_alert(alert),
    )


@router.post("/cleanup", response_model=APIResponse[CleanupResult])
async def cleanup_alerts(
    request: Optional[CleanupRequest] = Body(None),
    engine: AlertEngine = Depends(get_alert_engine),
):
    """清理超过保留期的历史告警（活跃告警不会被清理）"""
    retention_days = request.retention_days if request else None
    if retention_days is None:
        retention_days = engine.retention_days

    cleared = engine.clear_old_alerts(retention_days)

    return APIResponse(
        success=True,
        data=CleanupResult(cleared=cleared, retention_days=retention_days),
    )


# ===== 手动评估 =====

@router.post("/evaluate/system", response_model=APIResponse[AlertListResponse])
async def evaluate_system_metrics(
    metrics: SystemMetrics,
    engine: AlertEngine = Depends(get_alert_engine),
):
    """评估系统指标，返回本次新触发的告警"""
    return APIResponse(
        success=True,
        data=AlertListResponse.from_alerts(engine.evaluate_system_metrics(metrics)),
    )


@router.post("/evaluate/application", response_model=APIResponse[AlertListResponse])
async def evaluate_application_metrics(
    metrics: ApplicationMetrics,
    engine: AlertEngine = Depends(get_alert_engine),
):
    """评估应用指标，返回本次新触发的告警"""
    return APIResponse(
        success=True,
        data=AlertListResponse.from_alerts(engine.evaluate_application_metrics(metrics)),
    )


@router.post("/evaluate/health", response_model=APIResponse[AlertListResponse])
async def evaluate_health_checks(
    checks: List[HealthCheckResult],
    engine: AlertEngine = Depends(get_alert_engine),
):
    """评估健康检查结果，返回本次新触发的告警"""
    return APIResponse(
        success=True,
        data=AlertListResponse.from_alerts(engine.evaluate_health_checks(checks)),
    )
