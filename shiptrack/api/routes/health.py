"""
健康检查路由 - 系统状态监控 API
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from shiptrack.api.schemas import CandidatesResponse, HealthResponse, ProviderHealthResponse
from shiptrack.api.dependencies import (
    get_time_service,
    get_settings,
    get_tracking_service,
    Settings,
)
from shiptrack.domain.models import HealthStatus, IdentifierType, utcnow
from shiptrack.use_cases.track_shipment import TrackShipmentUseCase


router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="健康检查",
    description="检查服务及其依赖组件的健康状态"
)
async def health_check(
    time_service=Depends(get_time_service),
    service: TrackShipmentUseCase = Depends(get_tracking_service),
    settings: Settings = Depends(get_settings),
) -> HealthResponse:
    components = {}

    try:
        now = time_service.get_current_datetime()
        components["time_service"] = "healthy"
    except Exception:
        now = None
        components["time_service"] = "unhealthy"

    report = service.get_provider_health()
    components["providers"] = report.overall_health.value

    if components["time_service"] != "healthy" or report.overall_health == HealthStatus.UNAVAILABLE:
        overall_status = "unhealthy"
    elif report.overall_health == HealthStatus.DEGRADED:
        overall_status = "degraded"
    else:
        overall_status = "healthy"

    return HealthResponse(
        status=overall_status,
        timestamp=now or utcnow(),
        version=settings.APP_VERSION,
        components=components,
    )


@router.get(
    "/health/providers",
    response_model=ProviderHealthResponse,
    summary="数据源健康",
    description="列出所有数据源的可靠性和可用性，并给出整体判断"
)
async def provider_health(
    service: TrackShipmentUseCase = Depends(get_tracking_service),
) -> ProviderHealthResponse:
    return ProviderHealthResponse.model_validate(service.get_provider_health().to_dict())


@router.get(
    "/health/providers/candidates",
    response_model=CandidatesResponse,
    summary="候选数据源顺序",
    description="列出给定类型的追踪号会依次访问的数据源及其覆盖区域"
)
async def provider_candidates(
    identifier_type: Optional[IdentifierType] = Query(default=None, alias="type"),
    service: TrackShipmentUseCase = Depends(get_tracking_service),
) -> CandidatesResponse:
    return CandidatesResponse(
        identifier_type=identifier_type,
        candidates=service.describe_candidates(identifier_type),
    )


@router.get(
    "/ready",
    summary="就绪检查",
    description="检查服务是否准备好接收请求（用于 Kubernetes 就绪探针）"
)
async def readiness_check():
    return {"ready": True}


@router.get(
    "/live",
    summary="存活检查",
    description="检查服务是否存活（用于 Kubernetes 存活探针）"
)
async def liveness_check():
    return {"alive": True}
