"""
追踪路由 - 追踪号查询 API
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from shiptrack.api.dependencies import get_tracking_service
from shiptrack.api.schemas import HistoryResponse, TrackRequest, TrackingResponse
from shiptrack.domain.models import IdentifierType, ResolutionResult
from shiptrack.use_cases.track_shipment import TrackShipmentUseCase


router = APIRouter(prefix="/api/v1/tracking", tags=["Tracking"])


def _to_response(result: ResolutionResult) -> JSONResponse:
    """失败时使用错误对应的 HTTP 状态码，成功（包括降级）一律 200"""
    status_code = 200
    if not result.success and result.error is not None:
        status_code = result.error.status_code
    body = TrackingResponse.model_validate(result.to_dict())
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@router.get(
    "/history/{identifier}",
    response_model=HistoryResponse,
    summary="事件历史",
    description="返回追踪号的时间线事件"
)
async def get_history(
    identifier: str,
    identifier_type: Optional[IdentifierType] = Query(default=None, alias="type"),
    service: TrackShipmentUseCase = Depends(get_tracking_service),
):
    history = await service.get_tracking_history(identifier, identifier_type)
    status_code = 200
    if not history.success and history.error is not None:
        status_code = history.error.status_code
    body = HistoryResponse.model_validate(history.to_dict())
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@router.post(
    "/search",
    response_model=TrackingResponse,
    summary="查询追踪号",
)
async def search(
    request: TrackRequest,
    service: TrackShipmentUseCase = Depends(get_tracking_service),
):
    result = await service.track(request.identifier, request.type, request.force_refresh)
    return _to_response(result)


@router.get(
    "/{identifier}/refresh",
    response_model=TrackingResponse,
    summary="强制刷新",
    description="跳过所有缓存，重新从数据源获取"
)
async def refresh(
    identifier: str,
    identifier_type: Optional[IdentifierType] = Query(default=None, alias="type"),
    service: TrackShipmentUseCase = Depends(get_tracking_service),
):
    result = await service.refresh_tracking_data(identifier, identifier_type)
    return _to_response(result)


@router.get(
    "/{identifier}",
    response_model=TrackingResponse,
    summary="查询追踪号",
    description="先查缓存，按数据年龄决定是否刷新；数据源全部失败时返回旧数据并附带警告"
)
async def track(
    identifier: str,
    identifier_type: Optional[IdentifierType] = Query(default=None, alias="type"),
    refresh: bool = Query(default=False, description="跳过缓存"),
    service: TrackShipmentUseCase = Depends(get_tracking_service),
):
    result = await service.track(identifier, identifier_type, force_refresh=refresh)
    return _to_response(result)
