"""
监控指标路由 - 暴露追踪管道的运行数据

提供：
- 系统指标（解析次数、数据源调用、耗时）
- 缓存统计
- 限流统计
"""

from typing import Dict, Any

from fastapi import APIRouter, Depends

from shiptrack.api.dependencies import ServiceContainer, get_service_container
from shiptrack.infrastructure.metrics import get_metrics_registry

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.get("/system", summary="获取系统指标")
async def get_system_metrics() -> Dict[str, Any]:
    """
    获取系统性能指标

    返回解析次数（按终止状态）、数据源调用结果、耗时分布等。
    """
    return {
        "metrics": get_metrics_registry().get_all_metrics(),
    }


@router.get("/cache", summary="获取缓存统计")
async def get_cache_stats(
    container: ServiceContainer = Depends(get_service_container),
) -> Dict[str, Any]:
    return {
        "caches": container.get_cache_stats(),
    }


@router.get("/rate-limits", summary="获取限流统计")
async def get_rate_limit_stats(
    container: ServiceContainer = Depends(get_service_container),
) -> Dict[str, Any]:
    """
    获取限流统计

    返回各数据源当前窗口计数、放行和拒绝次数。
    """
    return {
        "limiters": container.rate_limiter.get_all_stats(),
    }


@router.post("/cache/clear", summary="清空追踪缓存")
async def clear_cache(
    container: ServiceContainer = Depends(get_service_container),
) -> Dict[str, Any]:
    container.tracking_service.clear_cache()
    return {"message": "追踪缓存已清空"}
