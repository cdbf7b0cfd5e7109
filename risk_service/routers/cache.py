"""
缓存管理路由
GET  /api/cache/stats     - 各数据源缓存统计
POST /api/cache/clear     - 清理缓存（可指定数据源）
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from risk_service.models.response import ApiResponse
from risk_service.services.analysis_service import get_analysis_service

router = APIRouter(prefix="/api/cache", tags=["缓存管理"])


class ClearRequest(BaseModel):
    provider: Optional[str] = None


def _caches():
    return {source.name: source.cache for source in get_analysis_service().aggregator.sources}


@router.get("/stats", response_model=ApiResponse)
async def cache_stats():
    """获取各数据源缓存统计信息"""
    return ApiResponse.ok(data={name: cache.stats() for name, cache in _caches().items()})


@router.post("/clear", response_model=ApiResponse)
async def clear_cache(body: ClearRequest):
    """清理指定数据源（不指定则全部）的缓存条目"""
    caches = _caches()
    if body.provider:
        if body.provider not in caches:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"未知数据源: {body.provider}，可选: {list(caches)}",
            )
        caches = {body.provider: caches[body.provider]}
    cleared = {name: await cache.clear() for name, cache in caches.items()}
    return ApiResponse.ok(data={"cleared": cleared}, message="缓存已清理")
