"""
健康检查路由
/health 同时报告共享缓存层与各数据源缓存状态
"""

import time

from fastapi import APIRouter

from risk_service import __version__
from risk_service.db import shared_cache_status
from risk_service.services.analysis_service import get_analysis_service

router = APIRouter(tags=["健康检查"])


@router.get("/health")
async def health():
    """服务健康检查；共享缓存不可用不影响服务状态（退回进程内缓存）"""
    sources = get_analysis_service().aggregator.sources
    return {
        "success": True,
        "data": {
            "status": "ok",
            "version": __version__,
            "timestamp": int(time.time()),
            "service": "Crypto Risk Analysis Service",
            "cache": {
                "shared": await shared_cache_status(),
                "providers": {source.name: source.cache.stats() for source in sources},
            },
            "source_order": [source.name for source in sources],
        },
        "message": "服务运行正常",
    }


@router.get("/healthz")
async def healthz():
    """Kubernetes liveness probe"""
    return {"status": "ok"}


@router.get("/readyz")
async def readyz():
    """Kubernetes readiness probe：数据源已装配即可接收请求"""
    return {"ready": bool(get_analysis_service().aggregator.sources)}
