"""
共享缓存连接管理模块
多实例部署时，各实例通过 Redis 共享已获取的行情数据，减少上游请求次数；
未启用或连接失败时各实例仅使用进程内缓存
"""

import logging
from typing import Optional

from redis.asyncio import ConnectionPool, Redis

from risk_service.config import settings

logger = logging.getLogger(__name__)

# ── 全局连接实例 ─────────────────────────────────────────
_redis_client: Optional[Redis] = None
_redis_pool: Optional[ConnectionPool] = None


async def connect_shared_cache() -> bool:
    """连接共享缓存，返回是否可用"""
    global _redis_client, _redis_pool
    if not settings.REDIS_ENABLED:
        logger.info("共享缓存未启用（REDIS_ENABLED=false），行情数据仅缓存在本进程")
        return False
    try:
        _redis_pool = ConnectionPool.from_url(
            settings.REDIS_URL,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=10,
        )
        _redis_client = Redis(connection_pool=_redis_pool)
        await _redis_client.ping()
        logger.info(f"✅ 共享行情缓存已连接: {settings.REDIS_HOST}:{settings.REDIS_PORT}/{settings.REDIS_DB}")
        return True
    except Exception as exc:
        logger.warning(f"⚠️ 共享行情缓存不可用，退回进程内缓存: {exc}")
        _redis_client = None
        _redis_pool = None
        return False


async def close_shared_cache() -> None:
    """断开共享缓存连接"""
    global _redis_client, _redis_pool
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None
    if _redis_pool:
        await _redis_pool.disconnect()
        _redis_pool = None
        logger.info("共享行情缓存连接已断开")


def get_redis() -> Optional[Redis]:
    """供 ProviderCache 使用的 Redis 客户端；未连接时为 None"""
    return _redis_client


async def shared_cache_status() -> dict:
    """
    共享缓存层状态

    status 取值：disabled（未启用）、connected、unreachable（已连接但 ping 失败）、
    fallback（已启用但启动时连接失败，当前仅用进程内缓存）
    """
    if not settings.REDIS_ENABLED:
        return {"backend": "redis", "status": "disabled"}
    if _redis_client is None:
        return {"backend": "redis", "status": "fallback"}
    try:
        await _redis_client.ping()
    except Exception as exc:
        return {"backend": "redis", "status": "unreachable", "error": str(exc)}
    return {
        "backend": "redis",
        "status": "connected",
        "host": settings.REDIS_HOST,
        "db": settings.REDIS_DB,
    }
