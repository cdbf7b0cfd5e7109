"""
Layer 2 – 缓存层
每个数据源独立一份缓存，键为 (provider, asset_id, days)。
优先级：进程内 TTL 缓存 → Redis（可选，多实例共享） → 上游获取。
同一键的并发未命中合并为一次上游请求（单飞）。
"""

import asyncio
import hashlib
import logging
import time
from typing import Awaitable, Callable, Dict, NamedTuple, Optional

from risk_service.db import get_redis
from risk_service.models.market import MarketDataBundle

logger = logging.getLogger(__name__)

_NAMESPACE = "market"


def _make_key(namespace: str, *parts: str) -> str:
    """生成规范化缓存键"""
    raw = ":".join([namespace] + list(parts))
    if len(raw) > 200:
        raw = namespace + ":" + hashlib.md5(raw.encode()).hexdigest()
    return raw


class CacheEntry(NamedTuple):
    value: MarketDataBundle
    expires_at: float


class ProviderCache:
    """单个数据源的缓存；过期条目在下次查询时惰性淘汰"""

    def __init__(
        self,
        provider: str,
        ttl: int,
        clock: Callable[[], float] = time.monotonic,
        redis_getter: Callable[[], Optional[object]] = get_redis,
    ):
        self.provider = provider
        self.ttl = ttl
        self._clock = clock
        self._redis_getter = redis_getter
        self._namespace = f"{_NAMESPACE}:{provider}"
        self._entries: Dict[str, CacheEntry] = {}
        self._inflight: Dict[str, asyncio.Future] = {}

    def key(self, asset_id: str, days: int) -> str:
        return _make_key(self._namespace, asset_id, str(days))

    def get(self, asset_id: str, days: int) -> Optional[MarketDataBundle]:
        """仅查询进程内缓存"""
        return self._lookup(self.key(asset_id, days))

    async def get_or_fetch(
        self,
        asset_id: str,
        days: int,
        fetch: Callable[[], Awaitable[MarketDataBundle]],
    ) -> MarketDataBundle:
        """命中直接返回；未命中时执行 fetch 并写入缓存，失败结果不缓存"""
        key = self.key(asset_id, days)

        cached = self._lookup(key)
        if cached is not None:
            logger.debug(f"缓存命中（内存）: {key}")
            return cached

        task = self._inflight.get(key)
        if task is None:
            # 上游获取在独立任务中执行，单个调用方被取消不影响其他等待者
            task = asyncio.ensure_future(self._load(key, fetch))
            self._inflight[key] = task
            task.add_done_callback(lambda done, k=key: self._finish(k, done))
        else:
            logger.debug(f"等待进行中的请求: {key}")
        return await asyncio.shield(task)

    async def clear(self) -> int:
        """清空本数据源缓存，返回清理的内存条目数"""
        count = len(self._entries)
        self._entries.clear()
        redis = self._redis_getter()
        if redis:
            try:
                async for key in redis.scan_iter(match=f"{self._namespace}:*"):
                    await redis.delete(key)
            except Exception as exc:
                logger.debug(f"Redis 清理失败: {exc}")
        return count

    def stats(self) -> dict:
        now = self._clock()
        live = sum(1 for entry in self._entries.values() if entry.expires_at > now)
        return {
            "provider": self.provider,
            "ttl": self.ttl,
            "entries": live,
            "inflight": len(self._inflight),
            "shared": self._redis_getter() is not None,
        }

    # ── 内部方法 ──────────────────────────────────────────

    async def _load(
        self, key: str, fetch: Callable[[], Awaitable[MarketDataBundle]]
    ) -> MarketDataBundle:
        value = await self._read_shared(key)
        if value is None:
            logger.info(f"缓存未命中，从 {self.provider} 获取: {key}")
            value = await fetch()
            await self._write_shared(key, value)
            self._store(key, value, self.ttl)
        return value

    def _finish(self, key: str, task: asyncio.Future) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # 所有调用方都已取消时避免 "exception was never retrieved" 警告
        if not task.cancelled():
            task.exception()

    def _lookup(self, key: str) -> Optional[MarketDataBundle]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry.value

    def _store(self, key: str, value: MarketDataBundle, ttl: float) -> None:
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)

    async def _read_shared(self, key: str) -> Optional[MarketDataBundle]:
        redis = self._redis_getter()
        if not redis:
            return None
        try:
            raw = await redis.get(key)
            if not raw:
                return None
            remaining = await redis.ttl(key)
            value = MarketDataBundle.model_validate_json(raw)
            self._store(key, value, remaining if remaining and remaining > 0 else self.ttl)
            logger.debug(f"缓存命中（Redis）: {key}")
            return value
        except Exception as exc:
            logger.debug(f"Redis 读取失败: {exc}")
            return None

    async def _write_shared(self, key: str, value: MarketDataBundle) -> None:
        redis = self._redis_getter()
        if not redis:
            return
        try:
            await redis.setex(key, self.ttl, value.model_dump_json())
            logger.debug(f"缓存写入（Redis）: {key}")
        except Exception as exc:
            logger.debug(f"Redis 写入失败: {exc}")
