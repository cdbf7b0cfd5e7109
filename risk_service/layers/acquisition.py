"""
Layer 1 – 数据获取层
主数据源 Binance（K 线，限流宽松，数据新鲜）与备用数据源 CoinGecko（限流严格），
统一输出 MarketDataBundle；按顺序尝试数据源，前一个失败时自动降级到下一个。
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from risk_service.config import settings
from risk_service.layers.cache import ProviderCache
from risk_service.layers.errors import ErrorKind, ProviderError
from risk_service.layers.processing import ProcessingLayer, get_processing_layer
from risk_service.layers.retry import RetryPolicy
from risk_service.layers.symbols import SymbolMapper, get_symbol_mapper
from risk_service.models.market import MarketDataBundle

logger = logging.getLogger(__name__)


# ── 共享 HTTP 客户端 ──────────────────────────────────────
_http_client: Optional[httpx.AsyncClient] = None


def get_http_client() -> httpx.AsyncClient:
    global _http_client
    if _http_client is None:
        _http_client = httpx.AsyncClient(
            timeout=settings.HTTP_TIMEOUT,
            headers={"Accept": "application/json"},
        )
    return _http_client


async def close_http_client() -> None:
    global _http_client
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None


class MarketDataSource:
    """数据源基类：缓存 → 重试 → 单次请求 + 解析"""

    name = ""

    def __init__(
        self,
        cache: ProviderCache,
        retry: Optional[RetryPolicy] = None,
        client: Optional[httpx.AsyncClient] = None,
        processor: Optional[ProcessingLayer] = None,
    ):
        self.cache = cache
        self.retry = retry or RetryPolicy(
            attempts=settings.RETRY_ATTEMPTS, base_delay=settings.RETRY_BASE_DELAY
        )
        self._client = client
        self._proc = processor or get_processing_layer()

    def supports(self, asset_id: str) -> bool:
        return True

    async def fetch(self, asset_id: str, days: int) -> MarketDataBundle:
        """获取行情数据；重试耗尽或数据异常时抛出 ProviderError"""

        async def _load() -> MarketDataBundle:
            return await self.retry.run(
                lambda: self._fetch_once(asset_id, days),
                label=f"{self.name}:{asset_id}",
            )

        return await self.cache.get_or_fetch(asset_id, days, _load)

    async def _fetch_once(self, asset_id: str, days: int) -> MarketDataBundle:
        raise NotImplementedError

    async def _get_json(
        self,
        url: str,
        params: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """发起 GET 请求，将传输层异常映射为 ProviderError"""
        client = self._client or get_http_client()
        try:
            response = await client.get(url, params=params, headers=headers)
        except httpx.TimeoutException as exc:
            raise ProviderError(ErrorKind.TRANSPORT, f"请求超时: {exc!r}", self.name) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(ErrorKind.TRANSPORT, f"网络错误: {exc!r}", self.name) from exc

        if response.status_code == 429:
            raise ProviderError(ErrorKind.RATE_LIMITED, "触发上游限流 (HTTP 429)", self.name)
        if response.is_error:
            raise ProviderError(
                ErrorKind.TRANSPORT,
                f"HTTP {response.status_code}: {response.text[:200]}",
                self.name,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(ErrorKind.MALFORMED, f"响应不是合法 JSON: {exc}", self.name) from exc


# ── Binance ───────────────────────────────────────────────

class PrimaryMarketDataSource(MarketDataSource):
    """Binance 现货 K 线；始终使用日线，K 线数量等于窗口天数"""

    name = "binance"

    def __init__(
        self,
        cache: Optional[ProviderCache] = None,
        retry: Optional[RetryPolicy] = None,
        client: Optional[httpx.AsyncClient] = None,
        processor: Optional[ProcessingLayer] = None,
        mapper: Optional[SymbolMapper] = None,
        base_url: Optional[str] = None,
    ):
        super().__init__(
            cache or ProviderCache(self.name, settings.PRIMARY_CACHE_TTL),
            retry=retry,
            client=client,
            processor=processor,
        )
        self._mapper = mapper or get_symbol_mapper()
        self._base_url = (base_url or settings.BINANCE_BASE_URL).rstrip("/")

    def supports(self, asset_id: str) -> bool:
        return self._mapper.supported(asset_id)

    async def fetch(self, asset_id: str, days: int) -> MarketDataBundle:
        if not self.supports(asset_id):
            raise ProviderError(
                ErrorKind.UNSUPPORTED, f"资产 '{asset_id}' 不在 Binance 支持列表中", self.name
            )
        return await super().fetch(asset_id, days)

    async def _fetch_once(self, asset_id: str, days: int) -> MarketDataBundle:
        symbol = self._mapper.primary_symbol(asset_id)
        payload = await self._get_json(
            f"{self._base_url}/klines",
            params={"symbol": symbol, "interval": "1d", "limit": days},
        )
        prices, volumes = self._proc.parse_klines(payload, provider=self.name)
        current_volume, average_volume = self._proc.completed_period_volumes(volumes)
        logger.info(
            f"Binance: {asset_id} ({symbol}) 获取 {len(prices)} 根 K 线，"
            f"最近完成周期成交量={current_volume}，均值={average_volume:.2f}"
        )
        return MarketDataBundle(
            price_series=tuple(prices),
            current_volume=current_volume,
            average_volume=average_volume,
            source=self.name,
        )


# ── CoinGecko ─────────────────────────────────────────────

class SecondaryMarketDataSource(MarketDataSource):
    """CoinGecko market_chart；支持所有资产 ID，作为兜底数据源"""

    name = "coingecko"

    def __init__(
        self,
        cache: Optional[ProviderCache] = None,
        retry: Optional[RetryPolicy] = None,
        client: Optional[httpx.AsyncClient] = None,
        processor: Optional[ProcessingLayer] = None,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
    ):
        super().__init__(
            cache or ProviderCache(self.name, settings.SECONDARY_CACHE_TTL),
            retry=retry,
            client=client,
            processor=processor,
        )
        self._base_url = (base_url or settings.COINGECKO_BASE_URL).rstrip("/")
        self._api_key = settings.COINGECKO_API_KEY if api_key is None else api_key

    async def _fetch_once(self, asset_id: str, days: int) -> MarketDataBundle:
        headers = {}
        if self._api_key:
            headers["x-cg-demo-api-key"] = self._api_key
        payload = await self._get_json(
            f"{self._base_url}/coins/{asset_id}/market_chart",
            params={"vs_currency": "usd", "days": days},
            headers=headers,
        )
        prices, volumes = self._proc.parse_market_chart(payload, provider=self.name)
        current_volume, average_volume = self._proc.full_series_volumes(volumes)
        logger.info(f"CoinGecko: {asset_id} 获取 {len(prices)} 个价格点")
        return MarketDataBundle(
            price_series=tuple(prices),
            current_volume=current_volume,
            average_volume=average_volume,
            source=self.name,
        )


# ── 聚合入口 ──────────────────────────────────────────────

class MarketDataAggregator:
    """按顺序尝试数据源；只有最后一个可用数据源的失败会向上抛出"""

    def __init__(self, sources: Sequence[MarketDataSource]):
        if not sources:
            raise ValueError("至少需要一个数据源")
        self._sources: List[MarketDataSource] = list(sources)

    @property
    def sources(self) -> List[MarketDataSource]:
        return list(self._sources)

    async def fetch(self, asset_id: str, days: int) -> MarketDataBundle:
        candidates = []
        for source in self._sources:
            if source.supports(asset_id):
                candidates.append(source)
            else:
                logger.info(f"{asset_id} 不在 {source.name} 支持列表中，跳过")
        if not candidates:
            raise ProviderError(ErrorKind.UNSUPPORTED, f"没有数据源支持资产 '{asset_id}'")

        for source in candidates[:-1]:
            try:
                logger.info(f"尝试从 {source.name} 获取 {asset_id}")
                return await source.fetch(asset_id, days)
            except ProviderError as exc:
                logger.warning(f"{source.name} 获取 {asset_id} 失败，降级到下一个数据源: {exc}")

        return await candidates[-1].fetch(asset_id, days)


# ── 模块级别单例 ──────────────────────────────────────────
_aggregator: Optional[MarketDataAggregator] = None


def get_aggregator() -> MarketDataAggregator:
    global _aggregator
    if _aggregator is None:
        _aggregator = MarketDataAggregator([
            PrimaryMarketDataSource(),
            SecondaryMarketDataSource(),
        ])
    return _aggregator
