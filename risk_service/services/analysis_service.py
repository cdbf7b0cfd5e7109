"""
风险分析服务
整合数据获取层（含缓存）与风险分析层，对外提供单资产风险分析接口
"""

import logging
from typing import Optional

from risk_service.config import settings
from risk_service.layers.acquisition import MarketDataAggregator, get_aggregator
from risk_service.layers.analysis import RiskEngine, get_risk_engine
from risk_service.models.response import RiskAnalysisResponse

logger = logging.getLogger(__name__)


class AssetNotFoundError(Exception):
    """数据源返回空价格序列"""


class RiskAnalysisService:
    """风险分析业务服务"""

    def __init__(
        self,
        aggregator: Optional[MarketDataAggregator] = None,
        engine: Optional[RiskEngine] = None,
    ):
        self._aggregator = aggregator or get_aggregator()
        self._engine = engine or get_risk_engine()

    @property
    def aggregator(self) -> MarketDataAggregator:
        return self._aggregator

    def normalize_days(self, days: Optional[int]) -> int:
        """只允许配置中的窗口（默认 7 / 30 / 90），其他值回退到默认窗口"""
        if days in settings.ALLOWED_DAYS:
            return days
        logger.warning(f"无效的 days 参数: {days}，使用默认值 {settings.DEFAULT_DAYS}")
        return settings.DEFAULT_DAYS

    async def analyze(self, asset_id: str, days: Optional[int] = None) -> RiskAnalysisResponse:
        """
        获取行情并计算风险

        Args:
            asset_id: 资产 ID（CoinGecko 规范 ID，如 bitcoin）
            days: 分析窗口天数

        Raises:
            ProviderError: 所有数据源均失败
            AssetNotFoundError: 数据源返回空序列
        """
        window = self.normalize_days(days)
        logger.info(f"收到风险分析请求: {asset_id}，窗口 {window} 天")

        bundle = await self._aggregator.fetch(asset_id, window)
        if not bundle.price_series:
            raise AssetNotFoundError(f"No data found for asset: {asset_id}")

        result = self._engine.compute_risk(
            bundle.price_series, bundle.current_volume, bundle.average_volume
        )
        logger.info(f"{asset_id} 风险计算完成: 综合评分 {result.composite_risk_score}")

        return RiskAnalysisResponse(
            asset_id=asset_id,
            days=window,
            source=bundle.source,
            composite_risk_score=result.composite_risk_score,
            volatility_score=result.volatility_score,
            trend_score=result.trend_score,
            volume_score=result.volume_score,
            downside_risk=result.downside_risk,
            max_drawdown=result.max_drawdown,
            sharpe_ratio=result.sharpe_ratio,
            value_at_risk_95=result.value_at_risk_95,
            annualized_volatility=result.annualized_volatility,
            price_history=list(result.price_series),
        )


# ── 模块级别单例 ──────────────────────────────────────────
_analysis_service: Optional[RiskAnalysisService] = None


def get_analysis_service() -> RiskAnalysisService:
    global _analysis_service
    if _analysis_service is None:
        _analysis_service = RiskAnalysisService()
    return _analysis_service
