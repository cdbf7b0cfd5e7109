"""行情与风险结果数据模型（创建后不可变）"""

from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field


class PricePoint(BaseModel):
    """单个价格点，timestamp 为毫秒时间戳"""

    model_config = ConfigDict(frozen=True)

    timestamp: int
    price: float


class MarketDataBundle(BaseModel):
    """
    一次行情获取的结果

    current_volume 为最近一个已完成周期的成交量（不含进行中的周期），
    average_volume 为窗口内已完成周期成交量均值。
    """

    model_config = ConfigDict(frozen=True)

    price_series: Tuple[PricePoint, ...] = ()
    current_volume: float = 0.0
    average_volume: float = 0.0
    source: str = ""


class RiskResult(BaseModel):
    """风险评分结果；默认实例即空输入对应的中性结果"""

    model_config = ConfigDict(frozen=True)

    # 0-100 评分
    volatility_score: float = 0.0
    trend_score: float = 0.0
    volume_score: float = 0.0
    composite_risk_score: float = 0.0

    # 高级风险指标
    downside_risk: float = 0.0          # 负收益年化波动率（%）
    max_drawdown: float = 0.0           # 最大回撤（%）
    sharpe_ratio: float = 0.0           # 年化夏普比率（无风险利率 0）
    value_at_risk_95: float = 0.0       # 95% VaR（%，取正值）
    annualized_volatility: float = 0.0  # 年化波动率（%）

    price_series: Tuple[PricePoint, ...] = Field(default_factory=tuple)
