"""
Layer 4 – 风险分析层
纯计算：价格 / 成交量序列 → 波动率、趋势、成交量三项子评分（0-100）、
自适应加权综合评分，以及下行风险、最大回撤、夏普比率、VaR、年化波动率。
"""

import logging
import math
from typing import Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from risk_service.models.market import PricePoint, RiskResult

logger = logging.getLogger(__name__)

# 加密资产 7x24 交易，按自然日年化
ANNUALIZATION_FACTOR = math.sqrt(365)

NEUTRAL_SCORE = 50.0
SHORT_TERM_POINTS = 7

# 年化波动率分段阈值
_VOL_MODERATE = 0.5
_VOL_HIGH = 1.0

# 动量分段：(阈值, 基础分, 斜率)
_MOMENTUM_EXTREME = (0.30, 80.0, 200.0)
_MOMENTUM_SIGNIFICANT = (0.15, 50.0, 200.0)
_MOMENTUM_MODERATE = (0.05, 20.0, 300.0)
_MOMENTUM_STABLE_SLOPE = 400.0

# 综合评分
_BASE_WEIGHTS = (0.40, 0.30, 0.30)
_HIGH_RISK = 70.0
_LOW_RISK = 30.0

_VAR_MIN_RETURNS = 20

# 样本标准差低于此值视为无离散（等比序列的对数收益率只差浮点舍入误差）
_ZERO_DISPERSION = 1e-12


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


class RiskEngine:
    """风险评分引擎（无状态，同一输入总是得到相同输出）"""

    def compute_risk(
        self,
        price_series: Optional[Sequence[PricePoint]],
        current_volume: float,
        average_volume: float,
    ) -> RiskResult:
        """
        计算全部风险评分与指标

        空序列返回全零的默认结果，不抛出异常。
        所有数值保留两位小数。
        """
        if not price_series:
            return RiskResult()

        prices = pd.Series([float(p.price) for p in price_series], dtype="float64")
        returns = self.log_returns(prices)

        volatility = self.volatility_score(returns)
        trend = self.trend_score(prices)
        volume = self.volume_score(prices, current_volume, average_volume)
        composite = self.composite_score(volatility, trend, volume)

        return RiskResult(
            volatility_score=round(volatility, 2),
            trend_score=round(trend, 2),
            volume_score=round(volume, 2),
            composite_risk_score=round(composite, 2),
            downside_risk=round(self.downside_risk(returns), 2),
            max_drawdown=round(self.max_drawdown(prices), 2),
            sharpe_ratio=round(self.sharpe_ratio(returns), 2),
            value_at_risk_95=round(self.value_at_risk_95(returns), 2),
            annualized_volatility=round(self.annualized_volatility(returns), 2),
            price_series=tuple(price_series),
        )

    # ── 收益率 ────────────────────────────────────────────

    def log_returns(self, prices: pd.Series) -> pd.Series:
        """相邻价格对数收益率 ln(P_t / P_t-1)；含非正价格的价格对直接跳过"""
        prices = pd.Series(prices, dtype="float64").reset_index(drop=True)
        previous = prices.shift(1)
        valid = (prices > 0) & (previous > 0)
        return np.log(prices[valid] / previous[valid]).reset_index(drop=True)

    def _sample_std(self, returns: pd.Series) -> float:
        """样本标准差（Bessel 校正，除以 n-1）"""
        if len(returns) < 2:
            return 0.0
        return float(returns.std(ddof=1))

    # ── 子评分 ────────────────────────────────────────────

    def volatility_score(self, returns: pd.Series) -> float:
        """
        年化波动率映射为 0-100：
          <50%     → 0-50   线性
          50%-100% → 50-75  线性
          >=100%   → 75-100 线性，封顶 100

        收益率不足 2 个，或收益率完全无离散（价格恒定或按固定比例涨跌）时返回中性分 50。
        """
        std = self._sample_std(returns)
        if len(returns) < 2 or std < _ZERO_DISPERSION:
            return NEUTRAL_SCORE
        annualized = std * ANNUALIZATION_FACTOR
        if annualized < _VOL_MODERATE:
            score = annualized * 100
        elif annualized < _VOL_HIGH:
            score = 50 + (annualized - _VOL_MODERATE) * 50
        else:
            score = min(100.0, 75 + (annualized - _VOL_HIGH) * 25)
        return _clamp(score)

    def trend_score(self, prices: pd.Series) -> float:
        """近 7 点均价相对全窗口均价的动量；暴涨暴跌同样视为高风险"""
        if len(prices) < SHORT_TERM_POINTS:
            return NEUTRAL_SCORE
        avg_short = float(prices.iloc[-SHORT_TERM_POINTS:].mean())
        avg_long = float(prices.mean())
        if avg_long == 0:
            return NEUTRAL_SCORE
        momentum = abs((avg_short - avg_long) / avg_long)

        for threshold, base, slope in (_MOMENTUM_EXTREME, _MOMENTUM_SIGNIFICANT, _MOMENTUM_MODERATE):
            if momentum > threshold:
                return _clamp(min(100.0, base + (momentum - threshold) * slope))
        return _clamp(momentum * _MOMENTUM_STABLE_SLOPE)

    def volume_score(
        self, prices: pd.Series, current_volume: float, average_volume: float
    ) -> float:
        """
        结合价格变化的成交量评分，规则按优先级匹配，先命中者生效：
          1. 价跌 >5% 且放量 >1.5x   → 恐慌抛售
          2. 价涨 >5% 且缩量 <0.5x   → 无量上涨，不可持续
          3. 量比 <0.3               → 流动性不足
          4. 量比 >3.0               → 异常放量
          5. 价涨 >10% 且放量 >1.5x  → 过热
          6. 其他                    → 正常区间
        """
        if not average_volume or average_volume <= 0:
            return NEUTRAL_SCORE
        ratio = float(current_volume) / float(average_volume)

        price_change = 0.0
        if len(prices) >= SHORT_TERM_POINTS:
            week_ago = float(prices.iloc[-SHORT_TERM_POINTS])
            if week_ago != 0:
                price_change = (float(prices.iloc[-1]) - week_ago) / week_ago

        if price_change < -0.05 and ratio > 1.5:
            score = min(100.0, 70 + (ratio - 1.5) * 20)
        elif price_change > 0.05 and ratio < 0.5:
            score = min(100.0, 60 + (0.5 - ratio) * 60)
        elif ratio < 0.3:
            score = min(100.0, 65 + (0.3 - ratio) * 100)
        elif ratio > 3.0:
            score = min(100.0, 55 + (ratio - 3.0) * 10)
        elif price_change > 0.10 and ratio > 1.5:
            score = 45 + (ratio - 1.5) * 15
        else:
            score = 30 + abs(ratio - 1.0) * 20
        return _clamp(score)

    # ── 综合评分 ──────────────────────────────────────────

    def composite_weights(
        self, volatility: float, trend: float, volume: float
    ) -> Tuple[float, float, float]:
        """自适应权重：极端子评分主导综合评分"""
        if volatility > 75:
            return 0.50, 0.25, 0.25
        if trend > 80:
            return 0.30, 0.45, 0.25
        if volume > 75:
            return 0.35, 0.25, 0.40
        return _BASE_WEIGHTS

    def composite_score(self, volatility: float, trend: float, volume: float) -> float:
        """加权求和后按高风险项数量放大（或全部低风险时衰减）"""
        w_vol, w_trend, w_volume = self.composite_weights(volatility, trend, volume)
        composite = _clamp(volatility * w_vol + trend * w_trend + volume * w_volume)

        scores = (volatility, trend, volume)
        high = sum(1 for s in scores if s > _HIGH_RISK)
        if high == 3:
            composite *= 1.20
        elif high == 2:
            composite *= 1.10
        elif all(s < _LOW_RISK for s in scores):
            composite *= 0.90
        return _clamp(composite)

    # ── 高级指标 ──────────────────────────────────────────

    def downside_risk(self, returns: pd.Series) -> float:
        """负收益样本标准差，年化后以百分比表示；负收益不足 2 个返回 0"""
        negative = returns[returns < 0]
        if len(negative) < 2:
            return 0.0
        return self._sample_std(negative) * ANNUALIZATION_FACTOR * 100

    def max_drawdown(self, prices: pd.Series) -> float:
        """从历史最高点到之后最低点的最大跌幅（%）"""
        if len(prices) < 2:
            return 0.0
        peak = prices.cummax()
        positive = peak > 0
        if not positive.any():
            return 0.0
        drawdown = (peak[positive] - prices[positive]) / peak[positive] * 100
        return max(0.0, float(drawdown.max()))

    def sharpe_ratio(self, returns: pd.Series) -> float:
        """年化夏普比率，无风险利率取 0"""
        std = self._sample_std(returns)
        if len(returns) < 2 or std < _ZERO_DISPERSION:
            return 0.0
        return float(returns.mean()) / std * ANNUALIZATION_FACTOR

    def value_at_risk_95(self, returns: pd.Series) -> float:
        """历史模拟法 95% VaR：升序第 floor(0.05n) 个收益率，年化后取绝对值（%）"""
        if len(returns) < _VAR_MIN_RETURNS:
            return 0.0
        ordered = np.sort(returns.to_numpy())
        index = int(len(ordered) * 0.05)
        return abs(float(ordered[index]) * ANNUALIZATION_FACTOR * 100)

    def annualized_volatility(self, returns: pd.Series) -> float:
        """年化波动率（%）"""
        if len(returns) < 2:
            return 0.0
        return self._sample_std(returns) * ANNUALIZATION_FACTOR * 100


# ── 模块级别单例 ──────────────────────────────────────────
_engine: Optional[RiskEngine] = None


def get_risk_engine() -> RiskEngine:
    global _engine
    if _engine is None:
        _engine = RiskEngine()
    return _engine
