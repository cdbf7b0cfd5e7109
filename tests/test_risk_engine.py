"""
风险分析层单元测试

覆盖范围：
  - 对数收益率（非正价格跳过）
  - 波动率 / 趋势 / 成交量子评分分段映射
  - 综合评分自适应权重与放大 / 衰减
  - 高级指标（下行风险、最大回撤、夏普比率、VaR、年化波动率）
  - 空输入、幂等性、评分值域
"""

import math
import os
import random
import sys

import pandas as pd
import pytest
from pydantic import ValidationError

# 确保项目根目录在 sys.path
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from risk_service.layers.analysis import ANNUALIZATION_FACTOR, RiskEngine  # noqa: E402
from risk_service.models.market import PricePoint, RiskResult  # noqa: E402


# ─────────────────────────────────────────────────────────
# 辅助函数
# ─────────────────────────────────────────────────────────

def _series(prices) -> list:
    start = 1_700_000_000_000
    return [PricePoint(timestamp=start + i * 86_400_000, price=p) for i, p in enumerate(prices)]


def _returns_for_annualized(vol: float) -> pd.Series:
    """构造 [x, -x]，使样本标准差年化后恰为 vol"""
    x = vol / (math.sqrt(2) * ANNUALIZATION_FACTOR)
    return pd.Series([x, -x])


def _prices_from_returns(returns, start: float = 100.0) -> list:
    prices = [start]
    for r in returns:
        prices.append(prices[-1] * math.exp(r))
    return prices


def _split_window(before: float, after: float) -> pd.Series:
    """前 7 点为 before、后 7 点为 after，动量 = (after - before) / (after + before)"""
    return pd.Series([before] * 7 + [after] * 7, dtype="float64")


# ─────────────────────────────────────────────────────────
# 1. 空输入与基本性质
# ─────────────────────────────────────────────────────────

class TestComputeRisk:
    def setup_method(self):
        self.engine = RiskEngine()

    def test_empty_series_returns_default(self):
        result = self.engine.compute_risk([], 0, 0)
        assert result == RiskResult()
        assert result.price_series == ()
        assert result.composite_risk_score == 0
        assert result.sharpe_ratio == 0

    def test_none_series_returns_default(self):
        assert self.engine.compute_risk(None, 100, 100) == RiskResult()

    def test_flat_series_scores(self):
        """7 个相同价格、无成交量数据：波动率中性、趋势 0、成交量中性"""
        result = self.engine.compute_risk(_series([100] * 7), 0, 0)
        assert result.volatility_score == 50
        assert result.trend_score == 0
        assert result.volume_score == 50
        # 0.40 * 50 + 0.30 * 0 + 0.30 * 50
        assert result.composite_risk_score == pytest.approx(35.0)
        assert result.max_drawdown == 0
        assert result.annualized_volatility == 0

    @pytest.mark.parametrize("growth", [1.0, 1.01, 1.02, 1.05, 0.97])
    def test_constant_growth_has_no_dispersion(self, growth):
        """按固定比例涨跌的序列收益率全部相同，与价格恒定同样视为无离散"""
        prices = [100.0 * growth ** i for i in range(30)]
        result = self.engine.compute_risk(_series(prices), 0, 0)
        assert result.volatility_score == 50
        assert result.sharpe_ratio == 0
        assert result.annualized_volatility == 0

    def test_idempotent(self):
        rng = random.Random(7)
        prices = [100 * (1 + rng.uniform(-0.05, 0.05)) for _ in range(60)]
        series = _series(prices)
        first = self.engine.compute_risk(series, 1500, 1200)
        second = self.engine.compute_risk(series, 1500, 1200)
        assert first == second
        assert first.model_dump_json() == second.model_dump_json()

    def test_result_keeps_price_series(self):
        series = _series([100, 101, 102])
        result = self.engine.compute_risk(series, 10, 10)
        assert list(result.price_series) == series

    def test_result_is_immutable(self):
        result = self.engine.compute_risk(_series([100, 101, 102]), 10, 10)
        with pytest.raises(ValidationError):
            result.composite_risk_score = 1

    def test_values_rounded_to_two_decimals(self):
        rng = random.Random(11)
        prices = [50 * (1 + rng.uniform(-0.1, 0.1)) for _ in range(40)]
        result = self.engine.compute_risk(_series(prices), 1234.5, 987.6)
        for name, value in result.model_dump(exclude={"price_series"}).items():
            assert round(value, 2) == value, name

    @pytest.mark.parametrize("seed", range(10))
    def test_scores_within_bounds(self, seed):
        rng = random.Random(seed)
        n = rng.choice([2, 5, 7, 30, 90])
        swing = rng.choice([0.01, 0.1, 0.5, 2.0])
        price = 100.0
        prices = []
        for _ in range(n):
            price = max(0.0001, price * (1 + rng.uniform(-swing, swing)))
            prices.append(price)
        result = self.engine.compute_risk(
            _series(prices), rng.uniform(0, 1e6), rng.choice([0, rng.uniform(1, 1e6)])
        )
        for score in (
            result.volatility_score,
            result.trend_score,
            result.volume_score,
            result.composite_risk_score,
        ):
            assert 0 <= score <= 100


# ─────────────────────────────────────────────────────────
# 2. 收益率与子评分
# ─────────────────────────────────────────────────────────

class TestSubScores:
    def setup_method(self):
        self.engine = RiskEngine()

    def test_log_returns_skip_zero_prices(self):
        returns = self.engine.log_returns(pd.Series([100.0, 0.0, 100.0, 110.0]))
        assert len(returns) == 1
        assert returns.iloc[0] == pytest.approx(math.log(1.1))

    def test_log_returns_values(self):
        returns = self.engine.log_returns(pd.Series([100.0, 200.0, 100.0]))
        assert list(returns) == pytest.approx([math.log(2), math.log(0.5)])

    def test_volatility_needs_two_returns(self):
        assert self.engine.volatility_score(pd.Series([0.1])) == 50

    @pytest.mark.parametrize(
        "annualized, expected",
        [
            (0.25, 25.0),    # <50%：线性 0-50
            (0.75, 62.5),    # 50%-100%：线性 50-75
            (1.5, 87.5),     # >=100%：线性 75-100
            (3.0, 100.0),    # 封顶
        ],
    )
    def test_volatility_piecewise(self, annualized, expected):
        score = self.engine.volatility_score(_returns_for_annualized(annualized))
        assert score == pytest.approx(expected)

    def test_trend_needs_seven_points(self):
        assert self.engine.trend_score(pd.Series([100.0, 120.0, 140.0, 160.0, 180.0, 200.0])) == 50

    @pytest.mark.parametrize(
        "before, after, expected",
        [
            (97, 103, 12.0),     # m=0.03  → m*400
            (90, 110, 35.0),     # m=0.10  → 20 + 0.05*300
            (80, 120, 60.0),     # m=0.20  → 50 + 0.05*200
            (65, 135, 90.0),     # m=0.35  → 80 + 0.05*200
            (60, 140, 100.0),    # m=0.40  → 封顶
        ],
    )
    def test_trend_piecewise(self, before, after, expected):
        assert self.engine.trend_score(_split_window(before, after)) == pytest.approx(expected)

    def test_trend_symmetric(self):
        up = self.engine.trend_score(_split_window(90, 110))
        down = self.engine.trend_score(_split_window(110, 90))
        assert up == pytest.approx(down)

    def test_volume_without_average_is_neutral(self):
        assert self.engine.volume_score(pd.Series([100.0] * 7), 500, 0) == 50

    @pytest.mark.parametrize(
        "last_price, ratio, expected",
        [
            (90, 2.0, 80.0),     # 1. 恐慌抛售：70 + 0.5*20
            (110, 0.2, 78.0),    # 2. 无量上涨（优先于流动性不足）：60 + 0.3*60
            (100, 0.1, 85.0),    # 3. 流动性不足：65 + 0.2*100
            (100, 5.0, 75.0),    # 4. 异常放量：55 + 2*10
            (115, 2.0, 52.5),    # 5. 放量过热：45 + 0.5*15
            (100, 1.0, 30.0),    # 6. 正常区间
            (100, 1.2, 34.0),
        ],
    )
    def test_volume_rules(self, last_price, ratio, expected):
        prices = pd.Series([100.0] * 6 + [float(last_price)])
        score = self.engine.volume_score(prices, ratio * 1000, 1000)
        assert score == pytest.approx(expected)

    def test_volume_short_series_has_no_price_context(self):
        # 不足 7 点时价格变化按 0 处理，只能命中正常区间规则
        prices = pd.Series([100.0, 50.0, 25.0])
        assert self.engine.volume_score(prices, 2000, 1000) == pytest.approx(50.0)

    def test_volume_score_capped(self):
        prices = pd.Series([100.0] * 6 + [50.0])
        assert self.engine.volume_score(prices, 10_000, 1000) == 100


# ─────────────────────────────────────────────────────────
# 3. 综合评分
# ─────────────────────────────────────────────────────────

class TestCompositeScore:
    def setup_method(self):
        self.engine = RiskEngine()

    def test_base_weights(self):
        assert self.engine.composite_weights(50, 50, 50) == (0.40, 0.30, 0.30)
        assert self.engine.composite_score(50, 40, 60) == pytest.approx(20 + 12 + 18)

    def test_volatility_dominates(self):
        assert self.engine.composite_weights(76, 90, 90) == (0.50, 0.25, 0.25)

    def test_trend_dominates(self):
        assert self.engine.composite_weights(50, 90, 50) == (0.30, 0.45, 0.25)
        assert self.engine.composite_score(50, 90, 50) == pytest.approx(15 + 40.5 + 12.5)

    def test_volume_dominates(self):
        assert self.engine.composite_weights(50, 50, 80) == (0.35, 0.25, 0.40)

    def test_threshold_is_strict(self):
        assert self.engine.composite_weights(75, 80, 75) == (0.40, 0.30, 0.30)

    def test_all_high_amplified(self):
        # 权重 0.50/0.25/0.25 → 80，再乘 1.20
        assert self.engine.composite_score(80, 80, 80) == pytest.approx(96.0)

    def test_amplification_clamped(self):
        assert self.engine.composite_score(100, 100, 100) == 100

    def test_two_high_amplified(self):
        # 40 + 20 + 5 = 65，两项 >70 → 乘 1.10
        assert self.engine.composite_score(80, 80, 20) == pytest.approx(71.5)

    def test_all_low_dampened(self):
        assert self.engine.composite_score(20, 20, 20) == pytest.approx(18.0)

    def test_single_high_not_amplified(self):
        # 40 + 7.5 + 7.5
        assert self.engine.composite_score(80, 30, 30) == pytest.approx(55.0)


# ─────────────────────────────────────────────────────────
# 4. 高级指标
# ─────────────────────────────────────────────────────────

class TestAdvancedMetrics:
    def setup_method(self):
        self.engine = RiskEngine()

    def test_max_drawdown_uses_running_peak(self):
        dd = self.engine.max_drawdown(pd.Series([100.0, 80.0, 120.0, 60.0]))
        assert dd == pytest.approx(50.0)

    def test_max_drawdown_short_series(self):
        assert self.engine.max_drawdown(pd.Series([100.0])) == 0

    def test_max_drawdown_rising_series(self):
        assert self.engine.max_drawdown(pd.Series([1.0, 2.0, 3.0])) == 0

    def test_max_drawdown_in_result(self):
        result = self.engine.compute_risk(_series([100, 80, 120, 60]), 0, 0)
        assert result.max_drawdown == 50.0

    def test_annualized_volatility_percent(self):
        returns = _returns_for_annualized(0.8)
        assert self.engine.annualized_volatility(returns) == pytest.approx(80.0)
        assert self.engine.annualized_volatility(pd.Series([0.1])) == 0

    def test_downside_risk_uses_negative_returns_only(self):
        returns = pd.Series([0.05, -0.01, 0.2, -0.03])
        negative = pd.Series([-0.01, -0.03])
        expected = negative.std(ddof=1) * ANNUALIZATION_FACTOR * 100
        assert self.engine.downside_risk(returns) == pytest.approx(expected)

    def test_downside_risk_needs_two_negatives(self):
        assert self.engine.downside_risk(pd.Series([0.1, 0.2, -0.05])) == 0

    def test_sharpe_ratio(self):
        returns = pd.Series([0.01, 0.02, 0.03])
        expected = 0.02 / 0.01 * ANNUALIZATION_FACTOR
        assert self.engine.sharpe_ratio(returns) == pytest.approx(expected)

    def test_sharpe_ratio_negative(self):
        assert self.engine.sharpe_ratio(pd.Series([-0.01, -0.02, -0.03])) < 0

    def test_sharpe_ratio_zero_dispersion(self):
        assert self.engine.sharpe_ratio(pd.Series([0.125, 0.125, 0.125])) == 0

    def test_var_needs_twenty_returns(self):
        assert self.engine.value_at_risk_95(pd.Series([-0.1] * 19)) == 0

    def test_var_percentile(self):
        returns = [0.001 * i for i in range(1, 19)] + [-0.04, -0.02]
        # n=20 → 下标 floor(0.05*20)=1，即第二小的 -0.02
        expected = 0.02 * ANNUALIZATION_FACTOR * 100
        assert self.engine.value_at_risk_95(pd.Series(returns)) == pytest.approx(expected)

    def test_var_from_price_series(self):
        returns = [0.01, -0.05, 0.02, -0.01] * 6
        prices = _prices_from_returns(returns)
        result = self.engine.compute_risk(_series(prices), 0, 0)
        # n=24 → 下标 1，升序前两个均为 -0.05
        assert result.value_at_risk_95 == pytest.approx(
            round(0.05 * ANNUALIZATION_FACTOR * 100, 2), abs=0.01
        )
