"""
Layer 3 – 数据处理层
将上游原始响应解析为标准价格序列与成交量序列，并计算成交量统计。
数值字段可能是 JSON 数字或十进制字符串，统一按与区域设置无关的格式解析。
"""

import logging
import math
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from risk_service.layers.errors import ErrorKind, ProviderError
from risk_service.models.market import PricePoint

logger = logging.getLogger(__name__)

# Binance K 线字段位置
_KLINE_OPEN_TIME = 0
_KLINE_CLOSE = 4
_KLINE_VOLUME = 5


def to_number(value: Any) -> float:
    """
    解析数字或十进制字符串

    字符串只接受 "1234.56" 形式（小数点为 '.'，无千分位），
    "1234,56" / "1,234.56" / "1_234.56" 视为非法。
    """
    if isinstance(value, bool):
        raise ValueError(f"非数值字段: {value!r}")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        # Decimal 接受 "1_234.56" 这类下划线分组，需单独拒绝
        if "_" in value:
            raise ValueError(f"无法解析的十进制字符串: {value!r}")
        try:
            parsed = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"无法解析的十进制字符串: {value!r}") from None
        number = float(parsed)
    else:
        raise ValueError(f"非数值字段: {value!r}")
    if not math.isfinite(number):
        raise ValueError(f"非有限数值: {value!r}")
    return number


def to_timestamp(value: Any) -> int:
    """解析毫秒时间戳（整数、整值浮点或数字字符串）"""
    number = to_number(value)
    if not number.is_integer():
        raise ValueError(f"时间戳不是整数: {value!r}")
    return int(number)


class ProcessingLayer:
    """数据处理层：解析 + 规范化 + 成交量统计"""

    # ── 解析 ──────────────────────────────────────────────

    def parse_klines(
        self, payload: Any, provider: str = "binance"
    ) -> Tuple[List[PricePoint], List[float]]:
        """
        解析 K 线数组 [[openTime, open, high, low, close, volume, ...], ...]

        Returns:
            (按时间升序的价格序列, 对应的成交量序列)
        """
        if not isinstance(payload, list):
            raise ProviderError(ErrorKind.MALFORMED, "K 线响应不是数组", provider)
        if not payload:
            raise ProviderError(ErrorKind.EMPTY, "K 线数据为空", provider)

        rows = []
        for index, kline in enumerate(payload):
            if not isinstance(kline, list) or len(kline) <= _KLINE_VOLUME:
                raise ProviderError(
                    ErrorKind.MALFORMED, f"第 {index} 根 K 线结构异常: {kline!r}", provider
                )
            try:
                rows.append({
                    "timestamp": to_timestamp(kline[_KLINE_OPEN_TIME]),
                    "price": to_number(kline[_KLINE_CLOSE]),
                    "volume": to_number(kline[_KLINE_VOLUME]),
                })
            except ValueError as exc:
                raise ProviderError(
                    ErrorKind.MALFORMED, f"第 {index} 根 K 线数值异常: {exc}", provider
                ) from exc

        df = self._normalize(pd.DataFrame(rows))
        return self._to_points(df), [float(v) for v in df["volume"]]

    def parse_market_chart(
        self, payload: Any, provider: str = "coingecko"
    ) -> Tuple[List[PricePoint], List[float]]:
        """
        解析 {prices: [[ts, price], ...], total_volumes: [[ts, volume], ...]}

        字段名不区分大小写；缺少 total_volumes 时成交量序列为空。
        """
        if not isinstance(payload, dict):
            raise ProviderError(ErrorKind.MALFORMED, "行情响应不是对象", provider)
        fields: Dict[str, Any] = {str(k).lower(): v for k, v in payload.items()}

        raw_prices = fields.get("prices")
        if raw_prices is None:
            raise ProviderError(ErrorKind.MALFORMED, "响应缺少 prices 字段", provider)
        prices = self._parse_pairs(raw_prices, "prices", provider)
        if not prices:
            raise ProviderError(ErrorKind.EMPTY, "价格数据为空", provider)

        raw_volumes = fields.get("total_volumes")
        volumes = self._parse_pairs(raw_volumes, "total_volumes", provider) if raw_volumes else []

        price_df = self._normalize(pd.DataFrame(prices, columns=["timestamp", "price"]))
        volume_df = pd.DataFrame(volumes, columns=["timestamp", "volume"])
        if not volume_df.empty:
            volume_df = self._normalize(volume_df)
        return self._to_points(price_df), [float(v) for v in volume_df.get("volume", [])]

    # ── 成交量统计 ────────────────────────────────────────

    def completed_period_volumes(self, volumes: Sequence[float]) -> Tuple[float, float]:
        """
        剔除最后一根进行中的 K 线后计算 (当前成交量, 平均成交量)

        进行中的周期成交量从 0 开始累积，直接使用会严重低估当前成交量。
        只有一根 K 线时两者均取该 K 线成交量。
        """
        if not volumes:
            return 0.0, 0.0
        if len(volumes) == 1:
            return float(volumes[0]), float(volumes[0])
        completed = pd.Series(volumes[:-1], dtype="float64")
        return float(volumes[-2]), float(completed.mean())

    def full_series_volumes(self, volumes: Sequence[float]) -> Tuple[float, float]:
        """(最后一个成交量, 全序列平均成交量)"""
        if not volumes:
            return 0.0, 0.0
        return float(volumes[-1]), float(pd.Series(volumes, dtype="float64").mean())

    # ── 内部方法 ──────────────────────────────────────────

    def _parse_pairs(self, raw: Any, field: str, provider: str) -> List[Tuple[int, float]]:
        if not isinstance(raw, list):
            raise ProviderError(ErrorKind.MALFORMED, f"{field} 字段不是数组", provider)
        pairs = []
        for index, item in enumerate(raw):
            if not isinstance(item, list) or len(item) < 2:
                raise ProviderError(
                    ErrorKind.MALFORMED, f"{field}[{index}] 结构异常: {item!r}", provider
                )
            try:
                pairs.append((to_timestamp(item[0]), to_number(item[1])))
            except ValueError as exc:
                raise ProviderError(
                    ErrorKind.MALFORMED, f"{field}[{index}] 数值异常: {exc}", provider
                ) from exc
        return pairs

    def _normalize(self, df: pd.DataFrame) -> pd.DataFrame:
        """按时间升序排列，重复时间戳保留最后一条"""
        df = df.drop_duplicates(subset=["timestamp"], keep="last")
        return df.sort_values("timestamp", kind="stable").reset_index(drop=True)

    def _to_points(self, df: pd.DataFrame) -> List[PricePoint]:
        return [
            PricePoint(timestamp=int(ts), price=float(price))
            for ts, price in zip(df["timestamp"], df["price"])
        ]


# ── 模块级别单例 ──────────────────────────────────────────
_processor: Optional[ProcessingLayer] = None


def get_processing_layer() -> ProcessingLayer:
    global _processor
    if _processor is None:
        _processor = ProcessingLayer()
    return _processor
