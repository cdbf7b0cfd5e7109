"""
资产 ID → Binance 交易对映射
映射为 None 的资产在 Binance 上存在但流动性不足（稳定币等），统一走 CoinGecko。
"""

from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

_PRIMARY_SYMBOLS: Mapping[str, Optional[str]] = MappingProxyType({
    # 主流币种，Binance 流动性充足
    "bitcoin": "BTCUSDT",
    "ethereum": "ETHUSDT",
    "ripple": "XRPUSDT",
    "binancecoin": "BNBUSDT",
    "solana": "SOLUSDT",
    "tron": "TRXUSDT",
    "dogecoin": "DOGEUSDT",
    "cardano": "ADAUSDT",
    "avalanche-2": "AVAXUSDT",
    "chainlink": "LINKUSDT",
    "shiba-inu": "SHIBUSDT",
    "bitcoin-cash": "BCHUSDT",
    "stellar": "XLMUSDT",
    "polkadot": "DOTUSDT",
    "litecoin": "LTCUSDT",
    "uniswap": "UNIUSDT",
    "dai": "DAIUSDT",
    # 显式排除
    "wrapped-bitcoin": None,
    "tether": None,     # USDT 本身是计价货币
    "usd-coin": None,
})

# 前端资产选择器使用的资产目录
_ASSET_CATALOG: List[Dict[str, str]] = [
    {"id": "bitcoin", "name": "Bitcoin", "ticker": "BTC"},
    {"id": "ethereum", "name": "Ethereum", "ticker": "ETH"},
    {"id": "tether", "name": "Tether", "ticker": "USDT"},
    {"id": "ripple", "name": "Ripple", "ticker": "XRP"},
    {"id": "binancecoin", "name": "BNB", "ticker": "BNB"},
    {"id": "solana", "name": "Solana", "ticker": "SOL"},
    {"id": "usd-coin", "name": "USDC", "ticker": "USDC"},
    {"id": "tron", "name": "TRON", "ticker": "TRX"},
    {"id": "dogecoin", "name": "Dogecoin", "ticker": "DOGE"},
    {"id": "cardano", "name": "Cardano", "ticker": "ADA"},
    {"id": "avalanche-2", "name": "Avalanche", "ticker": "AVAX"},
    {"id": "chainlink", "name": "Chainlink", "ticker": "LINK"},
    {"id": "shiba-inu", "name": "Shiba Inu", "ticker": "SHIB"},
    {"id": "bitcoin-cash", "name": "Bitcoin Cash", "ticker": "BCH"},
    {"id": "stellar", "name": "Stellar", "ticker": "XLM"},
    {"id": "polkadot", "name": "Polkadot", "ticker": "DOT"},
    {"id": "litecoin", "name": "Litecoin", "ticker": "LTC"},
    {"id": "uniswap", "name": "Uniswap", "ticker": "UNI"},
    {"id": "wrapped-bitcoin", "name": "Wrapped Bitcoin", "ticker": "WBTC"},
    {"id": "dai", "name": "Dai", "ticker": "DAI"},
]


class SymbolMapper:
    """静态映射表查询，无副作用"""

    def __init__(self, table: Optional[Mapping[str, Optional[str]]] = None):
        self._table = MappingProxyType(dict(table)) if table is not None else _PRIMARY_SYMBOLS

    def known(self, asset_id: str) -> bool:
        """映射表中是否有该资产条目（包括显式排除的条目）"""
        return asset_id in self._table

    def supported(self, asset_id: str) -> bool:
        """该资产能否走主数据源"""
        return self._table.get(asset_id) is not None

    def primary_symbol(self, asset_id: str) -> Optional[str]:
        return self._table.get(asset_id)

    def catalog(self) -> List[Dict[str, Any]]:
        """资产目录，附带主数据源支持情况"""
        return [
            {
                **asset,
                "primary_symbol": self.primary_symbol(asset["id"]),
                "primary_supported": self.supported(asset["id"]),
            }
            for asset in _ASSET_CATALOG
        ]


# ── 模块级别单例 ──────────────────────────────────────────
_mapper: Optional[SymbolMapper] = None


def get_symbol_mapper() -> SymbolMapper:
    global _mapper
    if _mapper is None:
        _mapper = SymbolMapper()
    return _mapper
