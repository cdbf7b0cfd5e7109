"""统一 API 响应模型"""

from typing import Any, List, Optional

from pydantic import BaseModel

from risk_service.models.market import PricePoint


class ApiResponse(BaseModel):
    """标准 API 响应封装"""
    success: bool = True
    data: Optional[Any] = None
    message: str = ""
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None, message: str = "success") -> "ApiResponse":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, error: str, message: str = "failed") -> "ApiResponse":
        return cls(success=False, error=error, message=message)


class RiskAnalysisResponse(BaseModel):
    """单资产风险分析结果"""
    asset_id: str
    days: int
    source: str = ""

    composite_risk_score: float = 0.0
    volatility_score: float = 0.0
    trend_score: float = 0.0
    volume_score: float = 0.0

    downside_risk: float = 0.0
    max_drawdown: float = 0.0
    sharpe_ratio: float = 0.0
    value_at_risk_95: float = 0.0
    annualized_volatility: float = 0.0

    price_history: List[PricePoint] = []
