"""
资产目录路由
GET /api/assets   - 支持分析的资产列表及其数据源
"""

from fastapi import APIRouter

from risk_service.config import settings
from risk_service.layers.symbols import get_symbol_mapper
from risk_service.models.response import ApiResponse

router = APIRouter(prefix="/api/assets", tags=["资产目录"])


@router.get("", response_model=ApiResponse)
async def list_assets():
    """获取资产目录；primary_supported 为 False 的资产直接使用 CoinGecko"""
    assets = get_symbol_mapper().catalog()
    return ApiResponse.ok(
        data={
            "assets": assets,
            "count": len(assets),
            "allowed_days": settings.ALLOWED_DAYS,
            "default_days": settings.DEFAULT_DAYS,
        },
    )
