"""
风险分析路由
GET /api/risk/{asset_id}   - 获取单资产风险评分与指标
"""

from fastapi import APIRouter, HTTPException, Query, status

from risk_service.config import settings
from risk_service.layers.errors import ErrorKind, ProviderError
from risk_service.models.response import ApiResponse
from risk_service.services.analysis_service import AssetNotFoundError, get_analysis_service

router = APIRouter(prefix="/api/risk", tags=["风险分析"])

_NOT_FOUND_KINDS = {ErrorKind.EMPTY, ErrorKind.UNSUPPORTED}


@router.get("/{asset_id}", response_model=ApiResponse)
async def get_risk_analysis(
    asset_id: str,
    days: int = Query(
        default=settings.DEFAULT_DAYS,
        description="分析窗口: 7 / 30 / 90，其他值按 30 处理",
    ),
):
    """获取资产风险分析结果"""
    svc = get_analysis_service()
    try:
        result = await svc.analyze(asset_id, days)
    except AssetNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except ProviderError as exc:
        if exc.kind in _NOT_FOUND_KINDS:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"No data found for asset: {asset_id}",
            )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"行情数据获取失败: {exc}",
        )
    return ApiResponse.ok(data=result.model_dump())
