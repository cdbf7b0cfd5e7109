"""
加密资产风险分析服务
独立 FastAPI 应用程序入口

启动方式:
    uvicorn risk_service.main:app --host 0.0.0.0 --port 8002
    python -m risk_service.main
"""

import logging
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from risk_service import __version__
from risk_service.config import settings
from risk_service.db import close_shared_cache, connect_shared_cache
from risk_service.layers.acquisition import close_http_client
from risk_service.routers import assets, cache, health, risk

# ── 日志配置 ──────────────────────────────────────────────
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ── 生命周期管理 ──────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用启动/关闭生命周期钩子"""
    logger.info("=" * 60)
    logger.info(f"🚀 Crypto Risk Analysis Service v{__version__} 启动中")
    logger.info(f"   Binance   : {settings.BINANCE_BASE_URL}")
    logger.info(f"   CoinGecko : {settings.COINGECKO_BASE_URL}")
    logger.info("=" * 60)

    # 共享缓存连接失败不阻断启动，降级为进程内缓存
    await connect_shared_cache()

    yield

    logger.info("🔄 风险分析服务正在关闭...")
    await close_http_client()
    await close_shared_cache()
    logger.info("✅ 风险分析服务已关闭")


# ── 应用实例 ──────────────────────────────────────────────
app = FastAPI(
    title="Crypto Risk Analysis Service",
    description=(
        "加密资产风险分析微服务，提供以下功能：\n"
        "- 🌐 双数据源（Binance 优先，CoinGecko 兜底）\n"
        "- 🗄️ 分数据源 TTL 缓存（可选 Redis 共享）\n"
        "- 📈 波动率 / 趋势 / 成交量评分与自适应综合评分\n"
        "- 📉 下行风险、最大回撤、夏普比率、VaR、年化波动率\n\n"
        "**分层架构**\n"
        "```\n"
        "Acquisition Layer  ← 从数据提供商拉取原始数据（重试 + 降级）\n"
        "Cache Layer        ← 进程内 TTL 缓存 / Redis\n"
        "Processing Layer   ← 响应解析、数值规范化\n"
        "Analysis Layer     ← 风险评分与指标计算\n"
        "```"
    ),
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS 中间件 ───────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── 请求计时中间件 ─────────────────────────────────────────
@app.middleware("http")
async def add_process_time(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    response.headers["X-Process-Time"] = f"{(time.time() - start) * 1000:.1f}ms"
    return response


# ── 全局异常处理 ──────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"未处理的异常: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "内部服务错误", "message": str(exc)},
    )


# ── 注册路由 ──────────────────────────────────────────────
app.include_router(health.router)
app.include_router(assets.router)
app.include_router(risk.router)
app.include_router(cache.router)


# ── 根路由 ───────────────────────────────────────────────
@app.get("/", include_in_schema=False)
async def root():
    return {
        "service": "Crypto Risk Analysis Service",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }


# ── 直接运行入口 ──────────────────────────────────────────
if __name__ == "__main__":
    uvicorn.run(
        "risk_service.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
