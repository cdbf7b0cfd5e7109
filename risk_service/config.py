"""
风险分析服务配置模块
支持从环境变量读取配置，自动检测 Docker 容器环境并启用服务发现
"""

import os
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _is_docker() -> bool:
    """检测当前是否运行在 Docker 容器内"""
    return (
        os.path.exists("/.dockerenv")
        or os.environ.get("DOCKER_CONTAINER", "").lower() in ("1", "true", "yes")
    )


def _default_redis_host() -> str:
    """Docker 环境使用服务名 'redis'，本地使用 'localhost'"""
    return "redis" if _is_docker() else "localhost"


class RiskServiceSettings(BaseSettings):
    """风险分析服务配置"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── 基础配置 ──────────────────────────────────────────
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8002)
    DEBUG: bool = Field(default=False)
    ALLOWED_ORIGINS: List[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:5174"]
    )

    # ── Redis 配置（可选共享缓存，支持服务发现） ───────────
    REDIS_HOST: str = Field(default_factory=_default_redis_host)
    REDIS_PORT: int = Field(default=6379)
    REDIS_PASSWORD: str = Field(default="")
    REDIS_DB: int = Field(default=0)
    REDIS_ENABLED: bool = Field(default=False)
    REDIS_MAX_CONNECTIONS: int = Field(default=20)

    @property
    def REDIS_URL(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    # ── 数据源配置 ─────────────────────────────────────────
    BINANCE_BASE_URL: str = Field(default="https://api.binance.com/api/v3")
    COINGECKO_BASE_URL: str = Field(default="https://api.coingecko.com/api/v3")
    COINGECKO_API_KEY: str = Field(default="")
    HTTP_TIMEOUT: float = Field(default=10.0)        # 单次上游请求超时（秒）

    # ── 重试配置 ──────────────────────────────────────────
    RETRY_ATTEMPTS: int = Field(default=3)
    RETRY_BASE_DELAY: float = Field(default=1.0)     # 线性退避基数（秒）

    # ── 缓存配置 ──────────────────────────────────────────
    PRIMARY_CACHE_TTL: int = Field(default=60)       # Binance 数据 TTL
    SECONDARY_CACHE_TTL: int = Field(default=180)    # CoinGecko 数据 TTL（限流更严格）

    # ── 分析窗口 ──────────────────────────────────────────
    DEFAULT_DAYS: int = Field(default=30)
    ALLOWED_DAYS: List[int] = Field(default_factory=lambda: [7, 30, 90])

    # ── 日志配置 ──────────────────────────────────────────
    LOG_LEVEL: str = Field(default="INFO")


@lru_cache
def get_settings() -> RiskServiceSettings:
    """获取全局配置（单例）"""
    return RiskServiceSettings()


settings = get_settings()
