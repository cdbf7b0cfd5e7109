"""数据源错误类型"""

from enum import Enum


class ErrorKind(str, Enum):
    UNSUPPORTED = "unsupported"    # 资产不在主数据源映射表中
    RATE_LIMITED = "rate_limited"  # 上游返回 429
    TRANSPORT = "transport"        # 网络错误 / 超时 / 非 2xx 响应
    MALFORMED = "malformed"        # 响应结构或数值无法解析
    EMPTY = "empty"                # 上游返回零条数据


_TRANSIENT = {ErrorKind.RATE_LIMITED, ErrorKind.TRANSPORT}


class ProviderError(Exception):
    """数据源获取失败"""

    def __init__(self, kind: ErrorKind, message: str, provider: str = ""):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.provider = provider

    @property
    def transient(self) -> bool:
        """是否为可重试的临时性错误"""
        return self.kind in _TRANSIENT

    def __str__(self) -> str:
        prefix = f"[{self.provider}] " if self.provider else ""
        return f"{prefix}{self.kind.value}: {self.message}"
