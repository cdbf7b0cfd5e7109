"""
数据源重试策略
固定次数 + 线性退避，两个数据源共用；仅对临时性错误（限流 / 网络）重试。
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)
from tenacity.wait import wait_base

from risk_service.layers.errors import ProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def linear_backoff(base_delay: float) -> wait_base:
    """第 k 次重试前等待 base_delay * k 秒（k 从 1 开始）"""
    return wait_incrementing(start=base_delay, increment=base_delay)


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, ProviderError) and exc.transient


class RetryPolicy:
    """对一次异步获取操作施加重试；非临时性错误立即抛出"""

    def __init__(
        self,
        attempts: int = 3,
        base_delay: float = 1.0,
        backoff: Optional[wait_base] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if attempts < 1:
            raise ValueError("attempts 必须 >= 1")
        self.attempts = attempts
        self.backoff = backoff if backoff is not None else linear_backoff(base_delay)
        self._sleep = sleep

    async def run(self, operation: Callable[[], Awaitable[T]], label: str = "") -> T:
        """执行 operation，按策略重试；重试耗尽后抛出最后一次的 ProviderError"""

        def _log_retry(state: RetryCallState) -> None:
            exc = state.outcome.exception() if state.outcome else None
            delay = state.next_action.sleep if state.next_action else 0
            logger.warning(
                f"{label} 第 {state.attempt_number}/{self.attempts} 次尝试失败: {exc}，"
                f"{delay:.1f}s 后重试"
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=self.backoff,
            retry=retry_if_exception(_is_transient),
            before_sleep=_log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        try:
            return await retrying(operation)
        except ProviderError as exc:
            if exc.transient:
                logger.error(f"{label} 重试 {self.attempts} 次后仍失败: {exc}")
            raise
