"""带时限的请求执行器。

把一次网络调用包在硬性时限里，并按 RetryPolicy 的判定重发：

- 每次尝试都与计时器赛跑（asyncio.wait_for），超时后取消底层调用，
  取消会一路传到 httpx，连接被真正释放；超时只上报一次且不重试。
- 其它失败交给 RetryPolicy；需要重试时先等待退避时长，再以 attempt+1 重发。
- 时限有两种记账方式：per_attempt（每次尝试重新计时）与 total（所有尝试
  与退避共享同一个时限，剩余时限不够一次退避时立即超时）。
"""

import asyncio
import logging
from typing import Awaitable, Callable, Literal, Optional, TypeVar

from companion_core.domain.exceptions import (
    BusinessError,
    ErrorKind,
    NonRetryableProviderError,
    RequestTimeout,
    RetryableTransientError,
)
from companion_core.infrastructure.logging.logger import logger
from companion_core.resilience.retry import RetryPolicy, status_of

T = TypeVar("T")

DeadlineMode = Literal["per_attempt", "total"]


class BoundedExecutor:
    """对单次调用施加时限并按策略重试。

    call 必须是无参的协程工厂，每次尝试都会重新调用它以获得新的协程。
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        deadline_ms: int = 30000,
        deadline_mode: DeadlineMode = "per_attempt",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if deadline_mode not in ("per_attempt", "total"):
            raise ValueError(f"unknown deadline_mode: {deadline_mode!r}")
        self._policy = policy or RetryPolicy()
        self._deadline_ms = deadline_ms
        self._deadline_mode = deadline_mode
        self._sleep = sleep

    @classmethod
    def from_settings(cls, cfg) -> "BoundedExecutor":
        policy = RetryPolicy(max_attempts=cfg.retry_max_attempts, base_delay_ms=cfg.retry_base_delay_ms)
        return cls(policy=policy, deadline_ms=cfg.request_deadline_ms, deadline_mode=cfg.deadline_mode)

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def execute(self, call: Callable[[], Awaitable[T]], deadline_ms: Optional[int] = None) -> T:
        deadline_ms = deadline_ms or self._deadline_ms
        loop = asyncio.get_running_loop()
        started = loop.time()
        attempt = 1
        while True:
            timeout = self._attempt_timeout(deadline_ms, started, loop.time())
            try:
                if timeout <= 0:
                    raise asyncio.TimeoutError()
                return await asyncio.wait_for(call(), timeout=timeout)
            except asyncio.TimeoutError:
                self._log(logging.WARNING, "Request deadline exceeded", attempt=attempt, deadline_ms=deadline_ms)
                raise RequestTimeout(
                    message=f"call did not complete within {deadline_ms}ms",
                    attempts=attempt,
                ) from None
            except Exception as exc:
                decision = self._policy.decide(exc, attempt)
                if not decision.should_retry:
                    self._log(
                        logging.ERROR,
                        "Request failed",
                        attempt=attempt,
                        error=type(exc).__name__,
                        status=status_of(exc),
                    )
                    self._raise_terminal(exc, attempt)
                self._log(
                    logging.WARNING,
                    "Recoverable error, retrying",
                    attempt=attempt,
                    delay_ms=decision.delay_ms,
                    error=type(exc).__name__,
                    status=status_of(exc),
                )
            delay = decision.delay_ms / 1000
            if self._deadline_mode == "total":
                remaining = self._attempt_timeout(deadline_ms, started, loop.time())
                if delay >= remaining:
                    self._log(
                        logging.WARNING,
                        "Backoff exceeds remaining deadline",
                        attempt=attempt,
                        delay_ms=decision.delay_ms,
                        remaining_ms=int(remaining * 1000),
                    )
                    raise RequestTimeout(
                        message=f"call did not complete within {deadline_ms}ms",
                        attempts=attempt,
                    )
            await self._sleep(delay)
            attempt += 1

    def _attempt_timeout(self, deadline_ms: int, started: float, now: float) -> float:
        if self._deadline_mode == "total":
            return deadline_ms / 1000 - (now - started)
        return deadline_ms / 1000

    def _raise_terminal(self, exc: Exception, attempt: int) -> None:
        """把不透明错误包装为类型化终态错误；已类型化或无法归类的错误原样上抛。"""

        if isinstance(exc, BusinessError):
            raise exc
        kind = self._policy.classify(exc)
        status = status_of(exc)
        if kind is ErrorKind.TRANSIENT:
            raise RetryableTransientError(
                code="RETRY_EXHAUSTED", message=str(exc), status=status, attempts=attempt
            ) from exc
        if kind is ErrorKind.NON_RETRYABLE:
            raise NonRetryableProviderError(
                code="API_ERROR", message=str(exc), status=status, attempts=attempt
            ) from exc
        raise exc

    @staticmethod
    def _log(level: int, message: str, **payload) -> None:
        logger.log(level, message, extra={"extra": payload})
