"""重试策略。

纯函数式的判定：给定一次失败和已尝试次数，决定是否重试以及下一次退避时长。
真正的等待与重发由 BoundedExecutor 负责，这里不做任何 I/O。

状态码优先从类型化异常中读取（ProviderError.status、httpx.HTTPStatusError、
SDK 错误的 code 字段）；只有拿不到结构化信息的不透明错误，才退回到
按错误文本子串匹配的兜底规则。
"""

from dataclasses import dataclass
from typing import Optional

import httpx

from companion_core.domain.exceptions import ErrorKind, ProviderError
from companion_core.domain.models import RetryDecision


# 兜底：只有拿不到状态码和类型信息时才使用
_NETWORK_MARKERS = ("fetch", "network", "failed to execute")
_RATE_LIMIT_MARKERS = ("429",)
_SERVER_MARKERS = ("500", "503")


def status_of(error: BaseException) -> Optional[int]:
    """尽量从异常中取出上游 HTTP 状态码。"""

    if isinstance(error, ProviderError):
        return error.status
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    # google-genai 的 APIError 以及多数 SDK 错误使用 code / status_code
    for attr in ("status_code", "code"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and 100 <= value < 600:
            return value
    return None


@dataclass(frozen=True)
class RetryPolicy:
    """指数退避重试策略。

    - max_attempts: 含首次在内的最大尝试次数。
    - base_delay_ms: 第一次重试前的等待，之后每次翻倍。
    """

    max_attempts: int = 3
    base_delay_ms: int = 1000

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay_ms <= 0:
            raise ValueError("base_delay_ms must be > 0")

    def classify(self, error: BaseException) -> Optional[ErrorKind]:
        """把错误归类为 TRANSIENT / NON_RETRYABLE / 其它类型化 kind，无法归类时返回 None。"""

        status = status_of(error)
        if status is not None:
            if status == 429 or status >= 500:
                return ErrorKind.TRANSIENT
            if 400 <= status < 500:
                return ErrorKind.NON_RETRYABLE
        kind = getattr(error, "kind", None)
        if isinstance(kind, ErrorKind):
            return kind
        if isinstance(error, httpx.TransportError):
            return ErrorKind.TRANSIENT

        message = str(error).lower()
        markers = _NETWORK_MARKERS + _RATE_LIMIT_MARKERS + _SERVER_MARKERS
        if any(marker in message for marker in markers):
            return ErrorKind.TRANSIENT
        return None

    def decide(
        self,
        error: BaseException,
        attempt_number: int,
        base_delay_ms: Optional[int] = None,
    ) -> RetryDecision:
        """决定第 attempt_number 次尝试失败后是否继续。

        规则按顺序判定：
        1. 4xx（429 除外）不重试；
        2. 尝试次数用尽不重试；
        3. 网络错误、429、5xx 重试，等待 base * 2^(attempt_number-1) 毫秒；
        4. 其它错误不重试，直接上抛。
        """

        status = status_of(error)
        if status is not None and 400 <= status < 500 and status != 429:
            return RetryDecision(should_retry=False)
        if attempt_number >= self.max_attempts:
            return RetryDecision(should_retry=False)
        if self.classify(error) is ErrorKind.TRANSIENT:
            base = base_delay_ms if base_delay_ms is not None else self.base_delay_ms
            return RetryDecision(should_retry=True, delay_ms=base * 2 ** (attempt_number - 1))
        return RetryDecision(should_retry=False)
