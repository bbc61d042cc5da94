"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在 API 层或 UI 层做统一捕获与用户提示。

每个异常类带有一个 `kind`（ErrorKind），重试策略与服务层按 kind 分流，
而不是解析错误文本。
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """终态错误分类。"""

    NON_RETRYABLE = "non_retryable_provider_error"
    TRANSIENT = "retryable_transient_error"
    TIMEOUT = "timeout"
    MALFORMED_OUTPUT = "malformed_output"
    MISSING_CREDENTIAL = "missing_credential"
    SYNTHESIS_FAILED = "synthesis_failed"
    INVALID = "invalid"


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_READ_ERROR"）。
        message: 开发者可读错误信息（不直接展示给用户）。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 attempts、provider 等）。
    """

    kind: ErrorKind = ErrorKind.INVALID

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class SessionExpiredError(BusinessError):
    """会话句柄不存在或已因切换人设被丢弃。"""


class StoreError(BusinessError):
    """本地持久化读写失败。"""


class ProviderError(BusinessError):
    """上游模型服务返回的错误。

    status 为上游的 HTTP 状态码（未知时为 None），details 为上游原始错误体。
    """

    kind = ErrorKind.NON_RETRYABLE

    def __init__(
        self,
        code: str,
        message: str,
        status: Optional[int] = None,
        details: Any = None,
        **extra,
    ):
        super().__init__(code=code, message=message, http_status=status or 502, **extra)
        self.status = status
        self.details = details


class NonRetryableProviderError(ProviderError):
    """4xx（429 除外）：请求本身有问题，重试无效。"""


class RetryableTransientError(ProviderError):
    """网络抖动、限流、服务端 5xx 等可恢复错误。"""

    kind = ErrorKind.TRANSIENT


class NetworkError(RetryableTransientError):
    """网络层错误，例如连接失败、DNS 失败等。"""


class RateLimitError(RetryableTransientError):
    """Provider 限流错误（429），由执行器负责退避重试。"""


class ServerError(RetryableTransientError):
    """上游 5xx。"""


class RequestTimeout(BusinessError):
    """调用超过时限。执行器不会重试超时。"""

    kind = ErrorKind.TIMEOUT

    def __init__(self, code: str = "REQUEST_TIMEOUT", message: str = "Request Timeout", **extra):
        super().__init__(code=code, message=message, http_status=504, **extra)


class MalformedOutputError(BusinessError):
    """模型输出无法解析为期望的结构。"""

    kind = ErrorKind.MALFORMED_OUTPUT

    def __init__(self, message: str, raw_text: Optional[str] = None, **extra):
        super().__init__(code="MALFORMED_OUTPUT", message=message, http_status=502, **extra)
        self.raw_text = raw_text


class MissingCredentialError(BusinessError):
    """Provider 凭证未配置。"""

    kind = ErrorKind.MISSING_CREDENTIAL

    def __init__(self, message: str, **extra):
        super().__init__(code="MISSING_API_KEY", message=message, http_status=500, **extra)


class SynthesisFailedError(BusinessError):
    """日记流水线第一阶段（摘要）失败，未生成任何日记。"""

    kind = ErrorKind.SYNTHESIS_FAILED

    def __init__(self, message: str, cause_kind: Optional[ErrorKind] = None, **extra):
        super().__init__(code="SYNTHESIS_FAILED", message=message, http_status=502, **extra)
        self.cause_kind = cause_kind


def provider_error_for_status(status: int, message: str, details: Any = None) -> ProviderError:
    """根据上游状态码选择对应的异常类型。"""

    if status == 429:
        return RateLimitError(code="RATE_LIMIT", message=message, status=status, details=details)
    if status >= 500:
        return ServerError(code="SERVER_ERROR", message=message, status=status, details=details)
    return NonRetryableProviderError(code="API_ERROR", message=message, status=status, details=details)


# 面向最终用户的简短提示，不包含任何上游错误文本
USER_NOTICES = {
    "suggest": "生成建议失败，请检查配置。",
    "chat": "对话中断，请重试。",
    "end_chat": "生成日记失败，请重试。",
    "save_diary": "保存失败，请重试。",
    "start_chat": "无法开启对话，请重新选择人设。",
    "switch_persona": "切换人设失败，请重新开始对话。",
    "list_diaries": "读取日记失败。",
}


def notice_for(action: str) -> str:
    return USER_NOTICES.get(action, "操作失败，请稍后重试。")
