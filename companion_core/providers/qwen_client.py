"""通义千问 / DashScope Provider 适配器。

只在服务端（凭证隐藏网关）使用，本模块负责：

1. 接收统一的 CompletionRequest，或网关透传的原始 messages。
2. 转换为 DashScope 文本生成接口的请求格式（input.messages + result_format=message）。
3. 调用 HTTP 接口并把网络/API 异常映射为类型化异常。
4. 从 output.choices[0].message.content 取出回复。
"""

from typing import Any, Dict, List, Optional, Tuple

import httpx

from companion_core.config.settings import settings
from companion_core.domain.exceptions import (
    MissingCredentialError,
    NetworkError,
    NonRetryableProviderError,
    RequestTimeout,
    provider_error_for_status,
)
from companion_core.domain.models import CompletionRequest, CompletionResult, as_payload
from companion_core.providers.registry import QWEN_CONFIG


GENERATION_PATH = "/services/aigc/text-generation/generation"


class QwenClient:
    """DashScope 客户端实现。

    凭证通过构造参数里的 settings 注入，不直接读取进程环境。
    """

    name = "qwen"

    def __init__(self, cfg=settings):
        self._settings = cfg

    async def complete(self, req: CompletionRequest) -> CompletionResult:
        model = QWEN_CONFIG.resolve(req.model)
        reply, data = await self.generate(as_payload(req.messages), model)
        return CompletionResult(text=reply, provider=self.name, model=model, raw=data)

    async def generate(self, messages: List[Dict[str, Any]], model: str) -> Tuple[str, dict]:
        """发送原始 messages，返回 (回复文本, 原始响应)。"""

        api_key = getattr(self._settings, "qwen_api_key", None)
        if not api_key:
            raise MissingCredentialError("QWEN_API_KEY is not configured on server.")
        base = getattr(self._settings, "qwen_base_url", None) or QWEN_CONFIG.base_url
        payload = {
            "model": model,
            "input": {"messages": messages},
            "parameters": {"result_format": "message"},
        }
        try:
            async with httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = await client.post(
                    f"{base.rstrip('/')}{GENERATION_PATH}",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {api_key}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.TimeoutException as e:
            raise RequestTimeout(message=f"DashScope timeout: {e}")
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接被拒等
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        if resp.status_code >= 400:
            raise provider_error_for_status(
                resp.status_code, "DashScope API Error", details=self._error_body(resp)
            )
        try:
            data = resp.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            raise NonRetryableProviderError(
                code="BAD_RESPONSE", message="DashScope returned a non-JSON body", details=resp.text
            )
        return self._parse_reply(data), data

    @staticmethod
    def _parse_reply(data: dict) -> str:
        choices = ((data.get("output") or {}).get("choices")) or []
        if not choices:
            return ""
        message = choices[0].get("message") or {}
        return message.get("content") or ""

    @staticmethod
    def _error_body(resp) -> Optional[Any]:
        try:
            return resp.json()
        except ValueError:
            return resp.text
