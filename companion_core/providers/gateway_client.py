"""凭证隐藏网关的客户端适配器。

客户端不持有任何厂商凭证，只把 {messages, model} 发给服务端网关，
由网关附加凭证后转发给 DashScope。网关的错误响应形如
{error, details}，这里按状态码映射为类型化异常，供重试策略分类。
"""

from typing import Any, Optional

import httpx

from companion_core.config.settings import settings
from companion_core.domain.exceptions import (
    NetworkError,
    NonRetryableProviderError,
    RequestTimeout,
    provider_error_for_status,
)
from companion_core.domain.models import CompletionRequest, CompletionResult, as_payload
from companion_core.providers.registry import QWEN_CONFIG


class GatewayClient:
    """经由 /api/chat 网关调用通义千问。

    网关只接受 messages 与 model，结构化输出的 schema 不会下发，
    调用方需依赖提示词约束并通过 Structured Output Extractor 校验。
    """

    name = "gateway"

    def __init__(self, cfg=settings):
        self._settings = cfg

    async def complete(self, req: CompletionRequest) -> CompletionResult:
        model = QWEN_CONFIG.resolve(req.model)
        payload = {"messages": as_payload(req.messages), "model": model}
        try:
            async with httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = await client.post(
                    self._settings.gateway_url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
        except httpx.TimeoutException as e:
            raise RequestTimeout(message=f"Gateway timeout: {e}")
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        if resp.status_code >= 400:
            body = self._error_body(resp)
            message = "API 请求失败"
            if isinstance(body, dict) and body.get("error"):
                message = str(body["error"])
            details = body.get("details") if isinstance(body, dict) else body
            raise provider_error_for_status(resp.status_code, message, details=details)
        data = self._success_body(resp)
        return CompletionResult(text=data.get("reply") or "", provider=self.name, model=model, raw=data)

    @staticmethod
    def _success_body(resp) -> dict:
        try:
            data = resp.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            raise NonRetryableProviderError(
                code="BAD_RESPONSE", message="网关返回了无法解析的响应", details=resp.text
            )
        return data

    @staticmethod
    def _error_body(resp) -> Optional[Any]:
        try:
            return resp.json()
        except ValueError:
            return resp.text
