"""Gemini Provider 适配器（google-genai SDK）。

负责两类调用：

- complete: 文本补全。system 消息转为 system_instruction，assistant 角色转为
  Gemini 的 "model" 角色；请求带 schema 时开启 JSON 结构化输出。
- generate_image: 以描述文本生成一张配图，返回首个内联图片；Provider
  未返回图片时返回 None。

SDK 抛出的 APIError 按其 code 映射为类型化异常，供重试策略分类。
"""

from typing import Any, List, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from companion_core.config.settings import settings
from companion_core.domain.exceptions import (
    MissingCredentialError,
    NetworkError,
    RequestTimeout,
    provider_error_for_status,
)
from companion_core.domain.models import (
    CompletionRequest,
    CompletionResult,
    GeneratedImage,
)
from companion_core.providers.registry import GEMINI_CONFIG


class GeminiClient:
    """Gemini 客户端实现。

    sdk_client 可注入（测试或共享连接时使用）；未注入时在首次调用时用
    settings.gemini_api_key 创建。
    """

    name = "gemini"

    def __init__(self, cfg=settings, sdk_client: Any = None):
        self._settings = cfg
        self._sdk = sdk_client

    def _client(self):
        if self._sdk is None:
            api_key = getattr(self._settings, "gemini_api_key", None)
            if not api_key:
                raise MissingCredentialError("GEMINI_API_KEY 未配置，请在环境变量中设置。")
            self._sdk = genai.Client(api_key=api_key)
        return self._sdk

    async def complete(self, req: CompletionRequest) -> CompletionResult:
        model = GEMINI_CONFIG.resolve(req.model)
        config_kwargs = {}
        if req.system_instruction:
            config_kwargs["system_instruction"] = req.system_instruction
        if req.schema is not None:
            config_kwargs["response_mime_type"] = "application/json"
            config_kwargs["response_schema"] = req.schema.response_schema()
        response = await self._call(
            model=model,
            contents=self._to_contents(req),
            config=types.GenerateContentConfig(**config_kwargs) if config_kwargs else None,
        )
        return CompletionResult(text=response.text or "", provider=self.name, model=model)

    async def generate_image(self, prompt: str, aspect_ratio: str = "1:1") -> Optional[GeneratedImage]:
        model = GEMINI_CONFIG.resolve("image")
        response = await self._call(
            model=model,
            contents=prompt,
            config=types.GenerateContentConfig(
                response_modalities=["IMAGE"],
                image_config=types.ImageConfig(aspect_ratio=aspect_ratio),
            ),
        )
        for part in self._parts(response):
            inline = getattr(part, "inline_data", None)
            if inline is not None and inline.data:
                return GeneratedImage(mime_type=inline.mime_type or "image/png", data=inline.data)
        return None

    async def _call(self, **kwargs):
        client = self._client()
        try:
            return await client.aio.models.generate_content(**kwargs)
        except genai_errors.APIError as e:
            status = e.code if isinstance(e.code, int) else 500
            raise provider_error_for_status(status, e.message or str(e), details=e.details)
        except httpx.TimeoutException as e:
            raise RequestTimeout(message=f"Gemini timeout: {e}")
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e))

    @staticmethod
    def _to_contents(req: CompletionRequest) -> List[types.Content]:
        contents = []
        for message in req.turns:
            role = "model" if message.role == "assistant" else "user"
            contents.append(types.Content(role=role, parts=[types.Part(text=message.content)]))
        return contents

    @staticmethod
    def _parts(response) -> list:
        candidates = getattr(response, "candidates", None) or []
        if not candidates or candidates[0].content is None:
            return []
        return candidates[0].content.parts or []
