"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 Provider 与模型配置 (registry)。
- 提供各厂商的具体实现 (gateway_client、qwen_client、gemini_client)。
"""

from typing import Optional

from companion_core.config.settings import settings
from companion_core.providers.base import CompletionClient, ImageClient
from companion_core.providers.gateway_client import GatewayClient
from companion_core.providers.gemini_client import GeminiClient
from companion_core.providers.qwen_client import QwenClient


def create_provider(name: Optional[str] = None, cfg=None) -> CompletionClient:
    """根据名称创建文本 Provider 实例，默认取配置中的 provider。"""

    cfg = cfg or settings
    provider_name = (name or getattr(cfg, "default_provider", "gateway")).lower()
    if provider_name == "gemini":
        return GeminiClient(cfg)
    if provider_name == "qwen":
        return QwenClient(cfg)
    return GatewayClient(cfg)


def create_image_provider(cfg=None) -> ImageClient:
    """配图目前只有 Gemini 一个实现。"""

    return GeminiClient(cfg or settings)
