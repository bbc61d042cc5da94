"""Provider 与模型配置。

本模块将“逻辑模型名”与“具体厂商模型名”解耦：

- 逻辑名（logical_name）：在代码里使用的统一名称，例如 "chat"、"reply"、"image"。
- provider_model：厂商实际提供的模型 ID，例如 "qwen-plus"。

上层只关心逻辑名，具体用哪个底层模型由这里集中配置，便于后续升级或切换。
未登记的名称原样透传，允许调用方直接指定厂商模型 ID。"""

from dataclasses import dataclass
from typing import Dict


@dataclass
class ModelConfig:
    """单个逻辑模型的配置。"""

    logical_name: str
    provider_model: str


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    base_url: str
    models: Dict[str, ModelConfig]

    def resolve(self, logical_name: str) -> str:
        cfg = self.models.get(logical_name)
        return cfg.provider_model if cfg else logical_name


# 通义千问 / DashScope（网关背后的实际模型）
QWEN_CONFIG = ProviderConfig(
    name="qwen",
    base_url="https://dashscope.aliyuncs.com/api/v1",
    models={
        "chat": ModelConfig(logical_name="chat", provider_model="qwen-turbo"),
        "summary": ModelConfig(logical_name="summary", provider_model="qwen-turbo"),
        "reply": ModelConfig(logical_name="reply", provider_model="qwen-plus"),
    },
)

# Gemini 直连，文本与配图
GEMINI_CONFIG = ProviderConfig(
    name="gemini",
    base_url="https://generativelanguage.googleapis.com",
    models={
        "chat": ModelConfig(logical_name="chat", provider_model="gemini-3-flash-preview"),
        "summary": ModelConfig(logical_name="summary", provider_model="gemini-3-flash-preview"),
        "reply": ModelConfig(logical_name="reply", provider_model="gemini-3-flash-preview"),
        "image": ModelConfig(logical_name="image", provider_model="gemini-2.5-flash-image"),
    },
)
