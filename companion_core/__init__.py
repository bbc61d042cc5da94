"""Companion Core 顶层包。

该包提供情绪陪伴应用的 AI 编排与容错层实现，
包括配置加载、领域模型、Provider 适配、重试与时限控制、
结构化输出解析、多人设对话、日记合成流水线与凭证隐藏网关。
"""

from companion_core.api.service import CompanionService, build_service, get_default_service
from companion_core.config.settings import Settings, settings

__all__ = ["CompanionService", "Settings", "build_service", "get_default_service", "settings"]
