"""配置管理模块。

支持从 .env、config.yaml 以及环境变量加载配置。
优先级：构造参数 > 环境变量 > .env > config.yaml > secrets 目录。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("COMPANION_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- Provider 相关配置 ----
    default_provider: str = Field(
        default="gateway",
        description="文本生成使用的 Provider：gateway（经服务端代理）、qwen、gemini",
    )

    # 客户端经由服务端网关访问模型，密钥不下发到客户端
    gateway_url: str = Field(
        default="http://127.0.0.1:8000/api/chat",
        description="凭证隐藏网关的聊天接口地址",
    )

    # 通义千问 / DashScope（仅服务端网关读取）
    qwen_api_key: Optional[str] = Field(default=None, description="DashScope API 密钥")
    qwen_base_url: str = Field(
        default="https://dashscope.aliyuncs.com/api/v1",
        description="DashScope API 基础URL",
    )

    # Gemini（文本直连与配图）
    gemini_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("gemini_api_key", "api_key"),
        description="Gemini API 密钥，兼容旧的 API_KEY 变量名",
    )

    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP 客户端超时时间（秒）")
    gateway_timeout: float = Field(default=30.0, gt=0, description="网关调用上游的超时时间（秒）")

    # ---- 重试与时限 ----
    request_deadline_ms: int = Field(default=45000, ge=1, description="单次调用时限（毫秒）")
    deadline_mode: Literal["per_attempt", "total"] = Field(
        default="per_attempt",
        description="per_attempt：每次尝试独立计时；total：所有尝试共享一个时限",
    )
    retry_max_attempts: int = Field(default=3, ge=1, le=10, description="最大尝试次数（含首次）")
    retry_base_delay_ms: int = Field(default=1000, ge=1, description="首次退避等待（毫秒），之后逐次翻倍")

    # ---- 提示词与日记 ----
    prompt_locale: str = Field(default="zh", description="提示词语言目录")
    prompts_dir: Optional[str] = Field(default=None, description="自定义提示词目录，覆盖内置文本")
    image_aspect_ratio: str = Field(default="1:1", description="配图宽高比提示")
    diary_preview_chars: int = Field(default=500, ge=1, description="对话回顾写入日记的最大字符数")
    diary_fallback_summary: str = Field(
        default="今天也是努力生活的一天。",
        description="模型返回空摘要时使用的兜底文本",
    )

    storage_root: str = Field(default=".storage", description="存储根目录")
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("qwen_api_key", "gemini_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = Settings()
