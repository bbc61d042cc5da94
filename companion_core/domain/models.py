"""统一的对话、结果与日记数据模型。

本模块定义了在不同 Provider 之间共享的标准数据结构：

- ChatMessage: 一条对话消息（system/user/assistant）。
- CompletionRequest: 发给底层 Provider 的完整请求。
- CompletionResult: 从 Provider 解析后的统一成功结果；失败一律以
  domain.exceptions 中的异常表示。
- ReplySuggestion: 结构化输出“回复建议”的单个元素。
- DiaryEntry: 交给持久化协作方的日记记录。

所有 Provider 适配器都只依赖这些模型，并负责在各自的 API JSON 与这些模型之间做转换。
"""

import base64
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Literal, Optional, Tuple, TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from companion_core.domain.exceptions import StoreError, ValidationError

if TYPE_CHECKING:
    # 仅在类型检查时导入，避免运行时循环依赖
    from companion_core.extraction.structured import OutputSchema


# LLM 消息角色类型（与 OpenAI / DashScope 的 role 字段对应）
Role = Literal["system", "user", "assistant"]

# 可选人设
Persona = Literal["senior", "mentor", "friend"]


@dataclass(frozen=True)
class ChatMessage:
    """一条对话消息，既可用于请求，也可用于响应。"""

    role: Role
    content: str

    def to_payload(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class CompletionRequest:
    """一次完整的补全请求。

    - messages: 有序消息，至多一条 system 且必须位于首位。
    - model: 逻辑模型名（chat / reply / summary / image），由 registry 映射为厂商模型名。
    - schema: 期望的结构化输出描述，可选。
    """

    messages: Tuple[ChatMessage, ...]
    model: str = "chat"
    schema: Optional["OutputSchema"] = None

    def __post_init__(self):
        object.__setattr__(self, "messages", tuple(self.messages))
        system_positions = [i for i, m in enumerate(self.messages) if m.role == "system"]
        if len(system_positions) > 1:
            raise ValidationError(code="INVALID_REQUEST", message="at most one system message is allowed")
        if system_positions and system_positions[0] != 0:
            raise ValidationError(code="INVALID_REQUEST", message="system message must come first")

    @property
    def system_instruction(self) -> Optional[str]:
        if self.messages and self.messages[0].role == "system":
            return self.messages[0].content
        return None

    @property
    def turns(self) -> Tuple[ChatMessage, ...]:
        """去掉 system 之后的对话轮次。"""
        if self.system_instruction is not None:
            return self.messages[1:]
        return self.messages


@dataclass(frozen=True)
class CompletionResult:
    """一次补全调用的成功结果。

    - text: 模型原始文本。
    - parsed: 请求了 schema 时，经 Structured Output Extractor 解析后的值。
    - raw: 原始响应，用于调试或日志记录。
    """

    text: str
    provider: str
    model: str
    parsed: Any = None
    raw: Optional[dict] = None

    def with_parsed(self, value: Any) -> "CompletionResult":
        return replace(self, parsed=value)


@dataclass(frozen=True)
class RetryDecision:
    should_retry: bool
    delay_ms: int = 0


class ReplySuggestion(BaseModel):
    """一条回复建议，四个字段去掉首尾空白后均为非空字符串。"""

    model_config = ConfigDict(populate_by_name=True, frozen=True, str_strip_whitespace=True)

    title: str = Field(min_length=1)
    text: str = Field(min_length=1)
    rational_analysis: str = Field(alias="rationalAnalysis", min_length=1)
    warm_support: str = Field(alias="warmSupport", min_length=1)


@dataclass(frozen=True)
class GeneratedImage:
    """Provider 返回的一张内联图片。"""

    mime_type: str
    data: bytes

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


@dataclass(frozen=True)
class IllustrationResult:
    """配图阶段的结果：成功时 images 非空，失败时 error 记录原因。"""

    images: Tuple[str, ...] = ()
    error: Optional[BaseException] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class DiaryEntry:
    id: str
    timestamp: str
    source_content: str
    summary: str
    images: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "date": self.timestamp,
            "content": self.source_content,
            "summary": self.summary,
            "images": list(self.images),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DiaryEntry":
        try:
            return cls(
                id=str(data["id"]),
                timestamp=str(data["date"]),
                source_content=data.get("content") or "",
                summary=data["summary"],
                images=tuple(data.get("images") or ()),
            )
        except (KeyError, TypeError) as e:
            raise StoreError(code="STORE_READ_ERROR", message=f"invalid diary record: {e}")


@dataclass(frozen=True)
class SynthesisReport:
    """日记流水线的完整结果，调用方可据此观察配图是否失败。"""

    entry: DiaryEntry
    illustration: IllustrationResult = field(default_factory=IllustrationResult)


def as_payload(messages: Iterable[ChatMessage]) -> List[Dict[str, str]]:
    return [m.to_payload() for m in messages]
