"""结构化输出提取。

模型只“承诺”输出 JSON，实际可能包一层 Markdown 代码块。这里只做一件修补：
去掉包裹在外层的代码块标记，然后严格解析。缺字段、空字段、形状不对一律
抛 MalformedOutputError，不返回半成品，也不尝试猜测或补全被截断的 JSON。
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Type

from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from companion_core.domain.exceptions import MalformedOutputError
from companion_core.domain.models import ReplySuggestion


_FENCE_RE = re.compile(r"^```[\w-]*[ \t]*\r?\n?(.*?)\r?\n?```$", re.DOTALL)


@dataclass(frozen=True)
class OutputSchema:
    """结构化输出描述。

    - model: 单个元素的 pydantic 模型。
    - many: True 表示期望一个元素数组。
    """

    name: str
    model: Type[BaseModel]
    many: bool = False

    def response_schema(self) -> Any:
        """供支持结构化输出的 Provider 使用的 schema。"""
        return list[self.model] if self.many else self.model

    def json_schema(self) -> dict:
        return TypeAdapter(self.response_schema()).json_schema(by_alias=True)

    def validate(self, value: Any) -> Any:
        return TypeAdapter(self.response_schema()).validate_python(value)


REPLY_SUGGESTIONS = OutputSchema(name="reply_suggestions", model=ReplySuggestion, many=True)


def strip_fences(raw_text: str) -> str:
    text = (raw_text or "").strip()
    match = _FENCE_RE.match(text)
    if match:
        return match.group(1).strip()
    return text


def extract(raw_text: str, schema: OutputSchema) -> Any:
    """从模型原始文本中恢复结构化值。"""

    payload = strip_fences(raw_text)
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise MalformedOutputError(f"{schema.name}: not valid JSON ({e.msg})", raw_text=raw_text)
    try:
        return schema.validate(data)
    except PydanticValidationError as e:
        raise MalformedOutputError(
            f"{schema.name}: {e.error_count()} field error(s)",
            raw_text=raw_text,
            errors=e.errors(include_url=False),
        )
