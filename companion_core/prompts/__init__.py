"""提示词加载工具。

提示词属于配置而非代码：按语言(locale) 从 prompts/<locale> 目录读取文本，
也可以通过 settings.prompts_dir 指向自定义目录整体覆盖。
模板中的占位符使用 string.Template 语法（如 $summary）。
"""

from dataclasses import dataclass
from pathlib import Path
from string import Template
from typing import Dict, Optional

from companion_core.domain.exceptions import ValidationError


PROMPTS_DIR = Path(__file__).resolve().parent


@dataclass(frozen=True)
class PersonaProfile:
    """人设：固定的系统提示词加上展示名。"""

    key: str
    display_name: str
    prompt_name: str


PERSONAS: Dict[str, PersonaProfile] = {
    "senior": PersonaProfile(key="senior", display_name="理性前辈", prompt_name="persona_senior"),
    "mentor": PersonaProfile(key="mentor", display_name="心理导师", prompt_name="persona_mentor"),
    "friend": PersonaProfile(key="friend", display_name="暖心好友", prompt_name="persona_friend"),
}


def get_persona(persona: str) -> PersonaProfile:
    try:
        return PERSONAS[persona]
    except KeyError:
        raise ValidationError(code="UNKNOWN_PERSONA", message=f"Unknown persona: {persona!r}")


def load_prompt(name: str, locale: str = "zh", root: Optional[str] = None) -> str:
    """加载提示词文本；自定义目录中缺失的文件回落到内置文本。"""

    if root:
        custom = Path(root).expanduser() / locale / f"{name}.md"
        if custom.exists():
            return custom.read_text(encoding="utf-8").strip()
    fname = PROMPTS_DIR / locale / f"{name}.md"
    return fname.read_text(encoding="utf-8").strip()


def render_prompt(name: str, locale: str = "zh", root: Optional[str] = None, **values: str) -> str:
    return Template(load_prompt(name, locale, root)).safe_substitute(**values)
