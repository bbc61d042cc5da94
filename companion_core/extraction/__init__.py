"""模型输出的结构化提取。"""

from companion_core.extraction.structured import REPLY_SUGGESTIONS, OutputSchema, extract

__all__ = ["REPLY_SUGGESTIONS", "OutputSchema", "extract"]
