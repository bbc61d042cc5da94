"""“嘴替”回复建议。

一次性请求：系统提示词 + 收到的消息，要求模型输出回复建议数组，
再经 Structured Output Extractor 校验。解析失败不自动重试。
"""

from typing import List, Optional

from companion_core.config.settings import settings
from companion_core.domain.exceptions import ValidationError
from companion_core.domain.models import ChatMessage, CompletionRequest, ReplySuggestion
from companion_core.extraction.structured import REPLY_SUGGESTIONS, extract
from companion_core.infrastructure.logging.logger import logger
from companion_core.prompts import load_prompt, render_prompt
from companion_core.providers.base import CompletionClient
from companion_core.resilience.executor import BoundedExecutor


class ReplyAdvisor:
    def __init__(
        self,
        client: CompletionClient,
        executor: BoundedExecutor,
        model: str = "reply",
        locale: Optional[str] = None,
        prompts_dir: Optional[str] = None,
    ):
        self._client = client
        self._executor = executor
        self._model = model
        self._locale = locale or settings.prompt_locale
        self._prompts_dir = prompts_dir if prompts_dir is not None else settings.prompts_dir

    def build_request(self, message: str) -> CompletionRequest:
        return CompletionRequest(
            messages=(
                ChatMessage(
                    role="system",
                    content=load_prompt("reply_suggestion_system", self._locale, self._prompts_dir),
                ),
                ChatMessage(
                    role="user",
                    content=render_prompt(
                        "reply_suggestion_user", self._locale, self._prompts_dir, message=message
                    ),
                ),
            ),
            model=self._model,
            schema=REPLY_SUGGESTIONS,
        )

    async def suggest(self, message: str) -> List[ReplySuggestion]:
        if not message or not message.strip():
            raise ValidationError(code="EMPTY_MESSAGE", message="message is empty")
        request = self.build_request(message)
        result = await self._executor.execute(lambda: self._client.complete(request))
        result = result.with_parsed(extract(result.text, REPLY_SUGGESTIONS))
        logger.info(
            "Reply suggestions generated",
            extra={"extra": {"provider": result.provider, "model": result.model, "count": len(result.parsed)}},
        )
        return result.parsed
