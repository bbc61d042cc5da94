"""日记合成流水线。

两个严格先后的阶段：

1. 摘要（必需）：把原始内容压缩为一段心情日记。失败则整个流水线以
   SynthesisFailedError 结束，不产生任何日记，也不写入存储。
2. 配图（尽力而为）：以摘要为种子生成一张插画。失败以 IllustrationResult
   的形式返回给调用方并记日志，不影响日记创建。

流水线本身不跨调用保存状态。
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from companion_core.config.settings import settings
from companion_core.domain.diary import DiaryStore
from companion_core.domain.exceptions import BusinessError, SynthesisFailedError, ValidationError
from companion_core.domain.models import (
    ChatMessage,
    CompletionRequest,
    DiaryEntry,
    IllustrationResult,
    SynthesisReport,
)
from companion_core.infrastructure.logging.logger import logger
from companion_core.prompts import load_prompt, render_prompt
from companion_core.providers.base import CompletionClient, ImageClient
from companion_core.resilience.executor import BoundedExecutor


class DiarySynthesisPipeline:
    def __init__(
        self,
        text_client: CompletionClient,
        image_client: Optional[ImageClient],
        executor: BoundedExecutor,
        store: Optional[DiaryStore] = None,
        cfg=None,
    ):
        self._text_client = text_client
        self._image_client = image_client
        self._executor = executor
        self._store = store
        self._settings = cfg or settings

    async def synthesize(self, source_text: str, source_content: Optional[str] = None) -> DiaryEntry:
        report = await self.run(source_text, source_content)
        return report.entry

    async def run(self, source_text: str, source_content: Optional[str] = None) -> SynthesisReport:
        """执行两阶段流水线。

        Args:
            source_text: 交给模型总结的原文（日记正文或对话记录）。
            source_content: 写入日记的原文展示文本，默认与 source_text 相同。

        Raises:
            ValidationError: 原文为空。
            SynthesisFailedError: 摘要阶段失败。
        """

        if not source_text or not source_text.strip():
            raise ValidationError(code="EMPTY_CONTENT", message="diary content is empty")

        summary = await self.summarize(source_text)
        illustration = await self.illustrate(summary)
        entry = DiaryEntry(
            id=f"d-{uuid4().hex}",
            timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            source_content=source_content if source_content is not None else source_text,
            summary=summary,
            images=illustration.images,
        )
        if self._store is not None:
            self._store.replace_all([entry, *self._store.load()])
        logger.info(
            "Diary synthesized",
            extra={"extra": {"diary_id": entry.id, "images": len(entry.images), "illustration_failed": illustration.failed}},
        )
        return SynthesisReport(entry=entry, illustration=illustration)

    async def summarize(self, source_text: str) -> str:
        locale, root = self._settings.prompt_locale, self._settings.prompts_dir
        request = CompletionRequest(
            messages=(
                ChatMessage(role="system", content=load_prompt("diary_summary_system", locale, root)),
                ChatMessage(role="user", content=render_prompt("diary_summary_user", locale, root, content=source_text)),
            ),
            model="summary",
        )
        try:
            result = await self._executor.execute(lambda: self._text_client.complete(request))
        except Exception as e:
            kind = e.kind if isinstance(e, BusinessError) else None
            logger.error(
                "Diary summarization failed",
                extra={"extra": {"error": type(e).__name__, "kind": kind.value if kind else None}},
            )
            raise SynthesisFailedError(f"summarization failed: {e}", cause_kind=kind) from e
        return result.text.strip() or self._settings.diary_fallback_summary

    async def illustrate(self, summary: str) -> IllustrationResult:
        if self._image_client is None:
            return IllustrationResult()
        prompt = render_prompt(
            "healing_image", self._settings.prompt_locale, self._settings.prompts_dir, summary=summary
        )
        aspect_ratio = self._settings.image_aspect_ratio
        try:
            image = await self._executor.execute(
                lambda: self._image_client.generate_image(prompt, aspect_ratio=aspect_ratio)
            )
        except Exception as e:
            logger.warning(
                "Illustration failed, diary saved without image",
                extra={"extra": {"error": type(e).__name__, "detail": str(e)}},
            )
            return IllustrationResult(error=e)
        if image is None:
            return IllustrationResult()
        return IllustrationResult(images=(image.to_data_url(),))
