"""对外 API 服务模块。

提供简化的接口供上层 UI 调用。所有方法返回普通 dict：

- 成功时 {"ok": True, ...}
- 终态失败时 {"ok": False, "error": <kind>, "notice": <面向用户的简短提示>}，
  不带任何上游错误文本，且不改动失败前的状态（输入、会话、对话记录）。
"""

from typing import Any, Dict, Optional

from companion_core.agents.conversation_manager import ConversationManager
from companion_core.agents.diary_pipeline import DiarySynthesisPipeline
from companion_core.agents.reply_advisor import ReplyAdvisor
from companion_core.config.settings import settings
from companion_core.domain.diary import DiaryStore
from companion_core.domain.exceptions import BusinessError, SessionExpiredError, notice_for
from companion_core.infrastructure.logging.logger import logger
from companion_core.infrastructure.storage.json_store import JsonDiaryStore
from companion_core.prompts import get_persona, render_prompt
from companion_core.providers import create_image_provider, create_provider
from companion_core.resilience.executor import BoundedExecutor


class CompanionService:
    def __init__(
        self,
        conversations: ConversationManager,
        advisor: ReplyAdvisor,
        pipeline: DiarySynthesisPipeline,
        store: DiaryStore,
        cfg=None,
    ):
        self._conversations = conversations
        self._advisor = advisor
        self._pipeline = pipeline
        self._store = store
        self._settings = cfg or settings

    # ---- 回复建议 ----

    async def suggest_replies(self, message: str) -> Dict[str, Any]:
        try:
            suggestions = await self._advisor.suggest(message)
        except BusinessError as e:
            return self._failure("suggest", e)
        return {"ok": True, "suggestions": [s.model_dump(by_alias=True) for s in suggestions]}

    # ---- 多轮对话 ----

    def start_chat(self, persona: str) -> Dict[str, Any]:
        try:
            handle = self._conversations.start(persona)
        except BusinessError as e:
            return self._failure("start_chat", e, persona=persona)
        return {"ok": True, "session": handle, "persona": persona}

    def switch_persona(self, handle: str, persona: str) -> Dict[str, Any]:
        try:
            new_handle = self._conversations.switch_persona(handle, persona)
        except BusinessError as e:
            return self._failure("switch_persona", e, session=handle, persona=persona)
        return {"ok": True, "session": new_handle, "persona": persona}

    async def chat(self, handle: str, user_input: str) -> Dict[str, Any]:
        try:
            result = await self._conversations.send(handle, user_input)
        except BusinessError as e:
            return self._failure("chat", e, session=handle)
        return {"ok": True, "session": handle, "reply": result.text}

    async def end_chat_and_save(self, handle: str) -> Dict[str, Any]:
        """把当前对话合成为日记并开启同一人设的新会话。

        失败时会话与对话记录原样保留，用户可以重试。
        """

        try:
            history = self._conversations.history(handle)
            if not history:
                return {"ok": False, "error": "empty", "notice": "还没有对话内容。"}
            transcript = self._conversations.transcript(handle)
            persona = get_persona(self._conversations.persona_of(handle))
            preview = transcript[: self._settings.diary_preview_chars]
            title = render_prompt(
                "chat_transcript_title",
                self._settings.prompt_locale,
                self._settings.prompts_dir,
                persona=persona.display_name,
            )
            report = await self._pipeline.run(transcript, source_content=f"{title}\n{preview}...")
        except BusinessError as e:
            return self._failure("end_chat", e, session=handle)
        try:
            new_handle = self._conversations.reset(handle)
        except SessionExpiredError:
            # 合成期间会话已被切换人设丢弃，日记照常返回
            logger.info("Session replaced during diary synthesis", extra={"extra": {"session_id": handle}})
            new_handle = None
        return {
            "ok": True,
            "session": new_handle,
            "diary": report.entry.to_dict(),
            "illustration_failed": report.illustration.failed,
        }

    # ---- 心情日记 ----

    async def save_diary(self, content: str) -> Dict[str, Any]:
        try:
            report = await self._pipeline.run(content)
        except BusinessError as e:
            return self._failure("save_diary", e)
        return {
            "ok": True,
            "diary": report.entry.to_dict(),
            "illustration_failed": report.illustration.failed,
        }

    def list_diaries(self) -> Dict[str, Any]:
        try:
            entries = self._store.load()
        except BusinessError as e:
            return self._failure("list_diaries", e)
        return {"ok": True, "diaries": [entry.to_dict() for entry in entries]}

    @staticmethod
    def _failure(action: str, error: BusinessError, **context) -> Dict[str, Any]:
        logger.error(
            f"{action} failed: {error.code}",
            extra={"extra": {"action": action, "code": error.code, "kind": error.kind.value, "error": error.message, **context}},
        )
        return {"ok": False, "error": error.kind.value, "notice": notice_for(action)}


_service: Optional[CompanionService] = None


def build_service(cfg=None) -> CompanionService:
    cfg = cfg or settings
    executor = BoundedExecutor.from_settings(cfg)
    store = JsonDiaryStore(root=cfg.storage_root)
    text_client = create_provider(cfg=cfg)
    return CompanionService(
        conversations=ConversationManager(
            text_client, executor, locale=cfg.prompt_locale, prompts_dir=cfg.prompts_dir
        ),
        advisor=ReplyAdvisor(text_client, executor, locale=cfg.prompt_locale, prompts_dir=cfg.prompts_dir),
        pipeline=DiarySynthesisPipeline(text_client, create_image_provider(cfg), executor, store=store, cfg=cfg),
        store=store,
        cfg=cfg,
    )


def get_default_service() -> CompanionService:
    """获取默认的服务实例（单例）。"""
    global _service
    if _service is None:
        _service = build_service()
    return _service
