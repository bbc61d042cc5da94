"""按人设划分的多轮对话管理。

每个会话绑定一个人设及其不可变的系统提示词，历史只追加不修改。
会话以不透明句柄标识：切换人设或日记生成后，旧会话整体丢弃并换发新句柄，
持有旧句柄的调用方会得到 SessionExpiredError，而不是写进新会话。

同一会话同一时刻只允许一个 send 在途；后到的调用在会话锁上排队。
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from companion_core.config.settings import settings
from companion_core.domain.exceptions import SessionExpiredError, ValidationError
from companion_core.domain.models import ChatMessage, CompletionRequest, CompletionResult
from companion_core.infrastructure.logging.logger import logger
from companion_core.prompts import get_persona, load_prompt
from companion_core.providers.base import CompletionClient
from companion_core.resilience.executor import BoundedExecutor


@dataclass
class ConversationSession:
    id: str
    persona: str
    system_instruction: str
    created_at: datetime
    _history: List[ChatMessage] = field(default_factory=list, repr=False)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @property
    def history(self) -> Tuple[ChatMessage, ...]:
        return tuple(self._history)

    def append(self, message: ChatMessage) -> None:
        self._history.append(message)

    def build_request(self, model: str) -> CompletionRequest:
        messages = [ChatMessage(role="system", content=self.system_instruction), *self._history]
        return CompletionRequest(messages=tuple(messages), model=model)


class ConversationManager:
    """会话的唯一持有者，其它组件只能拿到历史的只读副本。"""

    def __init__(
        self,
        client: CompletionClient,
        executor: BoundedExecutor,
        model: str = "chat",
        locale: Optional[str] = None,
        prompts_dir: Optional[str] = None,
    ):
        self._client = client
        self._executor = executor
        self._model = model
        self._locale = locale or settings.prompt_locale
        self._prompts_dir = prompts_dir if prompts_dir is not None else settings.prompts_dir
        self._sessions: Dict[str, ConversationSession] = {}

    # ---- 生命周期 ----

    def start(self, persona: str) -> str:
        """为人设创建一个空会话，返回会话句柄。"""

        profile = get_persona(persona)
        session = ConversationSession(
            id=f"s-{uuid4().hex}",
            persona=profile.key,
            system_instruction=load_prompt(profile.prompt_name, self._locale, self._prompts_dir),
            created_at=datetime.now(timezone.utc),
        )
        self._sessions[session.id] = session
        logger.info("Conversation started", extra={"extra": {"session_id": session.id, "persona": persona}})
        return session.id

    def switch_persona(self, handle: str, persona: str) -> str:
        """丢弃旧会话（含全部历史），为新人设换发一个空会话。"""

        get_persona(persona)
        self._discard(handle)
        return self.start(persona)

    def reset(self, handle: str) -> str:
        """同一人设重新开始，通常在日记生成之后调用。"""

        persona = self._require(handle).persona
        self._discard(handle)
        return self.start(persona)

    def close(self, handle: str) -> None:
        self._discard(handle)

    # ---- 对话 ----

    async def send(self, handle: str, user_text: str) -> CompletionResult:
        """发送一轮用户消息。

        成功时把模型回复追加进历史；失败时历史里保留用户消息但没有回复，
        本组件不会自动重发失败的轮次。
        """

        if not user_text or not user_text.strip():
            raise ValidationError(code="EMPTY_MESSAGE", message="message is empty")
        session = self._require(handle)
        async with session.lock:
            # 排队期间会话可能已被切换人设丢弃
            if self._sessions.get(handle) is not session:
                raise SessionExpiredError(code="SESSION_EXPIRED", message=f"Session discarded: {handle}")
            session.append(ChatMessage(role="user", content=user_text))
            request = session.build_request(self._model)
            result = await self._executor.execute(lambda: self._client.complete(request))
            session.append(ChatMessage(role="assistant", content=result.text))
            return result

    # ---- 只读视图 ----

    def history(self, handle: str) -> Tuple[ChatMessage, ...]:
        return self._require(handle).history

    def persona_of(self, handle: str) -> str:
        return self._require(handle).persona

    def transcript(self, handle: str) -> str:
        """渲染为日记流水线使用的纯文本记录。"""

        lines = []
        for message in self._require(handle).history:
            speaker = "用户" if message.role == "user" else "AI"
            lines.append(f"{speaker}: {message.content}")
        return "\n".join(lines)

    def _require(self, handle: str) -> ConversationSession:
        session = self._sessions.get(handle)
        if session is None:
            raise SessionExpiredError(code="SESSION_EXPIRED", message=f"Unknown or discarded session: {handle}")
        return session

    def _discard(self, handle: str) -> None:
        session = self._sessions.pop(handle, None)
        if session is None:
            raise SessionExpiredError(code="SESSION_EXPIRED", message=f"Unknown or discarded session: {handle}")
        logger.info(
            "Conversation discarded",
            extra={"extra": {"session_id": handle, "persona": session.persona, "turns": len(session.history)}},
        )
