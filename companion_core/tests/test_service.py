import json

import pytest

from companion_core.agents.conversation_manager import ConversationManager
from companion_core.agents.diary_pipeline import DiarySynthesisPipeline
from companion_core.agents.reply_advisor import ReplyAdvisor
from companion_core.api.service import CompanionService, build_service
from companion_core.config.settings import Settings
from companion_core.domain.exceptions import provider_error_for_status
from companion_core.domain.models import CompletionResult
from companion_core.infrastructure.storage.json_store import JsonDiaryStore
from companion_core.providers.gateway_client import GatewayClient


SUGGESTION = {"title": "t", "text": "x", "rationalAnalysis": "r", "warmSupport": "w"}


def _service(tmp_path, executor, chat_client, summary_client=None, image_client=None):
    cfg = Settings(storage_root=str(tmp_path), diary_preview_chars=20)
    store = JsonDiaryStore(root=tmp_path)
    return CompanionService(
        conversations=ConversationManager(chat_client, executor),
        advisor=ReplyAdvisor(chat_client, executor),
        pipeline=DiarySynthesisPipeline(summary_client or chat_client, image_client, executor, store=store, cfg=cfg),
        store=store,
        cfg=cfg,
    )


@pytest.mark.asyncio
async def test_suggest_replies_uses_wire_field_names(tmp_path, scripted, executor):
    service = _service(tmp_path, executor, scripted([json.dumps([SUGGESTION])]))
    result = await service.suggest_replies("在吗")
    assert result == {"ok": True, "suggestions": [SUGGESTION]}


@pytest.mark.asyncio
async def test_failure_returns_notice_without_upstream_text(tmp_path, scripted, executor):
    service = _service(tmp_path, executor, scripted([provider_error_for_status(401, "invalid api key sk-xxx")]))
    result = await service.suggest_replies("在吗")
    assert result == {"ok": False, "error": "non_retryable_provider_error", "notice": "生成建议失败，请检查配置。"}


@pytest.mark.asyncio
async def test_failed_chat_keeps_session(tmp_path, scripted, executor):
    client = scripted([provider_error_for_status(400, "bad"), "好的"])
    service = _service(tmp_path, executor, client)
    handle = service.start_chat("friend")["session"]

    failed = await service.chat(handle, "第一句")
    assert failed["ok"] is False
    assert failed["notice"] == "对话中断，请重试。"

    ok = await service.chat(handle, "第二句")
    assert ok == {"ok": True, "session": handle, "reply": "好的"}


@pytest.mark.asyncio
async def test_chat_on_discarded_session_is_reported(tmp_path, scripted, executor):
    service = _service(tmp_path, executor, scripted(["ok"]))
    old = service.start_chat("friend")["session"]
    new = service.switch_persona(old, "mentor")["session"]
    assert new != old

    result = await service.chat(old, "hi")
    assert result["ok"] is False
    assert result["error"] == "invalid"


@pytest.mark.asyncio
async def test_end_chat_with_empty_history(tmp_path, scripted, executor):
    service = _service(tmp_path, executor, scripted(["ok"]))
    handle = service.start_chat("senior")["session"]
    result = await service.end_chat_and_save(handle)
    assert result["ok"] is False
    assert result["error"] == "empty"
    assert service.list_diaries()["diaries"] == []


@pytest.mark.asyncio
async def test_end_chat_saves_diary_and_resets(tmp_path, scripted, scripted_image, executor, png):
    service = _service(
        tmp_path,
        executor,
        scripted(["我在听"]),
        summary_client=scripted(["今天聊了很多。"]),
        image_client=scripted_image(png),
    )
    handle = service.start_chat("friend")["session"]
    await service.chat(handle, "今天加班到很晚，真的好累")

    result = await service.end_chat_and_save(handle)

    assert result["ok"] is True
    assert result["illustration_failed"] is False
    diary = result["diary"]
    assert diary["summary"] == "今天聊了很多。"
    assert diary["content"].startswith("与[暖心好友]的对话回顾：\n用户: ")
    assert diary["content"].endswith("...")
    assert diary["images"] == [png.to_data_url()]
    assert result["session"] != handle
    assert service.list_diaries()["diaries"] == [diary]


@pytest.mark.asyncio
async def test_end_chat_failure_keeps_conversation(tmp_path, scripted, executor):
    service = _service(
        tmp_path,
        executor,
        scripted(["我在听"]),
        summary_client=scripted([provider_error_for_status(403, "denied")]),
    )
    handle = service.start_chat("friend")["session"]
    await service.chat(handle, "hi")

    result = await service.end_chat_and_save(handle)

    assert result == {"ok": False, "error": "synthesis_failed", "notice": "生成日记失败，请重试。"}
    assert len(service._conversations.history(handle)) == 2
    assert service.list_diaries()["diaries"] == []


@pytest.mark.asyncio
async def test_save_diary_reports_illustration_failure(tmp_path, scripted, scripted_image, executor):
    service = _service(
        tmp_path,
        executor,
        scripted(["平静的一天"]),
        image_client=scripted_image(provider_error_for_status(400, "blocked")),
    )
    result = await service.save_diary("今天下雨了")
    assert result["ok"] is True
    assert result["illustration_failed"] is True
    assert result["diary"]["images"] == []
    assert result["diary"]["content"] == "今天下雨了"


def test_build_service_wires_default_providers(tmp_path):
    service = build_service(Settings(storage_root=str(tmp_path), default_provider="gateway"))
    handle = service.start_chat("senior")["session"]
    assert handle.startswith("s-")
    assert service.list_diaries()["diaries"] == []


@pytest.mark.asyncio
async def test_proxy_html_page_becomes_notice(tmp_path, monkeypatch, executor):
    class HtmlResp:
        status_code = 200
        text = "<html>proxy page</html>"

        def json(self):
            return json.loads(self.text)

    class Client:
        def __init__(self, *a, **kw):
            pass

        async def __aenter__(self):
            return self

        async def __aexit__(self, *a):
            return False

        async def post(self, *a, **kw):
            return HtmlResp()

    monkeypatch.setattr("httpx.AsyncClient", Client)
    cfg = Settings(gateway_url="http://gateway.local/api/chat", http_timeout=1.0)
    service = _service(tmp_path, executor, GatewayClient(cfg))
    handle = service.start_chat("friend")["session"]

    result = await service.chat(handle, "hi")

    assert result == {"ok": False, "error": "non_retryable_provider_error", "notice": "对话中断，请重试。"}


def test_unknown_persona_returns_notice(tmp_path, scripted, executor):
    service = _service(tmp_path, executor, scripted(["ok"]))
    assert service.start_chat("boss") == {
        "ok": False,
        "error": "invalid",
        "notice": "无法开启对话，请重新选择人设。",
    }


def test_switch_persona_failures_return_notice(tmp_path, scripted, executor):
    service = _service(tmp_path, executor, scripted(["ok"]))
    handle = service.start_chat("friend")["session"]

    bad_persona = service.switch_persona(handle, "boss")
    assert bad_persona["ok"] is False
    assert bad_persona["notice"] == "切换人设失败，请重新开始对话。"
    # 原会话仍然可用
    assert service.switch_persona(handle, "mentor")["ok"] is True

    stale = service.switch_persona(handle, "senior")
    assert stale["ok"] is False
    assert stale["error"] == "invalid"


def test_unreadable_diary_file_returns_notice(tmp_path, scripted, executor):
    service = _service(tmp_path, executor, scripted(["ok"]))
    (tmp_path / "diaries.json").write_text("{broken", encoding="utf-8")
    assert service.list_diaries() == {"ok": False, "error": "invalid", "notice": "读取日记失败。"}


@pytest.mark.asyncio
async def test_end_chat_survives_session_switched_during_synthesis(tmp_path, scripted, executor):
    service = _service(tmp_path, executor, scripted(["我在听"]))
    handle = service.start_chat("friend")["session"]
    await service.chat(handle, "hi")

    class SwitchingSummary:
        name = "switching"

        async def complete(self, req):
            service.switch_persona(handle, "mentor")
            return CompletionResult(text="summary", provider=self.name, model=req.model)

    service._pipeline = DiarySynthesisPipeline(
        SwitchingSummary(), None, executor, store=service._store, cfg=service._settings
    )
    result = await service.end_chat_and_save(handle)

    assert result["ok"] is True
    assert result["session"] is None
    assert result["diary"]["summary"] == "summary"
