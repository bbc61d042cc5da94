import json

import pytest

from companion_core.agents.reply_advisor import ReplyAdvisor
from companion_core.domain.exceptions import MalformedOutputError, ValidationError
from companion_core.extraction.structured import REPLY_SUGGESTIONS


SUGGESTIONS = [
    {"title": "严肃专业版", "text": "收到，今天下班前给您。", "rationalAnalysis": "明确时间", "warmSupport": "你很靠谱"},
    {"title": "温暖活泼版", "text": "好嘞～马上安排！", "rationalAnalysis": "态度积极", "warmSupport": "辛苦啦"},
]


@pytest.mark.asyncio
async def test_suggest_parses_fenced_reply(scripted, executor):
    client = scripted(["```json\n" + json.dumps(SUGGESTIONS, ensure_ascii=False) + "\n```"])
    advisor = ReplyAdvisor(client, executor)

    result = await advisor.suggest("明天的报告今天能给我吗？")

    assert [s.title for s in result] == ["严肃专业版", "温暖活泼版"]
    request = client.requests[0]
    assert request.model == "reply"
    assert request.schema is REPLY_SUGGESTIONS
    assert request.messages[1].content == "收到的消息：明天的报告今天能给我吗？"


@pytest.mark.asyncio
async def test_malformed_output_is_not_retried(scripted, executor, sleeps):
    client = scripted(['[{"title": "A"}]'])
    advisor = ReplyAdvisor(client, executor)
    with pytest.raises(MalformedOutputError):
        await advisor.suggest("在吗")
    assert len(client.requests) == 1
    assert sleeps.delays == []


@pytest.mark.asyncio
async def test_blank_message_rejected(scripted, executor):
    with pytest.raises(ValidationError):
        await ReplyAdvisor(scripted(["[]"]), executor).suggest("")
