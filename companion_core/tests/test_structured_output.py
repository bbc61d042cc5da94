import json

import pytest

from companion_core.domain.exceptions import MalformedOutputError
from companion_core.domain.models import ReplySuggestion
from companion_core.extraction.structured import REPLY_SUGGESTIONS, OutputSchema, extract, strip_fences


FULL = {"title": "A", "text": "B", "rationalAnalysis": "C", "warmSupport": "D"}


def test_fenced_payload_is_extracted():
    raw = "```json\n" + json.dumps([FULL]) + "\n```"
    result = extract(raw, REPLY_SUGGESTIONS)
    assert len(result) == 1
    item = result[0]
    assert (item.title, item.text, item.rational_analysis, item.warm_support) == ("A", "B", "C", "D")


def test_bare_fence_and_plain_json_accepted():
    assert len(extract("```\n" + json.dumps([FULL, FULL]) + "\n```", REPLY_SUGGESTIONS)) == 2
    assert len(extract("  " + json.dumps([FULL]) + "\n", REPLY_SUGGESTIONS)) == 1


def test_missing_field_is_rejected():
    partial = dict(FULL)
    del partial["warmSupport"]
    raw = "```json\n" + json.dumps([partial]) + "\n```"
    with pytest.raises(MalformedOutputError) as excinfo:
        extract(raw, REPLY_SUGGESTIONS)
    assert excinfo.value.raw_text == raw


def test_empty_field_is_rejected():
    with pytest.raises(MalformedOutputError):
        extract(json.dumps([dict(FULL, title="")]), REPLY_SUGGESTIONS)


def test_whitespace_only_field_is_rejected():
    with pytest.raises(MalformedOutputError):
        extract(json.dumps([dict(FULL, warmSupport=" \n\t")]), REPLY_SUGGESTIONS)
    item = extract(json.dumps([dict(FULL, title="  A  ")]), REPLY_SUGGESTIONS)[0]
    assert item.title == "A"


def test_one_bad_element_rejects_the_whole_payload():
    partial = {"title": "A", "text": "B"}
    with pytest.raises(MalformedOutputError):
        extract(json.dumps([FULL, partial]), REPLY_SUGGESTIONS)


def test_wrong_shape_is_rejected():
    with pytest.raises(MalformedOutputError):
        extract(json.dumps(FULL), REPLY_SUGGESTIONS)


def test_truncated_json_is_not_repaired():
    with pytest.raises(MalformedOutputError):
        extract('[{"title": "A", "text": "B"', REPLY_SUGGESTIONS)


def test_prose_around_payload_is_rejected():
    with pytest.raises(MalformedOutputError):
        extract("好的，以下是建议：\n" + json.dumps([FULL]), REPLY_SUGGESTIONS)


def test_single_object_schema():
    schema = OutputSchema(name="one", model=ReplySuggestion)
    item = extract(json.dumps(FULL), schema)
    assert item.warm_support == "D"


def test_strip_fences_leaves_unfenced_text_alone():
    assert strip_fences('[{"a": 1}]') == '[{"a": 1}]'
    assert strip_fences("```json\n{}\n```") == "{}"


def test_json_schema_uses_wire_names():
    schema = REPLY_SUGGESTIONS.json_schema()
    item = schema["$defs"]["ReplySuggestion"]
    assert set(item["required"]) == {"title", "text", "rationalAnalysis", "warmSupport"}
