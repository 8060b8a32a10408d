from __future__ import annotations

import json

import pytest

from interview.response_parser import (
    FALLBACK_MESSAGE,
    MAX_REPLY_CHARS,
    StructuredReplyError,
    extract_object,
    parse_reply,
    parse_strict,
    recover_message,
    strip_fence,
)


def test_fenced_json_parses():
    decision = parse_reply('```json\n{"agentMessage":"Hi"}\n```')
    assert decision.agent_message == "Hi"
    assert decision.parse_degraded is False


def test_prose_around_object_is_ignored():
    raw = 'Sure! Here is my reply: {"agentMessage": "Nice to meet you, Alex.", "candidateName": "Alex"} Hope that helps.'
    decision = parse_reply(raw)
    assert decision.agent_message == "Nice to meet you, Alex."
    assert decision.candidate_name == "Alex"


def test_braces_inside_strings_do_not_break_extraction():
    raw = '{"agentMessage": "Use {curly} braces \\"quoted\\"", "nextPhase": "introduction"} trailing }'
    span = extract_object(raw)
    assert json.loads(span)["agentMessage"] == 'Use {curly} braces "quoted"'


def test_full_decision_maps_camel_case_fields():
    payload = {
        "agentMessage": "  Great, thanks!  ",
        "candidateEmail": "alex@example.com",
        "qualificationUpdate": {
            "mandatory": {"age": {"status": "qualified", "value": 25, "rawAnswer": "I'm 25"}},
            "preferred": {"militaryVeteran": {"isVeteran": "yes"}},
        },
        "nextPhase": "mandatory_screening",
        "overallScore": "n/a",
        "conversationComplete": None,
        "finalStatus": "null",
        "disqualificationReason": "",
    }
    decision = parse_strict(json.dumps(payload))
    assert decision.agent_message == "Great, thanks!"
    assert decision.candidate_email == "alex@example.com"
    assert decision.qualification_update.mandatory["age"].status == "qualified"
    assert decision.qualification_update.mandatory["age"].raw_answer == "I'm 25"
    assert decision.qualification_update.preferred["militaryVeteran"].is_veteran is True
    assert decision.next_phase == "mandatory_screening"
    assert decision.overall_score is None
    assert decision.conversation_complete is False
    assert decision.final_status is None
    assert decision.disqualification_reason is None


@pytest.mark.parametrize("flag, expected", [("maybe", False), (None, False), ({"x": 1}, False), ("Yes", True), (1, True)])
def test_loose_completion_flag_keeps_the_update(flag, expected):
    raw = json.dumps(
        {
            "agentMessage": "Thanks!",
            "conversationComplete": flag,
            "qualificationUpdate": {"mandatory": {"age": {"status": "qualified", "value": 30}}},
        }
    )
    decision = parse_reply(raw)
    assert decision.parse_degraded is False
    assert decision.conversation_complete is expected
    assert decision.qualification_update.mandatory["age"].status == "qualified"


def test_non_object_update_entries_are_dropped():
    raw = json.dumps(
        {
            "agentMessage": "ok",
            "qualificationUpdate": {"mandatory": {"age": "qualified", "validLicense": {"status": "qualified"}}},
        }
    )
    update = parse_strict(raw).qualification_update
    assert list(update.mandatory) == ["validLicense"]


def test_truncated_json_recovers_agent_message():
    raw = '{"agentMessage": "Thanks Alex! What\'s your email?\\nNo rush.", "qualificationUpdate": {"mand'
    decision = parse_reply(raw)
    assert decision.parse_degraded is True
    assert decision.agent_message == "Thanks Alex! What's your email?\nNo rush."
    assert decision.qualification_update is None
    assert decision.next_phase is None


def test_plain_text_falls_back_to_raw():
    decision = parse_reply("  I'm sorry, I didn't catch that.  ")
    assert decision.parse_degraded is True
    assert decision.agent_message == "I'm sorry, I didn't catch that."
    assert decision.conversation_complete is False


def test_empty_reply_uses_fallback_message():
    assert parse_reply("").agent_message == FALLBACK_MESSAGE
    assert recover_message("   ") == FALLBACK_MESSAGE


def test_empty_agent_message_is_degraded():
    decision = parse_reply('{"agentMessage": "   ", "nextPhase": "completed"}')
    assert decision.parse_degraded is True
    assert decision.next_phase is None


def test_oversized_reply_is_clipped_before_parsing():
    raw = '{"agentMessage": "' + "a" * (MAX_REPLY_CHARS + 100) + '"}'
    decision = parse_reply(raw)
    assert decision.parse_degraded is True
    assert len(decision.agent_message) <= MAX_REPLY_CHARS


@pytest.mark.parametrize(
    "raw, reason",
    [
        ("no braces at all", "no JSON object found"),
        ('{"agentMessage": "x",}', "invalid JSON"),
        ('{"candidateName": "Alex"}', "schema validation failed"),
    ],
)
def test_parse_strict_raises_with_reason(raw, reason):
    with pytest.raises(StructuredReplyError) as info:
        parse_strict(raw)
    assert info.value.reason.startswith(reason)
    assert info.value.raw == raw


def test_strip_fence_without_language_tag():
    assert strip_fence('```\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_fence('  {"a": 1}  ') == '{"a": 1}'
