from __future__ import annotations

from langchain_core.messages import AIMessage, HumanMessage

from interview import DEFAULT_JOB, InterviewRecord, PromptBuilder, StaticContent, build_history
from interview.models import (
    MandatoryCheck,
    PersonalInfo,
    PreferredScore,
    Qualifications,
    TranscriptEntry,
)
from interview.prompt_builder import _next_question
from interview.scoring import InterviewProgress


def _builder():
    return PromptBuilder(StaticContent(policy="POLICY TEXT", knowledge="Pay is $22/hour."))


def _record(**kwargs):
    return InterviewRecord(id="c1", job_id=DEFAULT_JOB.job_id, **kwargs)


def _all_qualified():
    return {check_id: MandatoryCheck(status="qualified") for check_id in DEFAULT_JOB.mandatory_order}


def test_introduction_prompt_asks_for_name():
    prompt = _builder().build("hello", _record(), DEFAULT_JOB)
    assert "POLICY TEXT" in prompt
    assert "Pay is $22/hour." in prompt
    assert "Current Phase: introduction" in prompt
    assert "Candidate Name: NOT YET PROVIDED" in prompt
    assert "Ask for the candidate's NAME." in prompt
    assert "hello" in prompt
    assert '"agentMessage"' in prompt


def test_introduction_prompt_asks_for_email_once_named():
    record = _record(personal_info=PersonalInfo(name="Alex"))
    prompt = _builder().build("I'm Alex", record, DEFAULT_JOB)
    assert "Candidate Name: Alex" in prompt
    assert "EMAIL ADDRESS" in prompt


def test_mandatory_phase_hides_preferred_material():
    record = _record(
        personal_info=PersonalInfo(name="Alex", email="alex@example.com"),
        current_phase="mandatory_screening",
        qualifications=Qualifications(mandatory={"age": MandatoryCheck(status="qualified", raw_answer="25")}),
    )
    prompt = _builder().build("yes", record, DEFAULT_JOB)
    assert "deliveryExperience" not in prompt
    assert "PREFERRED QUALIFICATIONS PROGRESS" not in prompt
    assert "0pts=none" not in prompt
    assert "validLicense: Do you have a valid driver's license?" in prompt
    assert 'age: qualified (answered: "25")' in prompt
    assert "Completed: 1/8 | Pending: 7 | Failed: 0" in prompt
    assert "Mandatory base: TBD / 50" in prompt


def test_preferred_phase_includes_rubric_and_progress():
    record = _record(
        personal_info=PersonalInfo(name="Alex", email="alex@example.com"),
        current_phase="preferred_scoring",
        qualifications=Qualifications(
            mandatory=_all_qualified(),
            preferred={"deliveryExperience": PreferredScore(score=15, raw_answer="8 months at Amazon")},
        ),
        overall_score=65,
    )
    prompt = _builder().build("I manage my time with lists", record, DEFAULT_JOB)
    assert "PREFERRED QUALIFICATIONS PROGRESS" in prompt
    assert "deliveryExperience: 15/20 pts" in prompt
    assert "0pts=none, 10pts=some, 15pts=6mo-1yr, 20pts=1yr+" in prompt
    assert "timeManagement: How do you manage your time" in prompt
    assert "militaryVeteran: NOT YET ASKED" in prompt
    assert "Preferred: 15 / 50" in prompt
    assert "Current total: 65 / 105" in prompt


def test_veteran_question_follows_last_dimension():
    preferred = {dim: PreferredScore(score=5) for dim in DEFAULT_JOB.preferred_order}
    record = _record(
        current_phase="preferred_scoring",
        qualifications=Qualifications(mandatory=_all_qualified(), preferred=preferred),
    )
    prompt = _builder().build("sure", record, DEFAULT_JOB)
    assert f"militaryVeteran: {DEFAULT_JOB.veteran_question}" in prompt


def test_zero_scored_dimension_is_not_asked_again():
    record = _record(
        current_phase="preferred_scoring",
        qualifications=Qualifications(
            mandatory=_all_qualified(), preferred={"deliveryExperience": PreferredScore(score=0)}
        ),
    )
    prompt = _builder().build("no experience", record, DEFAULT_JOB)
    following = DEFAULT_JOB.preferred[1]
    assert f"{following.id}: {following.question}" in prompt
    assert f"{DEFAULT_JOB.preferred[0].id}: {DEFAULT_JOB.preferred[0].question}" not in prompt


def test_unknown_requirement_ids_fall_through_to_next_line():
    record = _record(current_phase="preferred_scoring", qualifications=Qualifications(mandatory=_all_qualified()))
    stale = InterviewProgress(
        qualified=list(DEFAULT_JOB.mandatory_order),
        pending=[],
        failed=[],
        addressed_preferred=[],
        unaddressed_preferred=["retiredDimension"],
        veteran_asked=False,
    )
    assert _next_question(record, DEFAULT_JOB, stale) == f"militaryVeteran: {DEFAULT_JOB.veteran_question}"

    screening = record.model_copy(update={"current_phase": "mandatory_screening"})
    stale_check = InterviewProgress(
        qualified=[], pending=["retiredCheck"], failed=[], addressed_preferred=[], unaddressed_preferred=[], veteran_asked=False
    )
    assert _next_question(screening, DEFAULT_JOB, stale_check).startswith("NONE - all mandatory checks are done")


def test_history_skips_leading_agent_merges_and_drops_trailing_candidate():
    transcript = [
        TranscriptEntry(role="agent", message="Hi, what's your name?"),
        TranscriptEntry(role="candidate", message="Alex"),
        TranscriptEntry(role="candidate", message="Alex Smith actually"),
        TranscriptEntry(role="agent", message="Thanks Alex!"),
        TranscriptEntry(role="agent", message="What's your email?"),
        TranscriptEntry(role="candidate", message="pending message"),
    ]
    history = build_history(transcript)
    assert [type(message) for message in history] == [HumanMessage, AIMessage]
    assert history[0].content == "Alex\nAlex Smith actually"
    assert history[1].content == "Thanks Alex!\nWhat's your email?"


def test_history_empty_without_candidate_messages():
    assert build_history([TranscriptEntry(role="agent", message="Hi")]) == []
    assert _builder().build_history([]) == []


def test_static_content_missing_files_yield_empty_text(tmp_path):
    policy = tmp_path / "policy.md"
    policy.write_text("Be kind.", encoding="utf-8")
    content = StaticContent.from_files(policy, tmp_path / "missing.md")
    assert content.policy == "Be kind."
    assert content.knowledge == ""


def test_follow_up_prompt_uses_knowledge_and_status():
    record = _record(status="qualified", current_phase="completed", overall_score=82)
    prompt = _builder().build_follow_up("What's the pay?", record, DEFAULT_JOB)
    assert "Tsavo West Inc" in prompt
    assert "Their status: qualified" in prompt
    assert "Their score: 82" in prompt
    assert "Pay is $22/hour." in prompt
    assert "Candidate's question: What's the pay?" in prompt

    disqualified = _record(status="disqualified", current_phase="completed")
    assert "Their score: N/A" in _builder().build_follow_up("why?", disqualified, DEFAULT_JOB)
