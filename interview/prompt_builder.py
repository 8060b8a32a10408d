from __future__ import annotations  # Turn prompt assembly for the screening interview

import logging
from dataclasses import dataclass
from pathlib import Path
from textwrap import dedent
from typing import Dict, List, Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from langchain_core.prompts import PromptTemplate

from .job_profile import JobProfile
from .models import InterviewRecord, TranscriptEntry
from .scoring import (
    InterviewProgress,
    capped_preferred_subtotal,
    compute_progress,
    max_possible_score,
    veteran_bonus,
)

logger = logging.getLogger(__name__)  # Module logger setup

RULE = "=" * 70
ICONS = {"qualified": "✅", "disqualified": "❌", "pending": "⬜"}
PREFERRED_PHASES = frozenset({"preferred_scoring", "wrap_up", "completed"})

TURN_TEMPLATE = PromptTemplate.from_template(
    dedent(
        """
        {policy}

        {rule}
        COMPANY KNOWLEDGE BASE - USE FOR ALL FACTUAL ANSWERS
        {rule}
        {knowledge}

        {rule}
        CURRENT CONVERSATION STATE
        {rule}
        Current Phase: {phase}
        Candidate Name: {name}
        Candidate Email: {email}
        Status: {status}

        --- MANDATORY QUALIFICATIONS PROGRESS ---
        {mandatory_progress}
        {preferred_progress}
        --- CURRENT SCORE ---
        {score_summary}

        {rule}
        NEXT QUESTION TO ASK
        {rule}
        {next_question}

        {rule}
        CANDIDATE'S LATEST MESSAGE
        {rule}
        {user_message}

        {rule}
        WORKFLOW RULES FOR THIS PHASE
        {rule}
        {phase_rules}

        - Ask ONLY ONE question per response.
        - If the candidate asks a question, answer it FIRST from the knowledge base, then continue.

        {rule}
        RESPONSE FORMAT (RETURN ONLY THIS JSON)
        {rule}
        {reply_format}
        """
    ).strip()
)

FOLLOW_UP_TEMPLATE = PromptTemplate.from_template(
    dedent(
        """
        You are an AI hiring assistant for {company}. The interview for this candidate is already complete.
        Their status: {status}
        Their score: {score}

        KNOWLEDGE BASE:
        {knowledge}

        The candidate is asking a follow-up question after their interview. Answer using ONLY information
        from the knowledge base above. Be friendly, professional and concise (1-3 sentences).
        If the answer is not in the knowledge base, say you don't have that information and suggest
        they contact the hiring team.

        Candidate's question: {user_message}

        Respond with ONLY a valid JSON object:
        {reply_format}
        """
    ).strip()
)

REPLY_FORMAT = dedent(
    """
    Respond with ONLY a valid JSON object. No markdown code blocks. No extra text.

    {
      "agentMessage": "Your conversational response. Warm, professional, ONE question at a time. 1-3 sentences.",
      "candidateName": "Their name if just provided, otherwise null",
      "candidateEmail": "Their email if just provided, otherwise null",
      "qualificationUpdate": {
        "mandatory": {
          "CHECK_ID": { "status": "qualified|disqualified", "value": "extracted value", "rawAnswer": "what they said" }
        },
        "preferred": {
          "DIMENSION_ID": { "score": NUMBER, "details": "why this score", "rawAnswer": "what they said" }
        }
      },
      "nextPhase": "introduction|mandatory_screening|preferred_scoring|wrap_up|completed",
      "overallScore": null,
      "conversationComplete": false,
      "finalStatus": null,
      "disqualificationReason": null
    }

    RULES FOR THE JSON:
    - Only include entries in qualificationUpdate that were ASSESSED in THIS exchange.
    - Set conversationComplete:true ONLY when the interview is fully done OR the candidate is disqualified.
    - For disqualification: set finalStatus:"disqualified" and provide disqualificationReason.
    - NEVER return anything outside the JSON object.
    """
).strip()

FOLLOW_UP_FORMAT = '{\n  "agentMessage": "Your helpful answer here"\n}'


@dataclass(frozen=True)
class StaticContent:  # Behavioral policy and company knowledge text
    policy: str = ""
    knowledge: str = ""

    @classmethod
    def from_files(cls, policy_path: str | Path, knowledge_path: str | Path) -> "StaticContent":
        return cls(policy=_read_text(Path(policy_path)), knowledge=_read_text(Path(knowledge_path)))


def _read_text(path: Path) -> str:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        logger.warning("Static content unavailable path=%s error=%s", path, exc)
        return ""
    logger.info("Loaded static content path=%s chars=%d", path, len(text))
    return text


def build_history(transcript: Sequence[TranscriptEntry]) -> List[BaseMessage]:
    """Convert the transcript into alternating Human/AI messages for the backend.

    Leading agent messages are skipped, consecutive same-role entries are merged and a
    trailing candidate entry is dropped because the current message travels in the prompt.
    """

    start = next((index for index, entry in enumerate(transcript) if entry.role == "candidate"), None)
    if start is None:
        return []
    merged: List[tuple[str, str]] = []
    for entry in transcript[start:]:
        if merged and merged[-1][0] == entry.role:
            merged[-1] = (entry.role, merged[-1][1] + "\n" + entry.message)
        else:
            merged.append((entry.role, entry.message))
    if merged and merged[-1][0] == "candidate":
        merged.pop()
    return [HumanMessage(content=text) if role == "candidate" else AIMessage(content=text) for role, text in merged]


class PromptBuilder:  # Deterministic prompt renderer over record state
    def __init__(self, content: StaticContent) -> None:
        self._content = content

    @property
    def content(self) -> StaticContent:
        return self._content

    def build(self, user_message: str, record: InterviewRecord, job: JobProfile) -> str:
        progress = compute_progress(record, job)
        return TURN_TEMPLATE.format(
            rule=RULE,
            policy=self._content.policy,
            knowledge=self._content.knowledge,
            phase=record.current_phase,
            name=record.personal_info.name or "NOT YET PROVIDED",
            email=record.personal_info.email or "NOT YET PROVIDED",
            status=record.status,
            mandatory_progress=_mandatory_progress(record, job, progress),
            preferred_progress=_preferred_progress(record, job, progress),
            score_summary=_score_summary(record, job, progress),
            next_question=_next_question(record, job, progress),
            user_message=user_message,
            phase_rules=_phase_rules(record, job, progress),
            reply_format=REPLY_FORMAT,
        )

    def build_follow_up(self, user_message: str, record: InterviewRecord, job: JobProfile) -> str:
        score = record.overall_score if record.status == "qualified" and record.overall_score is not None else "N/A"
        return FOLLOW_UP_TEMPLATE.format(
            company=job.company,
            status=record.status,
            score=score,
            knowledge=self._content.knowledge,
            user_message=user_message,
            reply_format=FOLLOW_UP_FORMAT,
        )

    def build_history(self, transcript: Sequence[TranscriptEntry]) -> List[BaseMessage]:
        return build_history(transcript)


def _mandatory_progress(record: InterviewRecord, job: JobProfile, progress: InterviewProgress) -> str:
    lines = []
    for check_id in job.mandatory_order:
        check = record.qualifications.check(check_id)
        line = f"{ICONS[check.status]} {check_id}: {check.status}"
        if check.raw_answer:
            line += f' (answered: "{check.raw_answer}")'
        lines.append(line)
    total = len(job.mandatory)
    lines.append("")
    lines.append(
        f"Completed: {len(progress.qualified)}/{total} | Pending: {len(progress.pending)} | Failed: {len(progress.failed)}"
    )
    lines.append(f"Next mandatory to ask: {progress.next_check or 'ALL DONE'}")
    return "\n".join(lines)


def _preferred_progress(record: InterviewRecord, job: JobProfile, progress: InterviewProgress) -> str:
    if record.current_phase not in PREFERRED_PHASES:
        return ""
    lines = ["", "--- PREFERRED QUALIFICATIONS PROGRESS ---"]
    for requirement in job.preferred:
        dimension = record.qualifications.dimension(requirement.id)
        icon = ICONS["qualified"] if record.qualifications.assessed(requirement.id) else ICONS["pending"]
        line = f"{icon} {requirement.id}: {dimension.score}/{requirement.max_score} pts"
        if dimension.raw_answer:
            line += f' (answered: "{dimension.raw_answer}")'
        lines.append(line)
    veteran = "checked" if progress.veteran_asked else "NOT YET ASKED"
    lines.append(f"{ICONS['qualified'] if progress.veteran_asked else ICONS['pending']} militaryVeteran: {veteran} (bonus: +5 pts if veteran)")
    lines.append("")
    return "\n".join(lines)


def _score_summary(record: InterviewRecord, job: JobProfile, progress: InterviewProgress) -> str:
    if progress.failed:
        base = "0 (DISQUALIFIED)"
    elif progress.all_mandatory_qualified:
        base = "50"
    else:
        base = "TBD"
    lines = [f"Mandatory base: {base} / 50"]
    if record.current_phase in PREFERRED_PHASES:
        lines.append(f"Preferred: {capped_preferred_subtotal(record, job)} / {job.preferred_max_total}")
        lines.append(f"Veteran bonus: {veteran_bonus(record)} / 5")
        lines.append(f"Current total: {record.overall_score or 0} / {max_possible_score(job)}")
    return "\n".join(lines)


def _next_question(record: InterviewRecord, job: JobProfile, progress: InterviewProgress) -> str:
    phase = record.current_phase
    if phase == "introduction":
        if not record.personal_info.name:
            return "Ask for the candidate's NAME."
        if not record.personal_info.email:
            return "Ask for the candidate's EMAIL ADDRESS."
        phase = "mandatory_screening"
    if phase == "mandatory_screening":
        if progress.next_check is not None:
            requirement = job.mandatory_requirement(progress.next_check)
            if requirement is not None:
                return f"{requirement.id}: {requirement.question}"
        return "NONE - all mandatory checks are done. Tell the candidate they passed screening."
    if phase == "preferred_scoring":
        if progress.next_dimension is not None:
            requirement = job.preferred_requirement(progress.next_dimension)
            if requirement is not None:
                return f"{requirement.id}: {requirement.question}"
        if not progress.veteran_asked:
            return f"militaryVeteran: {job.veteran_question}"
        return "NONE - all preferred questions are done. Move to wrap_up."
    return "NONE - deliver the final evaluation and next steps."


def _phase_rules(record: InterviewRecord, job: JobProfile, progress: InterviewProgress) -> str:
    phase = record.current_phase
    order = " -> ".join(job.mandatory_order)
    rules: Dict[str, str] = {
        "introduction": (
            "Phase \"introduction\":\n"
            "- First get the candidate's NAME, then ask for their EMAIL ADDRESS.\n"
            "- Only set nextPhase \"mandatory_screening\" once you have BOTH name and email,\n"
            "  and in that same reply ask the first mandatory question."
        ),
        "mandatory_screening": (
            "Phase \"mandatory_screening\":\n"
            f"- Ask each mandatory qualification ONE AT A TIME in this order: {order}\n"
            "- Do NOT skip ahead.\n"
            "- If ANY mandatory requirement fails, IMMEDIATELY disqualify: set the check to \"disqualified\",\n"
            "  conversationComplete:true, finalStatus:\"disqualified\" and a disqualificationReason.\n"
            "- When every mandatory check is qualified, set nextPhase \"preferred_scoring\"."
        ),
    }
    if phase in PREFERRED_PHASES:
        rubric = "\n".join(
            f"  - {item.id} (max {item.max_score} pts): {item.scoring_description}" for item in job.preferred
        )
        rules["preferred_scoring"] = (
            "Phase \"preferred_scoring\":\n"
            f"- Ask about: {' -> '.join(job.preferred_order + ['militaryVeteran'])}\n"
            "- Score each answer with this rubric:\n"
            f"{rubric}\n"
            "- For militaryVeteran report { \"isVeteran\": true|false } under qualificationUpdate.preferred.\n"
            "- When everything is asked, set nextPhase \"wrap_up\"."
        )
        rules["wrap_up"] = (
            "Phase \"wrap_up\":\n"
            "- All mandatory met = 50 base points, plus preferred scores, plus +5 veteran bonus.\n"
            "- Deliver the evaluation summary and next steps.\n"
            "- Set conversationComplete:true, finalStatus:\"qualified\", nextPhase \"completed\"."
        )
        rules["completed"] = "The interview is complete. Answer questions only."
    return rules.get(phase, "")


__all__ = [
    "FOLLOW_UP_TEMPLATE",
    "PromptBuilder",
    "REPLY_FORMAT",
    "StaticContent",
    "TURN_TEMPLATE",
    "build_history",
]
