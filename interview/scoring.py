"""Qualification scoring, progress snapshots and recruiter result assembly."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .job_profile import JobProfile
from .models import (
    MANDATORY_BASE_SCORE,
    VETERAN_BONUS_POINTS,
    EarlyDisqualification,
    InterviewRecord,
    MandatoryBreakdownItem,
    PreferredBreakdownItem,
    ResultSummary,
)


@dataclass(frozen=True)
class InterviewProgress:
    """Where a record stands against the job's canonical check order."""

    qualified: List[str]
    pending: List[str]
    failed: List[str]
    addressed_preferred: List[str]
    unaddressed_preferred: List[str]
    veteran_asked: bool

    @property
    def next_check(self) -> Optional[str]:
        return self.pending[0] if self.pending else None

    @property
    def next_dimension(self) -> Optional[str]:
        return self.unaddressed_preferred[0] if self.unaddressed_preferred else None

    @property
    def all_mandatory_qualified(self) -> bool:
        return not self.pending and not self.failed

    @property
    def all_preferred_addressed(self) -> bool:
        return not self.unaddressed_preferred and self.veteran_asked


def compute_progress(record: InterviewRecord, job: JobProfile) -> InterviewProgress:
    """Classify every mandatory check and preferred dimension in job order."""

    qualified: List[str] = []
    pending: List[str] = []
    failed: List[str] = []
    for check_id in job.mandatory_order:
        status = record.qualifications.check(check_id).status
        if status == "qualified":
            qualified.append(check_id)
        elif status == "disqualified":
            failed.append(check_id)
        else:
            pending.append(check_id)
    addressed: List[str] = []
    unaddressed: List[str] = []
    for dimension_id in job.preferred_order:
        if record.qualifications.assessed(dimension_id):
            addressed.append(dimension_id)
        else:
            unaddressed.append(dimension_id)
    return InterviewProgress(
        qualified=qualified,
        pending=pending,
        failed=failed,
        addressed_preferred=addressed,
        unaddressed_preferred=unaddressed,
        veteran_asked=record.qualifications.veteran.asked,
    )


def first_failed_check(record: InterviewRecord, job: JobProfile) -> Optional[str]:
    """Return the first disqualified check id in canonical order, if any."""

    for check_id in job.mandatory_order:
        if record.qualifications.check(check_id).status == "disqualified":
            return check_id
    return None


def all_mandatory_qualified(record: InterviewRecord, job: JobProfile) -> bool:
    return all(record.qualifications.check(check_id).status == "qualified" for check_id in job.mandatory_order)


def capped_preferred_subtotal(record: InterviewRecord, job: JobProfile) -> int:
    """Sum preferred scores, each clamped to its dimension's maximum."""

    total = 0
    for requirement in job.preferred:
        score = record.qualifications.dimension(requirement.id).score
        total += max(0, min(score, requirement.max_score))
    return total


def veteran_bonus(record: InterviewRecord) -> int:
    return VETERAN_BONUS_POINTS if record.qualifications.veteran.is_veteran else 0


def max_possible_score(job: JobProfile) -> int:
    return MANDATORY_BASE_SCORE + job.preferred_max_total + VETERAN_BONUS_POINTS


def compute_overall_score(record: InterviewRecord, job: JobProfile) -> Optional[int]:
    """Return ``50 + capped preferred + veteran bonus`` or None unless every gate passed."""

    if not all_mandatory_qualified(record, job):
        return None
    return MANDATORY_BASE_SCORE + capped_preferred_subtotal(record, job) + veteran_bonus(record)


def _recruiter_summary(
    record: InterviewRecord,
    job: JobProfile,
    candidate_name: str,
    passed_count: int,
    score: Optional[int],
) -> str:
    if record.status == "disqualified":
        reason = record.disqualification_reason or "Did not meet mandatory requirements"
        return (
            f"{candidate_name} was disqualified during screening. Reason: {reason}. "
            f"Passed {passed_count}/{len(job.mandatory)} mandatory checks before disqualification."
        )
    if record.status == "qualified":
        strengths: List[str] = []
        for requirement in job.preferred:
            if requirement.strength_threshold is None or not requirement.strength_label:
                continue
            if record.qualifications.dimension(requirement.id).score >= requirement.strength_threshold:
                strengths.append(requirement.strength_label)
        if record.qualifications.veteran.is_veteran:
            strengths.append("military veteran")
        summary = (
            f"{candidate_name} passed all mandatory requirements with a score of "
            f"{score or 0}/{max_possible_score(job)}."
        )
        if strengths:
            summary += " Key strengths: " + ", ".join(strengths) + "."
        return summary + " Recommended for in-person interview."
    return f"{candidate_name}'s interview is still in progress (Phase: {record.current_phase})."


def build_result_summary(record: InterviewRecord, job: JobProfile) -> ResultSummary:
    """Assemble the recruiter-facing breakdown for one interview record."""

    mandatory = [
        MandatoryBreakdownItem(
            key=requirement.id,
            label=requirement.label,
            status=record.qualifications.check(requirement.id).status,
            value=record.qualifications.check(requirement.id).extracted_value,
            raw_answer=record.qualifications.check(requirement.id).raw_answer,
        )
        for requirement in job.mandatory
    ]
    preferred = []
    for requirement in job.preferred:
        dimension = record.qualifications.dimension(requirement.id)
        preferred.append(
            PreferredBreakdownItem(
                key=requirement.id,
                label=requirement.label,
                score=max(0, min(dimension.score, requirement.max_score)),
                max_score=requirement.max_score,
                details=dimension.details,
                raw_answer=dimension.raw_answer,
            )
        )

    early = None
    failed_key = first_failed_check(record, job)
    if record.status == "disqualified" and failed_key is not None:
        early = EarlyDisqualification(
            failed_key=failed_key,
            failed_requirement=job.mandatory_label(failed_key),
            reason=record.disqualification_reason,
        )

    # A disqualified record never advertises a comparable number.
    score = None if record.status == "disqualified" else record.overall_score
    candidate_name = record.personal_info.name or "Unknown"
    passed = sum(1 for item in mandatory if item.status == "qualified")
    return ResultSummary(
        conversation_id=record.id,
        job_id=record.job_id,
        job_title=job.title,
        candidate_name=candidate_name,
        status=record.status,
        current_phase=record.current_phase,
        match_score=score,
        mandatory_breakdown=mandatory,
        preferred_breakdown=preferred,
        veteran_bonus=record.qualifications.veteran,
        early_disqualification=early,
        recruiter_summary=_recruiter_summary(record, job, candidate_name, passed, score),
        disqualification_reason=record.disqualification_reason,
        transcript=record.transcript,
        model_used=record.model_used,
        processing_time_ms=record.processing_time_ms,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


__all__ = [
    "InterviewProgress",
    "all_mandatory_qualified",
    "build_result_summary",
    "capped_preferred_subtotal",
    "compute_overall_score",
    "compute_progress",
    "first_failed_check",
    "max_possible_score",
    "veteran_bonus",
]
