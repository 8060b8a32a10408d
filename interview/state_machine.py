from __future__ import annotations  # Phase rules and per-turn mutation builder

import logging
from dataclasses import dataclass
from typing import List, Optional

from observability import log_event

from .job_profile import JobProfile
from .models import (
    PHASE_ORDER,
    VETERAN_BONUS_POINTS,
    DecisionObject,
    InterviewRecord,
    MandatoryPatch,
    PreferredPatch,
    PreferredUpdate,
    RecordPatch,
    VeteranPatch,
    apply_patch,
    phase_index,
)
from .scoring import compute_overall_score, compute_progress, first_failed_check

logger = logging.getLogger(__name__)  # Module logger setup

VETERAN_KEY = "militaryVeteran"
_ACCEPTED_CHECK_STATUSES = ("qualified", "disqualified")


@dataclass(frozen=True)
class TurnResolution:  # Validated outcome of applying one decision to a record
    patch: RecordPatch
    phase: str
    status: str
    overall_score: Optional[int]
    conversation_complete: bool
    rejected_phase: Optional[str] = None


def phase_precondition_met(phase: str, record: InterviewRecord, job: JobProfile) -> bool:  # Entry condition for a phase
    if phase == "introduction":
        return True
    if phase == "mandatory_screening":
        return bool(record.personal_info.name) and bool(record.personal_info.email)
    progress = compute_progress(record, job)
    if phase == "preferred_scoring":
        return progress.all_mandatory_qualified
    return progress.all_mandatory_qualified and progress.all_preferred_addressed


def allowed_phases(record: InterviewRecord, job: JobProfile) -> List[str]:  # Current phase plus reachable successors
    allowed = [record.current_phase]
    for phase in PHASE_ORDER[phase_index(record.current_phase) + 1 :]:
        if not phase_precondition_met(phase, record, job):
            break
        allowed.append(phase)
    return allowed


def _mandatory_patches(record: InterviewRecord, decision: DecisionObject, job: JobProfile, patch: RecordPatch) -> None:
    update = decision.qualification_update
    if update is None:
        return
    unknown = sorted(set(update.mandatory) - set(job.mandatory_order))
    if unknown:
        logger.warning("Ignoring unknown mandatory checks conversation=%s ids=%s", record.id, unknown)
    for check_id in job.mandatory_order:
        item = update.mandatory.get(check_id)
        if item is None:
            continue
        status = (item.status or "").strip().lower()
        if status not in _ACCEPTED_CHECK_STATUSES:
            if status:
                logger.warning("Ignoring check status conversation=%s check=%s status=%s", record.id, check_id, status)
            status = ""
        patch.mandatory[check_id] = MandatoryPatch(
            status=status or None,
            extracted_value=item.value,
            raw_answer=item.raw_answer,
        )
        if status == "disqualified":
            break


def _veteran_patch(item: PreferredUpdate) -> Optional[VeteranPatch]:
    is_veteran = item.is_veteran
    if is_veteran is None and item.bonus_points is not None:
        is_veteran = item.bonus_points > 0
    if is_veteran is None:
        return None
    return VeteranPatch(is_veteran=is_veteran, bonus_points=VETERAN_BONUS_POINTS if is_veteran else 0)


def _preferred_patches(record: InterviewRecord, decision: DecisionObject, job: JobProfile, patch: RecordPatch) -> None:
    update = decision.qualification_update
    if update is None or not update.preferred:
        return
    for dimension_id, item in update.preferred.items():
        if dimension_id == VETERAN_KEY:
            veteran = _veteran_patch(item)
            if veteran is not None:
                patch.veteran = veteran
            continue
        requirement = job.preferred_requirement(dimension_id)
        if requirement is None:
            logger.warning("Ignoring unknown preferred dimension conversation=%s id=%s", record.id, dimension_id)
            continue
        if item.score is None and item.details is None and item.raw_answer is None:
            continue
        score = None
        if item.score is not None:
            score = max(0, min(int(round(item.score)), requirement.max_score))
        patch.preferred[dimension_id] = PreferredPatch(score=score, details=item.details, raw_answer=item.raw_answer)


def _attribute_declared_disqualification(
    record: InterviewRecord,
    projected: InterviewRecord,
    decision: DecisionObject,
    job: JobProfile,
    patch: RecordPatch,
) -> None:
    if (decision.final_status or "").lower() != "disqualified" or first_failed_check(projected, job):
        return
    pending = compute_progress(projected, job).next_check
    if record.current_phase == "mandatory_screening" and pending is not None:
        existing = patch.mandatory.get(pending) or MandatoryPatch()
        patch.mandatory[pending] = existing.model_copy(update={"status": "disqualified"})
        logger.info("Attributed declared disqualification conversation=%s check=%s", record.id, pending)
        return
    log_event(
        "status_mismatch",
        record.id,
        level=logging.WARNING,
        phase=record.current_phase,
        proposed="disqualified",
        outcome="rejected",
    )


def resolve_turn(record: InterviewRecord, decision: DecisionObject, job: JobProfile) -> TurnResolution:
    """Turn a parsed decision into a validated patch for an in-progress record.

    Mandatory updates apply in canonical order and stop at the first failure. Preferred
    updates are accepted only after every gate passed. The phase proposed by the model is
    clamped to the locally computed allowed set; anything else keeps the current phase.
    """

    patch = RecordPatch()
    if decision.candidate_name:
        patch.name = decision.candidate_name
    if decision.candidate_email:
        patch.email = decision.candidate_email

    _mandatory_patches(record, decision, job, patch)
    projected = apply_patch(record, patch)
    if compute_progress(projected, job).all_mandatory_qualified:
        _preferred_patches(record, decision, job, patch)
    elif decision.qualification_update is not None and decision.qualification_update.preferred:
        logger.warning("Ignoring preferred updates before screening passed conversation=%s", record.id)

    projected = apply_patch(record, patch)
    _attribute_declared_disqualification(record, projected, decision, job, patch)
    projected = apply_patch(record, patch)

    failed = first_failed_check(projected, job)
    if failed is not None:
        patch.status = "disqualified"
        patch.current_phase = "completed"
        patch.disqualification_reason = (
            decision.disqualification_reason or f"Did not meet mandatory requirement: {job.mandatory_label(failed)}"
        )
        patch.clear_overall_score = record.overall_score is not None
        return TurnResolution(
            patch=patch,
            phase="completed",
            status="disqualified",
            overall_score=None,
            conversation_complete=True,
        )

    proposed = decision.next_phase
    if decision.conversation_complete or (decision.final_status or "").lower() == "qualified":
        proposed = "completed"
    if proposed is not None and proposed not in PHASE_ORDER:
        logger.warning("Ignoring unknown phase conversation=%s phase=%s", record.id, proposed)
        proposed = None

    phase = record.current_phase
    rejected = None
    if proposed is not None and proposed != phase:
        allowed = allowed_phases(projected, job)
        if proposed in allowed:
            phase = proposed
        else:
            rejected = proposed
            log_event(
                "phase_mismatch",
                record.id,
                level=logging.WARNING,
                phase=record.current_phase,
                proposed=proposed,
                outcome="rejected",
            )
    if phase != record.current_phase:
        patch.current_phase = phase

    score = compute_overall_score(projected, job)
    if score is not None:
        patch.overall_score = score

    status = record.status
    complete = phase == "completed"
    if complete:
        patch.status = "qualified"
        status = "qualified"
    return TurnResolution(
        patch=patch,
        phase=phase,
        status=status,
        overall_score=score,
        conversation_complete=complete,
        rejected_phase=rejected,
    )


__all__ = [
    "TurnResolution",
    "allowed_phases",
    "phase_precondition_met",
    "resolve_turn",
]
