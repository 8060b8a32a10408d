from __future__ import annotations  # Interview record, partial update and decision models

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Phase = Literal["introduction", "mandatory_screening", "preferred_scoring", "wrap_up", "completed"]
Status = Literal["in_progress", "qualified", "disqualified"]
CheckStatus = Literal["pending", "qualified", "disqualified"]
Role = Literal["agent", "candidate"]

PHASE_ORDER: tuple[str, ...] = (
    "introduction",
    "mandatory_screening",
    "preferred_scoring",
    "wrap_up",
    "completed",
)
TERMINAL_STATUSES = frozenset({"qualified", "disqualified"})
CHECK_STATUSES = frozenset({"pending", "qualified", "disqualified"})
MANDATORY_BASE_SCORE = 50
VETERAN_BONUS_POINTS = 5


def phase_index(phase: str) -> int:  # Position in the forward-only phase order
    return PHASE_ORDER.index(phase)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MandatoryCheck(BaseModel):  # Pass/fail gate outcome
    status: CheckStatus = "pending"
    extracted_value: Any = None
    raw_answer: Optional[str] = None


class PreferredScore(BaseModel):  # Scored dimension outcome
    score: int = Field(default=0, ge=0)
    details: Optional[str] = None
    raw_answer: Optional[str] = None


class VeteranBonus(BaseModel):  # is_veteran None means the question was not asked yet
    is_veteran: Optional[bool] = None
    bonus_points: int = Field(default=0, ge=0, le=VETERAN_BONUS_POINTS)

    @property
    def asked(self) -> bool:
        return self.is_veteran is not None


class Qualifications(BaseModel):
    mandatory: Dict[str, MandatoryCheck] = Field(default_factory=dict)
    preferred: Dict[str, PreferredScore] = Field(default_factory=dict)
    veteran: VeteranBonus = Field(default_factory=VeteranBonus)

    def check(self, check_id: str) -> MandatoryCheck:  # Missing entries read as pending
        return self.mandatory.get(check_id) or MandatoryCheck()

    def dimension(self, dimension_id: str) -> PreferredScore:
        return self.preferred.get(dimension_id) or PreferredScore()

    def assessed(self, dimension_id: str) -> bool:  # Any accepted update counts, a zero score included
        return dimension_id in self.preferred


class PersonalInfo(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None


class TranscriptEntry(BaseModel):
    role: Role
    message: str
    timestamp: datetime = Field(default_factory=utc_now)


class InterviewRecord(BaseModel):  # Full qualification record for one conversation
    id: str
    job_id: str
    personal_info: PersonalInfo = Field(default_factory=PersonalInfo)
    qualifications: Qualifications = Field(default_factory=Qualifications)
    overall_score: Optional[int] = None
    status: Status = "in_progress"
    current_phase: Phase = "introduction"
    disqualification_reason: Optional[str] = None
    transcript: List[TranscriptEntry] = Field(default_factory=list)
    model_used: Optional[str] = None
    processing_time_ms: Optional[int] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class MandatoryPatch(BaseModel):
    status: Optional[CheckStatus] = None
    extracted_value: Any = None
    raw_answer: Optional[str] = None


class PreferredPatch(BaseModel):
    score: Optional[int] = None
    details: Optional[str] = None
    raw_answer: Optional[str] = None


class VeteranPatch(BaseModel):
    is_veteran: Optional[bool] = None
    bonus_points: Optional[int] = None


class RecordPatch(BaseModel):  # Sparse update; None leaves a field unchanged
    name: Optional[str] = None
    email: Optional[str] = None
    mandatory: Dict[str, MandatoryPatch] = Field(default_factory=dict)
    preferred: Dict[str, PreferredPatch] = Field(default_factory=dict)
    veteran: Optional[VeteranPatch] = None
    current_phase: Optional[Phase] = None
    status: Optional[Status] = None
    overall_score: Optional[int] = None
    clear_overall_score: bool = False
    disqualification_reason: Optional[str] = None
    model_used: Optional[str] = None
    processing_time_ms: Optional[int] = None

    def is_empty(self) -> bool:
        return self == RecordPatch()


def _merge(current: BaseModel, patch: BaseModel) -> Dict[str, Any]:  # Field-level merge of non-None patch values
    merged = current.model_dump()
    merged.update(patch.model_dump(exclude_none=True))
    return merged


def apply_patch(record: InterviewRecord, patch: RecordPatch) -> InterviewRecord:
    """Return a copy of ``record`` with every non-None patch field applied."""

    data = record.model_copy(deep=True)
    if patch.name is not None:
        data.personal_info.name = patch.name
    if patch.email is not None:
        data.personal_info.email = patch.email
    for check_id, check_patch in patch.mandatory.items():
        current = data.qualifications.check(check_id)
        data.qualifications.mandatory[check_id] = MandatoryCheck.model_validate(_merge(current, check_patch))
    for dimension_id, dimension_patch in patch.preferred.items():
        current = data.qualifications.dimension(dimension_id)
        data.qualifications.preferred[dimension_id] = PreferredScore.model_validate(_merge(current, dimension_patch))
    if patch.veteran is not None:
        data.qualifications.veteran = VeteranBonus.model_validate(_merge(data.qualifications.veteran, patch.veteran))
    for field in (
        "current_phase",
        "status",
        "overall_score",
        "disqualification_reason",
        "model_used",
        "processing_time_ms",
    ):
        value = getattr(patch, field)
        if value is not None:
            setattr(data, field, value)
    if patch.clear_overall_score:
        data.overall_score = None
    return data


class _WireModel(BaseModel):  # camelCase on the wire, snake_case in code
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


def _text_or_none(value: Any) -> Optional[str]:  # Scalars become text; anything else is dropped
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)


class MandatoryUpdate(_WireModel):
    status: Optional[str] = None
    value: Any = None
    raw_answer: Optional[str] = None

    @field_validator("status", "raw_answer", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Optional[str]:
        return _text_or_none(value)


class PreferredUpdate(_WireModel):
    score: Optional[float] = None
    details: Optional[str] = None
    raw_answer: Optional[str] = None
    is_veteran: Optional[bool] = None
    bonus_points: Optional[float] = None

    @field_validator("score", "bonus_points", mode="before")
    @classmethod
    def _lenient_number(cls, value: Any) -> Optional[float]:  # Non-numeric scores are treated as absent
        if value is None or isinstance(value, bool):
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    @field_validator("details", "raw_answer", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Optional[str]:
        return _text_or_none(value)

    @field_validator("is_veteran", mode="before")
    @classmethod
    def _lenient_flag(cls, value: Any) -> Optional[bool]:
        if isinstance(value, bool) or value is None:
            return value
        text = str(value).strip().lower()
        if text in ("true", "yes", "y", "1"):
            return True
        if text in ("false", "no", "n", "0"):
            return False
        return None


class QualificationUpdate(_WireModel):
    mandatory: Dict[str, MandatoryUpdate] = Field(default_factory=dict)
    preferred: Dict[str, PreferredUpdate] = Field(default_factory=dict)

    @field_validator("mandatory", "preferred", mode="before")
    @classmethod
    def _drop_non_objects(cls, value: Any) -> Dict[str, Any]:
        if not isinstance(value, dict):
            return {}
        return {key: item for key, item in value.items() if isinstance(item, dict)}


class DecisionObject(_WireModel):  # Structured reply extracted from the model
    agent_message: str = Field(min_length=1)
    candidate_name: Optional[str] = None
    candidate_email: Optional[str] = None
    qualification_update: Optional[QualificationUpdate] = None
    next_phase: Optional[str] = None
    overall_score: Optional[float] = None
    conversation_complete: bool = False
    final_status: Optional[str] = None
    disqualification_reason: Optional[str] = None
    parse_degraded: bool = Field(default=False, exclude=True)

    @field_validator("agent_message", mode="before")
    @classmethod
    def _strip_message(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("conversation_complete", mode="before")
    @classmethod
    def _lenient_complete(cls, value: Any) -> bool:  # Anything but an explicit yes reads as not complete
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("true", "yes", "y", "1")

    @field_validator("overall_score", mode="before")
    @classmethod
    def _lenient_score(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value
        return None

    @field_validator("candidate_name", "candidate_email", "next_phase", "final_status", "disqualification_reason", mode="before")
    @classmethod
    def _blank_is_none(cls, value: Any) -> Optional[str]:
        text = _text_or_none(value)
        if text is None:
            return None
        text = text.strip()
        if not text or text.lower() in ("null", "none"):
            return None
        return text

    @classmethod
    def degraded(cls, message: str) -> "DecisionObject":  # Message-only result for an unparseable reply
        return cls(agent_message=message or "...", parse_degraded=True)


class TurnResult(BaseModel):  # Outward-facing result of one turn
    agent_response: str
    qualification_update: Optional[Dict[str, Any]] = None
    conversation_complete: bool = False
    status: Status = "in_progress"
    is_follow_up: bool = False


class ConversationStart(BaseModel):
    conversation_id: str
    first_message: str


class MandatoryBreakdownItem(BaseModel):
    key: str
    label: str
    status: CheckStatus
    value: Any = None
    raw_answer: Optional[str] = None


class PreferredBreakdownItem(BaseModel):
    key: str
    label: str
    score: int
    max_score: int
    details: Optional[str] = None
    raw_answer: Optional[str] = None


class EarlyDisqualification(BaseModel):
    failed_key: str
    failed_requirement: str
    reason: Optional[str] = None


class ResultSummary(BaseModel):  # Recruiter-facing summary of a conversation
    conversation_id: str
    job_id: str
    job_title: str
    candidate_name: str
    status: Status
    current_phase: Phase
    match_score: Optional[int] = None
    mandatory_breakdown: List[MandatoryBreakdownItem]
    preferred_breakdown: List[PreferredBreakdownItem]
    veteran_bonus: VeteranBonus
    early_disqualification: Optional[EarlyDisqualification] = None
    recruiter_summary: str
    disqualification_reason: Optional[str] = None
    transcript: List[TranscriptEntry]
    model_used: Optional[str] = None
    processing_time_ms: Optional[int] = None
    created_at: datetime
    updated_at: datetime


__all__ = [
    "CHECK_STATUSES",
    "MANDATORY_BASE_SCORE",
    "PHASE_ORDER",
    "TERMINAL_STATUSES",
    "VETERAN_BONUS_POINTS",
    "CheckStatus",
    "ConversationStart",
    "DecisionObject",
    "EarlyDisqualification",
    "InterviewRecord",
    "MandatoryBreakdownItem",
    "MandatoryCheck",
    "MandatoryPatch",
    "MandatoryUpdate",
    "PersonalInfo",
    "Phase",
    "PreferredBreakdownItem",
    "PreferredPatch",
    "PreferredScore",
    "PreferredUpdate",
    "QualificationUpdate",
    "Qualifications",
    "RecordPatch",
    "ResultSummary",
    "Status",
    "TranscriptEntry",
    "TurnResult",
    "VeteranBonus",
    "VeteranPatch",
    "apply_patch",
    "phase_index",
    "utc_now",
]
