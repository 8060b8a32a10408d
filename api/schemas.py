"""Pydantic schemas for the chat API."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from interview.models import ResultSummary, TurnResult
from observability import MetricsSnapshot


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StartReq(_CamelModel):
    job_id: Optional[str] = None


class StartResp(_CamelModel):
    conversation_id: str
    message: str


class MessageReq(_CamelModel):
    conversation_id: str = Field(min_length=1)
    message: str = Field(min_length=1, max_length=4000)

    @field_validator("message", mode="before")
    @classmethod
    def _strip_message(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class MessageResp(_CamelModel):
    conversation_id: str
    message: str
    qualification_update: Optional[Dict[str, Any]] = None
    conversation_complete: bool
    status: str
    is_follow_up: bool = False

    @classmethod
    def from_turn(cls, conversation_id: str, turn: TurnResult) -> "MessageResp":
        return cls(
            conversation_id=conversation_id,
            message=turn.agent_response,
            qualification_update=turn.qualification_update,
            conversation_complete=turn.conversation_complete,
            status=turn.status,
            is_follow_up=turn.is_follow_up,
        )


class TranscriptItem(_CamelModel):
    role: str
    message: str
    timestamp: str


class ResultResp(_CamelModel):
    conversation_id: str
    job_id: str
    job_title: str
    candidate_name: str
    status: str
    current_phase: str
    match_score: Optional[int] = None
    mandatory_breakdown: List[Dict[str, Any]]
    preferred_breakdown: List[Dict[str, Any]]
    veteran_bonus: Dict[str, Any]
    early_disqualification: Optional[Dict[str, Any]] = None
    recruiter_summary: str
    disqualification_reason: Optional[str] = None
    transcript: List[TranscriptItem]
    model_used: Optional[str] = None
    processing_time_ms: Optional[int] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_summary(cls, summary: ResultSummary) -> "ResultResp":
        def camel(model: BaseModel) -> Dict[str, Any]:
            return {to_camel(key): value for key, value in model.model_dump(mode="json").items()}

        return cls(
            conversation_id=summary.conversation_id,
            job_id=summary.job_id,
            job_title=summary.job_title,
            candidate_name=summary.candidate_name,
            status=summary.status,
            current_phase=summary.current_phase,
            match_score=summary.match_score,
            mandatory_breakdown=[camel(item) for item in summary.mandatory_breakdown],
            preferred_breakdown=[camel(item) for item in summary.preferred_breakdown],
            veteran_bonus=camel(summary.veteran_bonus),
            early_disqualification=camel(summary.early_disqualification) if summary.early_disqualification else None,
            recruiter_summary=summary.recruiter_summary,
            disqualification_reason=summary.disqualification_reason,
            transcript=[
                TranscriptItem(role=entry.role, message=entry.message, timestamp=entry.timestamp.isoformat())
                for entry in summary.transcript
            ],
            model_used=summary.model_used,
            processing_time_ms=summary.processing_time_ms,
            created_at=summary.created_at.isoformat(),
            updated_at=summary.updated_at.isoformat(),
        )


class HealthResp(BaseModel):
    status: str = "ok"
    backends: List[str]
    fallback_enabled: bool
    metrics: MetricsSnapshot
