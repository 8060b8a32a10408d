from __future__ import annotations  # Turn lifecycle for the qualification interview

import asyncio
import logging
import time
import weakref
from typing import Any, Dict, Optional, Protocol, Sequence

from llm_gateway import BackendRouter, LlmGatewayError
from observability import log_event

from .job_profile import JOB_PROFILES, JobProfile, get_job_profile
from .models import (
    ConversationStart,
    DecisionObject,
    InterviewRecord,
    RecordPatch,
    ResultSummary,
    TranscriptEntry,
    TurnResult,
    utc_now,
)
from .prompt_builder import PromptBuilder
from .response_parser import parse_reply
from .scoring import build_result_summary
from .state_machine import resolve_turn

logger = logging.getLogger(__name__)  # Module logger setup

RETRY_MESSAGE = (
    "I apologize, but I'm experiencing a brief technical issue. "
    "Please wait a moment and try sending your message again. "
    "Your progress has been saved!"
)
FOLLOW_UP_ERROR_MESSAGE = (
    "I'm sorry, I had trouble processing your question. "
    "Feel free to ask again or contact the hiring team directly."
)


class RecordStore(Protocol):  # Persistence operations the orchestrator relies on
    def create(self, job_id: str) -> InterviewRecord: ...

    def get(self, record_id: str) -> InterviewRecord: ...

    def update_fields(self, record_id: str, patch: RecordPatch) -> InterviewRecord: ...

    def append_transcript(self, record_id: str, entries: Sequence[TranscriptEntry]) -> None: ...

    def commit_turn(
        self,
        record_id: str,
        patch: RecordPatch,
        entries: Sequence[TranscriptEntry],
    ) -> InterviewRecord: ...


def _outward_update(decision: DecisionObject) -> Optional[Dict[str, Any]]:
    if decision.qualification_update is None:
        return None
    return decision.qualification_update.model_dump(by_alias=True, exclude_none=True)


class ConversationOrchestrator:
    """Owns each turn: load, prompt, invoke, parse, resolve, persist."""

    def __init__(
        self,
        store: RecordStore,
        router: BackendRouter,
        prompts: PromptBuilder,
        *,
        job_profiles: Optional[Dict[str, JobProfile]] = None,
        default_job_id: str = "fedex-driver-001",
    ) -> None:
        self._store = store
        self._router = router
        self._prompts = prompts
        self._jobs = job_profiles if job_profiles is not None else JOB_PROFILES
        self._default_job_id = default_job_id
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, conversation_id: str) -> asyncio.Lock:  # One lock per conversation id while in use
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[conversation_id] = lock
        return lock

    async def start_conversation(self, job_id: Optional[str] = None) -> ConversationStart:
        job = get_job_profile(job_id or self._default_job_id, self._jobs)
        record = await asyncio.to_thread(self._store.create, job.job_id)
        opening = TranscriptEntry(role="agent", message=job.opening_message)
        await asyncio.to_thread(self._store.append_transcript, record.id, [opening])
        log_event("conversation_start", record.id, phase=record.current_phase)
        return ConversationStart(conversation_id=record.id, first_message=job.opening_message)

    async def process_turn(self, conversation_id: str, user_message: str) -> TurnResult:
        async with self._lock_for(conversation_id):
            record = await asyncio.to_thread(self._store.get, conversation_id)
            job = get_job_profile(record.job_id, self._jobs)
            if record.is_terminal:
                return await self._follow_up(record, job, user_message)
            return await self._main_turn(record, job, user_message)

    async def get_result(self, conversation_id: str) -> ResultSummary:
        record = await asyncio.to_thread(self._store.get, conversation_id)
        job = get_job_profile(record.job_id, self._jobs)
        return build_result_summary(record, job)

    async def _main_turn(self, record: InterviewRecord, job: JobProfile, user_message: str) -> TurnResult:
        started = time.monotonic()
        prompt = self._prompts.build(user_message, record, job)
        history = self._prompts.build_history(record.transcript)
        log_event("turn_start", record.id, phase=record.current_phase)
        try:
            routed = await self._router.invoke(prompt, history, conversation_id=record.id)
        except LlmGatewayError as exc:
            log_event("turn_failed", record.id, level=logging.ERROR, phase=record.current_phase, error=str(exc))
            await self._append_candidate_only(record.id, user_message)
            return TurnResult(
                agent_response=RETRY_MESSAGE,
                qualification_update=None,
                conversation_complete=False,
                status=record.status,
            )

        decision = parse_reply(routed.text)
        resolution = resolve_turn(record, decision, job)
        patch = resolution.patch.model_copy(
            update={
                "model_used": routed.backend_used,
                "processing_time_ms": int((time.monotonic() - started) * 1000),
            }
        )
        now = utc_now()
        entries = [
            TranscriptEntry(role="candidate", message=user_message, timestamp=now),
            TranscriptEntry(role="agent", message=decision.agent_message, timestamp=now),
        ]
        await asyncio.to_thread(self._store.commit_turn, record.id, patch, entries)
        log_event(
            "turn_done",
            record.id,
            backend=routed.backend_used,
            phase=resolution.phase,
            status=resolution.status,
            fallbacks=routed.fallbacks_used,
            ms=patch.processing_time_ms,
            outcome="degraded" if decision.parse_degraded else "ok",
        )
        return TurnResult(
            agent_response=decision.agent_message,
            qualification_update=_outward_update(decision),
            conversation_complete=resolution.conversation_complete,
            status=resolution.status,
        )

    async def _follow_up(self, record: InterviewRecord, job: JobProfile, user_message: str) -> TurnResult:
        prompt = self._prompts.build_follow_up(user_message, record, job)
        try:
            routed = await self._router.invoke(prompt, [], conversation_id=record.id)
        except LlmGatewayError as exc:
            log_event("follow_up_failed", record.id, level=logging.ERROR, status=record.status, error=str(exc))
            await self._append_candidate_only(record.id, user_message)
            message = FOLLOW_UP_ERROR_MESSAGE
        else:
            message = parse_reply(routed.text).agent_message
            now = utc_now()
            await asyncio.to_thread(
                self._store.append_transcript,
                record.id,
                [
                    TranscriptEntry(role="candidate", message=user_message, timestamp=now),
                    TranscriptEntry(role="agent", message=message, timestamp=now),
                ],
            )
            log_event("follow_up_done", record.id, backend=routed.backend_used, status=record.status)
        return TurnResult(
            agent_response=message,
            qualification_update=None,
            conversation_complete=True,
            status=record.status,
            is_follow_up=True,
        )

    async def _append_candidate_only(self, conversation_id: str, user_message: str) -> None:
        entry = TranscriptEntry(role="candidate", message=user_message)
        try:
            await asyncio.to_thread(self._store.append_transcript, conversation_id, [entry])
        except Exception:  # noqa: BLE001
            logger.exception("Failed to save candidate message conversation=%s", conversation_id)


__all__ = [
    "FOLLOW_UP_ERROR_MESSAGE",
    "RETRY_MESSAGE",
    "ConversationOrchestrator",
    "RecordStore",
]
