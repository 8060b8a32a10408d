"""Qualification interview engine: phase rules, prompts, parsing and scoring."""
from .job_profile import DEFAULT_JOB, JOB_PROFILES, JobNotFound, JobProfile, get_job_profile
from .models import ConversationStart, DecisionObject, InterviewRecord, RecordPatch, ResultSummary, TurnResult, apply_patch
from .orchestrator import ConversationOrchestrator, RecordStore
from .prompt_builder import PromptBuilder, StaticContent, build_history
from .response_parser import StructuredReplyError, parse_reply, parse_strict
from .scoring import build_result_summary, compute_overall_score
from .state_machine import TurnResolution, resolve_turn

__all__ = [
    "DEFAULT_JOB",
    "JOB_PROFILES",
    "ConversationOrchestrator",
    "ConversationStart",
    "DecisionObject",
    "InterviewRecord",
    "JobNotFound",
    "JobProfile",
    "PromptBuilder",
    "RecordPatch",
    "RecordStore",
    "ResultSummary",
    "StaticContent",
    "StructuredReplyError",
    "TurnResolution",
    "TurnResult",
    "apply_patch",
    "build_history",
    "build_result_summary",
    "compute_overall_score",
    "get_job_profile",
    "parse_reply",
    "parse_strict",
    "resolve_turn",
]
