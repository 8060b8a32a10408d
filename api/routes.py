"""FastAPI routes for the screening chat."""
from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request

from api.schemas import HealthResp, MessageReq, MessageResp, ResultResp, StartReq, StartResp
from interview import ConversationOrchestrator, JobNotFound
from llm_gateway import BackendRouter
from storage.records import RecordNotFound

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/chat")
health_router = APIRouter(prefix="/api")


def _orchestrator(request: Request) -> ConversationOrchestrator:
    return request.app.state.orchestrator


def _backend_router(request: Request) -> BackendRouter:
    return request.app.state.backend_router


@router.post("/start", response_model=StartResp, response_model_by_alias=True)
async def start_chat(request: Request, req: StartReq | None = None) -> StartResp:
    job_id = req.job_id if req else None
    try:
        started = await _orchestrator(request).start_conversation(job_id)
    except JobNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return StartResp(conversation_id=started.conversation_id, message=started.first_message)


@router.post("/message", response_model=MessageResp, response_model_by_alias=True)
async def send_message(request: Request, req: MessageReq) -> MessageResp:
    try:
        turn = await _orchestrator(request).process_turn(req.conversation_id, req.message)
    except (RecordNotFound, JobNotFound) as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return MessageResp.from_turn(req.conversation_id, turn)


@router.get("/result/{conversation_id}", response_model=ResultResp, response_model_by_alias=True)
async def get_result(request: Request, conversation_id: str) -> ResultResp:
    try:
        summary = await _orchestrator(request).get_result(conversation_id)
    except (RecordNotFound, JobNotFound) as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return ResultResp.from_summary(summary)


@health_router.get("/health", response_model=HealthResp)
async def health(request: Request) -> HealthResp:
    backend_router = _backend_router(request)
    chain = backend_router.chain_for()
    return HealthResp(
        backends=[route.name for route in chain],
        fallback_enabled=backend_router.fallback_enabled,
        metrics=backend_router.metrics.snapshot(),
    )
