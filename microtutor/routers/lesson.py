"""
Micro-Tutor: Lesson Session Router
HTTP surface over LessonGateway. Sessions live in process memory only and
expire after SESSION_TIMEOUT_MINUTES of inactivity.
"""

import logging
from datetime import datetime, timezone, timedelta
from typing import Awaitable, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from microtutor.config import SESSION_TIMEOUT_MINUTES, TOTAL_QUESTIONS
from microtutor.errors import (
    ContentGenerationError, InvalidTransition, MissingInput, TurnInProgress,
)
from microtutor.state.session import Phase, TurnResult
from microtutor.tutor.gateway import LessonGateway, LLMCallFunc
from microtutor.tutor.llm import get_llm

logger = logging.getLogger("microtutor.routers.lesson")
router = APIRouter(prefix="/api/lesson", tags=["lesson"])


# ─── Session Registry ────────────────────────────────────────────────────────

class SessionRegistry:
    """session_id → gateway, with idle expiry."""

    def __init__(self, timeout_minutes: int = SESSION_TIMEOUT_MINUTES):
        self._timeout = timedelta(minutes=timeout_minutes)
        self._sessions: dict[str, tuple[LessonGateway, datetime]] = {}

    def add(self, gateway: LessonGateway) -> None:
        self._purge()
        self._sessions[gateway.session_id] = (gateway, datetime.now(timezone.utc))

    def get(self, session_id: str) -> Optional[LessonGateway]:
        self._purge()
        entry = self._sessions.get(session_id)
        if entry is None:
            return None
        gateway = entry[0]
        self._sessions[session_id] = (gateway, datetime.now(timezone.utc))
        return gateway

    def remove(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def _purge(self) -> None:
        cutoff = datetime.now(timezone.utc) - self._timeout
        expired = [sid for sid, (gw, seen) in self._sessions.items()
                   if seen < cutoff and not gw.snapshot()["turn_in_progress"]]
        for sid in expired:
            logger.info(f"Session {sid} expired")
            del self._sessions[sid]

    def __len__(self) -> int:
        return len(self._sessions)


_registry = SessionRegistry()


def get_registry() -> SessionRegistry:
    return _registry


def get_llm_call() -> LLMCallFunc:
    return get_llm().generate_json


# ─── Request/Response Models ─────────────────────────────────────────────────

class SelectRequest(BaseModel):
    option_id: int


class CommandRequest(BaseModel):
    text: str


class StartRequest(BaseModel):
    total_questions: int = TOTAL_QUESTIONS


class TurnResponse(BaseModel):
    session_id: str
    phase: str
    state: dict
    interface: dict
    needs_attention: bool = False


def _response(gateway: LessonGateway, result: TurnResult) -> TurnResponse:
    return TurnResponse(session_id=gateway.session_id, **result.to_dict())


async def _run(gateway: LessonGateway, turn: Awaitable[TurnResult]):
    """Await one gateway turn and map tutor errors onto HTTP status codes."""
    try:
        result = await turn
    except ContentGenerationError as e:
        # Generic, retryable; never exposes state or score
        return JSONResponse(
            status_code=503,
            content={"detail": e.message, "retryable": e.retryable},
        )
    except MissingInput as e:
        raise HTTPException(422, str(e))
    except (InvalidTransition, TurnInProgress) as e:
        raise HTTPException(409, str(e))
    return _response(gateway, result)


def _lookup(session_id: str, registry: SessionRegistry) -> LessonGateway:
    gateway = registry.get(session_id)
    if gateway is None:
        raise HTTPException(404, "Session not found")
    return gateway


# ─── Endpoints ───────────────────────────────────────────────────────────────

@router.post("/session/start", response_model=TurnResponse)
async def start_session(
    body: Optional[StartRequest] = None,
    registry: SessionRegistry = Depends(get_registry),
    llm_call: LLMCallFunc = Depends(get_llm_call),
):
    total = body.total_questions if body else TOTAL_QUESTIONS
    if total < 1:
        raise HTTPException(422, "total_questions must be at least 1")
    gateway = LessonGateway(llm_call, total_questions=total)
    response = await _run(gateway, gateway.begin())
    if isinstance(response, TurnResponse):
        registry.add(gateway)
        logger.info(f"Session {gateway.session_id} started ({total} questions)")
    return response


@router.get("/session/{session_id}")
async def get_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    gateway = _lookup(session_id, registry)
    snapshot = gateway.snapshot()
    if gateway.last_result is not None:
        snapshot["last_turn"] = gateway.last_result.to_dict()
    return snapshot


@router.post("/session/{session_id}/continue", response_model=TurnResponse)
async def continue_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    gateway = _lookup(session_id, registry)
    return await _run(gateway, gateway.continue_())


@router.post("/session/{session_id}/select", response_model=TurnResponse)
async def select_option(
    session_id: str,
    body: SelectRequest,
    registry: SessionRegistry = Depends(get_registry),
):
    gateway = _lookup(session_id, registry)
    return await _run(gateway, gateway.select_option(body.option_id))


@router.post("/session/{session_id}/command", response_model=TurnResponse)
async def submit_command(
    session_id: str,
    body: CommandRequest,
    registry: SessionRegistry = Depends(get_registry),
):
    gateway = _lookup(session_id, registry)
    return await _run(gateway, gateway.submit_command(body.text))


@router.post("/session/{session_id}/exit", response_model=TurnResponse)
async def exit_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    gateway = _lookup(session_id, registry)
    return await _run(gateway, gateway.exit())


@router.post("/session/{session_id}/restart", response_model=TurnResponse)
async def restart_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    gateway = _lookup(session_id, registry)
    return await _run(gateway, gateway.restart())


@router.delete("/session/{session_id}")
async def end_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    """Acknowledge a completed lesson and drop the session."""
    gateway = _lookup(session_id, registry)
    if gateway.phase != Phase.COMPLETED:
        raise HTTPException(409, f"Session is in '{gateway.phase.value}'; only a completed lesson can be ended")
    if gateway.snapshot()["turn_in_progress"]:
        raise HTTPException(409, "A turn is already in progress for this session")
    registry.remove(session_id)
    logger.info(f"Session {session_id} ended")
    return {"session_id": session_id, "status": "ended"}
