"""FastAPI routes for exam session control."""
from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request

from api.schemas import (
    EventReq,
    EventResp,
    ExamConfigResp,
    ReattemptReq,
    ReattemptResp,
    SessionCreated,
    SubmitReq,
    SubmitResp,
)
from exam.question_pool import public_pool
from services.registry import ReattemptRejected, ResultSubmission, SessionNotFound, SessionRegistry


router = APIRouter(prefix="/api")


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def _not_found(session_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"session not found: {session_id}")


@router.post("/sessions", response_model=SessionCreated)
def create_session(registry: SessionRegistry = Depends(get_registry)) -> SessionCreated:
    return SessionCreated(session_id=registry.issue_session())


@router.post("/event", response_model=EventResp)
def post_event(req: EventReq, registry: SessionRegistry = Depends(get_registry)) -> EventResp:
    try:
        ack = registry.record_event(req.session_id, req.event_type, req.fields)
    except SessionNotFound as exc:
        raise _not_found(req.session_id) from exc
    return EventResp(acknowledged=ack.acknowledged, should_finish=ack.should_finish)


@router.post("/submit", response_model=SubmitResp)
def submit(req: SubmitReq, registry: SessionRegistry = Depends(get_registry)) -> SubmitResp:
    submission = ResultSubmission.model_validate(req.model_dump(exclude={"session_id"}))
    try:
        outcome = registry.submit_result(req.session_id, submission)
    except SessionNotFound as exc:
        raise _not_found(req.session_id) from exc
    return SubmitResp(accepted=outcome.accepted, passed=outcome.passed)


@router.post("/reattempt", response_model=ReattemptResp)
def reattempt(req: ReattemptReq, registry: SessionRegistry = Depends(get_registry)) -> ReattemptResp:
    try:
        accepted = registry.request_reattempt(req.session_id, req.candidate_name)
    except SessionNotFound as exc:
        raise _not_found(req.session_id) from exc
    except ReattemptRejected as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return ReattemptResp(accepted=accepted)


@router.get("/exam/config", response_model=ExamConfigResp)
def exam_config(registry: SessionRegistry = Depends(get_registry)) -> ExamConfigResp:
    return ExamConfigResp(**registry.config.model_dump())


@router.get("/exam/questions")
def exam_questions(request: Request) -> Dict[str, List[Dict[str, Any]]]:
    pool = getattr(request.app.state, "questions", None)
    if not pool:
        raise HTTPException(status_code=503, detail="question pool unavailable")
    return {"questions": public_pool(pool)}
