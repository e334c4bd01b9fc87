# =============================================================================
# Chat Session API
# =============================================================================
#
#   POST   /chat/new              → new session id
#   POST   /chat/{id}/clear       → empty history, keep the id
#   DELETE /chat/{id}             → remove the session
#   GET    /chat/sessions/count   → live sessions (expired ones swept first)
#
# Clearing or deleting an unknown id is not an error.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from report_qa.api.deps import get_rag_pipeline
from report_qa.models.responses import SessionCountResponse, SessionResponse
from report_qa.pipeline import RAGPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["Chat Sessions"])


@router.post("/new", response_model=SessionResponse, summary="Start a conversation")
def new_session(pipeline: RAGPipeline = Depends(get_rag_pipeline)) -> SessionResponse:
    session_id = pipeline.new_session()
    return SessionResponse(session_id=session_id, message="Session created")


@router.get(
    "/sessions/count",
    response_model=SessionCountResponse,
    summary="Count active sessions",
)
def session_count(
    pipeline: RAGPipeline = Depends(get_rag_pipeline),
) -> SessionCountResponse:
    return SessionCountResponse(active_sessions=pipeline.active_session_count())


@router.post(
    "/{session_id}/clear",
    response_model=SessionResponse,
    summary="Clear a conversation's history",
)
def clear_session(
    session_id: str,
    pipeline: RAGPipeline = Depends(get_rag_pipeline),
) -> SessionResponse:
    pipeline.clear_session(session_id)
    return SessionResponse(session_id=session_id, message="Session cleared")


@router.delete(
    "/{session_id}",
    response_model=SessionResponse,
    summary="Delete a conversation",
)
def delete_session(
    session_id: str,
    pipeline: RAGPipeline = Depends(get_rag_pipeline),
) -> SessionResponse:
    pipeline.delete_session(session_id)
    return SessionResponse(session_id=session_id, message="Session deleted")
