# =============================================================================
# Ask API: Report Q&A Endpoint
# =============================================================================
#
# POST /ask runs one question through the answer state machine.
#
# FLOW:
#   1. Validate body (question, kind, optional session_id)
#   2. No session_id → create a session so follow-ups can reuse it
#   3. pipeline.answer_with_outcome(...)
#   4. Map the Answer to AskResponse
#
# Always 200: a question that cannot be answered (no quoted company, nothing
# retrieved, model down) still gets a well-formed Answer with "N/A" and the
# failure tag in the body.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from report_qa.api.deps import get_rag_pipeline
from report_qa.models.requests import AskRequest
from report_qa.models.responses import AskResponse
from report_qa.pipeline import RAGPipeline

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Question Answering"])


@router.post(
    "/ask",
    response_model=AskResponse,
    summary="Ask a question about the ingested company reports",
    description=(
        "Put the company name in quotes inside the question. The answer is "
        "typed by `kind` and cites the report pages it was drawn from."
    ),
)
def ask_endpoint(
    request: AskRequest,
    pipeline: RAGPipeline = Depends(get_rag_pipeline),
) -> AskResponse:
    session_id = request.session_id or pipeline.new_session()

    logger.info(
        "Ask: kind=%s session=%s question='%s'",
        request.kind, session_id, request.question[:80],
    )
    outcome = pipeline.answer_with_outcome(
        request.question, request.kind, session_id=session_id,
    )

    return AskResponse.from_answer(
        outcome.answer,
        session_id=session_id,
        failure=outcome.failure.value if outcome.failure else None,
    )
