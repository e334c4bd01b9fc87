# =============================================================================
# API Response Models: Pydantic V2 Schemas
# =============================================================================
#
# Shapes of data going OUT of the API, built from the domain dataclasses.
# =============================================================================

from __future__ import annotations

from pydantic import BaseModel, Field

from report_qa.models.domain import Answer, FinalAnswer


class ReferenceResponse(BaseModel):
    pdf_sha1: str
    page_index: int = Field(description="0-based page index in the source PDF")


class AskResponse(BaseModel):
    """Response for POST /ask. Always 200; failures are carried in the body."""

    session_id: str
    step_by_step_analysis: str
    reasoning_summary: str
    relevant_pages: list[int]
    final_answer: FinalAnswer
    references: list[ReferenceResponse] = Field(default_factory=list)
    failure: str | None = Field(
        default=None,
        description="scope_not_found | no_context | model_invocation | internal",
    )

    @classmethod
    def from_answer(
        cls, answer: Answer, session_id: str, failure: str | None = None,
    ) -> AskResponse:
        return cls(
            session_id=session_id,
            step_by_step_analysis=answer.step_by_step_analysis,
            reasoning_summary=answer.reasoning_summary,
            relevant_pages=answer.relevant_pages,
            final_answer=answer.final_answer,
            references=[
                ReferenceResponse(pdf_sha1=r.pdf_sha1, page_index=r.page_index)
                for r in answer.references
            ],
            failure=failure,
        )


class SessionResponse(BaseModel):
    session_id: str
    message: str


class SessionCountResponse(BaseModel):
    active_sessions: int


class IngestResponse(BaseModel):
    """Response for POST /ingest and /ingest/path (202 Accepted)."""

    task_id: str
    status: str
    message: str


class IngestStatusResponse(BaseModel):
    """
    Response for GET /ingest/{task_id}.

    status is the Celery state: PENDING, STARTED, RETRY, SUCCESS, FAILURE.
    """

    task_id: str
    status: str
    result: dict | None = None
    error: str | None = None


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
