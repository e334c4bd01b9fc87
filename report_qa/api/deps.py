# =============================================================================
# API Dependencies
# =============================================================================
#
# get_rag_pipeline() resolves the process-wide RAGPipeline. Building it
# needs API keys and a reachable vector store; a configuration problem is
# reported as 503 instead of a bare 500.
#
# Tests replace it via app.dependency_overrides[get_rag_pipeline].
# =============================================================================

from __future__ import annotations

import logging

from fastapi import HTTPException

from report_qa.pipeline import RAGPipeline, get_pipeline

logger = logging.getLogger(__name__)


def get_rag_pipeline() -> RAGPipeline:
    try:
        return get_pipeline()
    except ValueError as exc:
        logger.error("Pipeline is not configured: %s", exc)
        raise HTTPException(status_code=503, detail=str(exc)) from exc
