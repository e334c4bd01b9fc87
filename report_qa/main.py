# =============================================================================
# FastAPI Application Entry Point
# =============================================================================
#
# Run with:
#   uvicorn report_qa.main:app --reload
#
# Routers:
#   /ask     → question answering (api/ask.py)
#   /chat    → session lifecycle (api/chat.py)
#   /ingest  → report ingestion via Celery (api/ingest.py)
#   /health  → liveness probe
#
# The pipeline (model clients, vector store) is built lazily on the first
# request that needs it, so /health and /docs work without credentials.
# =============================================================================

import logging

from fastapi import FastAPI

from report_qa.api import ask, chat, ingest
from report_qa.config import settings
from report_qa.logging_config import configure_logging
from report_qa.models.responses import HealthResponse

configure_logging()

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description=(
        "Retrieval-augmented Q&A over company reports: typed, page-cited "
        "answers with multi-turn sessions."
    ),
)

app.include_router(ask.router)
app.include_router(chat.router)
app.include_router(ingest.router)


@app.get("/health", response_model=HealthResponse, tags=["Health"])
def health() -> HealthResponse:
    return HealthResponse(
        status="ok", service=settings.app_name, version=settings.app_version,
    )


logger.info(
    "%s v%s ready (vectorstore=%s, llm=%s)",
    settings.app_name, settings.app_version,
    settings.vectorstore_type, settings.llm_provider,
)
