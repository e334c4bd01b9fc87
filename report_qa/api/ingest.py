# =============================================================================
# Ingestion API: Report Upload and Status Tracking
# =============================================================================
#
#   POST /ingest            multipart PDF + company_name → Celery task
#   POST /ingest/path       server-side PDF path        → Celery task
#   POST /ingest/directory  server-side directory       → Celery task
#   GET  /ingest/{task_id}  Celery task status
#
# All POST endpoints return 202 Accepted with a task_id: reports are not
# searchable until the worker finishes, so clients poll the status endpoint.
# =============================================================================

from __future__ import annotations

import logging
import uuid
from pathlib import Path

from celery.result import AsyncResult
from fastapi import APIRouter, File, Form, HTTPException, UploadFile

from report_qa.config import settings
from report_qa.models.requests import IngestDirectoryRequest, IngestPathRequest
from report_qa.models.responses import IngestResponse, IngestStatusResponse
from report_qa.services.parser import company_name_from_filename
from report_qa.workers.tasks import ingest_directory, ingest_report

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Ingestion"])


@router.post(
    "/ingest",
    response_model=IngestResponse,
    status_code=202,
    summary="Upload a company report PDF for indexing",
)
def ingest_upload(
    file: UploadFile = File(..., description="Company report in PDF format"),
    company_name: str | None = Form(
        default=None,
        description="Company name used as retrieval scope; derived from the filename if omitted",
    ),
) -> IngestResponse:
    if not file.filename or not file.filename.lower().endswith(".pdf"):
        raise HTTPException(
            status_code=400,
            detail="Only PDF files are accepted. Please upload a .pdf file.",
        )

    content = file.file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")

    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)

    # Prefix avoids collisions between uploads with the same name.
    file_path = upload_dir / f"{uuid.uuid4().hex[:8]}_{Path(file.filename).name}"
    file_path.write_bytes(content)
    logger.info("Saved upload: %s (%d bytes) → %s", file.filename, len(content), file_path)

    company = company_name or company_name_from_filename(file.filename)
    return _dispatch(file_path, company)


@router.post(
    "/ingest/path",
    response_model=IngestResponse,
    status_code=202,
    summary="Index a report PDF already on the server",
)
def ingest_path(request: IngestPathRequest) -> IngestResponse:
    path = Path(request.file_path)
    if not path.is_file():
        raise HTTPException(status_code=404, detail=f"File not found: {request.file_path}")
    if path.suffix.lower() != ".pdf":
        raise HTTPException(status_code=400, detail="Only PDF files can be ingested.")

    company = request.company_name or company_name_from_filename(path.name)
    return _dispatch(path, company)


@router.post(
    "/ingest/directory",
    response_model=IngestResponse,
    status_code=202,
    summary="Index every report PDF below a server-side directory",
)
def ingest_directory_endpoint(request: IngestDirectoryRequest) -> IngestResponse:
    directory = Path(request.directory)
    if not directory.is_dir():
        raise HTTPException(
            status_code=404, detail=f"Directory not found: {request.directory}",
        )

    task = ingest_directory.delay(directory=str(directory), rebuild=request.rebuild)
    logger.info(
        "Dispatched directory ingestion task %s for %s (rebuild=%s)",
        task.id, directory, request.rebuild,
    )
    return IngestResponse(
        task_id=task.id,
        status="processing",
        message=f"Reports under '{directory}' queued for ingestion.",
    )


@router.get(
    "/ingest/{task_id}",
    response_model=IngestStatusResponse,
    summary="Check report ingestion status",
)
def ingest_status(task_id: str) -> IngestStatusResponse:
    result = AsyncResult(task_id, app=ingest_report.app)
    status = result.status

    payload: dict | None = None
    error: str | None = None
    if status == "SUCCESS":
        payload = result.result or {}
    elif status == "FAILURE":
        error = str(result.result) if result.result else "Unknown error"

    return IngestStatusResponse(task_id=task_id, status=status, result=payload, error=error)


def _dispatch(path: Path, company_name: str) -> IngestResponse:
    task = ingest_report.delay(file_path=str(path), company_name=company_name)
    logger.info("Dispatched ingestion task %s for %s (%s)", task.id, path.name, company_name)
    return IngestResponse(
        task_id=task.id,
        status="processing",
        message=f"Report '{path.name}' queued for ingestion as '{company_name}'.",
    )
