# =============================================================================
# Celery Task Definitions: Report Ingestion
# =============================================================================
#
# ingest_report(file_path, company_name=None)
#   Runs RAGPipeline.ingest_file in a worker: Docling parse → chunk →
#   embed → store. Returns the IngestionSummary as a JSON-safe dict.
#
# ingest_directory(directory, rebuild=False)
#   Runs RAGPipeline.ingest_directory (or rebuild) over every PDF below a
#   server-side directory. Returns per-file summaries plus totals.
#
# Workers are synchronous, like the rest of the core, and share the
# pipeline singleton within a worker process.
#
# RETRY STRATEGY:
# max_retries=3 with exponential backoff (60s, 120s, 240s) for transient
# errors (embedding API rate limits, database connection drops). A missing
# file is not transient and fails immediately.
# Directory ingestion is not retried: files stored before a failure would
# be stored again.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import asdict

from report_qa.pipeline import get_pipeline
from report_qa.workers.celery_app import celery_app

logger = logging.getLogger(__name__)

RETRY_BASE_DELAY = 60


@celery_app.task(
    bind=True,
    name="ingest_report",
    max_retries=3,
    default_retry_delay=RETRY_BASE_DELAY,
)
def ingest_report(
    self,
    file_path: str,
    company_name: str | None = None,
) -> dict:
    """
    Ingest one PDF report into the vector store.

    Args:
        self: Bound Celery task (provides request.id and retries).
        file_path: Path to the PDF on a filesystem the worker can read.
        company_name: Scope name stored with every chunk; derived from the
            filename when omitted.

    Returns:
        dict with file_name, company_name, sha1, page_count, chunk_count.
    """
    task_id = self.request.id
    logger.info(
        "[%s] Starting ingestion: file=%s company=%s (attempt %d)",
        task_id, file_path, company_name, self.request.retries + 1,
    )

    try:
        summary = get_pipeline().ingest_file(file_path, company_name)
    except FileNotFoundError:
        logger.error("[%s] File not found: %s", task_id, file_path)
        raise
    except Exception as exc:
        logger.exception("[%s] Ingestion failed for %s", task_id, file_path)
        countdown = RETRY_BASE_DELAY * (2 ** self.request.retries)
        raise self.retry(exc=exc, countdown=countdown)

    result = asdict(summary)
    logger.info("[%s] Ingestion complete: %s", task_id, result)
    return result


@celery_app.task(bind=True, name="ingest_directory")
def ingest_directory(self, directory: str, rebuild: bool = False) -> dict:
    """
    Ingest every PDF below `directory`; company names come from filenames.

    With `rebuild`, the vector store is cleared first.
    """
    task_id = self.request.id
    logger.info(
        "[%s] Starting directory ingestion: %s (rebuild=%s)",
        task_id, directory, rebuild,
    )

    pipeline = get_pipeline()
    try:
        if rebuild:
            summaries = pipeline.rebuild(directory)
        else:
            summaries = pipeline.ingest_directory(directory)
    except Exception:
        logger.exception("[%s] Directory ingestion failed for %s", task_id, directory)
        raise

    result = {
        "directory": directory,
        "file_count": len(summaries),
        "chunk_count": sum(s.chunk_count for s in summaries),
        "files": [asdict(s) for s in summaries],
    }
    logger.info(
        "[%s] Directory ingestion complete: %d files, %d chunks",
        task_id, result["file_count"], result["chunk_count"],
    )
    return result
