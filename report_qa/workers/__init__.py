# =============================================================================
# Workers Package: Celery Background Ingestion
# =============================================================================
# celery_app.py → Celery application (Redis broker + result backend)
# tasks.py      → ingest_report task (parse → chunk → embed → store)
# =============================================================================
