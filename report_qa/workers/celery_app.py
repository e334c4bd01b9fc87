# =============================================================================
# Celery Application Configuration
# =============================================================================
#
# Ingestion (Docling parsing, embedding calls, bulk vector inserts) is slow,
# so the API only queues it. Workers run the report_qa.workers.tasks module.
#
# ┌──────────┐     ┌───────┐     ┌──────────────┐     ┌───────┐
# │ FastAPI  │────▶│ Redis │────▶│ Celery Worker│────▶│ Redis │
# │(producer)│     │(broker)│    │ (consumer)   │     │(result)│
# └──────────┘     └───────┘     └──────────────┘     └───────┘
#    db 0 ──────────┘                                    └── db 1
#
# Start a worker with:
#   celery -A report_qa.workers.celery_app worker --loglevel=info
# =============================================================================

from celery import Celery
from celery.signals import setup_logging

from report_qa.config import settings
from report_qa.logging_config import configure_logging

celery_app = Celery(
    "report_qa.workers",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["report_qa.workers.tasks"],
)

celery_app.conf.update(
    # JSON only: pickle can execute code on deserialization.
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    # Ack after completion so a crashed worker's task is re-queued.
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Long-running tasks: one at a time per worker process.
    worker_prefetch_multiplier=1,

    task_soft_time_limit=600,
    task_time_limit=900,

    result_expires=3600,
    task_track_started=True,
)


@setup_logging.connect
def _configure_worker_logging(**kwargs) -> None:
    # Use the application's logging setup instead of Celery's default.
    configure_logging()
