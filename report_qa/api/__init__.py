# =============================================================================
# API Package: FastAPI Routers
# =============================================================================
# ask.py    → POST /ask
# chat.py   → session lifecycle under /chat
# ingest.py → POST /ingest, POST /ingest/path, GET /ingest/{task_id}
# deps.py   → shared dependencies (pipeline resolution)
#
# Endpoints are plain `def`: FastAPI runs them in its threadpool, so each
# request gets its own worker thread and the synchronous core never blocks
# the event loop.
# =============================================================================
