# =============================================================================
# Company Report Q&A Service
# =============================================================================
# Answers natural-language questions about company reports. Passages are
# retrieved by vector similarity and a language model produces a structured,
# page-cited JSON answer. Conversations can be multi-turn via server-held
# sessions.
#
# Package structure:
#   report_qa/
#   ├── agents/       → Answer processor state machine (LangGraph) and the
#   │                    model-output parser
#   ├── api/          → FastAPI route handlers (ask, chat sessions, ingest)
#   ├── db/           → SQLAlchemy engine and the pgvector embedding table
#   ├── models/       → Domain dataclasses and Pydantic V2 API schemas
#   ├── services/     → Parsing, chunking, embedding, vector store,
#   │                    retrieval, session memory, prompts, LLM providers
#   ├── workers/      → Celery ingestion tasks
#   └── pipeline.py   → Ingestion + Q&A facade used by the API and workers
# =============================================================================

__version__ = "0.1.0"
