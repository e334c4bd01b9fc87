# =============================================================================
# Application Configuration: Pydantic Settings
# =============================================================================
#
# All runtime knobs live on a single `Settings` object loaded with this
# priority (highest first):
#   1. Environment variables (e.g., `CHUNK_SIZE=400`)
#   2. Values from the .env file
#   3. Default values defined below
#
# Defaults mirror a local development setup: PostgreSQL + pgvector on
# localhost, Redis for Celery, and an OpenAI-compatible model endpoint.
#
# USAGE:
#   from report_qa.config import settings
#   print(settings.chunk_size)
# =============================================================================

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    In production, override via environment variables or a .env file.
    """

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------
    app_name: str = "Company Report Q&A Service"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # LLM Configuration: Multi-Provider
    # -------------------------------------------------------------------------
    # Two provider families are supported:
    #   - "openai_compatible": OpenAI itself or any OpenAI-compatible API
    #     (DashScope compatible mode, DeepSeek, GLM, ...)
    #   - "anthropic": Claude via the native Anthropic SDK
    #
    # Example configs:
    #   OpenAI:     provider=openai_compatible, model=gpt-4o-mini
    #   DashScope:  provider=openai_compatible,
    #               base_url=https://dashscope.aliyuncs.com/compatible-mode/v1,
    #               model=qwen-plus
    #   Claude:     provider=anthropic, model=claude-sonnet-4-5
    # -------------------------------------------------------------------------
    llm_provider: str = "openai_compatible"
    llm_base_url: str | None = None
    llm_api_key: str | None = None  # Overrides provider-specific key if set
    llm_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.5
    llm_max_tokens: int = 2000

    openai_api_key: str = ""
    anthropic_api_key: str = ""

    # -------------------------------------------------------------------------
    # Embedding Configuration
    # -------------------------------------------------------------------------
    # embedding_dimensions fixes the vector size D of the store. Changing it
    # for an existing pgvector table requires rebuilding the table.
    #
    # embedding_batch_size is the provider's per-request cap. DashScope's
    # text-embedding-v3 accepts at most 10 inputs per call; OpenAI accepts far
    # more.
    # -------------------------------------------------------------------------
    embedding_model: str = "text-embedding-3-large"
    embedding_base_url: str | None = None
    embedding_dimensions: int = 1536
    embedding_batch_size: int = 100

    # -------------------------------------------------------------------------
    # Vector Store Configuration: Pluggable Backend
    # -------------------------------------------------------------------------
    # Options:
    #   - "pgvector": PostgreSQL extension (default)
    #   - "chroma": ChromaDB (in-process or client/server via chroma_url)
    #   - "memory": in-process store, nothing persisted
    # -------------------------------------------------------------------------
    vectorstore_type: str = "pgvector"

    pgvector_host: str = "localhost"
    pgvector_port: int = 5432
    pgvector_database: str = "rag_db"
    pgvector_user: str = "postgres"
    pgvector_password: str = ""
    pgvector_table: str = "rag_embeddings"

    chroma_url: str | None = None
    chroma_collection: str = "report_chunks"

    # -------------------------------------------------------------------------
    # Chunking Configuration
    # -------------------------------------------------------------------------
    # Token counts are estimates (see services/chunker.py), not tokenizer
    # output. chunk_size is the target, max_chunk_size the hard ceiling.
    # -------------------------------------------------------------------------
    chunk_size: int = 300
    chunk_overlap: int = 50
    max_chunk_size: int = 500

    # -------------------------------------------------------------------------
    # Retrieval Configuration
    # -------------------------------------------------------------------------
    # retrieval_filter_by_scope: pass the company extracted from the question
    # to the vector store as a metadata filter. Off by default: the quoted
    # company name in a question does not always match the name recorded at
    # ingestion, and a mismatch would empty the result set.
    # -------------------------------------------------------------------------
    retrieval_top_k: int = 10
    retrieval_filter_by_scope: bool = False

    # -------------------------------------------------------------------------
    # Session Memory
    # -------------------------------------------------------------------------
    # session_max_messages counts every role (system, user, AI).
    # 20 messages = the system prompt plus roughly 9-10 question/answer turns.
    # -------------------------------------------------------------------------
    session_max_messages: int = 20
    session_timeout_seconds: float = 1800.0
    session_auto_create: bool = True

    # -------------------------------------------------------------------------
    # Celery / Redis
    # -------------------------------------------------------------------------
    #   db 0 = Celery broker (task queue)
    #   db 1 = Celery result backend (task results)
    # -------------------------------------------------------------------------
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/1"

    # -------------------------------------------------------------------------
    # File Upload
    # -------------------------------------------------------------------------
    upload_dir: str = "data/uploads"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def database_url(self) -> str:
        """SQLAlchemy URL for the pgvector database (sync psycopg2 driver)."""
        return (
            f"postgresql+psycopg2://{self.pgvector_user}:{self.pgvector_password}"
            f"@{self.pgvector_host}:{self.pgvector_port}/{self.pgvector_database}"
        )


@lru_cache
def get_settings() -> Settings:
    """
    Create and cache a Settings instance.

    In tests, override with FastAPI's dependency_overrides or pass a
    Settings object straight into the factory functions that accept one.
    """
    return Settings()


# ---------------------------------------------------------------------------
# Module-level convenience instance
# ---------------------------------------------------------------------------
settings = get_settings()
