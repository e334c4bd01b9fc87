# =============================================================================
# RAG Pipeline: Ingestion + Question Answering Facade
# =============================================================================
#
# The upward boundary used by the API and the Celery worker.
#
# INGESTION:  parse → chunk → embed → store
#   ingest(document)             already-parsed Document
#   ingest_file(path, company)   one PDF via Docling
#   ingest_directory(path)       every *.pdf below `path`, sorted, company
#                                name derived from each filename
#   ingest_markdown(text, ...)   wiki/markdown text, line-window chunking
#   rebuild(path)                reset the store, then ingest_directory
#
# Q&A:
#   answer(text, kind, session_id)           → Answer (never raises)
#   answer_with_outcome(text, kind, ...)     → AnswerOutcome
#   answer_questions(questions)              → sequential, stateless
#
# SESSIONS: new_session / clear_session / delete_session /
#           active_session_count, delegated to SessionMemory.
# =============================================================================

from __future__ import annotations

import hashlib
import logging
from collections.abc import Iterable
from pathlib import Path

from report_qa.agents.processor import QuestionProcessor
from report_qa.config import Settings, settings
from report_qa.errors import IngestionError
from report_qa.models.domain import (
    Answer,
    AnswerOutcome,
    Document,
    DocumentContent,
    IngestionSummary,
    MetaInfo,
    Question,
    QuestionKind,
)
from report_qa.services.chunker import TextChunker
from report_qa.services.embedder import EmbeddingGateway
from report_qa.services.llm import ChatProvider
from report_qa.services.memory import SessionMemory
from report_qa.services.parser import company_name_from_filename, parse_pdf
from report_qa.services.retriever import VectorRetriever
from report_qa.services.vectorstore import (
    EmbeddingMetadata,
    TextSegment,
    VectorStore,
)

logger = logging.getLogger(__name__)

MARKDOWN_LINES_PER_CHUNK = 30
MARKDOWN_OVERLAP_LINES = 5


class RAGPipeline:
    def __init__(
        self,
        gateway: EmbeddingGateway,
        store: VectorStore,
        llm: ChatProvider,
        memory: SessionMemory | None = None,
        chunker: TextChunker | None = None,
        top_k: int = 10,
        filter_by_scope: bool = False,
    ) -> None:
        self.gateway = gateway
        self.store = store
        self.memory = memory or SessionMemory()
        self.chunker = chunker or TextChunker()
        self.retriever = VectorRetriever(gateway, store, filter_by_scope=filter_by_scope)
        self.processor = QuestionProcessor(
            self.retriever, llm, memory=self.memory, top_k=top_k,
        )

    # -----------------------------------------------------------------------
    # Ingestion
    # -----------------------------------------------------------------------

    def ingest(self, document: Document) -> IngestionSummary:
        """Chunk (if not already chunked), embed and store a parsed document."""
        meta = document.meta_info
        if not document.content.chunks:
            self.chunker.split_document(document)

        chunks = [c for c in document.content.chunks if c.text and c.text.strip()]
        if chunks:
            vectors = self.gateway.embed_batch([c.text for c in chunks])
            if len(vectors) != len(chunks):
                raise IngestionError(
                    f"Embedding count {len(vectors)} != chunk count {len(chunks)} "
                    f"for '{meta.file_name}'"
                )
            segments = [
                TextSegment(
                    text=chunk.text,
                    metadata=EmbeddingMetadata(
                        chunk_id=chunk.id,
                        page=chunk.page,
                        company_name=meta.company_name,
                        sha1=meta.sha1,
                        type=chunk.type,
                    ),
                )
                for chunk in chunks
            ]
            self.store.add_all(vectors, segments)
        else:
            logger.warning("Document '%s' produced no chunks", meta.file_name)

        summary = IngestionSummary(
            file_name=meta.file_name,
            company_name=meta.company_name,
            sha1=meta.sha1,
            page_count=len(document.content.pages),
            chunk_count=len(chunks),
        )
        logger.info(
            "Ingested '%s' (%s): %d pages, %d chunks",
            summary.file_name, summary.company_name,
            summary.page_count, summary.chunk_count,
        )
        return summary

    def ingest_file(
        self, path: str | Path, company_name: str | None = None,
    ) -> IngestionSummary:
        path = Path(path)
        company = company_name or company_name_from_filename(path.name)
        logger.info("=== Ingesting %s (company=%s) ===", path.name, company)

        document = parse_pdf(path, company)
        return self.ingest(document)

    def ingest_directory(self, directory: str | Path) -> list[IngestionSummary]:
        """Ingest every PDF below `directory`, in sorted path order."""
        root = Path(directory)
        if not root.is_dir():
            raise FileNotFoundError(f"Directory not found: {directory}")

        pdfs = sorted(
            p for p in root.rglob("*") if p.is_file() and p.suffix.lower() == ".pdf"
        )
        logger.info("Found %d PDF files under %s", len(pdfs), root)

        summaries = []
        for pdf in pdfs:
            try:
                summaries.append(self.ingest_file(pdf))
            except Exception as exc:
                raise IngestionError(f"Failed to ingest '{pdf.name}': {exc}") from exc
        return summaries

    def ingest_markdown(
        self,
        text: str,
        company_name: str,
        file_name: str,
        sha1: str | None = None,
    ) -> IngestionSummary:
        """Ingest already-fetched markdown (e.g. a wiki page)."""
        chunks = self.chunker.split_markdown(
            text, MARKDOWN_LINES_PER_CHUNK, MARKDOWN_OVERLAP_LINES,
        )
        document = Document(
            meta_info=MetaInfo(
                sha1=sha1 or hashlib.sha1(text.encode("utf-8")).hexdigest(),
                company_name=company_name,
                file_name=file_name,
            ),
            content=DocumentContent(chunks=chunks),
        )
        return self.ingest(document)

    def rebuild(self, directory: str | Path) -> list[IngestionSummary]:
        """Drop every stored vector and re-ingest `directory`."""
        logger.warning("Rebuilding vector store from %s", directory)
        self.store.reset()
        return self.ingest_directory(directory)

    # -----------------------------------------------------------------------
    # Question Answering
    # -----------------------------------------------------------------------

    def answer_with_outcome(
        self,
        text: str,
        kind: QuestionKind | str = QuestionKind.STRING,
        session_id: str | None = None,
    ) -> AnswerOutcome:
        question = Question(text=text, kind=QuestionKind.coerce(kind))
        return self.processor.process(question, session_id)

    def answer(
        self,
        text: str,
        kind: QuestionKind | str = QuestionKind.STRING,
        session_id: str | None = None,
    ) -> Answer:
        return self.answer_with_outcome(text, kind, session_id).answer

    def answer_questions(self, questions: Iterable[Question]) -> list[Answer]:
        """Answer questions one after another, each without a session."""
        questions = list(questions)
        answers = []
        for index, question in enumerate(questions, start=1):
            logger.info("Answering question %d/%d", index, len(questions))
            answers.append(self.processor.process(question).answer)
        return answers

    # -----------------------------------------------------------------------
    # Sessions
    # -----------------------------------------------------------------------

    def new_session(self) -> str:
        return self.memory.create_session()

    def clear_session(self, session_id: str) -> None:
        self.memory.clear_session(session_id)

    def delete_session(self, session_id: str) -> None:
        self.memory.delete_session(session_id)

    def active_session_count(self) -> int:
        return self.memory.active_session_count()


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

_pipeline: RAGPipeline | None = None


def create_pipeline(config: Settings | None = None) -> RAGPipeline:
    """Wire a pipeline from configuration (real providers and store)."""
    from report_qa.services.embedder import OpenAIEmbeddingProvider
    from report_qa.services.llm import create_llm_provider
    from report_qa.services.vectorstore import create_vector_store

    cfg = config or settings
    gateway = EmbeddingGateway(
        OpenAIEmbeddingProvider(config=cfg), batch_size=cfg.embedding_batch_size,
    )
    return RAGPipeline(
        gateway=gateway,
        store=create_vector_store(cfg),
        llm=create_llm_provider(cfg),
        memory=SessionMemory(
            max_messages=cfg.session_max_messages,
            session_timeout=cfg.session_timeout_seconds,
            auto_create=cfg.session_auto_create,
        ),
        chunker=TextChunker(cfg.chunk_size, cfg.chunk_overlap, cfg.max_chunk_size),
        top_k=cfg.retrieval_top_k,
        filter_by_scope=cfg.retrieval_filter_by_scope,
    )


def get_pipeline() -> RAGPipeline:
    """Lazy singleton shared by API requests and worker tasks in one process."""
    global _pipeline
    if _pipeline is None:
        _pipeline = create_pipeline()
    return _pipeline
