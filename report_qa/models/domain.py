# =============================================================================
# Domain Models: Documents, Chunks, Retrieval Results, Answers
# =============================================================================
#
# Plain dataclasses shared by the services, the answer processor and the
# pipeline. API-facing schemas live in requests.py / responses.py and are
# built from these.
#
# LIFECYCLE:
#   Document  → created by the parser with pages, chunks filled by the
#               chunker, never mutated once stored
#   Chunk     → created during chunking, embedded, stored
#   RetrievalResult → ephemeral, one per vector match
#   Answer    → produced once per question
# =============================================================================

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Union

# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@dataclass
class Page:
    """A single source page. `page` is 1-based."""

    page: int
    text: str


@dataclass
class Chunk:
    """
    A bounded text segment derived from one page.

    `id` is sequential across the whole document (not per page).
    `table_id` is only set for serialized tables.
    """

    id: int
    page: int
    text: str
    length_tokens: int
    type: str = "content"
    table_id: str | None = None


@dataclass
class MetaInfo:
    sha1: str
    company_name: str
    file_name: str


@dataclass
class DocumentContent:
    pages: list[Page] = field(default_factory=list)
    chunks: list[Chunk] = field(default_factory=list)


@dataclass
class Document:
    """A parsed company report: metadata plus pages and (later) chunks."""

    meta_info: MetaInfo
    content: DocumentContent = field(default_factory=DocumentContent)


# ---------------------------------------------------------------------------
# Retrieval
# ---------------------------------------------------------------------------


@dataclass
class RetrievalResult:
    """
    One retrieved passage, in retrieval rank order.

    `score` is the store's relevance score (higher = more similar).
    `sha1` / `chunk_id` / `company_name` are copied from the stored
    metadata and used to build answer references.
    """

    score: float
    page: int
    text: str
    sha1: str | None = None
    chunk_id: int | None = None
    company_name: str | None = None
    rerank_score: float | None = None


# ---------------------------------------------------------------------------
# Questions & Answers
# ---------------------------------------------------------------------------


class QuestionKind(str, enum.Enum):
    """Expected type of `Answer.final_answer`."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    NAMES = "names"

    @classmethod
    def coerce(cls, value: str | QuestionKind | None) -> QuestionKind:
        """Map free-form input onto a kind; anything unknown is STRING."""
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.STRING


NOT_AVAILABLE = "N/A"

FinalAnswer = Union[str, int, float, bool, list[str]]


@dataclass
class Question:
    text: str
    kind: QuestionKind = QuestionKind.STRING
    company_name: str | None = None  # Derived from the text, never user-supplied


@dataclass
class Reference:
    """A cited source page: document sha1 + 0-based page index."""

    pdf_sha1: str
    page_index: int


@dataclass
class Answer:
    step_by_step_analysis: str
    reasoning_summary: str
    relevant_pages: list[int] = field(default_factory=list)
    final_answer: FinalAnswer = NOT_AVAILABLE
    references: list[Reference] = field(default_factory=list)

    @classmethod
    def failed(cls, message: str, summary: str = "processing failed") -> Answer:
        """A well-formed answer describing a failure."""
        return cls(
            step_by_step_analysis=f"Error: {message}",
            reasoning_summary=summary,
            relevant_pages=[],
            final_answer=NOT_AVAILABLE,
        )


class FailureReason(str, enum.Enum):
    """Tag describing why a question could not be answered."""

    SCOPE_NOT_FOUND = "scope_not_found"
    NO_CONTEXT = "no_context"
    MODEL_INVOCATION = "model_invocation"
    INTERNAL = "internal"


@dataclass
class AnswerOutcome:
    """
    Result of processing one question.

    `answer` is always well-formed. `failure` is None on success;
    otherwise it names the step that stopped the run.
    """

    answer: Answer
    failure: FailureReason | None = None
    raw_response: str | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


@dataclass
class IngestionSummary:
    file_name: str
    company_name: str
    sha1: str
    page_count: int
    chunk_count: int


# ---------------------------------------------------------------------------
# Conversation
# ---------------------------------------------------------------------------


class MessageRole(str, enum.Enum):
    SYSTEM = "system"
    USER = "user"
    AI = "ai"


@dataclass(frozen=True)
class ChatMessage:
    role: MessageRole
    content: str
