# =============================================================================
# Question Processor: LangGraph State Machine
# =============================================================================
#
# Turns one question into one validated, page-cited Answer.
#
# GRAPH TOPOLOGY:
#
#   START ─▶ extract_scope ─▶ retrieve ─▶ build_prompt ─▶ invoke
#                │               │                          │
#                ▼               ▼                          ▼
#              failed ◀──────────┴──────────────────────────┤
#                │                                          │
#                ▼                                          ▼
#               END ◀── record_turn ◀── validate_citations ◀── parse
#
# Every step that can fail sets `failure` in the state; a conditional edge
# then routes to the single `failed` node, which builds a degraded Answer.
# parse never fails (see answer_parser.py).
#
# SESSIONS: with a session id and a SessionMemory, the first turn (empty
# history) stores the system prompt; every turn stores the user prompt
# (both in one SessionMemory.start_turn call, atomic per session), sends
# the whole window to the model, and stores the raw model text as the AI
# turn. Without a session the model gets `system + "\n\n" + user` in one
# stateless call.
#
# No retries and no unscoped fallback: an empty retrieval fails the run.
# Anything unexpected escaping the graph is caught by process() and turned
# into an Answer with reasoning_summary "processing failed".
# =============================================================================

from __future__ import annotations

import logging
import re

from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from report_qa.agents.answer_parser import parse_answer
from report_qa.errors import ModelInvocationError, NoContextError, ScopeNotFoundError
from report_qa.models.domain import (
    Answer,
    AnswerOutcome,
    FailureReason,
    Question,
    Reference,
    RetrievalResult,
)
from report_qa.services.llm import ChatProvider
from report_qa.services.memory import SessionMemory
from report_qa.services.prompts import (
    build_system_prompt,
    build_user_prompt,
    format_retrieval_context,
)
from report_qa.services.retriever import VectorRetriever

logger = logging.getLogger(__name__)

MAX_CITED_PAGES = 8
FALLBACK_PAGES = 2

# Straight or curly double quotes first; single quotes only when not inside
# a word, so "ACME's" is not read as an opening quote.
_DOUBLE_QUOTED = re.compile(r"[\"“”]([^\"“”]+)[\"“”]")
_SINGLE_QUOTED = re.compile(r"(?<!\w)['‘’]([^'‘’]+)['‘’](?!\w)")


# ---------------------------------------------------------------------------
# State Schema
# ---------------------------------------------------------------------------


class ProcessorState(TypedDict, total=False):
    # --- Input ---
    question: Question
    session_id: str | None

    # --- Intermediate ---
    scope: str
    results: list[RetrievalResult]
    system_prompt: str
    user_prompt: str
    raw_response: str

    # --- Output ---
    answer: Answer
    failure: FailureReason | None
    error: str


def extract_scope(text: str) -> str:
    """First quoted substring of the question; raises ScopeNotFoundError."""
    for pattern in (_DOUBLE_QUOTED, _SINGLE_QUOTED):
        match = pattern.search(text or "")
        if match and match.group(1).strip():
            return match.group(1).strip()
    raise ScopeNotFoundError(text)


def validate_pages(
    claimed: list[int], results: list[RetrievalResult],
) -> list[int]:
    """
    Reconcile the model's claimed pages with the retrieved ones.

    Claimed pages absent from the context are dropped, duplicates removed,
    order kept, at most MAX_CITED_PAGES. No claims → the first
    FALLBACK_PAGES distinct retrieved pages, in rank order.
    """
    retrieved = list(dict.fromkeys(r.page for r in results))
    if not claimed:
        return retrieved[:FALLBACK_PAGES]

    allowed = set(retrieved)
    validated = [page for page in dict.fromkeys(claimed) if page in allowed]
    return validated[:MAX_CITED_PAGES]


def build_references(
    pages: list[int], results: list[RetrievalResult],
) -> list[Reference]:
    references = []
    for page in pages:
        sha1 = next((r.sha1 for r in results if r.page == page and r.sha1), None)
        if sha1:
            references.append(Reference(pdf_sha1=sha1, page_index=page - 1))
    return references


class QuestionProcessor:
    """
    Runs the answer state machine over injected collaborators.

    Args:
        retriever: Passage retrieval for the extracted scope.
        llm: Chat capability.
        memory: Session store; without it every call is stateless.
        top_k: Passages retrieved per question.
    """

    def __init__(
        self,
        retriever: VectorRetriever,
        llm: ChatProvider,
        memory: SessionMemory | None = None,
        top_k: int = 10,
    ) -> None:
        self._retriever = retriever
        self._llm = llm
        self._memory = memory
        self.top_k = top_k
        self._graph = self._build_graph()

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    def process(
        self, question: Question, session_id: str | None = None,
    ) -> AnswerOutcome:
        logger.info(
            "Processing question (kind=%s, session=%s): %s",
            question.kind.value, session_id, question.text[:120],
        )
        try:
            state = self._graph.invoke(
                {"question": question, "session_id": session_id}
            )
        except Exception as exc:
            logger.exception("Question processing failed")
            return AnswerOutcome(
                answer=Answer.failed(str(exc)),
                failure=FailureReason.INTERNAL,
            )

        outcome = AnswerOutcome(
            answer=state["answer"],
            failure=state.get("failure"),
            raw_response=state.get("raw_response"),
        )
        logger.info(
            "Question processed: final_answer=%r pages=%s failure=%s",
            outcome.answer.final_answer,
            outcome.answer.relevant_pages,
            outcome.failure.value if outcome.failure else None,
        )
        return outcome

    # -----------------------------------------------------------------------
    # Nodes
    # -----------------------------------------------------------------------

    def _extract_scope(self, state: ProcessorState) -> dict:
        question = state["question"]
        try:
            scope = extract_scope(question.text)
        except ScopeNotFoundError as exc:
            return _fail(FailureReason.SCOPE_NOT_FOUND, exc)

        question.company_name = scope
        logger.info("Extracted scope: %s", scope)
        return {"scope": scope}

    def _retrieve(self, state: ProcessorState) -> dict:
        scope = state["scope"]
        results = self._retriever.retrieve_by_scope(
            scope, state["question"].text, self.top_k,
        )
        if not results:
            return _fail(FailureReason.NO_CONTEXT, NoContextError(scope))
        return {"results": results}

    def _build_prompt(self, state: ProcessorState) -> dict:
        question = state["question"]
        context = format_retrieval_context(state["results"])
        return {
            "system_prompt": build_system_prompt(question.kind),
            "user_prompt": build_user_prompt(context, question.text),
        }

    def _invoke(self, state: ProcessorState) -> dict:
        session_id = state.get("session_id")
        try:
            if session_id and self._memory is not None:
                raw = self._chat_in_session(
                    session_id, state["system_prompt"], state["user_prompt"],
                )
            else:
                raw = self._llm.chat(
                    state["system_prompt"] + "\n\n" + state["user_prompt"]
                )
        except ModelInvocationError as exc:
            return _fail(FailureReason.MODEL_INVOCATION, exc)

        logger.debug("Raw model response: %s", raw)
        return {"raw_response": raw}

    def _parse(self, state: ProcessorState) -> dict:
        return {"answer": parse_answer(state["raw_response"], state["question"].kind)}

    def _validate_citations(self, state: ProcessorState) -> dict:
        answer = state["answer"]
        results = state["results"]
        answer.relevant_pages = validate_pages(answer.relevant_pages, results)
        answer.references = build_references(answer.relevant_pages, results)
        return {"answer": answer}

    def _record_turn(self, state: ProcessorState) -> dict:
        session_id = state.get("session_id")
        if session_id and self._memory is not None:
            self._memory.add_ai_message(session_id, state["raw_response"])
        return {}

    def _failed(self, state: ProcessorState) -> dict:
        logger.warning(
            "Question failed (%s): %s", state["failure"].value, state.get("error"),
        )
        return {"answer": Answer.failed(state.get("error", "unknown error"))}

    # -----------------------------------------------------------------------
    # Internal Helpers
    # -----------------------------------------------------------------------

    def _chat_in_session(
        self, session_id: str, system_prompt: str, user_prompt: str,
    ) -> str:
        history = self._memory.start_turn(session_id, system_prompt, user_prompt)
        logger.debug("Session %s: sending %d messages", session_id, len(history))
        return self._llm.chat_with_history(history)

    def _build_graph(self):
        builder = StateGraph(ProcessorState)
        builder.add_node("extract_scope", self._extract_scope)
        builder.add_node("retrieve", self._retrieve)
        builder.add_node("build_prompt", self._build_prompt)
        builder.add_node("invoke", self._invoke)
        builder.add_node("parse", self._parse)
        builder.add_node("validate_citations", self._validate_citations)
        builder.add_node("record_turn", self._record_turn)
        builder.add_node("failed", self._failed)

        builder.add_edge(START, "extract_scope")
        builder.add_conditional_edges(
            "extract_scope", _route("retrieve"), ["retrieve", "failed"],
        )
        builder.add_conditional_edges(
            "retrieve", _route("build_prompt"), ["build_prompt", "failed"],
        )
        builder.add_edge("build_prompt", "invoke")
        builder.add_conditional_edges(
            "invoke", _route("parse"), ["parse", "failed"],
        )
        builder.add_edge("parse", "validate_citations")
        builder.add_edge("validate_citations", "record_turn")
        builder.add_edge("record_turn", END)
        builder.add_edge("failed", END)
        return builder.compile()


def _fail(reason: FailureReason, exc: Exception) -> dict:
    return {"failure": reason, "error": str(exc)}


def _route(next_node: str):
    def route(state: ProcessorState) -> str:
        return "failed" if state.get("failure") else next_node
    return route
