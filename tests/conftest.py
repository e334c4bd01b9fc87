# =============================================================================
# Shared Test Fixtures: Fake Embedding and Chat Capabilities
# =============================================================================
#
# No network, database or API keys: embeddings come from a deterministic
# bag-of-words hasher and the chat model replays scripted responses.
# =============================================================================

from __future__ import annotations

import hashlib
import json
import math
import re

import pytest

from report_qa.errors import ModelInvocationError
from report_qa.models.domain import ChatMessage
from report_qa.services.embedder import EmbeddingGateway
from report_qa.services.memory import SessionMemory
from report_qa.services.vectorstore import InMemoryVectorStore

DIMENSION = 32


class HashingEmbeddingProvider:
    """Bag-of-words vectors: texts sharing words get similar vectors."""

    def __init__(self, dimension: int = DIMENSION, max_batch_size: int = 4) -> None:
        self._dimension = dimension
        self.max_batch_size = max_batch_size
        self.batch_calls: list[list[str]] = []

    def embed(self, text: str) -> list[float]:
        return self._vector(text)

    def embed_batch(self, texts):
        assert len(texts) <= self.max_batch_size
        self.batch_calls.append(list(texts))
        return [self._vector(t) for t in texts]

    def dimension(self) -> int:
        return self._dimension

    def _vector(self, text: str) -> list[float]:
        vector = [0.0] * self._dimension
        for word in re.findall(r"\w+", text.lower()):
            bucket = int(hashlib.md5(word.encode()).hexdigest(), 16) % self._dimension
            vector[bucket] += 1.0
        norm = math.sqrt(sum(x * x for x in vector)) or 1.0
        return [x / norm for x in vector]


class ScriptedChat:
    """ChatProvider that replays responses and records every call."""

    def __init__(self, *responses: str, error: Exception | None = None) -> None:
        self._responses = list(responses)
        self._error = error
        self.single_calls: list[str] = []
        self.history_calls: list[list[ChatMessage]] = []

    def chat(self, text: str) -> str:
        self.single_calls.append(text)
        return self._next()

    def chat_with_history(self, messages) -> str:
        self.history_calls.append(list(messages))
        return self._next()

    def _next(self) -> str:
        if self._error is not None:
            raise self._error
        if len(self._responses) > 1:
            return self._responses.pop(0)
        return self._responses[0]


def answer_json(final_answer, pages=(), analysis="Step 1. Read the context.") -> str:
    return json.dumps({
        "step_by_step_analysis": analysis,
        "reasoning_summary": "Found in the report.",
        "relevant_pages": list(pages),
        "final_answer": final_answer,
    })


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def embedding_provider() -> HashingEmbeddingProvider:
    return HashingEmbeddingProvider()


@pytest.fixture
def gateway(embedding_provider) -> EmbeddingGateway:
    return EmbeddingGateway(embedding_provider)


@pytest.fixture
def store() -> InMemoryVectorStore:
    return InMemoryVectorStore(DIMENSION)


@pytest.fixture
def memory() -> SessionMemory:
    return SessionMemory(max_messages=20, session_timeout=1800.0)


@pytest.fixture
def scripted_chat():
    """Factory: scripted_chat(*responses, error=None) -> ScriptedChat."""
    return ScriptedChat


@pytest.fixture
def failing_chat() -> ScriptedChat:
    return ScriptedChat(error=ModelInvocationError("connection refused"))


@pytest.fixture
def make_answer_json():
    """Factory: make_answer_json(final_answer, pages=(), analysis=...) -> str."""
    return answer_json
