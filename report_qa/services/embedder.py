# =============================================================================
# Embedding Gateway: Batched Vector Generation (Provider-Agnostic)
# =============================================================================
#
# Two layers:
#   EmbeddingProvider (Protocol) → one concrete API client per provider
#   EmbeddingGateway             → input validation, blank filtering and
#                                   sub-batching in front of any provider
#
# The provider declares `max_batch_size`, its per-request cap. The gateway
# splits arbitrarily large inputs into sub-batches no larger than that cap
# and concatenates the results in input order.
#
# No caching and no retries here. Callers (the ingestion task) retry.
#
# BLANK INPUT:
#   embed("   ")        → EmptyInputError
#   embed_batch([...])  → blank entries are dropped before the API call, so
#                         the result can be SHORTER than the input. Callers
#                         that need index alignment must pre-filter.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from report_qa.config import Settings, settings
from report_qa.errors import EmptyInputError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class EmbeddingProvider(Protocol):
    """Raw text → vector capability implemented per provider."""

    max_batch_size: int

    def embed(self, text: str) -> list[float]:
        ...

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed at most `max_batch_size` texts, preserving order."""
        ...

    def dimension(self) -> int:
        ...


# ---------------------------------------------------------------------------
# Implementation: OpenAI-Compatible Embeddings API
# ---------------------------------------------------------------------------


class OpenAIEmbeddingProvider:
    """
    Embeddings via any OpenAI-compatible endpoint (OpenAI, DashScope
    compatible mode, ...). The `openai` client is thread-safe and keeps its
    own connection pool, so one instance is shared by all requests.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        dimensions: int | None = None,
        base_url: str | None = None,
        max_batch_size: int | None = None,
        config: Settings | None = None,
    ) -> None:
        from openai import OpenAI

        cfg = config or settings
        resolved_key = api_key or cfg.openai_api_key or cfg.llm_api_key
        if not resolved_key:
            raise ValueError(
                "No API key configured for embeddings. "
                "Set OPENAI_API_KEY or LLM_API_KEY in .env"
            )

        client_kwargs: dict = {"api_key": resolved_key}
        resolved_base_url = base_url or cfg.embedding_base_url
        if resolved_base_url:
            client_kwargs["base_url"] = resolved_base_url

        self._client = OpenAI(**client_kwargs)
        self._model = model or cfg.embedding_model
        self._dimensions = dimensions or cfg.embedding_dimensions
        self.max_batch_size = max_batch_size or cfg.embedding_batch_size

        logger.info(
            "Initialized embedding client (model=%s, dimensions=%d, base_url=%s)",
            self._model,
            self._dimensions,
            resolved_base_url or "https://api.openai.com/v1",
        )

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        response = self._client.embeddings.create(
            model=self._model,
            input=list(texts),
            dimensions=self._dimensions,
        )

        # Sort by index: order mismatches would silently corrupt the store.
        ordered = sorted(response.data, key=lambda item: item.index)

        logger.debug(
            "Embedded %d texts, %d prompt tokens",
            len(ordered),
            response.usage.prompt_tokens if response.usage else 0,
        )
        return [item.embedding for item in ordered]

    def dimension(self) -> int:
        return self._dimensions


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------


class EmbeddingGateway:
    """
    Validating, batching front for an EmbeddingProvider.

    Args:
        provider: The underlying embedding capability.
        batch_size: Optional extra cap; the effective cap is the smaller of
            this and `provider.max_batch_size`.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        batch_size: int | None = None,
    ) -> None:
        cap = getattr(provider, "max_batch_size", None) or batch_size
        if batch_size:
            cap = min(cap, batch_size)
        if not cap or cap <= 0:
            raise ValueError("Embedding batch size must be a positive integer")

        self._provider = provider
        self.batch_size: int = cap

    def embed(self, text: str) -> list[float]:
        """Embed one text. Blank input raises EmptyInputError."""
        if text is None or not text.strip():
            raise EmptyInputError("Cannot embed blank text")

        logger.debug("Embedding query text (%d chars)", len(text))
        return self._provider.embed(text)

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """
        Embed many texts in order, dropping blank entries.

        Issues ceil(n / batch_size) provider calls for n non-blank texts.
        """
        if not texts:
            return []

        valid = [t for t in texts if t is not None and t.strip()]
        dropped = len(texts) - len(valid)
        if dropped:
            logger.warning("Dropped %d blank texts before embedding", dropped)
        if not valid:
            return []

        vectors: list[list[float]] = []
        for start in range(0, len(valid), self.batch_size):
            batch = valid[start:start + self.batch_size]
            logger.info(
                "Embedding batch %d-%d of %d texts",
                start + 1, start + len(batch), len(valid),
            )
            vectors.extend(self._provider.embed_batch(batch))

        logger.info("Generated %d embeddings", len(vectors))
        return vectors

    def dimension(self) -> int:
        return self._provider.dimension()
