# =============================================================================
# Vector Retriever: Query → Ranked Passages
# =============================================================================
#
# Embeds a query, searches the vector store, and maps each match to a
# RetrievalResult in rank order.
#
# SCOPE: `scope` is the company name extracted from the question. It is only
# forwarded to the store as a metadata filter when `filter_by_scope` is on
# (RETRIEVAL_FILTER_BY_SCOPE). With it off, every match passes through
# regardless of company, which is a known precision gap on multi-company
# corpora.
# =============================================================================

from __future__ import annotations

import logging

from report_qa.models.domain import RetrievalResult
from report_qa.services.embedder import EmbeddingGateway
from report_qa.services.vectorstore import EmbeddingMatch, VectorStore

logger = logging.getLogger(__name__)

# Upper bound used by retrieve_all(); the store has no real bulk fetch.
RETRIEVE_ALL_LIMIT = 1000


class VectorRetriever:
    def __init__(
        self,
        gateway: EmbeddingGateway,
        store: VectorStore,
        filter_by_scope: bool = False,
    ) -> None:
        self._gateway = gateway
        self._store = store
        self.filter_by_scope = filter_by_scope

    def retrieve_by_scope(
        self,
        scope: str,
        query: str,
        top_n: int,
    ) -> list[RetrievalResult]:
        """
        Top `top_n` passages for `query`, best first (min_score = 0).

        Raises:
            EmptyInputError: If `query` is blank.
        """
        logger.info(
            "Retrieving for scope=%r query=%r top_n=%d (filter=%s)",
            scope, query[:80], top_n, self.filter_by_scope,
        )

        query_vector = self._gateway.embed(query)
        matches = self._store.search(
            query_vector,
            max_results=top_n,
            min_score=0.0,
            company_name=scope if self.filter_by_scope else None,
        )
        results = [_to_result(match) for match in matches]

        logger.info("Retrieved %d passages", len(results))
        return results

    def retrieve_all(
        self, scope: str, limit: int = RETRIEVE_ALL_LIMIT,
    ) -> list[RetrievalResult]:
        """Approximate bulk fetch: the scope name itself is the query."""
        return self.retrieve_by_scope(scope, scope, limit)


def _to_result(match: EmbeddingMatch) -> RetrievalResult:
    meta = match.segment.metadata
    return RetrievalResult(
        score=match.score,
        page=meta.page,
        text=match.segment.text,
        sha1=meta.sha1,
        chunk_id=meta.chunk_id,
        company_name=meta.company_name,
    )
