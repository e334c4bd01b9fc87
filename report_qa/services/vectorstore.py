# =============================================================================
# Vector Store Abstraction: Pluggable Backend Protocol
# =============================================================================
#
# Persists (vector, text, metadata) tuples and serves nearest-neighbour
# search, optionally filtered by company.
#
# CONTRACT (all backends):
# - The dimension D is fixed at construction.
# - add_all(vectors, segments): equal lengths required; any vector whose
#   length != D raises DimensionMismatchError before anything is written.
# - search(query, max_results, min_score): at most max_results matches,
#   every score >= min_score, descending by score, ties in insertion order.
# - Deletion by filter is NOT supported. To drop a company's data, reset()
#   the store and re-ingest.
#
# SIMILARITY METRIC: cosine, reported as a relevance score
#     score = (1 + cosine_similarity) / 2      ∈ [0, 1]
# so min_score=0.0 admits every match. The same formula is used by every
# backend so scores are comparable across deployments.
#
# ARCHITECTURE:
#   VectorStore (Protocol)
#   ├── InMemoryVectorStore — thread-safe list, brute-force cosine
#   ├── PgVectorStore       — PostgreSQL + pgvector (SQLAlchemy Core)
#   └── ChromaVectorStore   — ChromaDB collection (cosine space)
# =============================================================================

from __future__ import annotations

import logging
import math
import threading
import uuid
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from typing import Protocol

from report_qa.config import Settings, settings
from report_qa.errors import DimensionMismatchError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EmbeddingMetadata:
    """Fixed metadata schema attached to every stored vector."""

    chunk_id: int
    page: int
    company_name: str
    sha1: str
    type: str = "content"


@dataclass(frozen=True)
class TextSegment:
    text: str
    metadata: EmbeddingMetadata


@dataclass(frozen=True)
class EmbeddingMatch:
    """One search hit: relevance score, store id, and the stored segment."""

    score: float
    embedding_id: str
    segment: TextSegment


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class VectorStore(Protocol):
    """Interface shared by all vector store backends."""

    dimension: int

    def add_all(
        self,
        vectors: Sequence[Sequence[float]],
        segments: Sequence[TextSegment],
    ) -> list[str]:
        """Store vectors with their segments; returns the new embedding ids."""
        ...

    def search(
        self,
        query_vector: Sequence[float],
        max_results: int,
        min_score: float = 0.0,
        company_name: str | None = None,
    ) -> list[EmbeddingMatch]:
        ...

    def reset(self) -> None:
        """Remove every stored vector."""
        ...


# ---------------------------------------------------------------------------
# Shared validation / scoring
# ---------------------------------------------------------------------------


def _validate_batch(
    dimension: int,
    vectors: Sequence[Sequence[float]],
    segments: Sequence[TextSegment],
) -> None:
    if len(vectors) != len(segments):
        raise ValueError(
            f"vectors and segments must have the same length "
            f"({len(vectors)} != {len(segments)})"
        )
    for vector in vectors:
        if len(vector) != dimension:
            raise DimensionMismatchError(dimension, len(vector))


def _check_query(dimension: int, query_vector: Sequence[float]) -> None:
    if len(query_vector) != dimension:
        raise DimensionMismatchError(dimension, len(query_vector))


def relevance_from_cosine(similarity: float) -> float:
    return (1.0 + similarity) / 2.0


def relevance_from_cosine_distance(distance: float) -> float:
    """pgvector / Chroma cosine distance is 1 - similarity, in [0, 2]."""
    return 1.0 - distance / 2.0


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)


# ---------------------------------------------------------------------------
# Implementation 1: In-Memory
# ---------------------------------------------------------------------------


class InMemoryVectorStore:
    """
    Brute-force cosine search over an in-process list.

    Writes take a lock; searches work on a snapshot so concurrent readers
    never see a half-written batch.
    """

    def __init__(self, dimension: int) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be a positive integer")
        self.dimension = dimension
        self._records: list[tuple[str, tuple[float, ...], TextSegment]] = []
        self._lock = threading.Lock()

    def add_all(
        self,
        vectors: Sequence[Sequence[float]],
        segments: Sequence[TextSegment],
    ) -> list[str]:
        _validate_batch(self.dimension, vectors, segments)

        records = [
            (str(uuid.uuid4()), tuple(float(x) for x in vector), segment)
            for vector, segment in zip(vectors, segments)
        ]
        with self._lock:
            self._records.extend(records)

        logger.info("Stored %d embeddings in memory", len(records))
        return [embedding_id for embedding_id, _, _ in records]

    def search(
        self,
        query_vector: Sequence[float],
        max_results: int,
        min_score: float = 0.0,
        company_name: str | None = None,
    ) -> list[EmbeddingMatch]:
        _check_query(self.dimension, query_vector)
        if max_results <= 0:
            return []

        with self._lock:
            snapshot = list(self._records)

        matches = []
        for embedding_id, vector, segment in snapshot:
            if company_name is not None and segment.metadata.company_name != company_name:
                continue
            score = relevance_from_cosine(cosine_similarity(query_vector, vector))
            if score >= min_score:
                matches.append(EmbeddingMatch(score, embedding_id, segment))

        # sorted() is stable: equal scores keep insertion order.
        matches = sorted(matches, key=lambda m: m.score, reverse=True)
        return matches[:max_results]

    def reset(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        return len(self._records)


# ---------------------------------------------------------------------------
# Implementation 2: pgvector (PostgreSQL)
# ---------------------------------------------------------------------------


class PgVectorStore:
    """
    pgvector-backed store using SQLAlchemy Core.

    On construction the `vector` extension and the embedding table are
    created if absent. Searches order by cosine distance, then by the
    insertion sequence, so ties are stable.
    """

    def __init__(
        self,
        dimension: int,
        table_name: str = "rag_embeddings",
        engine=None,
    ) -> None:
        from sqlalchemy import MetaData, text

        from report_qa.db.engine import get_engine
        from report_qa.db.models import build_embedding_table

        self.dimension = dimension
        self._engine = engine or get_engine()
        self._metadata = MetaData()
        self._table = build_embedding_table(self._metadata, table_name, dimension)

        with self._engine.begin() as conn:
            conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        self._metadata.create_all(self._engine, checkfirst=True)

        logger.info(
            "pgvector store ready (table=%s, dimension=%d)", table_name, dimension,
        )

    def add_all(
        self,
        vectors: Sequence[Sequence[float]],
        segments: Sequence[TextSegment],
    ) -> list[str]:
        from report_qa.db.engine import transaction

        _validate_batch(self.dimension, vectors, segments)
        if not vectors:
            return []

        ids = [str(uuid.uuid4()) for _ in vectors]
        rows = [
            {
                "embedding_id": embedding_id,
                "embedding": list(vector),
                "text": segment.text,
                **asdict(segment.metadata),
            }
            for embedding_id, vector, segment in zip(ids, vectors, segments)
        ]
        with transaction(self._engine) as conn:
            conn.execute(self._table.insert(), rows)

        logger.info("Stored %d embeddings in pgvector", len(rows))
        return ids

    def search(
        self,
        query_vector: Sequence[float],
        max_results: int,
        min_score: float = 0.0,
        company_name: str | None = None,
    ) -> list[EmbeddingMatch]:
        from sqlalchemy import select

        _check_query(self.dimension, query_vector)
        if max_results <= 0:
            return []

        t = self._table
        distance = t.c.embedding.cosine_distance(list(query_vector))
        stmt = (
            select(t, distance.label("distance"))
            # score >= min_score  ⇔  distance <= 2 * (1 - min_score)
            .where(distance <= 2.0 * (1.0 - min_score))
            .order_by(distance, t.c.seq)
            .limit(max_results)
        )
        if company_name is not None:
            stmt = stmt.where(t.c.company_name == company_name)

        with self._engine.connect() as conn:
            rows = conn.execute(stmt).mappings().all()

        logger.debug("pgvector search returned %d rows", len(rows))
        return [
            EmbeddingMatch(
                score=relevance_from_cosine_distance(row["distance"]),
                embedding_id=row["embedding_id"],
                segment=TextSegment(
                    text=row["text"],
                    metadata=EmbeddingMetadata(
                        chunk_id=row["chunk_id"],
                        page=row["page"],
                        company_name=row["company_name"],
                        sha1=row["sha1"],
                        type=row["type"],
                    ),
                ),
            )
            for row in rows
        ]

    def reset(self) -> None:
        from report_qa.db.engine import transaction

        with transaction(self._engine) as conn:
            conn.execute(self._table.delete())
        logger.warning("pgvector table %s cleared", self._table.name)


# ---------------------------------------------------------------------------
# Implementation 3: ChromaDB
# ---------------------------------------------------------------------------


class ChromaVectorStore:
    """
    ChromaDB-backed store (single collection, cosine space).

    Chroma returns hits ordered by distance; equal distances come back in
    Chroma's internal order, so the insertion-order tie-break is only
    guaranteed by the other backends.
    """

    def __init__(
        self,
        dimension: int,
        collection_name: str = "report_chunks",
        url: str | None = None,
        client=None,
    ) -> None:
        import chromadb

        self.dimension = dimension
        self._collection_name = collection_name
        if client is not None:
            self._client = client
        elif url:
            self._client = chromadb.HttpClient(host=url)
        else:
            self._client = chromadb.Client()
        self._collection = self._get_collection()

    def _get_collection(self):
        return self._client.get_or_create_collection(
            name=self._collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    def add_all(
        self,
        vectors: Sequence[Sequence[float]],
        segments: Sequence[TextSegment],
    ) -> list[str]:
        _validate_batch(self.dimension, vectors, segments)
        if not vectors:
            return []

        ids = [str(uuid.uuid4()) for _ in vectors]
        self._collection.add(
            ids=ids,
            embeddings=[list(v) for v in vectors],
            documents=[s.text for s in segments],
            metadatas=[asdict(s.metadata) for s in segments],
        )
        logger.info("Stored %d embeddings in ChromaDB", len(ids))
        return ids

    def search(
        self,
        query_vector: Sequence[float],
        max_results: int,
        min_score: float = 0.0,
        company_name: str | None = None,
    ) -> list[EmbeddingMatch]:
        _check_query(self.dimension, query_vector)
        if max_results <= 0 or self._collection.count() == 0:
            return []

        results = self._collection.query(
            query_embeddings=[list(query_vector)],
            n_results=max_results,
            where={"company_name": company_name} if company_name is not None else None,
            include=["documents", "metadatas", "distances"],
        )

        matches: list[EmbeddingMatch] = []
        if not results["ids"] or not results["ids"][0]:
            return matches

        for i, embedding_id in enumerate(results["ids"][0]):
            score = relevance_from_cosine_distance(results["distances"][0][i])
            if score < min_score:
                continue
            meta = results["metadatas"][0][i]
            matches.append(EmbeddingMatch(
                score=score,
                embedding_id=embedding_id,
                segment=TextSegment(
                    text=results["documents"][0][i],
                    metadata=EmbeddingMetadata(
                        chunk_id=int(meta["chunk_id"]),
                        page=int(meta["page"]),
                        company_name=meta["company_name"],
                        sha1=meta["sha1"],
                        type=meta.get("type", "content"),
                    ),
                ),
            ))
        return matches

    def reset(self) -> None:
        self._client.delete_collection(self._collection_name)
        self._collection = self._get_collection()
        logger.warning("Chroma collection %s reset", self._collection_name)


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------


def create_vector_store(config: Settings | None = None) -> VectorStore:
    """
    Build the backend named by `vectorstore_type`:
    - "pgvector" → PgVectorStore (default)
    - "chroma"   → ChromaVectorStore
    - "memory"   → InMemoryVectorStore
    """
    cfg = config or settings
    store_type = cfg.vectorstore_type.lower()

    if store_type == "memory":
        logger.info("Using in-memory vector store")
        return InMemoryVectorStore(cfg.embedding_dimensions)

    if store_type == "chroma":
        logger.info("Using ChromaDB vector store")
        return ChromaVectorStore(
            cfg.embedding_dimensions,
            collection_name=cfg.chroma_collection,
            url=cfg.chroma_url,
        )

    if store_type != "pgvector":
        raise ValueError(f"Unknown vectorstore_type '{cfg.vectorstore_type}'")

    logger.info(
        "Using pgvector store at %s:%d/%s",
        cfg.pgvector_host, cfg.pgvector_port, cfg.pgvector_database,
    )
    return PgVectorStore(cfg.embedding_dimensions, table_name=cfg.pgvector_table)
