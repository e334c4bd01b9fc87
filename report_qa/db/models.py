# =============================================================================
# Embedding Table: pgvector Schema
# =============================================================================
#
# ┌──────────────────────────────────────┐
# │  rag_embeddings (name configurable)  │
# ├──────────────────────────────────────┤
# │ embedding_id (PK, uuid text)         │
# │ seq (bigint, identity)               │  ← insertion order, tie-breaker
# │ embedding (vector(D))                │
# │ text (text)                          │
# │ chunk_id (int)                       │
# │ page (int)                           │
# │ company_name (text, indexed)         │
# │ sha1 (text, indexed)                 │
# │ type (text)                          │
# └──────────────────────────────────────┘
#
# The table is built at runtime because both its name and the vector
# dimension D come from configuration; D is fixed once the table exists.
# Metadata is stored as typed columns (not JSON) so readers use direct
# column access.
# =============================================================================

from __future__ import annotations

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    BigInteger,
    Column,
    Identity,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)


def build_embedding_table(
    metadata: MetaData,
    table_name: str,
    dimension: int,
) -> Table:
    """Define the embedding table on `metadata` for vectors of `dimension`."""
    table = Table(
        table_name,
        metadata,
        Column("embedding_id", String(36), primary_key=True),
        Column("seq", BigInteger, Identity(always=False), nullable=False),
        Column("embedding", Vector(dimension), nullable=False),
        Column("text", Text, nullable=False),
        Column("chunk_id", Integer, nullable=False),
        Column("page", Integer, nullable=False),
        Column("company_name", String(500), nullable=False),
        Column("sha1", String(40), nullable=False),
        Column("type", String(50), nullable=False, default="content"),
    )
    Index(f"ix_{table_name}_company_name", table.c.company_name)
    Index(f"ix_{table_name}_sha1", table.c.sha1)
    return table
