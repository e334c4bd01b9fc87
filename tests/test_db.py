# =============================================================================
# Unit Tests — pgvector Table and Store (no database)
# =============================================================================
#
# The SQLAlchemy engine is a MagicMock; statements are compiled with the
# PostgreSQL dialect to check ordering and filtering.
# =============================================================================

from unittest.mock import MagicMock

import pytest
from sqlalchemy import MetaData
from sqlalchemy.dialects import postgresql

from report_qa.db.models import build_embedding_table
from report_qa.errors import DimensionMismatchError
from report_qa.services.vectorstore import PgVectorStore


def _store(rows=()):
    engine = MagicMock()
    conn = engine.connect.return_value.__enter__.return_value
    conn.execute.return_value.mappings.return_value.all.return_value = list(rows)
    return PgVectorStore(3, table_name="test_embeddings", engine=engine), conn


def _sql(statement) -> str:
    return str(statement.compile(dialect=postgresql.dialect()))


class TestEmbeddingTable:
    def test_columns_and_dimension(self):
        table = build_embedding_table(MetaData(), "emb", 1536)
        assert [c.name for c in table.columns] == [
            "embedding_id", "seq", "embedding", "text", "chunk_id",
            "page", "company_name", "sha1", "type",
        ]
        assert table.c.embedding.type.dim == 1536
        assert {ix.name for ix in table.indexes} == {"ix_emb_company_name", "ix_emb_sha1"}


class TestPgVectorStore:
    def test_search_orders_by_distance_then_sequence(self):
        store, conn = _store()
        store.search([1.0, 0.0, 0.0], max_results=5)

        sql = _sql(conn.execute.call_args.args[0])
        assert "ORDER BY" in sql
        order_by = sql.split("ORDER BY", 1)[1]
        assert "<=>" in order_by
        assert "test_embeddings.seq" in order_by
        assert "company_name =" not in sql

    def test_search_with_scope_filter(self):
        store, conn = _store()
        store.search([1.0, 0.0, 0.0], max_results=5, company_name="ACME Corp")
        assert "test_embeddings.company_name =" in _sql(conn.execute.call_args.args[0])

    def test_rows_converted_to_matches(self):
        rows = [{
            "embedding_id": "e1", "distance": 0.2, "text": "Revenue was $1,234,500",
            "chunk_id": 4, "page": 12, "company_name": "ACME Corp",
            "sha1": "acme-sha", "type": "content",
        }]
        store, _ = _store(rows)

        [match] = store.search([1.0, 0.0, 0.0], max_results=5)

        assert match.score == pytest.approx(0.9)
        assert match.segment.metadata.page == 12
        assert match.segment.text == "Revenue was $1,234,500"

    def test_query_dimension_checked(self):
        store, conn = _store()
        with pytest.raises(DimensionMismatchError):
            store.search([1.0, 0.0], max_results=5)
        conn.execute.assert_not_called()
