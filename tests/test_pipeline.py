# =============================================================================
# Integration Tests — RAG Pipeline (fakes for embeddings and chat)
# =============================================================================
#
# End-to-end through the real chunker, gateway, in-memory store, retriever,
# processor and session memory. Docling is patched out for directory
# ingestion.
# =============================================================================

from unittest.mock import patch

import pytest

from report_qa.errors import IngestionError
from report_qa.models.domain import (
    NOT_AVAILABLE,
    Document,
    DocumentContent,
    FailureReason,
    MessageRole,
    MetaInfo,
    Page,
    Question,
    QuestionKind,
    Reference,
)
from report_qa.pipeline import RAGPipeline
from report_qa.services.chunker import TextChunker
from report_qa.services.parser import company_name_from_filename


def _acme_report() -> Document:
    return Document(
        meta_info=MetaInfo(sha1="acme-sha", company_name="ACME Corp", file_name="acme.pdf"),
        content=DocumentContent(pages=[
            Page(page=3, text="Employee headcount grew to 5,000 people."),
            Page(page=12, text="Revenue was $1,234,500 in 2023."),
            Page(page=13, text="   "),
        ]),
    )


def _pipeline(gateway, store, memory, llm) -> RAGPipeline:
    return RAGPipeline(gateway, store, llm, memory=memory, chunker=TextChunker(50, 10, 80))


# ---------------------------------------------------------------------------
# Test: Ingestion
# ---------------------------------------------------------------------------


class TestIngest:
    def test_document_is_chunked_embedded_and_stored(self, gateway, store, memory, scripted_chat):
        pipeline = _pipeline(gateway, store, memory, scripted_chat("{}"))

        summary = pipeline.ingest(_acme_report())

        assert summary.company_name == "ACME Corp"
        assert summary.sha1 == "acme-sha"
        assert summary.page_count == 3
        assert summary.chunk_count == 2
        assert len(store) == 2

    def test_stored_metadata(self, gateway, store, memory, scripted_chat):
        pipeline = _pipeline(gateway, store, memory, scripted_chat("{}"))
        pipeline.ingest(_acme_report())

        [match] = store.search(gateway.embed("Revenue 2023"), max_results=1)
        meta = match.segment.metadata
        assert meta.page == 12
        assert meta.company_name == "ACME Corp"
        assert meta.sha1 == "acme-sha"

    def test_empty_document_stores_nothing(self, gateway, store, memory, scripted_chat):
        pipeline = _pipeline(gateway, store, memory, scripted_chat("{}"))
        document = Document(meta_info=MetaInfo("s", "ACME Corp", "blank.pdf"))

        summary = pipeline.ingest(document)

        assert summary.chunk_count == 0
        assert len(store) == 0

    def test_embedding_batches_respect_provider_cap(
        self, embedding_provider, gateway, store, memory, scripted_chat,
    ):
        pages = [Page(page=i, text=f"Section {i} discusses segment results.") for i in range(1, 11)]
        document = Document(
            meta_info=MetaInfo("s", "ACME Corp", "long.pdf"),
            content=DocumentContent(pages=pages),
        )
        _pipeline(gateway, store, memory, scripted_chat("{}")).ingest(document)

        assert [len(b) for b in embedding_provider.batch_calls] == [4, 4, 2]

    def test_markdown_ingestion(self, gateway, store, memory, scripted_chat):
        pipeline = _pipeline(gateway, store, memory, scripted_chat("{}"))
        text = "\n".join(f"| row {i} | value {i} |" for i in range(60))

        summary = pipeline.ingest_markdown(text, "ACME Corp", "wiki.md")

        # 60 lines, windows of 30 advancing by 25: starts 0, 25, 50
        assert summary.chunk_count == 3
        assert len(summary.sha1) == 40
        assert len(store) == 3

    def test_ingest_directory_sorted_with_names_from_files(
        self, tmp_path, gateway, store, memory, scripted_chat,
    ):
        (tmp_path / "b").mkdir()
        (tmp_path / "b" / "Globex 2023 Annual Report.pdf").write_bytes(b"%PDF")
        (tmp_path / "ACME Corp 2023 Annual Report.pdf").write_bytes(b"%PDF")
        (tmp_path / "notes.txt").write_text("ignored")

        def fake_parse(path, company_name):
            return Document(
                meta_info=MetaInfo(f"sha-{company_name}", company_name, path.name),
                content=DocumentContent(pages=[Page(1, f"{company_name} annual revenue.")]),
            )

        pipeline = _pipeline(gateway, store, memory, scripted_chat("{}"))
        with patch("report_qa.pipeline.parse_pdf", side_effect=fake_parse):
            summaries = pipeline.ingest_directory(tmp_path)

        assert [s.company_name for s in summaries] == ["ACME Corp", "Globex"]
        assert len(store) == 2

    def test_ingest_directory_missing(self, tmp_path, gateway, store, memory, scripted_chat):
        pipeline = _pipeline(gateway, store, memory, scripted_chat("{}"))
        with pytest.raises(FileNotFoundError):
            pipeline.ingest_directory(tmp_path / "nope")

    def test_ingest_directory_wraps_parse_failures(
        self, tmp_path, gateway, store, memory, scripted_chat,
    ):
        (tmp_path / "broken.pdf").write_bytes(b"not a pdf")
        pipeline = _pipeline(gateway, store, memory, scripted_chat("{}"))
        with patch("report_qa.pipeline.parse_pdf", side_effect=RuntimeError("bad pdf")):
            with pytest.raises(IngestionError, match="broken.pdf"):
                pipeline.ingest_directory(tmp_path)

    def test_rebuild_resets_store_first(self, tmp_path, gateway, store, memory, scripted_chat):
        pipeline = _pipeline(gateway, store, memory, scripted_chat("{}"))
        pipeline.ingest(_acme_report())
        assert len(store) == 2

        summaries = pipeline.rebuild(tmp_path)

        assert summaries == []
        assert len(store) == 0


# ---------------------------------------------------------------------------
# Test: Question Answering
# ---------------------------------------------------------------------------


class TestAnswer:
    def test_number_question_end_to_end(self, gateway, store, memory, scripted_chat, make_answer_json):
        llm = scripted_chat(make_answer_json(1234500, pages=[12]))
        pipeline = _pipeline(gateway, store, memory, llm)
        pipeline.ingest(_acme_report())

        answer = pipeline.answer("‘ACME Corp’ 2023 revenue?", "number")

        assert answer.final_answer == 1234500
        assert answer.relevant_pages == [12]
        assert answer.references == [Reference("acme-sha", 11)]
        assert "Revenue was $1,234,500 in 2023." in llm.single_calls[0]

    def test_question_without_scope(self, gateway, store, memory, scripted_chat):
        pipeline = _pipeline(gateway, store, memory, scripted_chat("{}"))
        pipeline.ingest(_acme_report())

        outcome = pipeline.answer_with_outcome("What was revenue?", QuestionKind.NUMBER)

        assert outcome.failure is FailureReason.SCOPE_NOT_FOUND
        assert outcome.answer.final_answer == NOT_AVAILABLE

    def test_empty_store_is_no_context(self, gateway, store, memory, scripted_chat):
        pipeline = _pipeline(gateway, store, memory, scripted_chat("{}"))
        outcome = pipeline.answer_with_outcome('"ACME Corp" revenue?', "number")
        assert outcome.failure is FailureReason.NO_CONTEXT

    def test_answer_questions_is_stateless(self, gateway, store, memory, scripted_chat, make_answer_json):
        llm = scripted_chat(make_answer_json(1234500, pages=[12]), make_answer_json(5000, pages=[3]))
        pipeline = _pipeline(gateway, store, memory, llm)
        pipeline.ingest(_acme_report())

        answers = pipeline.answer_questions([
            Question('"ACME Corp" revenue?', QuestionKind.NUMBER),
            Question('"ACME Corp" headcount?', QuestionKind.NUMBER),
        ])

        assert [a.final_answer for a in answers] == [1234500, 5000]
        assert len(llm.single_calls) == 2
        assert llm.history_calls == []
        assert pipeline.active_session_count() == 0


class TestSessions:
    def test_conversation_keeps_one_system_prompt(
        self, gateway, store, memory, scripted_chat, make_answer_json,
    ):
        llm = scripted_chat(make_answer_json(1234500, pages=[12]))
        pipeline = _pipeline(gateway, store, memory, llm)
        pipeline.ingest(_acme_report())
        sid = pipeline.new_session()

        pipeline.answer('"ACME Corp" revenue?', "number", sid)
        pipeline.answer('"ACME Corp" revenue again?', "number", sid)

        roles = [m.role for m in memory.get_messages(sid)]
        assert roles.count(MessageRole.SYSTEM) == 1
        assert len(roles) == 5

    def test_clear_delete_and_count(self, gateway, store, memory, scripted_chat):
        pipeline = _pipeline(gateway, store, memory, scripted_chat("{}"))
        first = pipeline.new_session()
        pipeline.new_session()
        memory.add_user_message(first, "hello")

        pipeline.clear_session(first)
        assert memory.get_messages(first) == []
        assert pipeline.active_session_count() == 2

        pipeline.delete_session(first)
        assert pipeline.active_session_count() == 1


# ---------------------------------------------------------------------------
# Test: Company Name From Filename
# ---------------------------------------------------------------------------


class TestCompanyNameFromFilename:
    @pytest.mark.parametrize("file_name,expected", [
        ("【公告】中芯国际2023年年度报告.pdf", "中芯国际"),
        ("贵州茅台2022年年度报告.pdf", "贵州茅台"),
        ("比亚迪财报.pdf", "比亚迪"),
        ("ACME Corp 2023 Annual Report.pdf", "ACME Corp"),
        ("Globex.pdf", "Globex"),
    ])
    def test_derivation(self, file_name, expected):
        assert company_name_from_filename(file_name) == expected
