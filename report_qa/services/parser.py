# =============================================================================
# PDF Parser: Docling → Document (pages with text)
# =============================================================================
#
# Turns a report PDF into a Document: file sha1, company name, and one Page
# per source page, in page order. Chunks are filled in later by the chunker.
#
# Docling items are iterated in reading order (export_to_markdown() would
# lose page numbers). Each item's text is appended to the page named by its
# provenance; tables are rendered as markdown so the model can read rows
# and columns.
#
# Docling is an optional dependency (`pip install report-qa[pdf]`). It is
# imported on first use so the API and tests run without it.
#
# Pipeline position: Step 1 of ingestion (parse → chunk → embed → store).
# =============================================================================

from __future__ import annotations

import hashlib
import logging
import re
from pathlib import Path

from report_qa.models.domain import Document, DocumentContent, MetaInfo, Page

logger = logging.getLogger(__name__)

_converter = None


def _get_converter():
    """Lazily initialize and cache the Docling DocumentConverter."""
    global _converter
    if _converter is None:
        from docling.datamodel.base_models import InputFormat
        from docling.datamodel.pipeline_options import PdfPipelineOptions
        from docling.document_converter import DocumentConverter, PdfFormatOption

        logger.info(
            "Initializing Docling DocumentConverter "
            "(first use, may take a few seconds)..."
        )
        pipeline_options = PdfPipelineOptions()
        pipeline_options.do_table_structure = True
        pipeline_options.do_ocr = True

        _converter = DocumentConverter(
            format_options={
                InputFormat.PDF: PdfFormatOption(pipeline_options=pipeline_options),
            }
        )
    return _converter


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def file_sha1(path: str | Path, block_size: int = 1 << 16) -> str:
    digest = hashlib.sha1()
    with open(path, "rb") as fh:
        for block in iter(lambda: fh.read(block_size), b""):
            digest.update(block)
    return digest.hexdigest()


def parse_pdf(file_path: str | Path, company_name: str) -> Document:
    """
    Parse a PDF into a Document with one Page per source page.

    Raises:
        FileNotFoundError: If the file does not exist.
        RuntimeError: If Docling fails to convert the document.
    """
    path = Path(file_path)
    if not path.is_file():
        raise FileNotFoundError(f"PDF not found: {file_path}")

    logger.info("Parsing PDF: %s (company=%s)", path.name, company_name)
    sha1 = file_sha1(path)

    from docling_core.types.doc.labels import DocItemLabel

    try:
        result = _get_converter().convert(str(path))
    except Exception as exc:
        raise RuntimeError(f"Docling failed to parse '{path.name}': {exc}") from exc

    texts_by_page: dict[int, list[str]] = {}
    for item, _level in result.document.iterate_items():
        page_no = item.prov[0].page_no if getattr(item, "prov", None) else 1
        label = getattr(item, "label", None)

        if label == DocItemLabel.TABLE:
            text = _table_to_markdown(item)
        else:
            text = (getattr(item, "text", "") or "").strip()
        if text:
            texts_by_page.setdefault(page_no, []).append(text)

    page_count = max([len(result.document.pages), *texts_by_page.keys()], default=0)
    pages = [
        Page(page=n, text="\n\n".join(texts_by_page.get(n, [])))
        for n in range(1, page_count + 1)
    ]

    logger.info("Parsed '%s': %d pages", path.name, len(pages))
    return Document(
        meta_info=MetaInfo(sha1=sha1, company_name=company_name, file_name=path.name),
        content=DocumentContent(pages=pages),
    )


_NAME_NOISE = [
    re.compile(r"\.pdf$", re.IGNORECASE),
    re.compile(r"\d{4}年.*"),
    re.compile(r"年度报告|财报"),
    re.compile(r"【.*?】"),
    re.compile(r"[\s_-]*(\d{4}[\s_-]*)?annual[\s_-]*report.*$", re.IGNORECASE),
]


def company_name_from_filename(file_name: str) -> str:
    """
    Best-effort company name from a report filename.

    >>> company_name_from_filename("【公告】中芯国际2023年年度报告.pdf")
    '中芯国际'
    >>> company_name_from_filename("ACME Corp 2023 Annual Report.pdf")
    'ACME Corp'
    """
    name = Path(file_name).name
    for pattern in _NAME_NOISE:
        name = pattern.sub("", name)
    return name.strip()


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _table_to_markdown(table_item) -> str:
    """Docling table → markdown via pandas; falls back to the item's text."""
    try:
        df = table_item.export_to_dataframe()
        return df.to_markdown(index=False)
    except Exception as exc:
        logger.warning("Table export to DataFrame failed: %s", exc)

    text = getattr(table_item, "text", "")
    return text.strip() if text else ""
