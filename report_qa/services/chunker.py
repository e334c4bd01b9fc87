# =============================================================================
# Paragraph-Aware Text Chunker
# =============================================================================
#
# Splits a parsed document's pages into bounded text segments with overlap.
# Each chunk is annotated with its source page and an estimated token count.
#
# TOKEN ESTIMATE:
# A character-weight heuristic, not a tokenizer:
#   - CJK ideographs (U+4E00..U+9FA5): 1 / 1.5 token each
#   - every other character:            1 / 4 token each
#   - total rounded down
# Golden-output tests depend on this exact formula.
#
# ALGORITHM (per page, pages processed independently):
# 1. Split the page into paragraphs on blank lines
# 2. Paragraphs above chunk_size are split into sentences; sentences still
#    above chunk_size are hard-split by characters
# 3. Pack units greedily into segments of at most chunk_size tokens
# 4. Each new segment starts with up to chunk_overlap tokens of the
#    previous segment's tail, unless that would break max_chunk_size
# 5. Chunk ids continue across pages; empty pages produce nothing
#
# Pipeline position: Step 2 of ingestion (parse → chunk → embed → store).
# =============================================================================

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from report_qa.models.domain import Chunk, Document, Page

logger = logging.getLogger(__name__)

_PARAGRAPH_BREAK = re.compile(r"\n[ \t\r\f\v]*\n\s*")
# A sentence is a run of non-terminators, its terminators, and trailing
# whitespace. Concatenating all matches reproduces the input exactly.
_SENTENCE = re.compile(r"[^.!?。！？]+[.!?。！？]*\s*|[.!?。！？]+\s*")

_CJK_START = 0x4E00
_CJK_END = 0x9FA5


def is_cjk(char: str) -> bool:
    return _CJK_START <= ord(char) <= _CJK_END


def estimate_token_count(text: str | None) -> int:
    """Estimate tokens: CJK chars count 1/1.5, everything else 1/4."""
    if not text:
        return 0
    cjk = sum(1 for c in text if is_cjk(c))
    other = len(text) - cjk
    return int(cjk / 1.5 + other / 4.0)


@dataclass
class _Unit:
    """A piece of page text plus the separator that precedes it in a segment."""

    text: str
    sep: str


class TextChunker:
    """
    Deterministic page-wise chunker.

    Args:
        chunk_size: Target tokens per chunk.
        chunk_overlap: Tokens of trailing context carried into the next chunk.
        max_chunk_size: Hard ceiling; no chunk exceeds it.
    """

    def __init__(
        self,
        chunk_size: int = 300,
        chunk_overlap: int = 50,
        max_chunk_size: int = 500,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be a positive integer")
        if not 0 <= chunk_overlap < chunk_size:
            raise ValueError("chunk_overlap must be in [0, chunk_size)")
        if max_chunk_size < chunk_size:
            raise ValueError("max_chunk_size must be >= chunk_size")

        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.max_chunk_size = max_chunk_size

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    def split_document(self, document: Document) -> Document:
        """Populate `document.content.chunks` from its pages and return it."""
        logger.info(
            "Chunking '%s': %d pages, chunk_size=%d, overlap=%d, max=%d",
            document.meta_info.file_name,
            len(document.content.pages),
            self.chunk_size, self.chunk_overlap, self.max_chunk_size,
        )

        chunks: list[Chunk] = []
        next_id = 0
        for page in document.content.pages:
            page_chunks = self.split_page(page, start_id=next_id)
            chunks.extend(page_chunks)
            next_id += len(page_chunks)

        document.content.chunks = chunks

        logger.info(
            "Chunked '%s' into %d chunks",
            document.meta_info.file_name, len(chunks),
        )
        return document

    def split_page(self, page: Page, start_id: int = 0) -> list[Chunk]:
        """Chunk a single page; ids start at `start_id`."""
        if not page.text or not page.text.strip():
            return []

        return [
            Chunk(
                id=start_id + offset,
                page=page.page,
                text=text,
                length_tokens=estimate_token_count(text),
            )
            for offset, text in enumerate(self.split_text(page.text))
        ]

    def split_text(self, text: str) -> list[str]:
        """Split free text into segment strings (no ids, no pages)."""
        units = self._units(text)
        if not units:
            return []

        segments: list[str] = []
        current: list[_Unit] = []
        has_content = False  # current holds more than carried-over overlap

        for unit in units:
            if current and has_content:
                candidate = _join(current + [unit])
                if estimate_token_count(candidate) > self.chunk_size:
                    emitted = _join(current)
                    segments.append(emitted)
                    current = self._overlap_units(emitted)
                    has_content = False

            if current and not has_content and not unit.sep:
                # Overlap tail is stripped; keep it apart from the next unit.
                unit = _Unit(unit.text, " ")
            current.append(unit)
            has_content = True

            if estimate_token_count(_join(current)) > self.max_chunk_size:
                # Overlap would push the segment past the hard ceiling.
                current = [_Unit(unit.text, "")]

        if current and has_content:
            segments.append(_join(current))

        return [s for s in segments if s]

    def split_markdown(
        self,
        markdown_text: str,
        lines_per_chunk: int,
        overlap_lines: int,
        page: int = 1,
        start_id: int = 0,
    ) -> list[Chunk]:
        """
        Line-window chunking for text that is already markdown.

        Windows of `lines_per_chunk` lines advance by
        `lines_per_chunk - overlap_lines`. All chunks are attributed to
        `page` (markdown sources have no pagination).
        """
        if lines_per_chunk <= 0:
            raise ValueError("lines_per_chunk must be a positive integer")
        if not 0 <= overlap_lines < lines_per_chunk:
            raise ValueError("overlap_lines must be in [0, lines_per_chunk)")

        lines = markdown_text.split("\n")
        step = lines_per_chunk - overlap_lines
        chunks: list[Chunk] = []

        for start in range(0, len(lines), step):
            window = lines[start:start + lines_per_chunk]
            chunk_text = "".join(f"{line}\n" for line in window)
            if chunk_text.strip():
                chunks.append(Chunk(
                    id=start_id + len(chunks),
                    page=page,
                    text=chunk_text,
                    length_tokens=estimate_token_count(chunk_text),
                ))
            if start + lines_per_chunk >= len(lines):
                break

        logger.info("Markdown chunking produced %d chunks", len(chunks))
        return chunks

    # -----------------------------------------------------------------------
    # Internal Helpers
    # -----------------------------------------------------------------------

    def _units(self, text: str) -> list[_Unit]:
        """Break text into units of at most chunk_size tokens each."""
        units: list[_Unit] = []
        for paragraph in _PARAGRAPH_BREAK.split(text):
            paragraph = paragraph.strip()
            if not paragraph:
                continue

            if estimate_token_count(paragraph) <= self.chunk_size:
                units.append(_Unit(paragraph, "\n\n"))
                continue

            sep = "\n\n"
            for sentence in _SENTENCE.findall(paragraph):
                if estimate_token_count(sentence) <= self.chunk_size:
                    units.append(_Unit(sentence, sep))
                else:
                    for piece in _hard_split(sentence, self.chunk_size):
                        units.append(_Unit(piece, sep))
                        sep = ""
                sep = ""

        if units:
            units[0].sep = ""
        return units

    def _overlap_units(self, emitted: str) -> list[_Unit]:
        """Trailing context (at most chunk_overlap tokens) of an emitted segment."""
        if self.chunk_overlap == 0:
            return []

        tail = _tail_within(emitted, self.chunk_overlap)
        # Start on a word boundary when the tail begins mid-word.
        if tail and tail != emitted and not emitted[-len(tail) - 1].isspace():
            boundary = re.search(r"\s", tail)
            if boundary:
                tail = tail[boundary.end():]
        tail = tail.strip()
        return [_Unit(tail, "")] if tail else []


def _join(units: list[_Unit]) -> str:
    if not units:
        return ""
    parts = [units[0].text]
    for unit in units[1:]:
        parts.append(unit.sep)
        parts.append(unit.text)
    return "".join(parts).strip()


def _hard_split(text: str, limit: int) -> list[str]:
    """Cut text into consecutive pieces whose estimate never exceeds `limit`."""
    pieces: list[str] = []
    start = 0
    cjk = other = 0
    for i, char in enumerate(text):
        if is_cjk(char):
            cjk += 1
        else:
            other += 1
        if int(cjk / 1.5 + other / 4.0) > limit:
            pieces.append(text[start:i])
            start = i
            cjk, other = (1, 0) if is_cjk(char) else (0, 1)
    pieces.append(text[start:])
    return [p for p in pieces if p.strip()]


def _tail_within(text: str, limit: int) -> str:
    """Longest suffix of `text` whose token estimate is <= limit."""
    cjk = other = 0
    cut = len(text)
    for i in range(len(text) - 1, -1, -1):
        if is_cjk(text[i]):
            cjk += 1
        else:
            other += 1
        if int(cjk / 1.5 + other / 4.0) > limit:
            break
        cut = i
    return text[cut:]
