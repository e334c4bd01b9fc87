# =============================================================================
# Prompt Builder: System Prompts per Answer Kind + RAG Context Formatting
# =============================================================================
#
# Pure string templates, no I/O. Three entry points:
#   build_system_prompt(kind)          → base instruction + JSON schema block
#   format_retrieval_context(results)  → "Text retrieved from page N" blocks
#   build_user_prompt(context, q)      → fixed template substitution
#
# Every schema block asks for the same four JSON keys:
#   step_by_step_analysis, reasoning_summary, relevant_pages, final_answer
# Only the shape of `final_answer` and the extraction rules differ by kind.
# Unknown kinds fall back to the string template.
# =============================================================================

from __future__ import annotations

from collections.abc import Iterable

from report_qa.models.domain import QuestionKind, RetrievalResult

NO_CONTEXT_SENTINEL = "No relevant context was retrieved."

_BASE_INSTRUCTION = """\
You are a RAG (retrieval-augmented generation) question answering system.
Your task is to answer the given question using ONLY the pages of the company \
annual report that were retrieved for it.

Before giving the final answer, think step by step, paying close attention to \
the exact wording of the question.
- Note: the answer may be phrased differently from the question.
- The question may have been generated from a template and may not apply to \
this company.
"""

_SCHEMA_HEADER = """
Your answer MUST be JSON and strictly follow this schema:
{
  "step_by_step_analysis": "Detailed step-by-step reasoning, at least 5 steps and 150 words",
  "reasoning_summary": "Short summary of the step-by-step reasoning, about 50 words",
  "relevant_pages": [list of page numbers],
"""

_SCHEMAS: dict[QuestionKind, str] = {
    QuestionKind.NUMBER: _SCHEMA_HEADER + """\
  "final_answer": a number or "N/A"
}

**Number extraction rules:**
- Percentages: 58.3% → 58.3
- Negative values in parentheses: (2,124,837) → -2124837
- Values stated in thousands: 4970.5 (in thousands of USD) → 4970500
- Values stated in millions are expanded the same way
- If the currency differs from the one asked about, return "N/A"
- If the value must be calculated or derived, return "N/A"
""",
    QuestionKind.BOOLEAN: _SCHEMA_HEADER + """\
  "final_answer": true or false
}

**Boolean rules:**
- If the question asks whether something happened and the context covers the \
topic but it did not happen, return false
- If the context explicitly states that it happened, return true
""",
    QuestionKind.NAMES: _SCHEMA_HEADER + """\
  "final_answer": ["name 1", "name 2"] or "N/A"
}

**Name list rules:**
- If the question asks about position changes, return only the position \
titles, not the names
- If the question asks for names, return only full names as written in the context
- If the question asks about new products, return only the product names
""",
    QuestionKind.STRING: _SCHEMA_HEADER + """\
  "final_answer": "answer text" or "N/A"
}
""",
}


def build_system_prompt(kind: QuestionKind | str) -> str:
    """System prompt for an answer kind; unknown kinds use the string schema."""
    return _BASE_INSTRUCTION + _SCHEMAS[QuestionKind.coerce(kind)]


def format_retrieval_context(results: Iterable[RetrievalResult] | None) -> str:
    if not results:
        return NO_CONTEXT_SENTINEL

    blocks = [
        f'Text retrieved from page {result.page}:\n"""\n{result.text}\n"""\n\n---\n\n'
        for result in results
    ]
    if not blocks:
        return NO_CONTEXT_SENTINEL
    return "".join(blocks).strip()


def build_user_prompt(context: str, question: str) -> str:
    return (
        'Here is the context:\n"""\n'
        f"{context}\n"
        '"""\n\n---\n\n'
        "Here is the question:\n"
        f'"{question}"\n'
    )
