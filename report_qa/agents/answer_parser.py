# =============================================================================
# Answer Parser: Raw Model Text → Answer
# =============================================================================
#
# The model is asked for strict JSON but often wraps it in a ```json fence
# or surrounds it with prose. Parsing is therefore:
#   1. strip code-fence markers
#   2. take the substring from the first "{" to the last "}"
#   3. validate it against AnswerPayload (Pydantic)
#   4. coerce `final_answer` to the question kind
#
# parse_answer() never raises: any failure yields a synthetic Answer with
# final_answer "N/A" and the error message in step_by_step_analysis.
#
# COERCION BY KIND:
#   number  → int/float (numeric strings accepted), else "N/A"
#   boolean → bool, or the strings "true"/"false", else "N/A"
#   names   → list of strings, else []
#   string  → text
#   null or "N/A" → "N/A" for every kind
# =============================================================================

from __future__ import annotations

import logging
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from report_qa.errors import ParseError
from report_qa.models.domain import (
    NOT_AVAILABLE,
    Answer,
    FinalAnswer,
    QuestionKind,
)

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json)?[ \t]*\n?", re.IGNORECASE)


class AnswerPayload(BaseModel):
    """The JSON object every system prompt asks the model to return."""

    model_config = ConfigDict(extra="ignore")

    step_by_step_analysis: str
    reasoning_summary: str
    relevant_pages: list[int] = Field(default_factory=list)
    final_answer: Any = None

    @field_validator("relevant_pages", mode="before")
    @classmethod
    def _null_pages_mean_no_claims(cls, value: Any) -> Any:
        return [] if value is None else value


def extract_json(raw: str) -> str:
    """Strip fences and return the outermost {...} span."""
    text = _FENCE.sub("", raw or "")
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        raise ParseError("No JSON object found in model response")
    return text[start:end + 1]


def parse_answer(raw: str, kind: QuestionKind | str) -> Answer:
    try:
        payload = AnswerPayload.model_validate_json(extract_json(raw))
    except (ParseError, ValidationError) as exc:
        logger.warning("Could not parse model response: %s", exc)
        return Answer(
            step_by_step_analysis=f"Parse failed: {exc}",
            reasoning_summary="JSON parse error",
            relevant_pages=[],
            final_answer=NOT_AVAILABLE,
        )

    return Answer(
        step_by_step_analysis=payload.step_by_step_analysis,
        reasoning_summary=payload.reasoning_summary,
        relevant_pages=list(payload.relevant_pages),
        final_answer=coerce_final_answer(payload.final_answer, kind),
    )


def coerce_final_answer(value: Any, kind: QuestionKind | str) -> FinalAnswer:
    if value is None or value == NOT_AVAILABLE:
        return NOT_AVAILABLE

    kind = QuestionKind.coerce(kind)
    if kind is QuestionKind.NUMBER:
        return _as_number(value)
    if kind is QuestionKind.BOOLEAN:
        return _as_bool(value)
    if kind is QuestionKind.NAMES:
        if isinstance(value, list):
            return [str(item) for item in value if item is not None]
        return []
    return value if isinstance(value, str) else str(value)


def _as_number(value: Any) -> int | float | str:
    if isinstance(value, bool):
        return NOT_AVAILABLE
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return NOT_AVAILABLE
    return NOT_AVAILABLE


def _as_bool(value: Any) -> bool | str:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "false"):
            return lowered == "true"
    return NOT_AVAILABLE
