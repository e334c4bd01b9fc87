# =============================================================================
# Error Taxonomy
# =============================================================================
#
# Every error the core raises derives from ReportQAError so callers can
# catch the family in one clause.
#
#   ReportQAError
#   ├── ScopeNotFoundError     → no quoted company name in the question
#   ├── NoContextError         → retrieval returned nothing for the scope
#   ├── ModelInvocationError   → chat model transport/provider failure
#   ├── ParseError             → malformed model output (recovered locally)
#   ├── DimensionMismatchError → vector length != store dimension
#   ├── EmptyInputError        → blank text passed to the embedder
#   ├── SessionNotFoundError   → unknown session id with auto-create off
#   └── IngestionError         → a document could not be ingested
#
# The Answer Processor converts the first four into a degraded Answer; none
# of them crosses the public `answer()` boundary.
# =============================================================================

from __future__ import annotations


class ReportQAError(Exception):
    """Base class for all service errors."""


class ScopeNotFoundError(ReportQAError):
    """The question carries no quoted company/document name."""

    def __init__(self, question: str) -> None:
        super().__init__(
            "Could not extract a scope from the question: put the company "
            f"name in quotes (question: {question!r})"
        )
        self.question = question


class NoContextError(ReportQAError):
    """Retrieval produced no passages for the extracted scope."""

    def __init__(self, scope: str) -> None:
        super().__init__(f"No relevant context found for scope {scope!r}")
        self.scope = scope


class ModelInvocationError(ReportQAError):
    """The chat model call failed (network, auth, provider error)."""


class ParseError(ReportQAError):
    """The model response could not be parsed into the answer schema."""


class DimensionMismatchError(ReportQAError):
    """A vector's length does not match the store's fixed dimension."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Vector dimension mismatch: store expects {expected}, got {actual}"
        )
        self.expected = expected
        self.actual = actual


class EmptyInputError(ReportQAError):
    """Blank text was passed where content is required."""


class SessionNotFoundError(ReportQAError):
    """A message was added to an unknown session while auto-create is off."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class IngestionError(ReportQAError):
    """A document failed to move through parse → chunk → embed → store."""
