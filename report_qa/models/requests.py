# =============================================================================
# API Request Models: Pydantic V2 Schemas
# =============================================================================
#
# Shapes of data coming INTO the API. FastAPI validates bodies against them
# (422 on bad input) and publishes them in the OpenAPI docs.
# =============================================================================

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class AskRequest(BaseModel):
    """
    Request body for POST /ask.

    The company must appear in quotes inside the question; it selects the
    retrieval scope.

    Example:
        {
            "question": "What was \\"ACME Corp\\" total revenue in 2023?",
            "kind": "number",
            "session_id": null
        }
    """

    question: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        description="The question, with the company name in quotes",
        examples=['What was "ACME Corp" total revenue in 2023?'],
    )

    kind: Literal["string", "number", "boolean", "names"] = Field(
        default="string",
        description="Expected type of final_answer",
    )

    # Omitted → a new session is created and returned in the response.
    session_id: str | None = Field(
        default=None,
        description="Conversation id from a previous answer or POST /chat/new",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "question": 'What was "ACME Corp" total revenue in 2023?',
                    "kind": "number",
                },
                {
                    "question": "Did '中芯国际' announce a share buyback?",
                    "kind": "boolean",
                    "session_id": "0b7c9d9e-5f7e-4f0c-9a53-3c1f3d3f1a2b",
                },
            ]
        }
    )


class IngestPathRequest(BaseModel):
    """Request body for POST /ingest/path: ingest a PDF already on the server."""

    file_path: str = Field(..., min_length=1, description="Server-side path to a PDF")
    company_name: str | None = Field(
        default=None,
        description="Company name; derived from the filename when omitted",
    )


class IngestDirectoryRequest(BaseModel):
    """Request body for POST /ingest/directory: every PDF below a server-side directory."""

    directory: str = Field(..., min_length=1, description="Server-side directory to scan")
    rebuild: bool = Field(
        default=False,
        description="Clear the vector store before ingesting",
    )
