"""
Memo Bridge Backend — Pydantic Request/Response Schemas
========================================================

What:  Models for the inbound payload, the outbound import batch and the
       success response.
How:   MemoRequest is validated straight from the raw body bytes
       (model_validate_json) so that invalid JSON and a bad `text` field can
       be told apart and reported as 400, not FastAPI's default 422.
"""

from typing import List

from pydantic import BaseModel, Field, StrictStr, model_validator
from pydantic import ValidationError as PydanticValidationError

from memo_bridge.exceptions import ValidationError


# ══════════════════════════════════════════════════════════════════════════
# Inbound
# ══════════════════════════════════════════════════════════════════════════


class MemoRequest(BaseModel):
    """
    What:  Body of POST requests: `{"text": "..."}`.

    `text` must be a JSON string. An empty string is accepted; numbers, null
    and lists are not coerced.
    """
    text: StrictStr = Field(description="Memo body; split on newlines into page lines")


def parse_body(raw_body: bytes) -> MemoRequest:
    """
    Parse and validate a raw request body.

    Raises:
        ValidationError("Invalid JSON"): body is not a JSON document
        ValidationError("Missing or invalid 'text' field"): anything else wrong
    """
    try:
        return MemoRequest.model_validate_json(raw_body or b"")
    except PydanticValidationError as e:
        if any(err["type"] == "json_invalid" for err in e.errors()):
            raise ValidationError(message="Invalid JSON")
        raise ValidationError(
            message="Missing or invalid 'text' field",
            field="text",
            context={"errors": [err["type"] for err in e.errors()]},
        )


# ══════════════════════════════════════════════════════════════════════════
# Scrapbox import payload
# ══════════════════════════════════════════════════════════════════════════


class ImportPage(BaseModel):
    """
    What:  One page of a Scrapbox import.

    Scrapbox treats the first line as the page title, so `lines[0]` must
    always equal `title`.
    """
    title: str
    lines: List[str]

    @model_validator(mode="after")
    def first_line_is_title(self) -> "ImportPage":
        if not self.lines or self.lines[0] != self.title:
            raise ValueError("first line of a page must equal its title")
        return self

    @classmethod
    def from_text(cls, title: str, text: str) -> "ImportPage":
        """Build a page from a title and free text; empty lines are kept."""
        return cls(title=title, lines=[title, *text.split("\n")])


class ImportBatch(BaseModel):
    """What: Body of the import endpoint: `{"pages": [...]}`. Never empty."""
    pages: List[ImportPage] = Field(min_length=1)


# ══════════════════════════════════════════════════════════════════════════
# Responses
# ══════════════════════════════════════════════════════════════════════════


class MemoResponse(BaseModel):
    """Returned with HTTP 200 once the page has been imported."""
    ok: bool = True
    title: str = Field(description="Title of the created page")


class ErrorResponse(BaseModel):
    """Shape of every non-2xx JSON response."""
    error: str
