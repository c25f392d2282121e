"""
Pydantic schemas for request/response validation.

This module contains:
- Request models for incoming data validation
- Response models for API responses
- The Gemini generateContent response shape, with every field optional
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from janmitra.utils import format_ticket_id


# =============================================================================
# Pydantic Request Models
# =============================================================================

class ChatRequest(BaseModel):
    """
    Body of POST /api/chat.

    message is optional here so that a missing or empty message reaches the
    router and is reported as an input error rather than a schema error.
    """
    message: Optional[str] = Field(None, description="The citizen's chat message")

    model_config = {
        "extra": "ignore",
        "json_schema_extra": {
            "examples": [{"message": "How do I report a broken streetlight?"}]
        }
    }


# =============================================================================
# Pydantic Response Models
# =============================================================================

class ErrorResponse(BaseModel):
    """Uniform error body."""
    error: str = Field(..., description="Error description")


class ReportResponse(BaseModel):
    """Response model for a successful issue submission."""
    success: bool = Field(default=True)
    id: int = Field(..., ge=1, description="Generated issue id")
    ticket_id: str = Field(..., alias="ticketId", description="Human-facing ticket, TC-<10000 + id>")
    image_url: str = Field(..., alias="imageUrl", description="Public path of the uploaded image")

    model_config = {"populate_by_name": True}


class IssueResponse(BaseModel):
    """
    One issue record as returned by GET /api/reports.
    Carries the derived ticketId alongside the stored columns.
    """
    id: int
    ticket_id: str = Field(..., alias="ticketId")
    filename: str
    originalname: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    created_at: datetime
    status: str

    model_config = {"populate_by_name": True}

    @classmethod
    def from_issue(cls, issue) -> "IssueResponse":
        """Build the response from an ORM Issue, deriving its ticket id."""
        return cls(
            id=issue.id,
            ticket_id=format_ticket_id(issue.id),
            filename=issue.filename,
            originalname=issue.originalname,
            description=issue.description,
            category=issue.category,
            lat=issue.lat,
            lon=issue.lon,
            created_at=issue.created_at,
            status=issue.status,
        )


class CountResponse(BaseModel):
    count: int = Field(..., ge=0, description="Number of stored issues")


class ChatResponse(BaseModel):
    reply: str


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""
    status: str = Field(..., description="Health status")
    reason: Optional[str] = Field(None, description="Reason if not ready")


# =============================================================================
# Gemini generateContent Response
# =============================================================================
#
# Every field is optional: a missing candidate, content or part is an expected
# shape and resolves to the "no reply" placeholder, not to a parse failure.

class GeminiPart(BaseModel):
    text: Optional[str] = None

    model_config = {"extra": "ignore"}


class GeminiContent(BaseModel):
    parts: list[GeminiPart] = Field(default_factory=list)

    model_config = {"extra": "ignore"}


class GeminiCandidate(BaseModel):
    content: Optional[GeminiContent] = None

    model_config = {"extra": "ignore"}


class GeminiError(BaseModel):
    code: Optional[int] = None
    message: Optional[str] = None
    status: Optional[str] = None

    model_config = {"extra": "ignore"}


class GenerateContentResponse(BaseModel):
    candidates: list[GeminiCandidate] = Field(default_factory=list)
    error: Optional[GeminiError] = None

    model_config = {"extra": "ignore"}

    def first_text(self) -> Optional[str]:
        """Text of the first part of the first candidate, if there is one."""
        if not self.candidates:
            return None
        content = self.candidates[0].content
        if content is None or not content.parts:
            return None
        return content.parts[0].text
