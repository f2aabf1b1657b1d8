"""
Pydantic schemas for request/response validation.

This module contains:
- Request models for incoming message bodies
- Response models for API responses

Request models deliberately carry no length constraints: field rules live in
the logic layer so that every caller gets the same validation outcome.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# =============================================================================
# Pydantic Request Models
# =============================================================================

class CreateMessageRequest(BaseModel):
    """Body of POST /api/v1/organizations/{organization_id}/messages."""
    title: Optional[str] = Field(
        None,
        description="Message title, 3-200 characters, unique per organization"
    )
    content: Optional[str] = Field(
        None,
        description="Message content, 10-1000 characters"
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "title": "Quarterly update",
                    "content": "Revenue is up and the roadmap is on track."
                }
            ]
        }
    }


class UpdateMessageRequest(BaseModel):
    """Body of PUT /api/v1/organizations/{organization_id}/messages/{id}."""
    title: Optional[str] = Field(None, description="New title")
    content: Optional[str] = Field(None, description="New content")


# =============================================================================
# Pydantic Response Models
# =============================================================================

class MessageResponse(BaseModel):
    """
    Response model for a single message.
    Built straight from domain Message objects.
    """
    id: str = Field(..., description="Unique message identifier")
    organization_id: str = Field(..., description="Owning organization")
    title: str = Field(..., description="Message title")
    content: str = Field(..., description="Message content")
    is_active: bool = Field(..., description="Whether the message can still be changed")
    created_at: datetime = Field(..., description="Creation time (UTC)")
    updated_at: datetime = Field(..., description="Last modification time (UTC)")

    model_config = {
        "from_attributes": True,
    }


class ErrorResponse(BaseModel):
    """Response model for error responses."""
    detail: str = Field(..., description="Error description")


class FieldErrorResponse(BaseModel):
    field: str = Field(..., description="Offending field")
    message: str = Field(..., description="Rule that was violated")


class ValidationErrorResponse(BaseModel):
    """Response model for 400 responses."""
    detail: str = Field(..., description="Summary of the violations")
    errors: list[FieldErrorResponse] = Field(
        default_factory=list,
        description="One entry per violated field rule"
    )


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""
    status: str = Field(..., description="Health status")
    reason: Optional[str] = Field(None, description="Reason if not ready")
