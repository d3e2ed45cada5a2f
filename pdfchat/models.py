"""
Pydantic models for request/response validation.
"""

from enum import Enum
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator


class UploadStatus(str, Enum):
    """Processing status of an uploaded document."""
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class Plan(BaseModel):
    """Ingestion limits attached to a subscription plan."""
    name: str = Field(..., description="Display name of the plan")
    slug: str = Field(..., description="Stable plan identifier")
    quota: int = Field(..., ge=0, description="Maximum number of documents per user")
    pages_per_pdf: int = Field(..., ge=1, description="Maximum number of pages per PDF")
    max_file_size_mb: int = Field(..., ge=1, description="Maximum upload size in megabytes")


class SendMessageRequest(BaseModel):
    """Request model for a chat message about a document."""
    model_config = ConfigDict(populate_by_name=True)

    document_id: str = Field(..., alias="documentId", min_length=1, description="Document to chat about")
    message: str = Field(..., min_length=1, description="User's message")

    @field_validator("message")
    @classmethod
    def validate_message_length(cls, v):
        """Validate message length against the configured maximum."""
        # Import here to avoid circular imports
        from .config import settings
        if len(v) > settings.max_message_length:
            raise ValueError(f"Message exceeds maximum length of {settings.max_message_length} characters")
        return v


class RetrievedPassage(BaseModel):
    """A passage of document text returned by similarity search."""
    text: str = Field(..., description="Passage content")
    rank: int = Field(..., ge=1, description="Similarity rank, 1 is most similar")
    score: Optional[float] = Field(default=None, description="Raw similarity score")


class DocumentResponse(BaseModel):
    """Response model for a document."""
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Document ID")
    name: str = Field(..., description="Display name")
    upload_status: UploadStatus = Field(..., description="Processing status")
    page_count: Optional[int] = Field(default=None, description="Number of pages in the PDF")
    icon_index: int = Field(default=0, description="Dashboard icon choice")
    color_index: int = Field(default=0, description="Dashboard color theme choice")
    view_count: int = Field(default=0, description="Number of times the owner opened the document")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: Optional[datetime] = Field(default=None, description="Last update timestamp")


class UpdateDocumentRequest(BaseModel):
    """Request model for editing a document's display details.

    Omitted fields are left unchanged; an empty name is ignored.
    """
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(default=None, max_length=255, description="New display name")
    icon_index: Optional[int] = Field(default=None, alias="iconIndex", ge=0, le=10, description="Icon choice")
    color_index: Optional[int] = Field(default=None, alias="colorIndex", ge=0, le=10, description="Color theme choice")


class DocumentListResponse(BaseModel):
    """Response model for listing documents."""
    documents: List[DocumentResponse] = Field(..., description="Documents owned by the user, newest first")
    total_count: int = Field(..., description="Total number of documents")


class DocumentStatusResponse(BaseModel):
    """Response model for upload status polling."""
    status: UploadStatus = Field(..., description="Processing status")


class MessageResponse(BaseModel):
    """Response model for one chat turn."""
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Message ID")
    is_user_message: bool = Field(..., description="True for user turns, False for assistant turns")
    text: str = Field(..., description="Message body")
    created_at: datetime = Field(..., description="Creation timestamp")


class MessagePageResponse(BaseModel):
    """Response model for paginated chat history."""
    messages: List[MessageResponse] = Field(..., description="Messages, newest first")
    next_cursor: Optional[int] = Field(default=None, description="Cursor for the next page, if any")


class UserResponse(BaseModel):
    """Response model for the authenticated user."""
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Clerk user ID")
    email: Optional[str] = Field(default=None, description="User email")
    display_name: Optional[str] = Field(default=None, description="Display name")
    plan: str = Field(..., description="Subscription plan slug")
    created_at: datetime = Field(..., description="User creation timestamp")


class HealthResponse(BaseModel):
    """Response model for health check."""
    status: str = Field(..., description="Health status")
    message: str = Field(..., description="Status message")
    version: str = Field(..., description="Application version")
    timestamp: str = Field(..., description="Current timestamp")


class ErrorResponse(BaseModel):
    """Response model for errors."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(default=None, description="Detailed error information")
    status_code: int = Field(..., description="HTTP status code")
