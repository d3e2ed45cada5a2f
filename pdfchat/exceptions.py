"""
Exception hierarchy for the PDF Chat Backend.

Every error raised by the services derives from PDFChatError so the API
layer can map it to an HTTP status in one place. Messages are short and
safe to show to clients; extra context goes into ``details`` for logging.
"""

from typing import Any, Dict, Optional


class PDFChatError(Exception):
    """Base exception for all PDF Chat errors."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class Unauthorized(PDFChatError):
    """Raised when no valid requester identity is present."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized", details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details)


class NotFound(PDFChatError):
    """Raised when a document does not exist or is not owned by the requester."""

    status_code = 404

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details)


class InvalidMessage(PDFChatError):
    """Raised when a chat message is empty or too long."""

    status_code = 422


class InvalidUpload(PDFChatError):
    """Raised when an uploaded file is rejected before ingestion."""

    status_code = 400


class QuotaExceeded(PDFChatError):
    """Raised when the user's plan does not allow another document."""

    status_code = 403


class ConfigurationError(PDFChatError):
    """Raised when a required external credential is absent."""

    status_code = 500


class ServiceError(PDFChatError):
    """Raised when the completion API fails or returns an unusable response."""

    status_code = 500

    def __init__(
        self,
        message: str = "AI service error",
        upstream_status: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.upstream_status = upstream_status
        details = details or {}
        if upstream_status is not None:
            details["upstream_status"] = upstream_status
        super().__init__(message, details)


class RetrievalError(PDFChatError):
    """Raised when the vector index lookup fails.

    The chat pipeline treats this as an empty passage set, so it never
    reaches the client.
    """
