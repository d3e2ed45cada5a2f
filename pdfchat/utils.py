"""
Utility functions for the PDF Chat Backend.
"""

import re
import time
import uuid
import functools
from typing import Dict, Any, Optional
from datetime import datetime
import logging

from .config import settings

logger = logging.getLogger(__name__)


def generate_document_id() -> str:
    """Generate a unique document ID."""
    return str(uuid.uuid4())


def namespace_for_document(document_id: str) -> str:
    """Vector namespace (Qdrant collection) holding one document's passages."""
    clean_id = document_id.replace('-', '')
    return f"{settings.qdrant_collection_prefix}-{clean_id}"


def validate_file_type(filename: str) -> bool:
    """Validate that the upload is a PDF."""
    if not filename or '.' not in filename:
        return False
    return filename.lower().rsplit('.', 1)[-1] == "pdf"


def max_upload_bytes(max_size_mb: Optional[int] = None) -> int:
    """Byte limit for an upload; defaults to the request-level cap."""
    return (max_size_mb or settings.max_file_size_mb) * 1024 * 1024


def validate_file_size(file_size: int, max_size_mb: Optional[int] = None) -> bool:
    """Validate if the file size is within limits."""
    max_size_bytes = max_upload_bytes(max_size_mb)
    return 0 < file_size <= max_size_bytes


def format_timestamp() -> str:
    """Get current timestamp in ISO format."""
    return datetime.utcnow().isoformat()


def measure_time(func):
    """Decorator to measure function execution time."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.time()
        try:
            return func(*args, **kwargs)
        finally:
            execution_time = time.time() - start_time
            logger.info(f"{func.__name__} executed in {execution_time:.2f} seconds")
    return wrapper


def truncate(text: str, limit: int = 200) -> str:
    """Shorten text for log lines and client-facing error messages."""
    if len(text) <= limit:
        return text
    return text[:limit - 3] + "..."


def clean_text(text: str) -> str:
    """Collapse whitespace and strip control characters from extracted text."""
    if not text:
        return ""

    text = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f]', '', text)
    return ' '.join(text.split())


def create_passage_metadata(document_id: str, filename: str, page_num: int, total_pages: int,
                            additional_metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Create metadata stored alongside each indexed passage."""
    base_metadata = {
        'document_id': document_id,
        'source': filename,
        'page': page_num,
        'total_pages': total_pages,
        'created_at': format_timestamp()
    }

    if additional_metadata:
        base_metadata.update(additional_metadata)

    return base_metadata


def log_processing_info(operation: str, details: Dict[str, Any]) -> None:
    """Log processing information."""
    logger.info(f"{operation}: {details}")


def handle_processing_error(operation: str, error: Exception, context: Dict[str, Any] = None) -> Dict[str, Any]:
    """Handle and log processing errors."""
    error_info = {
        'operation': operation,
        'error_type': type(error).__name__,
        'error_message': str(error),
        'timestamp': format_timestamp()
    }

    if context:
        error_info.update(context)

    logger.error(f"Processing error: {error_info}")
    return error_info
