"""
Services package for the PDF Chat Backend.
"""

from .pdf_processor import PDFProcessor
from .vector_service import VectorService
from .completion_client import CompletionClient
from .chat_service import ChatService
from .document_service import DocumentService

__all__ = [
    "PDFProcessor",
    "VectorService",
    "CompletionClient",
    "ChatService",
    "DocumentService"
]
