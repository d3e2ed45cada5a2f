"""
FastAPI dependency providers.

Services are process-wide and built on first use; the database session is
per request. Tests replace any of these through ``app.dependency_overrides``.
"""

from functools import lru_cache

from fastapi import Depends

from .services.chat_service import ChatService
from .services.completion_client import CompletionClient
from .services.document_service import DocumentService
from .services.vector_service import VectorService


@lru_cache
def get_vector_service() -> VectorService:
    return VectorService()


@lru_cache
def get_completion_client() -> CompletionClient:
    return CompletionClient()


def get_chat_service(
    vector_service: VectorService = Depends(get_vector_service),
    completion_client: CompletionClient = Depends(get_completion_client),
) -> ChatService:
    return ChatService(vector_service, completion_client)


def get_document_service(vector_service: VectorService = Depends(get_vector_service)) -> DocumentService:
    return DocumentService(vector_service)
