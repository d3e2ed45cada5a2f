"""
Vector database service for per-document namespaces and similarity search.

Each document owns one Qdrant collection (its namespace). Queries are embedded
with the configured Gemini embedding model, which must be the model the
document was indexed with; the model name is recorded on the document at
ingestion so callers can detect a mismatch.
"""

from typing import List, Dict, Any, Optional
from uuid import uuid4
from qdrant_client import QdrantClient
from qdrant_client.models import Distance, VectorParams
from langchain_qdrant import QdrantVectorStore
from langchain_google_genai import GoogleGenerativeAIEmbeddings
from langchain_core.documents import Document

from ..config import settings
from ..exceptions import ConfigurationError, RetrievalError
from ..models import RetrievedPassage
from ..utils import (
    measure_time,
    log_processing_info,
    handle_processing_error
)
import logging

logger = logging.getLogger(__name__)


class VectorService:
    """Service for managing vector database operations."""

    def __init__(self, client: Optional[QdrantClient] = None, embeddings=None):
        """Initialize the vector service."""
        self.client = client or self._initialize_qdrant_client()
        self._embeddings = embeddings

    @property
    def embedding_model(self) -> str:
        return settings.google_embedding_model

    @property
    def embeddings(self) -> GoogleGenerativeAIEmbeddings:
        if self._embeddings is None:
            self._embeddings = self._initialize_embeddings()
        return self._embeddings

    def _initialize_qdrant_client(self) -> QdrantClient:
        """Initialize Qdrant client."""
        if settings.qdrant_api_key:
            client = QdrantClient(
                url=settings.qdrant_url,
                api_key=settings.qdrant_api_key
            )
        else:
            client = QdrantClient(url=settings.qdrant_url)

        log_processing_info("Qdrant client initialized", {
            "url": settings.qdrant_url,
            "has_api_key": bool(settings.qdrant_api_key)
        })

        return client

    def _initialize_embeddings(self) -> GoogleGenerativeAIEmbeddings:
        """Initialize Google Generative AI embeddings."""
        if not settings.google_api_key:
            raise ConfigurationError("GOOGLE_API_KEY is not configured")

        embeddings = GoogleGenerativeAIEmbeddings(
            model=settings.google_embedding_model,
            google_api_key=settings.google_api_key
        )

        log_processing_info("Embeddings initialized", {
            "model": settings.google_embedding_model
        })

        return embeddings

    def _vector_store(self, namespace: str) -> QdrantVectorStore:
        return QdrantVectorStore(
            client=self.client,
            collection_name=namespace,
            embedding=self.embeddings
        )

    def ensure_namespace(self, namespace: str) -> bool:
        """
        Create the namespace collection if it does not exist yet.

        Returns:
            True if created, False if it already existed
        """
        if self.client.collection_exists(namespace):
            return False

        self.client.create_collection(
            collection_name=namespace,
            vectors_config=VectorParams(
                size=settings.vector_dimension,
                distance=Distance.COSINE
            )
        )

        log_processing_info("Namespace created", {
            "namespace": namespace,
            "vector_dimension": settings.vector_dimension
        })

        return True

    @measure_time
    def store_passages(self, namespace: str, passages: List[Document]) -> int:
        """
        Embed and upsert passages into a document's namespace.

        Args:
            namespace: Namespace of the document
            passages: Chunked Document objects

        Returns:
            Number of passages stored
        """
        if not passages:
            return 0

        try:
            self.ensure_namespace(namespace)
            ids = [str(uuid4()) for _ in passages]
            self._vector_store(namespace).add_documents(documents=passages, ids=ids)

            log_processing_info("Passages stored", {
                "namespace": namespace,
                "passage_count": len(passages),
                "embedding_model": self.embedding_model
            })

            return len(passages)

        except ConfigurationError:
            raise
        except Exception as e:
            handle_processing_error(
                "passage_storage",
                e,
                {"namespace": namespace, "passage_count": len(passages)}
            )
            raise RetrievalError("Failed to store passages", {"namespace": namespace}) from e

    @measure_time
    def retrieve(self, namespace: str, query_text: str, top_k: Optional[int] = None) -> List[RetrievedPassage]:
        """
        Nearest-neighbor search inside one namespace.

        Args:
            namespace: Namespace of the document to search
            query_text: Raw user query
            top_k: Number of passages to return

        Returns:
            Passages ranked most similar first; empty when the namespace
            has no vectors yet
        """
        if top_k is None:
            top_k = settings.similarity_search_k

        try:
            if not self.client.collection_exists(namespace):
                log_processing_info("Namespace not indexed yet", {"namespace": namespace})
                return []

            results = self._vector_store(namespace).similarity_search_with_score(query_text, k=top_k)

            passages = [
                RetrievedPassage(text=doc.page_content, rank=rank, score=score)
                for rank, (doc, score) in enumerate(results, start=1)
            ]

            log_processing_info("Similarity search completed", {
                "namespace": namespace,
                "query_length": len(query_text),
                "results_count": len(passages),
                "k": top_k
            })

            return passages

        except Exception as e:
            handle_processing_error(
                "similarity_search",
                e,
                {"namespace": namespace, "k": top_k}
            )
            raise RetrievalError("Similarity search failed", {"namespace": namespace}) from e

    def delete_namespace(self, namespace: str) -> bool:
        """
        Drop a document's namespace.

        Returns:
            True if deleted successfully
        """
        try:
            if not self.client.collection_exists(namespace):
                return True
            self.client.delete_collection(namespace)

            log_processing_info("Namespace deleted", {"namespace": namespace})
            return True

        except Exception as e:
            error_info = handle_processing_error(
                "namespace_deletion",
                e,
                {"namespace": namespace}
            )
            logger.warning(f"Failed to delete namespace {namespace}: {error_info}")
            return False

    def health_check(self) -> Dict[str, Any]:
        """
        Perform health check on the vector service.

        Returns:
            Dictionary with health status information
        """
        try:
            collections = self.client.get_collections()

            return {
                "status": "healthy",
                "qdrant_url": settings.qdrant_url,
                "collections_count": len(collections.collections),
                "embedding_model": self.embedding_model
            }

        except Exception as e:
            handle_processing_error("vector_health_check", e)
            return {
                "status": "unhealthy",
                "error": str(e),
                "qdrant_url": settings.qdrant_url
            }
