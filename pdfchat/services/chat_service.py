"""
Chat service: turns one chat request about a document into one persisted exchange.
"""

from typing import List, Optional
import logging

from sqlalchemy.orm import Session as OrmSession

from ..config import settings
from ..exceptions import InvalidMessage, NotFound, RetrievalError, Unauthorized
from ..models import RetrievedPassage
from ..models_db import Document
from ..utils import measure_time, log_processing_info, namespace_for_document
from .completion_client import CompletionClient
from .context_assembler import assemble_prompt
from .db_repositories import DocumentRepository, MessageRepository
from .vector_service import VectorService

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "I apologize, but I couldn't generate a response."


class ChatService:
    """Retrieval-augmented chat over a single document.

    The user turn and the assistant turn are two independent writes. If the
    completion call fails the user turn stays persisted and no assistant turn
    is written; concurrent requests on the same document may interleave
    their pairs.
    """

    def __init__(
        self,
        vector_service: VectorService,
        completion_client: CompletionClient,
        documents: Optional[DocumentRepository] = None,
        messages: Optional[MessageRepository] = None,
    ):
        self.vector_service = vector_service
        self.completion_client = completion_client
        self.documents = documents or DocumentRepository()
        self.messages = messages or MessageRepository()

    def _validate_message(self, message_text: str) -> None:
        if not message_text or not message_text.strip():
            raise InvalidMessage("Message must not be empty")
        if len(message_text) > settings.max_message_length:
            raise InvalidMessage(
                f"Message exceeds maximum length of {settings.max_message_length} characters",
                {"length": len(message_text)},
            )

    def _retrieve_passages(self, document: Document, message_text: str) -> List[RetrievedPassage]:
        if document.embedding_model and document.embedding_model != self.vector_service.embedding_model:
            logger.warning(
                f"Document {document.id} was indexed with {document.embedding_model} "
                f"but queries use {self.vector_service.embedding_model}; results may be unreliable"
            )

        try:
            return self.vector_service.retrieve(
                namespace_for_document(document.id),
                message_text,
                top_k=settings.similarity_search_k,
            )
        except RetrievalError as e:
            logger.warning(f"Retrieval failed for document {document.id}, answering from history only: {e}")
            return []

    @measure_time
    def handle_chat_request(self, db: OrmSession, document_id: str, requester_id: Optional[str], message_text: str) -> str:
        """
        Answer a chat message about a document.

        Args:
            db: Database session
            document_id: Document the user is chatting with
            requester_id: Authenticated user ID
            message_text: The user's message

        Returns:
            The assistant reply, or the fallback reply when the model gave no text

        Raises:
            Unauthorized: No requester identity
            InvalidMessage: Empty or oversized message
            NotFound: Document missing or owned by someone else
            ConfigurationError: Completion API key missing
            ServiceError: Completion API failed
        """
        if not requester_id:
            raise Unauthorized()

        self._validate_message(message_text)

        # Ownership is checked before anything is written or any external call is made
        document = self.documents.find_owned(db, document_id, requester_id)
        if document is None:
            raise NotFound("Document not found", {"document_id": document_id})

        user_message = self.messages.append(
            db,
            document_id=document.id,
            user_id=requester_id,
            is_user_message=True,
            text=message_text,
        )

        passages = self._retrieve_passages(document, message_text)

        prior_messages = self.messages.recent_window(
            db, document.id, settings.history_window, exclude_id=user_message.id
        )

        prompt = assemble_prompt(prior_messages, passages, message_text)
        if settings.log_prompts:
            logger.debug(f"Prompt for document {document.id}:\n{prompt}")

        completion = self.completion_client.complete(prompt)
        reply = completion or FALLBACK_REPLY

        self.messages.append(
            db,
            document_id=document.id,
            user_id=requester_id,
            is_user_message=False,
            text=reply,
        )

        log_processing_info("Chat request completed", {
            "document_id": document.id,
            "passages_count": len(passages),
            "history_count": len(prior_messages),
            "used_fallback": not completion,
        })

        return reply
