"""
Document service: plan-gated ingestion, listing, status and deletion of documents.
"""

from typing import List, Optional

from sqlalchemy.orm import Session as OrmSession

from ..config import get_plan
from ..exceptions import InvalidUpload, NotFound, QuotaExceeded
from ..models import UploadStatus
from ..models_db import Document
from ..utils import (
    generate_document_id,
    namespace_for_document,
    validate_file_type,
    validate_file_size,
    measure_time,
    log_processing_info,
    handle_processing_error
)
from .db_repositories import DocumentRepository, UserRepository
from .pdf_processor import PDFProcessor
from .vector_service import VectorService
import logging

logger = logging.getLogger(__name__)


class DocumentService:
    """Service for document ingestion and management."""

    def __init__(self, vector_service: VectorService, pdf_processor: Optional[PDFProcessor] = None):
        """Initialize the document service."""
        self.vector_service = vector_service
        self.pdf_processor = pdf_processor or PDFProcessor()
        self.users = UserRepository()
        self.documents = DocumentRepository()

    def _validate_file(self, filename: str, content: bytes) -> None:
        if not validate_file_type(filename):
            raise InvalidUpload(f"Invalid file type: {filename}. Only PDF files are allowed.")
        if not validate_file_size(len(content)):
            raise InvalidUpload(
                f"File {filename} is empty or too large: {len(content)/1024/1024:.1f}MB"
            )

    @measure_time
    def upload_document(self, db: OrmSession, user_id: str, filename: str, content: bytes) -> Document:
        """
        Create a document and index its text into the document's namespace.

        The returned document is SUCCESS when indexed, or FAILED when the PDF
        exceeds the plan's page limit or extraction/indexing failed.

        Raises:
            InvalidUpload: The file is not an acceptable PDF
            QuotaExceeded: The user's plan allows no more documents
        """
        self._validate_file(filename, content)

        user = self.users.get_or_create(db, user_id)
        plan = get_plan(user.plan)
        if not validate_file_size(len(content), plan.max_file_size_mb):
            raise InvalidUpload(
                f"File {filename} exceeds the {plan.name} plan limit of {plan.max_file_size_mb}MB",
                {"plan": plan.slug, "file_size": len(content)}
            )
        if self.documents.count_for_user(db, user_id) >= plan.quota:
            raise QuotaExceeded(
                f"The {plan.name} plan allows at most {plan.quota} documents",
                {"plan": plan.slug}
            )

        doc = self.documents.create(db, id=generate_document_id(), user_id=user_id, name=filename)
        doc = self.documents.update_status(db, doc, UploadStatus.PROCESSING)

        log_processing_info("Document processing started", {
            "document_id": doc.id,
            "user_id": user_id,
            "plan": plan.slug
        })

        namespace = namespace_for_document(doc.id)
        extracted = None
        try:
            extracted = self.pdf_processor.extract_text(content, filename, doc.id)

            if extracted.page_count > plan.pages_per_pdf:
                logger.info(
                    f"Document {doc.id} has {extracted.page_count} pages, "
                    f"over the {plan.name} plan limit of {plan.pages_per_pdf}"
                )
                return self.documents.update_status(db, doc, UploadStatus.FAILED, page_count=extracted.page_count)

            if not extracted.pages:
                logger.warning(f"No text could be extracted from document {doc.id}")
                return self.documents.update_status(db, doc, UploadStatus.FAILED, page_count=extracted.page_count)

            passages = self.pdf_processor.split_into_passages(extracted.pages)
            self.vector_service.store_passages(namespace, passages)

        except Exception as e:
            handle_processing_error("document_processing", e, {"document_id": doc.id})
            # Drop any passages upserted before the failure
            if not self.vector_service.delete_namespace(namespace):
                logger.warning(f"Namespace {namespace} of failed document {doc.id} was left behind")
            page_count = extracted.page_count if extracted is not None else None
            return self.documents.update_status(db, doc, UploadStatus.FAILED, page_count=page_count)

        doc = self.documents.update_status(
            db,
            doc,
            UploadStatus.SUCCESS,
            page_count=extracted.page_count,
            embedding_model=self.vector_service.embedding_model
        )

        log_processing_info("Document processing completed", {
            "document_id": doc.id,
            "page_count": doc.page_count,
            "passages": len(passages)
        })

        return doc

    def list_documents(self, db: OrmSession, user_id: str) -> List[Document]:
        return self.documents.list_for_user(db, user_id)

    def get_document(self, db: OrmSession, user_id: str, document_id: str) -> Document:
        doc = self.documents.find_owned(db, document_id, user_id)
        if doc is None:
            raise NotFound("Document not found", {"document_id": document_id})
        return doc

    def update_document(self, db: OrmSession, user_id: str, document_id: str, name: Optional[str] = None,
                        icon_index: Optional[int] = None, color_index: Optional[int] = None) -> Document:
        """
        Edit a document's display details.

        Only the given fields change; an empty or blank name keeps the old one.

        Raises:
            NotFound: Document missing or owned by someone else
        """
        doc = self.get_document(db, user_id, document_id)

        fields = {}
        if name and name.strip():
            fields["name"] = name.strip()
        if icon_index is not None:
            fields["icon_index"] = icon_index
        if color_index is not None:
            fields["color_index"] = color_index

        if not fields:
            return doc
        return self.documents.update_details(db, doc, **fields)

    def track_view(self, db: OrmSession, user_id: str, document_id: str) -> Document:
        """Count one view of a document by its owner."""
        doc = self.get_document(db, user_id, document_id)
        return self.documents.increment_views(db, doc)

    def get_upload_status(self, db: OrmSession, user_id: str, document_id: str) -> UploadStatus:
        """Status for polling clients; an unknown document reads as PENDING."""
        doc = self.documents.find_owned(db, document_id, user_id)
        if doc is None:
            return UploadStatus.PENDING
        return UploadStatus(doc.upload_status)

    def delete_document(self, db: OrmSession, user_id: str, document_id: str) -> None:
        """Delete a document, its messages and its vector namespace."""
        doc = self.get_document(db, user_id, document_id)
        self.documents.delete(db, doc)

        namespace = namespace_for_document(document_id)
        if not self.vector_service.delete_namespace(namespace):
            logger.warning(f"Document {document_id} deleted but namespace {namespace} was left behind")

        log_processing_info("Document deleted", {
            "document_id": document_id,
            "user_id": user_id
        })
