"""
FastAPI application for the PDF Chat Backend.
"""

from typing import Optional
from fastapi import FastAPI, File, UploadFile, Depends, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
import logging

from sqlalchemy.orm import Session as OrmSession

from .config import settings, validate_required_settings
from .auth import get_current_user, ClerkUser
from .db import Base, engine, get_db
from .dependencies import get_chat_service, get_document_service, get_vector_service
from .exceptions import ConfigurationError, InvalidUpload, PDFChatError
from .models import (
    DocumentListResponse, DocumentResponse, DocumentStatusResponse, ErrorResponse,
    HealthResponse, MessagePageResponse, MessageResponse, SendMessageRequest, UpdateDocumentRequest,
    UserResponse
)
from .services.chat_service import ChatService
from .services.db_repositories import MessageRepository, UserRepository
from .services.document_service import DocumentService
from .services.vector_service import VectorService
from .utils import format_timestamp, max_upload_bytes
from . import models_db  # noqa: F401  registers tables on Base.metadata

# Configure logging
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Chat with your PDF documents",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

user_repo = UserRepository()
message_repo = MessageRepository()


@app.on_event("startup")
def on_startup():
    missing = validate_required_settings()
    if missing:
        logger.error(
            f"Missing required environment variables: {', '.join(missing)}. "
            "Chat requests will fail until they are set."
        )
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables ensured.")
    except Exception as e:
        logger.error(f"Failed to create tables: {e}")


def _error_response(status_code: int, error: str, detail: Optional[str] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail, status_code=status_code).model_dump()
    )


@app.exception_handler(PDFChatError)
async def pdfchat_exception_handler(request: Request, exc: PDFChatError):
    """Map service errors to HTTP responses without leaking internals."""
    if isinstance(exc, ConfigurationError):
        logger.error(f"Configuration error on {request.url.path}: {exc}")
        return _error_response(exc.status_code, "Configuration error")

    log = logger.error if exc.status_code >= 500 else logger.info
    log(f"{type(exc).__name__} on {request.url.path}: {exc}")
    return _error_response(exc.status_code, exc.message)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.exception(f"Unhandled exception on {request.url.path}: {exc}")
    return _error_response(
        500,
        "Internal server error",
        str(exc) if settings.debug else "An unexpected error occurred"
    )


@app.get("/", response_model=dict)
async def root():
    """Root endpoint."""
    return {
        "message": "PDF Chat API is running",
        "version": settings.app_version,
        "timestamp": format_timestamp()
    }


@app.get("/health", response_model=HealthResponse)
def health_check(vector_service: VectorService = Depends(get_vector_service)):
    """Health check covering the vector store and required configuration."""
    vector_health = vector_service.health_check()
    missing = validate_required_settings()

    healthy = vector_health.get("status") == "healthy" and not missing
    message = "Service health check completed"
    if missing:
        message = f"Missing configuration: {', '.join(missing)}"

    return HealthResponse(
        status="healthy" if healthy else "unhealthy",
        message=message,
        version=settings.app_version,
        timestamp=format_timestamp()
    )


@app.post("/auth/callback", response_model=UserResponse)
def auth_callback(current_user: ClerkUser = Depends(get_current_user), db: OrmSession = Depends(get_db)):
    """Ensure the authenticated user has a database record."""
    user = user_repo.get_or_create(
        db,
        current_user.user_id,
        email=current_user.email,
        display_name=current_user.display_name
    )
    return UserResponse.model_validate(user)


@app.get("/documents", response_model=DocumentListResponse)
def list_documents(
    current_user: ClerkUser = Depends(get_current_user),
    db: OrmSession = Depends(get_db),
    document_service: DocumentService = Depends(get_document_service)
):
    """List the user's documents, newest first."""
    documents = document_service.list_documents(db, current_user.user_id)
    return DocumentListResponse(
        documents=[DocumentResponse.model_validate(doc) for doc in documents],
        total_count=len(documents)
    )


def _read_upload(file: UploadFile) -> bytes:
    """Read an upload without buffering more than the request-level cap."""
    limit = max_upload_bytes()
    if file.size is not None and file.size > limit:
        raise InvalidUpload(f"File {file.filename} is too large: {file.size/1024/1024:.1f}MB")
    content = file.file.read(limit + 1)
    if len(content) > limit:
        raise InvalidUpload(f"File {file.filename} is too large")
    return content


@app.post("/documents", response_model=DocumentResponse)
def upload_document(
    file: UploadFile = File(...),
    current_user: ClerkUser = Depends(get_current_user),
    db: OrmSession = Depends(get_db),
    document_service: DocumentService = Depends(get_document_service)
):
    """Upload a PDF and index it for chat."""
    content = _read_upload(file)
    doc = document_service.upload_document(db, current_user.user_id, file.filename or "", content)
    return DocumentResponse.model_validate(doc)


@app.get("/documents/{document_id}", response_model=DocumentResponse)
def get_document(
    document_id: str,
    current_user: ClerkUser = Depends(get_current_user),
    db: OrmSession = Depends(get_db),
    document_service: DocumentService = Depends(get_document_service)
):
    """Get one of the user's documents."""
    doc = document_service.get_document(db, current_user.user_id, document_id)
    return DocumentResponse.model_validate(doc)


@app.patch("/documents/{document_id}", response_model=DocumentResponse)
def update_document(
    document_id: str,
    request: UpdateDocumentRequest,
    current_user: ClerkUser = Depends(get_current_user),
    db: OrmSession = Depends(get_db),
    document_service: DocumentService = Depends(get_document_service)
):
    """Rename a document or change its icon and color."""
    doc = document_service.update_document(
        db,
        current_user.user_id,
        document_id,
        name=request.name,
        icon_index=request.icon_index,
        color_index=request.color_index
    )
    return DocumentResponse.model_validate(doc)


@app.post("/documents/{document_id}/views", response_model=DocumentResponse)
def track_document_view(
    document_id: str,
    current_user: ClerkUser = Depends(get_current_user),
    db: OrmSession = Depends(get_db),
    document_service: DocumentService = Depends(get_document_service)
):
    """Record that the owner opened a document."""
    doc = document_service.track_view(db, current_user.user_id, document_id)
    return DocumentResponse.model_validate(doc)


@app.get("/documents/{document_id}/status", response_model=DocumentStatusResponse)
def get_document_status(
    document_id: str,
    current_user: ClerkUser = Depends(get_current_user),
    db: OrmSession = Depends(get_db),
    document_service: DocumentService = Depends(get_document_service)
):
    """Poll the upload status of a document."""
    return DocumentStatusResponse(
        status=document_service.get_upload_status(db, current_user.user_id, document_id)
    )


@app.delete("/documents/{document_id}")
def delete_document(
    document_id: str,
    current_user: ClerkUser = Depends(get_current_user),
    db: OrmSession = Depends(get_db),
    document_service: DocumentService = Depends(get_document_service)
):
    """Delete a document together with its messages and vectors."""
    document_service.delete_document(db, current_user.user_id, document_id)
    return {"message": "Document deleted successfully"}


@app.get("/documents/{document_id}/messages", response_model=MessagePageResponse)
def get_document_messages(
    document_id: str,
    cursor: Optional[int] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    current_user: ClerkUser = Depends(get_current_user),
    db: OrmSession = Depends(get_db),
    document_service: DocumentService = Depends(get_document_service)
):
    """Browse a document's chat history, newest first."""
    document_service.get_document(db, current_user.user_id, document_id)
    messages, next_cursor = message_repo.page(
        db, document_id, cursor=cursor, limit=limit or settings.messages_page_size
    )
    return MessagePageResponse(
        messages=[MessageResponse.model_validate(m) for m in messages],
        next_cursor=next_cursor
    )


@app.post("/messages", response_class=PlainTextResponse)
def send_message(
    request: SendMessageRequest,
    current_user: ClerkUser = Depends(get_current_user),
    db: OrmSession = Depends(get_db),
    chat_service: ChatService = Depends(get_chat_service)
):
    """Ask a question about a document; the body of the response is the assistant reply."""
    reply = chat_service.handle_chat_request(
        db,
        document_id=request.document_id,
        requester_id=current_user.user_id,
        message_text=request.message
    )
    return PlainTextResponse(reply, status_code=200)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "pdfchat.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
