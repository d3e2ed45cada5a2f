"""
Shared test fixtures.

Provides an in-memory SQLite database, factories for users, documents and
messages, mocked vector/completion services and a FastAPI TestClient wired
to all of them.
"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pdfchat.auth import ClerkUser, get_current_user
from pdfchat.config import settings
from pdfchat.db import Base, create_db_engine, get_db
from pdfchat.dependencies import get_completion_client, get_vector_service
from pdfchat.main import app
from pdfchat.models import RetrievedPassage, UploadStatus
from pdfchat.models_db import Document, Message, User
from pdfchat.services.completion_client import CompletionClient
from pdfchat.services.vector_service import VectorService


@pytest.fixture
def db_session():
    """In-memory SQLite session with all tables created."""
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def make_user(db_session):
    def _make_user(user_id: str = "user_1", plan: str = "free") -> User:
        user = User(id=user_id, email=f"{user_id}@example.com", plan=plan)
        db_session.add(user)
        db_session.commit()
        return user
    return _make_user


@pytest.fixture
def make_document(db_session):
    def _make_document(document_id: str = "doc_1", user_id: str = "user_1",
                       status: UploadStatus = UploadStatus.SUCCESS,
                       embedding_model: str = None) -> Document:
        doc = Document(
            id=document_id,
            user_id=user_id,
            name=f"{document_id}.pdf",
            upload_status=status.value,
            page_count=3,
            embedding_model=embedding_model or settings.google_embedding_model,
        )
        db_session.add(doc)
        db_session.commit()
        return doc
    return _make_document


@pytest.fixture
def add_message(db_session):
    def _add_message(document_id: str, text: str, is_user_message: bool = True,
                     user_id: str = "user_1") -> Message:
        from pdfchat.services.db_repositories import MessageRepository
        return MessageRepository().append(
            db_session,
            document_id=document_id,
            user_id=user_id,
            is_user_message=is_user_message,
            text=text,
        )
    return _add_message


@pytest.fixture
def owned_document(make_user, make_document):
    """Document D1 owned by U1, plus a second user U2 with no documents."""
    make_user("user_1")
    make_user("user_2")
    return make_document("doc_1", "user_1")


@pytest.fixture
def mock_vector_service():
    service = MagicMock(spec=VectorService)
    service.embedding_model = settings.google_embedding_model
    service.retrieve.return_value = [
        RetrievedPassage(text="Passage one.", rank=1, score=0.91),
        RetrievedPassage(text="Passage two.", rank=2, score=0.84),
    ]
    service.delete_namespace.return_value = True
    return service


@pytest.fixture
def mock_completion_client():
    client = MagicMock(spec=CompletionClient)
    client.complete.return_value = "It is about X."
    return client


@pytest.fixture
def client(db_session, mock_vector_service, mock_completion_client):
    """TestClient authenticated as user_1 with mocked external services."""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_vector_service] = lambda: mock_vector_service
    app.dependency_overrides[get_completion_client] = lambda: mock_completion_client
    app.dependency_overrides[get_current_user] = lambda: ClerkUser(user_id="user_1", email="user_1@example.com")
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def as_user(client):
    """Switch the authenticated user of ``client``."""
    def _as_user(user_id: str):
        app.dependency_overrides[get_current_user] = lambda: ClerkUser(user_id=user_id)
        return client
    return _as_user


@pytest.fixture
def anonymous_client(client):
    """TestClient without the authentication override."""
    app.dependency_overrides.pop(get_current_user, None)
    return client
