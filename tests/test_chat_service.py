"""Tests for the chat pipeline.

Runs against a real SQLite session with the vector and completion services
mocked, and checks what gets persisted for each outcome.
"""

import logging

import pytest

from pdfchat.config import settings
from pdfchat.exceptions import (
    ConfigurationError,
    InvalidMessage,
    NotFound,
    RetrievalError,
    ServiceError,
    Unauthorized,
)
from pdfchat.models_db import Message
from pdfchat.services.chat_service import FALLBACK_REPLY, ChatService
from pdfchat.utils import namespace_for_document


@pytest.fixture
def chat_service(mock_vector_service, mock_completion_client):
    return ChatService(mock_vector_service, mock_completion_client)


def _messages(db_session, document_id="doc_1"):
    return (
        db_session.query(Message)
        .filter(Message.document_id == document_id)
        .order_by(Message.created_at, Message.id)
        .all()
    )


def test_successful_exchange_persists_both_turns(chat_service, owned_document, db_session,
                                                 mock_vector_service, mock_completion_client):
    reply = chat_service.handle_chat_request(db_session, "doc_1", "user_1", "What is this about?")

    assert reply == "It is about X."
    rows = _messages(db_session)
    assert [(m.is_user_message, m.text) for m in rows] == [
        (True, "What is this about?"),
        (False, "It is about X."),
    ]
    assert rows[0].created_at <= rows[1].created_at
    assert all(m.user_id == "user_1" for m in rows)

    mock_vector_service.retrieve.assert_called_once_with(
        namespace_for_document("doc_1"), "What is this about?", top_k=settings.similarity_search_k
    )
    prompt = mock_completion_client.complete.call_args.args[0]
    assert "Passage one.\n\nPassage two." in prompt
    assert prompt.endswith("USER INPUT: What is this about?\n")


def test_missing_requester_is_unauthorized(chat_service, owned_document, db_session, mock_completion_client):
    with pytest.raises(Unauthorized):
        chat_service.handle_chat_request(db_session, "doc_1", None, "hello")

    assert _messages(db_session) == []
    mock_completion_client.complete.assert_not_called()


def test_other_users_document_is_not_found(chat_service, owned_document, db_session,
                                           mock_vector_service, mock_completion_client):
    with pytest.raises(NotFound):
        chat_service.handle_chat_request(db_session, "doc_1", "user_2", "hello")

    assert _messages(db_session) == []
    mock_vector_service.retrieve.assert_not_called()
    mock_completion_client.complete.assert_not_called()


def test_unknown_document_is_not_found(chat_service, owned_document, db_session):
    with pytest.raises(NotFound):
        chat_service.handle_chat_request(db_session, "missing", "user_1", "hello")


@pytest.mark.parametrize("text", ["", "   ", "x" * (settings.max_message_length + 1)])
def test_invalid_message_writes_nothing(chat_service, owned_document, db_session, mock_completion_client, text):
    with pytest.raises(InvalidMessage):
        chat_service.handle_chat_request(db_session, "doc_1", "user_1", text)

    assert _messages(db_session) == []
    mock_completion_client.complete.assert_not_called()


def test_message_at_length_limit_is_accepted(chat_service, owned_document, db_session):
    text = "x" * settings.max_message_length

    chat_service.handle_chat_request(db_session, "doc_1", "user_1", text)

    assert _messages(db_session)[0].text == text


def test_service_error_keeps_only_user_turn(chat_service, owned_document, db_session, mock_completion_client):
    mock_completion_client.complete.side_effect = ServiceError("Quota exceeded", upstream_status=429)

    with pytest.raises(ServiceError):
        chat_service.handle_chat_request(db_session, "doc_1", "user_1", "hello")

    rows = _messages(db_session)
    assert [(m.is_user_message, m.text) for m in rows] == [(True, "hello")]


def test_configuration_error_propagates(chat_service, owned_document, db_session, mock_completion_client):
    mock_completion_client.complete.side_effect = ConfigurationError("GOOGLE_API_KEY is not configured")

    with pytest.raises(ConfigurationError):
        chat_service.handle_chat_request(db_session, "doc_1", "user_1", "hello")

    assert len(_messages(db_session)) == 1


@pytest.mark.parametrize("completion", [None, ""])
def test_empty_completion_uses_fallback_reply(chat_service, owned_document, db_session,
                                              mock_completion_client, completion):
    mock_completion_client.complete.return_value = completion

    reply = chat_service.handle_chat_request(db_session, "doc_1", "user_1", "hello")

    assert reply == FALLBACK_REPLY
    assert _messages(db_session)[-1].text == FALLBACK_REPLY


def test_retrieval_failure_answers_without_context(chat_service, owned_document, db_session,
                                                   mock_vector_service, mock_completion_client):
    mock_vector_service.retrieve.side_effect = RetrievalError("Similarity search failed")

    reply = chat_service.handle_chat_request(db_session, "doc_1", "user_1", "hello")

    assert reply == "It is about X."
    prompt = mock_completion_client.complete.call_args.args[0]
    assert "CONTEXT:\n\n" in prompt


def test_history_window_is_recent_and_excludes_current_turn(chat_service, owned_document, add_message,
                                                             db_session, mock_completion_client):
    for i in range(8):
        add_message("doc_1", f"turn-{i}", is_user_message=(i % 2 == 0))

    chat_service.handle_chat_request(db_session, "doc_1", "user_1", "newest question")

    prompt = mock_completion_client.complete.call_args.args[0]
    history = prompt.split("PREVIOUS CONVERSATION:\n", 1)[1].split("\n\n", 1)[0]
    assert history.splitlines() == [
        "User: turn-2",
        "Assistant: turn-3",
        "User: turn-4",
        "Assistant: turn-5",
        "User: turn-6",
        "Assistant: turn-7",
    ]
    assert "newest question" not in history


def test_embedding_model_mismatch_logs_warning(chat_service, make_user, make_document, db_session, caplog):
    make_user("user_1")
    make_document("doc_old", "user_1", embedding_model="models/embedding-001")

    with caplog.at_level(logging.WARNING, logger="pdfchat.services.chat_service"):
        chat_service.handle_chat_request(db_session, "doc_old", "user_1", "hello")

    assert any("models/embedding-001" in record.getMessage() for record in caplog.records)
