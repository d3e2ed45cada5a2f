from datetime import datetime
from typing import Optional, List, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import select, func, and_, or_

from ..models import UploadStatus
from ..models_db import User, Document, Message


class UserRepository:
    def get_or_create(self, db: Session, user_id: str, **kwargs) -> User:
        user = db.get(User, user_id)
        if user:
            return user
        user = User(id=user_id, **kwargs)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user


class DocumentRepository:
    def create(self, db: Session, *, id: str, user_id: str, name: str) -> Document:
        doc = Document(id=id, user_id=user_id, name=name, upload_status=UploadStatus.PENDING.value)
        db.add(doc)
        db.commit()
        db.refresh(doc)
        return doc

    def find_owned(self, db: Session, document_id: str, user_id: str) -> Optional[Document]:
        return db.scalars(
            select(Document).where(Document.id == document_id, Document.user_id == user_id)
        ).first()

    def list_for_user(self, db: Session, user_id: str) -> List[Document]:
        return db.scalars(
            select(Document).where(Document.user_id == user_id).order_by(Document.created_at.desc())
        ).all()

    def count_for_user(self, db: Session, user_id: str) -> int:
        return db.scalar(select(func.count()).select_from(Document).where(Document.user_id == user_id))

    def update_status(self, db: Session, doc: Document, status: UploadStatus, **fields) -> Document:
        doc.upload_status = status.value
        for key, value in fields.items():
            setattr(doc, key, value)
        db.commit()
        db.refresh(doc)
        return doc

    def update_details(self, db: Session, doc: Document, **fields) -> Document:
        for key, value in fields.items():
            setattr(doc, key, value)
        db.commit()
        db.refresh(doc)
        return doc

    def increment_views(self, db: Session, doc: Document) -> Document:
        # Incremented in SQL so concurrent views are not lost
        doc.view_count = Document.view_count + 1
        db.commit()
        db.refresh(doc)
        return doc

    def delete(self, db: Session, doc: Document) -> None:
        # ORM cascade removes the document's messages
        db.delete(doc)
        db.commit()


class MessageRepository:
    """Ordered log of chat turns per document.

    Ownership is checked by the caller; the repository trusts the document id
    it is given. Messages are ordered by (created_at, id) and never updated.
    """

    def append(self, db: Session, *, document_id: str, user_id: str, is_user_message: bool, text: str) -> Message:
        msg = Message(
            document_id=document_id,
            user_id=user_id,
            is_user_message=is_user_message,
            text=text,
            created_at=datetime.utcnow(),
        )
        db.add(msg)
        db.commit()
        db.refresh(msg)
        return msg

    def recent_window(self, db: Session, document_id: str, limit: int, exclude_id: Optional[int] = None) -> List[Message]:
        """Most recent ``limit`` messages of a document, oldest first."""
        if limit <= 0:
            return []
        stmt = select(Message).where(Message.document_id == document_id)
        if exclude_id is not None:
            stmt = stmt.where(Message.id != exclude_id)
        stmt = stmt.order_by(Message.created_at.desc(), Message.id.desc()).limit(limit)
        rows = db.scalars(stmt).all()
        return list(reversed(rows))

    def page(self, db: Session, document_id: str, cursor: Optional[int] = None, limit: int = 10) -> Tuple[List[Message], Optional[int]]:
        """Newest-first page of messages.

        ``cursor`` is the id of the first message of the page. Returns the page
        and the cursor of the next one, or None when there are no more.
        """
        stmt = select(Message).where(Message.document_id == document_id)
        if cursor is not None:
            anchor = db.get(Message, cursor)
            if anchor is None or anchor.document_id != document_id:
                return [], None
            stmt = stmt.where(
                or_(
                    Message.created_at < anchor.created_at,
                    and_(Message.created_at == anchor.created_at, Message.id <= anchor.id),
                )
            )
        stmt = stmt.order_by(Message.created_at.desc(), Message.id.desc()).limit(limit + 1)
        rows = list(db.scalars(stmt).all())

        next_cursor = None
        if len(rows) > limit:
            next_cursor = rows.pop().id
        return rows, next_cursor
