"""
Repository layer for database operations.

Provides high-level methods for CRUD operations on users and messages.
"""
from typing import Optional, List, Any
import logging
from sqlalchemy.orm import Session
from sqlalchemy import and_, or_

from collegebuddy.core.memory.models import User, Message, utcnow


logger = logging.getLogger(__name__)


def require_active_session(db: Session) -> None:
    """Raise if session is closed; prevents use-after-close."""
    if not db.is_active:
        raise RuntimeError(
            "Session already closed; do not use request session outside request scope "
            "or from another thread."
        )


def safe_refresh(db: Session, obj: Any) -> None:
    """Refresh an object after commit; failures are logged, the row is already stored."""
    try:
        if db.is_active:
            db.refresh(obj)
    except Exception as e:
        logger.debug("Refresh of %r failed: %s", obj, e)


class UserRepository:
    """Repository for user operations."""

    @staticmethod
    def create(
        db: Session,
        username: str,
        email: str,
        password_hash: str,
        name: str,
        branch: Optional[str] = None,
        year: Optional[int] = None,
        avatar: Optional[str] = None,
    ) -> User:
        """Create a new user."""
        require_active_session(db)
        user = User(
            username=username,
            email=email.lower(),
            password_hash=password_hash,
            name=name,
            branch=branch,
            year=year,
            avatar=avatar,
        )
        db.add(user)
        try:
            db.commit()
            safe_refresh(db, user)
        except Exception:
            db.rollback()
            raise
        return user

    @staticmethod
    def get_by_id(db: Session, user_id: str) -> Optional[User]:
        """Get user by ID."""
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_by_email(db: Session, email: str) -> Optional[User]:
        """Get user by email (case-insensitive)."""
        return db.query(User).filter(User.email == email.lower()).first()

    @staticmethod
    def get_by_username(db: Session, username: str) -> Optional[User]:
        """Get user by username."""
        return db.query(User).filter(User.username == username).first()

    @staticmethod
    def update_last_seen(db: Session, user_id: str) -> None:
        """Update user's last seen timestamp."""
        require_active_session(db)
        user = UserRepository.get_by_id(db, user_id)
        if user:
            user.last_seen_at = utcnow()
            db.commit()


class MessageRepository:
    """Repository for direct message operations."""

    @staticmethod
    def create(
        db: Session,
        sender_id: str,
        receiver_id: str,
        content: str,
        item_id: Optional[str] = None,
        note_id: Optional[str] = None,
    ) -> Message:
        """Create a new message. read=False and created_at=now are assigned here."""
        require_active_session(db)
        message = Message(
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            item_id=item_id,
            note_id=note_id,
            read=False,
            created_at=utcnow(),
        )
        db.add(message)
        try:
            db.commit()
            safe_refresh(db, message)
        except Exception:
            db.rollback()
            raise
        return message

    @staticmethod
    def get_by_id(db: Session, message_id: str) -> Optional[Message]:
        """Get message by ID."""
        return db.query(Message).filter(Message.id == message_id).first()

    @staticmethod
    def list_for_user(
        db: Session,
        user_id: str,
        other_user_id: Optional[str] = None,
    ) -> List[Message]:
        """
        Messages involving user_id, oldest first.

        With other_user_id, only the conversation between the two users
        (either direction) is returned.
        """
        query = db.query(Message)
        if other_user_id:
            query = query.filter(
                or_(
                    and_(Message.sender_id == user_id, Message.receiver_id == other_user_id),
                    and_(Message.sender_id == other_user_id, Message.receiver_id == user_id),
                )
            )
        else:
            query = query.filter(
                or_(Message.sender_id == user_id, Message.receiver_id == user_id)
            )
        return query.order_by(Message.created_at.asc(), Message.id.asc()).all()

    @staticmethod
    def mark_read(db: Session, message_id: str) -> bool:
        """Mark a message as read. Returns False if it does not exist."""
        require_active_session(db)
        message = MessageRepository.get_by_id(db, message_id)
        if not message:
            return False
        message.read = True
        db.commit()
        return True
