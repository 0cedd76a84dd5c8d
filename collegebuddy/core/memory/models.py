"""
SQLAlchemy models for College Buddy database.

Defines the schema for users and the messages exchanged between them.
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import (
    Column, Integer, String, Text, Boolean,
    DateTime, ForeignKey, Index
)
from sqlalchemy.orm import relationship, declarative_base

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC now with microseconds (SQLite CURRENT_TIMESTAMP only has seconds)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    """Represents a registered student."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    username = Column(String(64), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)  # bcrypt
    name = Column(String(255), nullable=False)
    branch = Column(String(100), nullable=True)
    year = Column(Integer, nullable=True)
    avatar = Column(String(512), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    last_seen_at = Column(DateTime, nullable=True)

    # Relationships
    sent_messages = relationship(
        "Message", foreign_keys="Message.sender_id", back_populates="sender", cascade="all, delete-orphan"
    )
    received_messages = relationship(
        "Message", foreign_keys="Message.receiver_id", back_populates="receiver", cascade="all, delete-orphan"
    )


class Message(Base):
    """A direct message between two users, optionally about an item or a note."""
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=_new_id)
    sender_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    receiver_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)

    # Marketplace / notes context (owned by other services, stored as plain references)
    item_id = Column(String(36), nullable=True)
    note_id = Column(String(36), nullable=True)

    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    # Relationships
    sender = relationship("User", foreign_keys=[sender_id], back_populates="sent_messages")
    receiver = relationship("User", foreign_keys=[receiver_id], back_populates="received_messages")

    __table_args__ = (
        Index("idx_message_pair_created", "sender_id", "receiver_id", "created_at"),
    )
