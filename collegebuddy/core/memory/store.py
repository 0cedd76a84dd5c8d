"""
Message store used by the live gateway.

Each call opens its own db_session() and returns plain dicts, so calls can be
handed to a worker thread (run_in_executor) without leaking ORM objects or
sessions across threads.
"""
import logging
from typing import Any, Dict, List, Optional

from collegebuddy.core.memory.db import db_session
from collegebuddy.core.memory.repository import MessageRepository, UserRepository
from collegebuddy.core.schemas import MessagePayload, message_to_dict, user_to_dict

logger = logging.getLogger(__name__)


class MessageStore:
    """Durable record of users and messages, as seen by the messaging core."""

    def create_message(self, payload: MessagePayload) -> Dict[str, Any]:
        """Persist a message (assigns id, read=False, createdAt=now) and return it."""
        with db_session() as db:
            message = MessageRepository.create(
                db=db,
                sender_id=payload.sender_id,
                receiver_id=payload.receiver_id,
                content=payload.content,
                item_id=payload.item_id,
                note_id=payload.note_id,
            )
            data = message_to_dict(message)
        logger.debug("Stored message %s from %s to %s", data["id"], data["senderId"], data["receiverId"])
        return data

    def get_messages(self, user_id: str, other_user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Messages for user_id (pair-filtered when other_user_id is given), oldest first."""
        with db_session() as db:
            return [
                message_to_dict(m)
                for m in MessageRepository.list_for_user(db, user_id, other_user_id)
            ]

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Public profile for user_id, or None."""
        with db_session() as db:
            user = UserRepository.get_by_id(db, user_id)
            return user_to_dict(user) if user else None


message_store = MessageStore()
