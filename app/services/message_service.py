"""Message Store: append-only message storage and room history."""
import logging

from sqlmodel import Session, select

from app.models import Message, User
from app.schemas.chat import MessageAuthor, MessageView
from app.services.storage import storage_errors

logger = logging.getLogger(__name__)


class MessageService:
    """Sole writer of Message rows."""

    def insert_message(self, session: Session, text: str, room_id: int, user_id: int) -> Message:
        """
        Append a message to a room.

        Storage assigns id and created_at. A missing room or user is reported
        by the foreign-key constraint.

        Raises:
            StorageFailure: On any write error, including FK violations
        """
        message = Message(text=text, room_id=room_id, user_id=user_id)
        with storage_errors(session):
            session.add(message)
            session.commit()
            session.refresh(message)

        logger.debug(f"Message stored: room={room_id}, user={user_id}, id={message.id}")
        return message

    def get_room_messages(self, session: Session, room_id: int) -> list[MessageView]:
        """
        Get all messages of a room with their authors, oldest first.

        No pagination here; callers slice the result if they need a bound.
        """
        statement = (
            select(Message, User)
            .join(User, Message.user_id == User.id)
            .where(Message.room_id == room_id)
            .order_by(Message.created_at, Message.id)
        )
        with storage_errors(session):
            rows = session.exec(statement).all()

        return [
            MessageView(
                message=message.text,
                from_=MessageAuthor(name=user.username, avatar_url=user.avatar_url),
                created_at=message.created_at,
            )
            for message, user in rows
        ]
