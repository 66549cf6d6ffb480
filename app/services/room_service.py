"""Room Store: idempotent room creation, metadata lookup and activity listing."""
import logging
from typing import Optional

from sqlalchemy import func
from sqlmodel import Session, select

from app.errors import RoomNotFound, UniqueViolation
from app.models import Message, Room
from app.schemas.chat import RoomActivity, RoomNamePrompt
from app.services.storage import storage_errors

logger = logging.getLogger(__name__)


def rooms_with_activity_statement():
    """
    Rooms left-joined to their messages, newest activity first.

    Rooms without messages have a NULL last_message_at and sort last.
    Also used as the body of the rooms_with_activity view.
    """
    last_message_at = func.max(Message.created_at).label("last_message_at")
    return (
        select(Room.id.label("id"), Room.name.label("name"), last_message_at)
        .select_from(Room)
        .outerjoin(Message, Message.room_id == Room.id)
        .group_by(Room.id, Room.name)
        .order_by(last_message_at.desc().nulls_last(), Room.id)
    )


class RoomService:
    """Sole writer of Room rows."""

    def list_rooms(self, session: Session) -> list[RoomActivity]:
        """List rooms ordered by most recent message, empty rooms last."""
        with storage_errors(session):
            rows = session.exec(rooms_with_activity_statement()).all()
        return [
            RoomActivity(room_id=row.id, name=row.name, last_message_at=row.last_message_at)
            for row in rows
        ]

    def _get_room(self, session: Session, room_id: int) -> Room:
        with storage_errors(session):
            room = session.get(Room, room_id)
        if room is None:
            raise RoomNotFound(room_id=room_id)
        return room

    def get_room_name(self, session: Session, room_id: int) -> str:
        return self._get_room(session, room_id).name

    def get_room_prompt(self, session: Session, room_id: int) -> Optional[str]:
        """Prompt of the room; None when the room was created without one."""
        return self._get_room(session, room_id).prompt

    def get_room_name_prompt(self, session: Session, room_id: int) -> RoomNamePrompt:
        room = self._get_room(session, room_id)
        return RoomNamePrompt(name=room.name, prompt=room.prompt)

    def _find_room_id(self, session: Session, name: str) -> Optional[int]:
        with storage_errors(session):
            statement = select(Room.id).where(Room.name == name)
            return session.exec(statement).first()

    def ensure_room(self, session: Session, name: str, prompt: Optional[str] = None) -> int:
        """Create a room by name if it does not exist, and return its id."""
        room_id, _ = self.ensure_room_created(session, name, prompt)
        return room_id

    def ensure_room_created(
        self, session: Session, name: str, prompt: Optional[str] = None
    ) -> tuple[int, bool]:
        """
        Create a room by name if it does not exist.

        Insert first, then read back by name. A unique violation on insert
        means another caller already created the room and is ignored; any
        other storage error propagates. Concurrent callers for the same name
        all observe the same id.

        Args:
            session: Database session
            name: Room name (natural key)
            prompt: Persona prompt, only stored if this call creates the room

        Returns:
            (room id, whether this call inserted the room)

        Raises:
            StorageFailure: If the insert or the read fails
            RoomNotFound: If the room is still not visible after a second read
        """
        created = False
        try:
            with storage_errors(session):
                session.add(Room(name=name, prompt=prompt))
                session.commit()
            created = True
            logger.info(f"Room created: name={name!r}")
        except UniqueViolation:
            logger.debug(f"Room already exists: name={name!r}")

        room_id = self._find_room_id(session, name)
        if room_id is None:
            # The winning insert may not be visible yet
            logger.warning(f"Room {name!r} not visible after insert, reading again")
            room_id = self._find_room_id(session, name)
        if room_id is None:
            raise RoomNotFound(name=name)
        return room_id, created
