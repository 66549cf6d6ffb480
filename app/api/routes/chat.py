"""Room and message routes.

Provides:
- GET /api/rooms - List rooms by recent activity
- POST /api/rooms - Create a room, or get the existing one with that name
- GET /api/rooms/{room_id} - Room name and prompt
- GET /api/rooms/{room_id}/messages - Room history
- POST /api/rooms/{room_id}/messages - Send a message and get the assistant reply
"""
from datetime import datetime
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel
from sqlmodel import Session

from app.core.deps import get_access_token, get_chat_service, get_current_user, get_db
from app.errors import RoomNotFound, StorageFailure
from app.schemas.chat import (
    MessageCreate,
    MessageView,
    RoomActivity,
    RoomCreate,
    RoomNamePrompt,
    UserView,
)
from app.services.chat_service import ChatService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])


class RoomCreated(BaseModel):
    """Response model for room creation."""
    room_id: int


class StoredMessage(BaseModel):
    """Response model for a single stored message."""
    id: int
    room_id: int
    user_id: int
    message: str
    created_at: datetime


class SendResponse(BaseModel):
    """
    Response model for a send.

    message is always present; reply is None when reply generation failed,
    in which case reply_error says why.
    """
    message: StoredMessage
    reply: Optional[StoredMessage] = None
    reply_error: Optional[str] = None


def _stored(msg) -> StoredMessage:
    return StoredMessage(
        id=msg.id,
        room_id=msg.room_id,
        user_id=msg.user_id,
        message=msg.text,
        created_at=msg.created_at,
    )


@router.get("/rooms", response_model=list[RoomActivity])
def list_rooms(
    current_user: UserView = Depends(get_current_user),
    session: Session = Depends(get_db),
    chat_service: ChatService = Depends(get_chat_service),
) -> list[RoomActivity]:
    """List rooms, most recently active first; rooms without messages last."""
    return chat_service.rooms.list_rooms(session)


@router.post("/rooms", response_model=RoomCreated, status_code=status.HTTP_201_CREATED)
def ensure_room(
    request: RoomCreate,
    response: Response,
    current_user: UserView = Depends(get_current_user),
    session: Session = Depends(get_db),
    chat_service: ChatService = Depends(get_chat_service),
) -> RoomCreated:
    """
    Create a room by name, or return the existing room with that name.

    The prompt is only stored when this call creates the room.
    Returns 201 when the room was created, 200 when it already existed.
    """
    room_id, created = chat_service.rooms.ensure_room_created(
        session, request.name, request.prompt
    )
    if not created:
        response.status_code = status.HTTP_200_OK
    return RoomCreated(room_id=room_id)


@router.get("/rooms/{room_id}", response_model=RoomNamePrompt)
def get_room(
    room_id: int,
    current_user: UserView = Depends(get_current_user),
    session: Session = Depends(get_db),
    chat_service: ChatService = Depends(get_chat_service),
) -> RoomNamePrompt:
    return chat_service.rooms.get_room_name_prompt(session, room_id)


@router.get("/rooms/{room_id}/messages", response_model=list[MessageView])
def get_room_messages(
    room_id: int,
    limit: Optional[int] = Query(None, ge=1, description="Keep only the newest N messages"),
    current_user: UserView = Depends(get_current_user),
    session: Session = Depends(get_db),
    chat_service: ChatService = Depends(get_chat_service),
) -> list[MessageView]:
    """
    Get room history, oldest first.

    Raises:
        HTTPException: 404 if the room does not exist
    """
    # Distinguish an unknown room from an empty one
    chat_service.rooms.get_room_name(session, room_id)
    messages = chat_service.messages.get_room_messages(session, room_id)
    if limit is not None:
        messages = messages[-limit:]
    return messages


@router.post(
    "/rooms/{room_id}/messages",
    response_model=SendResponse,
    status_code=status.HTTP_201_CREATED,
)
def send_message(
    room_id: int,
    request: MessageCreate,
    access_token: str = Depends(get_access_token),
    session: Session = Depends(get_db),
    chat_service: ChatService = Depends(get_chat_service),
) -> SendResponse:
    """
    Send a message to a room and generate the assistant reply.

    Flow:
    1. Store user message
    2. Call completion provider with the room prompt
    3. Store reply

    A failed reply still returns 201: the user's message was sent.

    Raises:
        HTTPException: 400 if the message is empty
        IdentityNotFound: 401 via the app handler if the token is unknown
        HTTPException: 404 if the room does not exist
        HTTPException: 503 if the user message cannot be stored
    """
    if not request.message or len(request.message.strip()) == 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Message cannot be empty",
        )

    try:
        outcome = chat_service.send_message(session, access_token, room_id, request.message)
    except RoomNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Room unavailable",
        )
    except StorageFailure as e:
        logger.error(f"Send failed before the message was stored: room={room_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Chat service temporarily unavailable",
        )

    return SendResponse(
        message=_stored(outcome.user_message),
        reply=_stored(outcome.reply) if outcome.reply is not None else None,
        reply_error="AI reply unavailable" if outcome.reply_failed else None,
    )
