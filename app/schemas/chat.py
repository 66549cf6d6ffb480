"""Read models returned by the chat services and the HTTP layer."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class UserView(BaseModel):
    """Public identity of a user. Never carries the access token."""
    user_id: int
    user_name: Optional[str] = None
    avatar_url: Optional[str] = None


class UserProfile(BaseModel):
    """Profile fields written by the identity upsert."""
    user_name: str
    avatar_url: Optional[str] = None


class RoomActivity(BaseModel):
    room_id: int
    name: str
    last_message_at: Optional[datetime] = None


class RoomNamePrompt(BaseModel):
    name: str
    prompt: Optional[str] = None


class RoomCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    prompt: Optional[str] = None


class MessageAuthor(BaseModel):
    name: Optional[str] = None
    avatar_url: Optional[str] = None


class MessageView(BaseModel):
    """A stored message with its author joined in."""
    model_config = ConfigDict(populate_by_name=True)

    message: str
    from_: MessageAuthor = Field(alias="from")
    created_at: datetime


class MessageCreate(BaseModel):
    message: str
