"""Room and Message SQLModel definitions.

Models:
- Room: named conversation context with an optional persona prompt
- Message: immutable, timestamped, room-scoped, user-attributed text
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Text, func
from sqlmodel import Field, SQLModel


class Room(SQLModel, table=True):
    """
    Room entity.

    name is the natural key: at most one room exists per name.
    prompt is set at creation and never changed.
    """
    __tablename__ = "rooms"

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), server_default=func.now(), nullable=False),
    )
    name: str = Field(unique=True, nullable=False)
    prompt: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))


class Message(SQLModel, table=True):
    """
    Message entity.

    Ordered within a room by created_at, ties broken by id.
    Column names follow the storage schema (message, from, room).
    """
    __tablename__ = "messages"

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
        ),
    )
    text: str = Field(sa_column=Column("message", Text))
    user_id: int = Field(
        sa_column=Column("from", Integer, ForeignKey("users.id"), nullable=False)
    )
    room_id: int = Field(
        sa_column=Column("room", Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    )
