"""User SQLModel definition.

Users are created on first external-identity verification and updated by
upsert keyed on id. The access token is a lookup credential only.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, func
from sqlmodel import Field, SQLModel


class User(SQLModel, table=True):
    """
    Chat participant.

    id is the stable identity supplied by the identity provider, not generated
    here. id=0 is reserved for the assistant that authors generated replies.
    """
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), server_default=func.now(), nullable=False),
    )
    username: Optional[str] = Field(default=None, unique=True)
    avatar_url: Optional[str] = Field(default=None)
    access_token: Optional[str] = Field(default=None, index=True)
