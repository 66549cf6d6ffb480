"""Error taxonomy for the room/message subsystem.

Exceptions:
- StorageFailure: any database error, carrying the underlying message
- UniqueViolation: a StorageFailure caused by a unique constraint
- RoomNotFound / IdentityNotFound: a required entity is missing
- EmptyCompletion: the completion provider returned no choices
- CompletionProviderFailure: the completion provider call itself failed
"""
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

UNIQUE_VIOLATION_SQLSTATE = "23505"


class ChatStoreError(Exception):
    """Base class for all errors surfaced by the chat services."""


class StorageFailure(ChatStoreError):
    """Underlying storage error."""


class UniqueViolation(StorageFailure):
    """Insert rejected because a unique key already exists."""


class RoomNotFound(ChatStoreError):
    def __init__(self, room_id: Optional[int] = None, name: Optional[str] = None):
        self.room_id = room_id
        self.name = name
        key = f"id={room_id}" if room_id is not None else f"name={name!r}"
        super().__init__(f"Room not found ({key})")


class IdentityNotFound(ChatStoreError):
    def __init__(self):
        super().__init__("Could not find user with access token.")


class EmptyCompletion(ChatStoreError):
    def __init__(self):
        super().__init__("Completion provider returned no choices")


class CompletionProviderFailure(ChatStoreError):
    """Completion request failed (network, timeout, non-2xx, malformed payload)."""


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    # psycopg2 exposes pgcode, psycopg 3 exposes sqlstate
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code is not None:
        return code == UNIQUE_VIOLATION_SQLSTATE
    return "UNIQUE constraint failed" in str(orig)


def translate_storage_error(exc: SQLAlchemyError) -> StorageFailure:
    """
    Map a SQLAlchemy exception onto the storage error taxonomy.

    Args:
        exc: Exception raised by the session or engine

    Returns:
        UniqueViolation for unique-key conflicts, StorageFailure otherwise
    """
    message = str(getattr(exc, "orig", None) or exc)
    if isinstance(exc, IntegrityError) and _is_unique_violation(exc):
        return UniqueViolation(message)
    return StorageFailure(message)
