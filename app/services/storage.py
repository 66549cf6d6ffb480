"""Shared storage error handling for the service layer."""
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.errors import translate_storage_error


@contextmanager
def storage_errors(session: Session) -> Iterator[None]:
    """
    Run a block of session work, rolling back and re-raising any database
    error as StorageFailure (or UniqueViolation).
    """
    try:
        yield
    except SQLAlchemyError as exc:
        session.rollback()
        raise translate_storage_error(exc) from exc
