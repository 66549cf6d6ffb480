"""FastAPI dependencies: database sessions, services and the acting user."""
from typing import Iterator, Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.engine import Engine
from sqlmodel import Session

from app.errors import IdentityNotFound
from app.schemas.chat import UserView
from app.services.chat_service import ChatService


def get_engine(request: Request) -> Engine:
    """Engine owned by the application lifespan."""
    return request.app.state.engine


def get_db(engine: Engine = Depends(get_engine)) -> Iterator[Session]:
    """One session per request."""
    with Session(engine) as session:
        yield session


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def get_access_token(authorization: Optional[str] = Header(None)) -> str:
    """Extract the opaque access token from a Bearer authorization header."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
        )
    return authorization.split(" ", 1)[1].strip()


def get_current_user(
    access_token: str = Depends(get_access_token),
    session: Session = Depends(get_db),
    chat_service: ChatService = Depends(get_chat_service),
) -> UserView:
    """
    Resolve the acting user from the access token.

    Raises:
        HTTPException: 401 if no user holds the token
    """
    try:
        return chat_service.identity.resolve_by_token_or_fail(session, access_token)
    except IdentityNotFound as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
        )
