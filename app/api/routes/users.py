"""Identity routes.

Provides:
- PUT /api/users/{user_id} - Create or update a user after external sign-in
- GET /api/me - The user holding the bearer token
- PUT /api/me - Update display name and avatar of that user
"""
from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.deps import get_access_token, get_chat_service, get_current_user, get_db
from app.schemas.chat import UserProfile, UserView
from app.services.chat_service import ChatService

router = APIRouter(prefix="/api", tags=["users"])


@router.put("/users/{user_id}", response_model=UserView)
def upsert_user(
    user_id: int,
    profile: UserProfile,
    access_token: str = Depends(get_access_token),
    session: Session = Depends(get_db),
    chat_service: ChatService = Depends(get_chat_service),
) -> UserView:
    """
    Record a user verified by the external identity provider.

    The bearer token becomes the user's credential. Called on every sign-in:
    the first call creates the user, later calls overwrite profile and token.

    Raises:
        UniqueViolation: 409 via the app handler if the name belongs to another user
    """
    user = UserView(user_id=user_id, user_name=profile.user_name, avatar_url=profile.avatar_url)
    chat_service.identity.upsert(session, user, access_token)
    return user


@router.get("/me", response_model=UserView)
def get_me(current_user: UserView = Depends(get_current_user)) -> UserView:
    return current_user


@router.put("/me", response_model=UserView)
def update_me(
    profile: UserProfile,
    access_token: str = Depends(get_access_token),
    current_user: UserView = Depends(get_current_user),
    session: Session = Depends(get_db),
    chat_service: ChatService = Depends(get_chat_service),
) -> UserView:
    """Overwrite the profile fields of the authenticated user. The token is kept."""
    updated = UserView(
        user_id=current_user.user_id,
        user_name=profile.user_name,
        avatar_url=profile.avatar_url,
    )
    chat_service.identity.upsert(session, updated, access_token)
    return updated
