"""Identity resolution from opaque access tokens."""
import logging
from typing import Optional

from sqlalchemy.dialects import postgresql, sqlite
from sqlmodel import Session, select

from app.errors import IdentityNotFound, StorageFailure
from app.models import User
from app.schemas.chat import UserView
from app.services.storage import storage_errors

logger = logging.getLogger(__name__)

# Dialects with INSERT ... ON CONFLICT DO UPDATE
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class IdentityService:
    """Sole writer of User rows."""

    def resolve_by_token(self, session: Session, access_token: str) -> Optional[UserView]:
        """
        Look up a user by credential. Does not create.

        Returns:
            UserView or None when no user holds the token
        """
        if not access_token:
            return None

        with storage_errors(session):
            statement = select(User).where(User.access_token == access_token)
            user = session.exec(statement).first()

        if user is None:
            return None
        return UserView(user_id=user.id, user_name=user.username, avatar_url=user.avatar_url)

    def resolve_by_token_or_fail(self, session: Session, access_token: str) -> UserView:
        """
        Look up a user by credential.

        Raises:
            IdentityNotFound: If no user holds the token
        """
        user = self.resolve_by_token(session, access_token)
        if user is None:
            raise IdentityNotFound()
        return user

    def upsert(self, session: Session, user: UserView, access_token: str) -> None:
        """
        Insert or update a user keyed by user_id.

        A single INSERT ... ON CONFLICT (id) DO UPDATE statement, so
        concurrent first logins for the same id converge on one row.
        Overwrites display name, avatar and credential for an existing id.

        Raises:
            StorageFailure: On any write error; UniqueViolation when the
                display name belongs to another user
        """
        dialect = session.get_bind().dialect.name
        insert = _UPSERT_INSERTS.get(dialect)
        if insert is None:
            raise StorageFailure(f"User upsert is not supported on {dialect}")

        statement = insert(User).values(
            id=user.user_id,
            username=user.user_name,
            avatar_url=user.avatar_url,
            access_token=access_token,
        )
        statement = statement.on_conflict_do_update(
            index_elements=[User.id],
            set_={
                "username": statement.excluded.username,
                "avatar_url": statement.excluded.avatar_url,
                "access_token": statement.excluded.access_token,
            },
        )
        with storage_errors(session):
            session.exec(statement)
            session.commit()

        logger.info(f"User upserted: user={user.user_id}")
