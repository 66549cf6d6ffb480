"""Database engine construction and the one-time schema migration step.

The engine is created explicitly by the application lifespan (or by tests)
and passed to whoever needs it. Nothing here holds a module-level client.
"""
import logging

from sqlalchemy import event, text
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from app.config import settings
from app.models import Room, User
from app.services.room_service import rooms_with_activity_statement

logger = logging.getLogger(__name__)

LOBBY_ROOM_ID = 0
LOBBY_ROOM_NAME = "Lobby"
ACTIVITY_VIEW_NAME = "rooms_with_activity"


def create_db_engine(database_url: str = None, **kwargs) -> Engine:
    """
    Build a pooled engine for the given URL.

    SQLite connections are shared across threads and enforce foreign keys,
    matching the referential integrity PostgreSQL gives by default.
    """
    url = database_url or settings.DATABASE_URL
    kwargs.setdefault("echo", settings.SQL_ECHO)
    if url.startswith("sqlite"):
        connect_args = kwargs.setdefault("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", 30)

    engine = create_engine(url, **kwargs)

    if engine.dialect.name == "sqlite":
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def _create_activity_view(engine: Engine) -> None:
    select_sql = str(
        rooms_with_activity_statement().compile(
            dialect=engine.dialect, compile_kwargs={"literal_binds": True}
        )
    )
    if engine.dialect.name == "sqlite":
        ddl = f"CREATE VIEW IF NOT EXISTS {ACTIVITY_VIEW_NAME} AS {select_sql}"
    else:
        ddl = f"CREATE OR REPLACE VIEW {ACTIVITY_VIEW_NAME} AS {select_sql}"
    with engine.begin() as conn:
        conn.execute(text(ddl))


def _seed(engine: Engine) -> None:
    with Session(engine) as session:
        if session.get(Room, LOBBY_ROOM_ID) is None:
            session.add(Room(id=LOBBY_ROOM_ID, name=LOBBY_ROOM_NAME, prompt=settings.LOBBY_PROMPT))
            logger.info("Seeded room %s", LOBBY_ROOM_NAME)
        if session.get(User, settings.ASSISTANT_USER_ID) is None:
            session.add(
                User(
                    id=settings.ASSISTANT_USER_ID,
                    username=settings.ASSISTANT_USERNAME,
                    avatar_url=settings.ASSISTANT_AVATAR_URL,
                )
            )
            logger.info("Seeded assistant user id=%s", settings.ASSISTANT_USER_ID)
        session.commit()


def init_db(engine: Engine) -> None:
    """
    Idempotent migration: tables, activity view and seed rows.

    Run once before the services are used; safe to run again.
    """
    SQLModel.metadata.create_all(engine)
    _create_activity_view(engine)
    _seed(engine)
