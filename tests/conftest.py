"""Shared fixtures: SQLite engines and sessions."""
import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session

from app.database import create_db_engine, init_db
from app.services.identity_service import IdentityService
from tests.fakes import ALICE, ALICE_TOKEN, BOB, BOB_TOKEN


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def users(session):
    identity = IdentityService()
    identity.upsert(session, ALICE, ALICE_TOKEN)
    identity.upsert(session, BOB, BOB_TOKEN)
    return ALICE, BOB
