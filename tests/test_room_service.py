"""Tests for the room store."""
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
import threading

import pytest
from sqlmodel import Session, select

from app.database import create_db_engine, init_db
from app.errors import RoomNotFound, StorageFailure
from app.models import Message, Room
from app.services.room_service import RoomService
from tests.fakes import ALICE


@pytest.fixture
def rooms():
    return RoomService()


def _add_message(session, room_id, created_at, user_id=ALICE.user_id):
    session.add(Message(text="x", room_id=room_id, user_id=user_id, created_at=created_at))
    session.commit()


def test_ensure_room_creates_and_returns_id(session, rooms):
    room_id = rooms.ensure_room(session, "Poets", "You are a poet.")

    room = session.get(Room, room_id)
    assert room.name == "Poets"
    assert room.prompt == "You are a poet."


def test_ensure_room_is_idempotent_and_keeps_first_prompt(session, rooms):
    first = rooms.ensure_room(session, "Poets", "You are a poet.")
    second = rooms.ensure_room(session, "Poets", "Something else.")

    assert first == second
    assert rooms.get_room_prompt(session, first) == "You are a poet."
    assert len(session.exec(select(Room).where(Room.name == "Poets")).all()) == 1


def test_ensure_room_existing_seed_room(session, rooms):
    assert rooms.ensure_room(session, "Lobby", "You are a helpful assistant.") == 0


def test_ensure_room_concurrent_callers_agree(tmp_path, rooms):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'rooms.db'}")
    init_db(engine)
    barrier = threading.Barrier(4)

    def create():
        with Session(engine) as session:
            barrier.wait()
            return rooms.ensure_room(session, "Concurrent", "You are a helpful assistant.")

    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(lambda _: create(), range(4)))

    assert len(set(results)) == 1
    with Session(engine) as session:
        assert len(session.exec(select(Room).where(Room.name == "Concurrent")).all()) == 1
    engine.dispose()


def test_ensure_room_other_storage_errors_surface(session, rooms):
    # NOT NULL violation on name is not a uniqueness conflict
    with pytest.raises(StorageFailure):
        rooms.ensure_room(session, None, "prompt")


def test_ensure_room_missing_after_insert_raises(session, rooms, monkeypatch):
    session.add(Room(name="Ghost"))
    session.commit()
    monkeypatch.setattr(RoomService, "_find_room_id", lambda self, s, name: None)

    with pytest.raises(RoomNotFound):
        rooms.ensure_room(session, "Ghost")


def test_lookups_fail_for_missing_room(session, rooms):
    with pytest.raises(RoomNotFound):
        rooms.get_room_name(session, 999)
    with pytest.raises(RoomNotFound):
        rooms.get_room_prompt(session, 999)
    with pytest.raises(RoomNotFound):
        rooms.get_room_name_prompt(session, 999)


def test_lookups_return_stored_values(session, rooms):
    with_prompt = rooms.ensure_room(session, "Poets", "You are a poet.")
    without_prompt = rooms.ensure_room(session, "Plain")

    assert rooms.get_room_name(session, with_prompt) == "Poets"
    assert rooms.get_room_prompt(session, without_prompt) is None
    combined = rooms.get_room_name_prompt(session, with_prompt)
    assert (combined.name, combined.prompt) == ("Poets", "You are a poet.")


def test_list_rooms_orders_by_latest_message_empty_last(session, users, rooms):
    older = rooms.ensure_room(session, "Older")
    newer = rooms.ensure_room(session, "Newer")
    rooms.ensure_room(session, "Empty")
    t0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    _add_message(session, older, t0)
    _add_message(session, newer, t0 - timedelta(hours=2))
    _add_message(session, newer, t0 + timedelta(hours=1))

    listed = rooms.list_rooms(session)

    assert [r.name for r in listed[:2]] == ["Newer", "Older"]
    # SQLite drops the offset on the way back
    assert listed[0].last_message_at.replace(tzinfo=None) == datetime(2024, 1, 1, 13, 0, 0)
    assert {r.name for r in listed[2:]} == {"Lobby", "Empty"}
    assert all(r.last_message_at is None for r in listed[2:])


def test_ensure_room_created_reports_whether_it_inserted(session, rooms):
    room_id, created = rooms.ensure_room_created(session, "Poets", "You are a poet.")
    again_id, created_again = rooms.ensure_room_created(session, "Poets")

    assert created is True
    assert created_again is False
    assert again_id == room_id


def test_created_at_assigned_by_storage(session, rooms):
    room = session.get(Room, rooms.ensure_room(session, "Stamped"))

    assert room.created_at is not None
