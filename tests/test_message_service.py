"""Tests for the message store."""
import pytest

from app.errors import StorageFailure
from app.services.message_service import MessageService
from app.services.room_service import RoomService
from tests.fakes import ALICE, BOB


@pytest.fixture
def messages():
    return MessageService()


@pytest.fixture
def room_id(session):
    return RoomService().ensure_room(session, "General", "You are a helpful assistant.")


def test_insert_message_assigns_id_and_timestamp(session, users, messages, room_id):
    stored = messages.insert_message(session, text="hi", room_id=room_id, user_id=ALICE.user_id)

    assert stored.id is not None
    assert stored.created_at is not None
    assert stored.text == "hi"


def test_get_room_messages_in_order_with_authors(session, users, messages, room_id):
    messages.insert_message(session, text="one", room_id=room_id, user_id=ALICE.user_id)
    messages.insert_message(session, text="two", room_id=room_id, user_id=BOB.user_id)
    messages.insert_message(session, text="three", room_id=room_id, user_id=ALICE.user_id)

    history = messages.get_room_messages(session, room_id)

    assert [m.message for m in history] == ["one", "two", "three"]
    assert [m.from_.name for m in history] == ["alice", "bob", "alice"]
    assert history[1].from_.avatar_url == BOB.avatar_url
    assert all(a.created_at <= b.created_at for a, b in zip(history, history[1:]))


def test_get_room_messages_scoped_to_room(session, users, messages, room_id):
    other = RoomService().ensure_room(session, "Other")
    messages.insert_message(session, text="here", room_id=room_id, user_id=ALICE.user_id)
    messages.insert_message(session, text="there", room_id=other, user_id=ALICE.user_id)

    assert [m.message for m in messages.get_room_messages(session, room_id)] == ["here"]


def test_message_view_serializes_author_as_from(session, users, messages, room_id):
    messages.insert_message(session, text="hi", room_id=room_id, user_id=ALICE.user_id)

    dumped = messages.get_room_messages(session, room_id)[0].model_dump(by_alias=True)

    assert dumped["from"] == {"name": "alice", "avatar_url": ALICE.avatar_url}


def test_insert_message_unknown_room_is_storage_failure(session, users, messages):
    with pytest.raises(StorageFailure):
        messages.insert_message(session, text="hi", room_id=404, user_id=ALICE.user_id)


def test_insert_message_unknown_user_is_storage_failure(session, messages, room_id):
    with pytest.raises(StorageFailure):
        messages.insert_message(session, text="hi", room_id=room_id, user_id=404)
