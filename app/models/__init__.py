from app.models.room import Message, Room
from app.models.user import User

__all__ = ["Message", "Room", "User"]
