"""Private two-party rooms.

A room id is derived from its two members, so both sides compute the same id
without coordination::

    room_id_for("b7", "a3") == room_id_for("a3", "b7") == "a3-b7"

Rooms are never deleted. Once both members have disconnected nobody can reach
the room again, because connection ids are not reused.
"""
import logging
from typing import Dict, Optional

from .schemas import PrivateMessage, Room

logger = logging.getLogger(__name__)


def room_id_for(a: str, b: str) -> str:
    """Deterministic, order-independent room id for a pair of connections."""
    first, second = sorted((a, b))
    return f"{first}-{second}"


class RoomManager:
    """Arena of ``Room`` records indexed by room id."""

    def __init__(self) -> None:
        # room_id -> Room
        self._rooms: Dict[str, Room] = {}

    def ensure_room(self, a: str, b: str) -> Room:
        """Return the room for ``a`` and ``b``, creating it on first use.

        Idempotent in both argument orders.
        """
        room_id = room_id_for(a, b)
        room = self._rooms.get(room_id)
        if room is None:
            first, second = sorted((a, b))
            room = Room(roomId=room_id, memberIds=(first, second))
            self._rooms[room_id] = room
            logger.info(f"[Rooms] Created room {room_id}")
        return room

    def append_message(self, room_id: str, message: PrivateMessage) -> bool:
        """Append to a room's log.

        Returns:
            True if stored, False if the room does not exist (nothing is created).
        """
        room = self._rooms.get(room_id)
        if room is None:
            return False
        room.messages.append(message)
        return True

    def get_room(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(room_id)

    def __len__(self) -> int:
        return len(self._rooms)
