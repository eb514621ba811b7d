"""Real-time chat module: sessions, global history and private rooms."""

from .history import GlobalHistoryBuffer
from .identity import IdentityAllocator
from .manager import BroadcastRouter, get_relay, set_relay
from .registry import DuplicateConnectionError, SessionRegistry
from .rooms import RoomManager, room_id_for

__all__ = [
    "BroadcastRouter",
    "DuplicateConnectionError",
    "GlobalHistoryBuffer",
    "IdentityAllocator",
    "RoomManager",
    "SessionRegistry",
    "get_relay",
    "room_id_for",
    "set_relay",
]
