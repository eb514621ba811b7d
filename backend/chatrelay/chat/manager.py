"""Connection, session and broadcast manager for the chat relay.

This module owns every piece of shared chat state and decides who receives
which event. It ties together:

    - IdentityAllocator: random display names for new connections
    - SessionRegistry: who is online
    - GlobalHistoryBuffer: the last N global messages
    - RoomManager: private two-party rooms and their logs

Fan-out rules:
    - connect: identity, history and user list to the newcomer,
      "user joined" to everybody else, refreshed user list to everyone
    - global message: everyone
    - private chat start / private message: the room's members only
    - disconnect: "user left" and refreshed user list to everyone remaining

Concurrency:
    Every command handler is synchronous. Handlers mutate state and push
    events onto per-connection ``asyncio.Queue`` outboxes with
    ``put_nowait``, so a command runs to completion before the event loop can
    start another one. The WebSocket layer drains each outbox in its own
    writer task, which means a slow or dead client never holds up delivery
    to the others.

    Not thread-safe: all calls must come from the event loop thread.

Error policy:
    Commands that reference an unknown sender, target or room are dropped
    silently (logged at DEBUG). Only a duplicate connection id raises.
"""
import asyncio
import logging
import time
from typing import Any, Dict, Iterable, Optional

from pydantic import ValidationError

from .history import DEFAULT_HISTORY_LIMIT, GlobalHistoryBuffer
from .identity import IdentityAllocator
from .registry import SessionRegistry
from .rooms import RoomManager
from .schemas import (
    EventType,
    GlobalMessage,
    PrivateMessage,
    SendGlobalMessage,
    SendPrivateMessage,
    Session,
    StartPrivateChat,
    client_command_adapter,
)

logger = logging.getLogger(__name__)


def _event(event_type: EventType, **payload: Any) -> dict:
    """Build a JSON-ready outbound frame."""
    return {"type": event_type.value, **payload}


class BroadcastRouter:
    """Receives client commands, mutates chat state and fans out events.

    The router has no state of its own beyond the four components and the
    outbox of each live connection.

    Args:
        registry: Session registry (defaults to one with a fresh allocator).
        history: Global history buffer.
        rooms: Private room arena.
    """

    def __init__(
        self,
        registry: Optional[SessionRegistry] = None,
        history: Optional[GlobalHistoryBuffer] = None,
        rooms: Optional[RoomManager] = None,
    ) -> None:
        self.registry = registry or SessionRegistry()
        self.history = history or GlobalHistoryBuffer()
        self.rooms = rooms or RoomManager()

        # connection_id -> queue of outbound frames (None = stop writer)
        self.outboxes: Dict[str, asyncio.Queue] = {}

    @classmethod
    def from_settings(
        cls,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        name_suffix_limit: int = 1000,
    ) -> "BroadcastRouter":
        """Build a router from chat settings values."""
        allocator = IdentityAllocator(suffix_limit=name_suffix_limit)
        return cls(
            registry=SessionRegistry(allocator),
            history=GlobalHistoryBuffer(history_limit),
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def connect(self, connection_id: str) -> asyncio.Queue:
        """Register a new connection and emit the connect fan-out.

        Args:
            connection_id: Transport-minted id for the connection.

        Returns:
            The outbox the transport must drain for this connection.

        Raises:
            DuplicateConnectionError: If the id is already registered.
        """
        session = self.registry.register(connection_id)
        outbox: asyncio.Queue = asyncio.Queue()
        self.outboxes[connection_id] = outbox

        self._emit([connection_id], _event(
            EventType.IDENTITY_ASSIGNED,
            connectionId=session.connectionId,
            displayName=session.displayName,
        ))
        self._emit([connection_id], _event(
            EventType.GLOBAL_HISTORY,
            messages=[m.model_dump(mode="json") for m in self.history.snapshot()],
        ))
        self._emit([connection_id], self._session_list_event())

        others = [cid for cid in self.outboxes if cid != connection_id]
        self._emit(others, _event(
            EventType.USER_JOINED,
            displayName=session.displayName,
            timestamp=time.time(),
        ))
        self._emit(self.outboxes, self._session_list_event())

        logger.info(
            f"[Relay] {connection_id} connected as {session.displayName}. "
            f"{len(self.registry)} sessions online"
        )
        return outbox

    def disconnect(self, connection_id: str) -> Optional[Session]:
        """Unregister a connection and notify everyone remaining.

        Duplicate or unknown disconnects are a no-op.

        Returns:
            The removed session, or None if it was not registered.
        """
        outbox = self.outboxes.pop(connection_id, None)
        if outbox is not None:
            outbox.put_nowait(None)

        session = self.registry.unregister(connection_id)
        if session is None:
            logger.debug(f"[Relay] Disconnect for unknown connection {connection_id}")
            return None

        self._emit(self.outboxes, _event(
            EventType.USER_LEFT,
            displayName=session.displayName,
            timestamp=time.time(),
        ))
        self._emit(self.outboxes, self._session_list_event())

        logger.info(
            f"[Relay] {connection_id} ({session.displayName}) disconnected. "
            f"{len(self.registry)} sessions online"
        )
        return session

    # =========================================================================
    # Commands
    # =========================================================================

    def dispatch(self, connection_id: str, data: Any) -> None:
        """Parse one inbound frame and run the matching command.

        Frames that fail validation are dropped.
        """
        try:
            command = client_command_adapter.validate_python(data)
        except ValidationError as e:
            logger.debug(f"[Relay] Dropping malformed frame from {connection_id}: {e.error_count()} errors")
            return

        if isinstance(command, SendGlobalMessage):
            self.send_global_message(connection_id, command.text)
        elif isinstance(command, StartPrivateChat):
            self.start_private_chat(connection_id, command.targetConnectionId)
        elif isinstance(command, SendPrivateMessage):
            self.send_private_message(connection_id, command.roomId, command.text)

    def send_global_message(self, connection_id: str, text: str) -> Optional[GlobalMessage]:
        """Store a global message and broadcast it to every connection."""
        sender = self.registry.get(connection_id)
        if sender is None:
            logger.debug(f"[Relay] Global message from unknown sender {connection_id} dropped")
            return None

        message = GlobalMessage(author=sender.displayName, text=text)
        self.history.append(message)
        self._emit(self.outboxes, _event(
            EventType.NEW_GLOBAL_MESSAGE,
            message=message.model_dump(mode="json"),
        ))
        return message

    def start_private_chat(self, connection_id: str, target_id: str) -> Optional[str]:
        """Open (or reopen) the private room between sender and target.

        Both members receive the room id, both sessions and the full log.
        Targeting oneself yields a self-room.

        Returns:
            The room id, or None if sender or target is unknown.
        """
        sender = self.registry.get(connection_id)
        if sender is None:
            logger.debug(f"[Relay] Private chat from unknown sender {connection_id} dropped")
            return None
        target = self.registry.get(target_id)
        if target is None:
            logger.debug(f"[Relay] Private chat to unknown target {target_id} dropped")
            return None

        room = self.rooms.ensure_room(connection_id, target_id)
        self._emit(room.members(), _event(
            EventType.PRIVATE_CHAT_STARTED,
            roomId=room.roomId,
            participants=[sender.model_dump(mode="json"), target.model_dump(mode="json")],
            messages=[m.model_dump(mode="json") for m in room.messages],
        ))
        return room.roomId

    def send_private_message(
        self, connection_id: str, room_id: str, text: str
    ) -> Optional[PrivateMessage]:
        """Append to a room's log and deliver to that room's members only."""
        sender = self.registry.get(connection_id)
        if sender is None:
            logger.debug(f"[Relay] Private message from unknown sender {connection_id} dropped")
            return None
        room = self.rooms.get_room(room_id)
        if room is None:
            logger.debug(f"[Relay] Private message to unknown room {room_id} dropped")
            return None

        message = PrivateMessage(author=sender.displayName, text=text, roomId=room_id)
        self.rooms.append_message(room_id, message)
        self._emit(room.members(), _event(
            EventType.NEW_PRIVATE_MESSAGE,
            message=message.model_dump(mode="json"),
        ))
        return message

    # =========================================================================
    # Fan-out
    # =========================================================================

    def _session_list_event(self) -> dict:
        return _event(
            EventType.SESSION_LIST,
            sessions=[s.model_dump(mode="json") for s in self.registry.list()],
        )

    def _emit(self, connection_ids: Iterable[str], event: dict) -> None:
        """Queue ``event`` for each live connection in ``connection_ids``.

        Ids without an outbox (already disconnected) are skipped.
        """
        for connection_id in list(connection_ids):
            outbox = self.outboxes.get(connection_id)
            if outbox is not None:
                outbox.put_nowait(event)

    def drop_outbox(self, connection_id: str, outbox: asyncio.Queue) -> None:
        """Stop queueing events for a connection whose writer has died.

        The session stays registered until the transport reports the
        disconnect. A newer outbox under the same id is left alone.
        """
        if self.outboxes.get(connection_id) is outbox:
            del self.outboxes[connection_id]

    async def pump_outbox(
        self, connection_id: str, websocket: Any, outbox: asyncio.Queue
    ) -> None:
        """Drain an outbox onto a WebSocket until the ``None`` sentinel.

        A failed send ends this writer and drops its outbox; other
        connections are unaffected.
        """
        while True:
            event = await outbox.get()
            if event is None:
                return
            try:
                await websocket.send_json(event)
            except Exception as e:
                logger.debug(f"Failed to send to connection {connection_id}: {e}")
                self.drop_outbox(connection_id, outbox)
                return

    def get_connection_count(self) -> int:
        """Get the number of live connections."""
        return len(self.outboxes)


# =============================================================================
# Process-wide instance
# =============================================================================

_relay: Optional[BroadcastRouter] = None


def get_relay() -> BroadcastRouter:
    """Get the global relay, creating a default one on first use."""
    global _relay
    if _relay is None:
        _relay = BroadcastRouter()
    return _relay


def set_relay(relay: Optional[BroadcastRouter]) -> None:
    """Set (or clear) the global relay instance."""
    global _relay
    _relay = relay

