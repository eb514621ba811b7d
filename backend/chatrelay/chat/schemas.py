"""Data models for the chat relay.

Every record here is a pydantic model so that it can be dumped straight onto
the wire with ``model_dump()``. Field names are camelCase to match the browser
client.

Inbound frames are validated against ``ClientCommand``, a tagged union keyed
on ``type``. Anything that does not validate is dropped by the router.
"""
import time
from enum import Enum
from typing import Annotated, List, Literal, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


def _now_ms() -> int:
    # Coarse clock, same granularity as a browser's Date.now().
    return int(time.time() * 1000)


# =============================================================================
# Enums
# =============================================================================


class MessageKind(str, Enum):
    """Where a message was sent.

    Attributes:
        GLOBAL: Broadcast to every connection.
        PRIVATE: Sent inside a two-party room.
    """
    GLOBAL = "global"
    PRIVATE = "private"


class EventType(str, Enum):
    """Outbound event names (server to client)."""
    IDENTITY_ASSIGNED = "identity-assigned"
    GLOBAL_HISTORY = "global-history"
    SESSION_LIST = "session-list"
    USER_JOINED = "user-joined"
    USER_LEFT = "user-left"
    NEW_GLOBAL_MESSAGE = "new-global-message"
    PRIVATE_CHAT_STARTED = "private-chat-started"
    NEW_PRIVATE_MESSAGE = "new-private-message"


# =============================================================================
# State records
# =============================================================================


class Session(BaseModel):
    """Identity bound to one live connection.

    Attributes:
        connectionId: Server-minted handle for the connection.
        displayName: Generated human-readable name.
        joinedAt: Unix timestamp (seconds) of the connect.
    """
    connectionId: str = Field(..., description="Connection identifier")
    displayName: str = Field(..., description="Display name shown in UI")
    joinedAt: float = Field(
        default_factory=time.time,
        description="Timestamp in seconds since epoch"
    )


class GlobalMessage(BaseModel):
    """A message broadcast to everyone. Immutable once created."""
    model_config = ConfigDict(frozen=True)

    id: int = Field(default_factory=_now_ms, description="Millisecond clock id (not unique)")
    author: str = Field(..., description="Display name of the sender")
    text: str = Field(..., description="Message text")
    sentAt: float = Field(default_factory=time.time)
    kind: Literal[MessageKind.GLOBAL] = MessageKind.GLOBAL


class PrivateMessage(BaseModel):
    """A message sent inside a private room. Immutable once created."""
    model_config = ConfigDict(frozen=True)

    id: int = Field(default_factory=_now_ms, description="Millisecond clock id (not unique)")
    author: str = Field(..., description="Display name of the sender")
    text: str = Field(..., description="Message text")
    sentAt: float = Field(default_factory=time.time)
    kind: Literal[MessageKind.PRIVATE] = MessageKind.PRIVATE
    roomId: str = Field(..., description="Room this message belongs to")


class Room(BaseModel):
    """A private two-party channel.

    ``memberIds`` is the sorted pair fixed at creation. For a self-room both
    entries are the same connection.
    """
    roomId: str
    memberIds: Tuple[str, str]
    messages: List[PrivateMessage] = Field(default_factory=list)

    def members(self) -> List[str]:
        """Distinct member connection ids, in sorted order."""
        return sorted(set(self.memberIds))


# =============================================================================
# Inbound commands
# =============================================================================


class SendGlobalMessage(BaseModel):
    type: Literal["send-global-message"]
    text: str


class StartPrivateChat(BaseModel):
    type: Literal["start-private-chat"]
    targetConnectionId: str


class SendPrivateMessage(BaseModel):
    type: Literal["send-private-message"]
    roomId: str
    text: str


ClientCommand = Annotated[
    Union[SendGlobalMessage, StartPrivateChat, SendPrivateMessage],
    Field(discriminator="type"),
]

client_command_adapter: TypeAdapter = TypeAdapter(ClientCommand)
