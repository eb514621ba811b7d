"""Session registry: who is online right now."""
import logging
from typing import Dict, List, Optional

from .identity import IdentityAllocator
from .schemas import Session

logger = logging.getLogger(__name__)


class DuplicateConnectionError(RuntimeError):
    """A connection id was registered twice.

    This is a transport bug, not a client mistake, so it is raised rather
    than swallowed.
    """


class SessionRegistry:
    """Maps connection ids to their ``Session``.

    Callers broadcast ``list()`` after every register/unregister; the registry
    itself never emits anything.
    """

    def __init__(self, allocator: Optional[IdentityAllocator] = None) -> None:
        self._allocator = allocator or IdentityAllocator()
        # connection_id -> Session
        self._sessions: Dict[str, Session] = {}

    def register(self, connection_id: str) -> Session:
        """Create a session with a generated display name.

        Raises:
            DuplicateConnectionError: If ``connection_id`` is already registered.
        """
        if connection_id in self._sessions:
            raise DuplicateConnectionError(
                f"Connection {connection_id} is already registered"
            )
        session = Session(
            connectionId=connection_id,
            displayName=self._allocator.allocate(),
        )
        self._sessions[connection_id] = session
        logger.info(f"[Registry] {connection_id} registered as {session.displayName}")
        return session

    def unregister(self, connection_id: str) -> Optional[Session]:
        """Remove and return the session, or None if it was not registered."""
        session = self._sessions.pop(connection_id, None)
        if session is not None:
            logger.info(f"[Registry] {connection_id} ({session.displayName}) unregistered")
        return session

    def get(self, connection_id: str) -> Optional[Session]:
        return self._sessions.get(connection_id)

    def list(self) -> List[Session]:
        return list(self._sessions.values())

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
