"""Bounded history of global-chat messages."""
from collections import deque
from typing import Deque, List

from .schemas import GlobalMessage

# Number of global messages kept for late joiners
DEFAULT_HISTORY_LIMIT = 100


class GlobalHistoryBuffer:
    """FIFO ring buffer of the most recent global messages.

    Appending beyond ``capacity`` drops the oldest entry. Reading never
    changes order, so this is not an LRU.
    """

    def __init__(self, capacity: int = DEFAULT_HISTORY_LIMIT) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._messages: Deque[GlobalMessage] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._messages.maxlen

    def append(self, message: GlobalMessage) -> None:
        self._messages.append(message)

    def snapshot(self) -> List[GlobalMessage]:
        """Copy of the buffer, oldest first."""
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)
