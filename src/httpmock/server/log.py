"""
HttpMock Interaction Log

Ordered store of every mock-traffic request the server received.

Index 0 is always the oldest surviving entry: ``pop()`` removes the newest
entry and leaves every other index unchanged, ``shift()`` removes the oldest
and renumbers the rest down by one.
"""

import threading
from typing import List, Optional

from ..common.errors import RequestNotFound
from ..common.request import RecordedRequest


class InteractionLog:
    """
    Append-only request log with destructive reads from either end.

    Example:
        log = InteractionLog()
        log.append(request)
        oldest = log.first()
        newest = log.pop()
    """

    def __init__(self, lock: Optional[threading.RLock] = None):
        """
        Initialize interaction log.

        Args:
            lock: Lock shared with the matching engine (created if None)
        """
        self.lock = lock or threading.RLock()
        self._entries: List[RecordedRequest] = []

    def append(self, request: RecordedRequest):
        with self.lock:
            self._entries.append(request)

    def first(self) -> RecordedRequest:
        with self.lock:
            self._ensure_not_empty()
            return self._entries[0]

    def last(self) -> RecordedRequest:
        with self.lock:
            self._ensure_not_empty()
            return self._entries[-1]

    latest = last

    def at(self, index: int) -> RecordedRequest:
        """
        Return the entry at ``index`` without removing it.

        Raises:
            RequestNotFound: If index is outside [0, len)
        """
        with self.lock:
            if not 0 <= index < len(self._entries):
                raise RequestNotFound(
                    f"No recorded request at index {index} ({len(self._entries)} recorded)"
                )
            return self._entries[index]

    def pop(self) -> RecordedRequest:
        """Remove and return the newest entry."""
        with self.lock:
            self._ensure_not_empty()
            return self._entries.pop()

    def shift(self) -> RecordedRequest:
        """Remove and return the oldest entry."""
        with self.lock:
            self._ensure_not_empty()
            return self._entries.pop(0)

    def all(self) -> List[RecordedRequest]:
        with self.lock:
            return list(self._entries)

    def clear(self) -> int:
        with self.lock:
            count = len(self._entries)
            self._entries.clear()
            return count

    def __len__(self) -> int:
        with self.lock:
            return len(self._entries)

    def _ensure_not_empty(self):
        if not self._entries:
            raise RequestNotFound("No recorded requests")
