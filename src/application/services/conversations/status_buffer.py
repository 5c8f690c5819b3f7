"""Bounded holding area for status callbacks that arrive before their message.

A provider can report ``sent``/``delivered`` before the send result carrying
its message id has been recorded. Such callbacks are parked here and
replayed once the id is known. Entries expire after ``ttl_seconds`` and the
oldest are evicted beyond ``max_entries``.
"""

import logging
import time
from collections import OrderedDict
from collections.abc import Callable

from src.domain.model.messaging import StatusCallback

logger = logging.getLogger(__name__)


class EarlyStatusBuffer:
    def __init__(
        self,
        max_entries: int = 1000,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_entries = max_entries
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, list[tuple[float, StatusCallback]]] = OrderedDict()
        self._size = 0

    def __len__(self) -> int:
        return self._size

    def add(self, callback: StatusCallback) -> None:
        if self._max_entries <= 0:
            return
        self._expire()
        now = self._clock()
        self._entries.setdefault(callback.channel_message_id, []).append((now, callback))
        self._entries.move_to_end(callback.channel_message_id)
        self._size += 1
        while self._size > self._max_entries and self._entries:
            evicted_id, evicted = self._entries.popitem(last=False)
            self._size -= len(evicted)
            logger.warning(
                f"[EarlyStatusBuffer] Evicted {len(evicted)} status callback(s) for {evicted_id}"
            )

    def discard(self, callback: StatusCallback) -> None:
        pending = self._entries.get(callback.channel_message_id)
        if not pending:
            return
        kept = [entry for entry in pending if entry[1] is not callback]
        self._size -= len(pending) - len(kept)
        if kept:
            self._entries[callback.channel_message_id] = kept
        else:
            del self._entries[callback.channel_message_id]

    def pop(self, channel_message_id: str) -> list[StatusCallback]:
        """Remove and return unexpired callbacks for ``channel_message_id`` in arrival order."""
        self._expire()
        pending = self._entries.pop(channel_message_id, [])
        self._size -= len(pending)
        return [callback for _, callback in pending]

    def _expire(self) -> None:
        if self._ttl <= 0:
            return
        cutoff = self._clock() - self._ttl
        for key in list(self._entries):
            pending = self._entries[key]
            kept = [entry for entry in pending if entry[0] >= cutoff]
            if len(kept) == len(pending):
                continue
            self._size -= len(pending) - len(kept)
            if kept:
                self._entries[key] = kept
            else:
                del self._entries[key]
