"""
Single-slot, drop-oldest channel connecting pipeline threads.

Stages favour freshness over completeness: a producer never waits, and an
item that was not picked up before the next one arrives is discarded.
"""

import logging
import queue
import threading

from handpose.core.errors import ChannelClosed

logger = logging.getLogger(__name__)


class FrameSlot:
    """Capacity-1 handoff between exactly one producer and one consumer.

    Example:
        >>> slot = FrameSlot("frames")
        >>> slot.put_latest(frame_a)
        False
        >>> slot.put_latest(frame_b)   # frame_a discarded
        True
        >>> slot.recv() is frame_b
        True
    """

    def __init__(self, name: str = "slot"):
        self.name = name
        self._cond = threading.Condition()
        self._item = None
        self._has_item = False
        self._closed = False
        self._dropped = 0

    def put_latest(self, item) -> bool:
        """Store ``item``, replacing any unconsumed one.

        Returns:
            True if an older item was displaced (consumer is behind).
        """
        with self._cond:
            if self._closed:
                return False
            displaced = self._has_item
            if displaced:
                self._dropped += 1
            self._item = item
            self._has_item = True
            self._cond.notify()
        return displaced

    def recv(self, timeout=None):
        """Block until an item is available.

        Raises:
            ChannelClosed: the slot was closed and holds nothing.
            queue.Empty: ``timeout`` elapsed first.
        """
        with self._cond:
            if not self._cond.wait_for(lambda: self._has_item or self._closed, timeout):
                raise queue.Empty
            if not self._has_item:
                raise ChannelClosed(self.name)
            return self._take()

    def try_recv(self):
        """Return the pending item or None without blocking."""
        with self._cond:
            if not self._has_item:
                return None
            return self._take()

    def recv_latest(self, timeout=None):
        """Receive, then skip ahead to anything newer that arrived meanwhile."""
        item = self.recv(timeout)
        newer = self.try_recv()
        while newer is not None:
            item = newer
            newer = self.try_recv()
        return item

    def close(self) -> None:
        """Mark the producer side finished and wake any waiting consumer."""
        with self._cond:
            if self._closed:
                return
            self._closed = True
            self._cond.notify_all()
        logger.debug("Channel '%s' closed (dropped %d items)", self.name, self._dropped)

    def _take(self):
        item = self._item
        self._item = None
        self._has_item = False
        return item

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    @property
    def occupied(self) -> bool:
        with self._cond:
            return self._has_item

    @property
    def dropped(self) -> int:
        with self._cond:
            return self._dropped
