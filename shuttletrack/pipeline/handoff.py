"""
Single-slot handoff between a producer and the frame loop.
"""
import queue
from typing import Generic, Optional, TypeVar
import logging

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LatestSlot(Generic[T]):
    """
    Capacity-one slot where the newest item wins.

    A put on a full slot discards the waiting item, so a slow consumer
    always sees the most recent frame or event.
    """

    def __init__(self, name: str = "slot"):
        self.name = name
        self._queue: "queue.Queue[T]" = queue.Queue(maxsize=1)
        self.dropped = 0

    def put(self, item: T) -> None:
        try:
            self._queue.put_nowait(item)
        except queue.Full:
            try:
                self._queue.get_nowait()  # Remove oldest
            except queue.Empty:
                pass
            try:
                self._queue.put_nowait(item)
            except queue.Full:
                pass  # Refilled concurrently
            self.dropped += 1

            if self.dropped % 10 == 0:
                logger.warning(f"{self.name}: {self.dropped} items dropped (consumer too slow)")

    def take(self) -> Optional[T]:
        """Newest item, or None when empty."""
        try:
            return self._queue.get_nowait()
        except queue.Empty:
            return None

    def clear(self) -> None:
        self.take()

    def __len__(self) -> int:
        return self._queue.qsize()
