"""Bounded in-memory FIFO queue between feedback submission and processing."""
import logging
from collections import deque
from typing import Deque, Generic, Optional, TypeVar

from driver_sentiment.errors import CapacityExceeded

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_CAPACITY = 10_000


class BoundedQueue(Generic[T]):
    """Fixed-capacity FIFO buffer.

    Design decisions:
    - Hard rejection when full instead of blocking the producer
    - Empty dequeue returns None; an empty queue is the normal idle state
    - Items are lost on process restart (no persistence)
    """

    def __init__(self, name: str = "feedback", max_capacity: int = DEFAULT_MAX_CAPACITY):
        if max_capacity <= 0:
            raise ValueError("max_capacity must be positive")
        self.name = name
        self.max_capacity = max_capacity
        self._items: Deque[T] = deque()

    def enqueue(self, item: T) -> int:
        """Append an item to the tail.

        Returns:
            1-indexed position of the item in the queue

        Raises:
            CapacityExceeded: If the queue already holds max_capacity items
        """
        if len(self._items) >= self.max_capacity:
            logger.warning(f"Queue '{self.name}' full, rejecting item (size {len(self._items)})")
            raise CapacityExceeded(self.name, self.max_capacity)

        self._items.append(item)
        position = len(self._items)
        logger.debug(f"Queue '{self.name}' enqueued item at position {position}")
        return position

    def dequeue(self) -> Optional[T]:
        """Remove and return the head, or None when empty."""
        if not self._items:
            return None

        item = self._items.popleft()
        logger.debug(f"Queue '{self.name}' dequeued item, {len(self._items)} remaining")
        return item

    def peek(self) -> Optional[T]:
        """Return the head without removing it, or None when empty."""
        return self._items[0] if self._items else None

    def size(self) -> int:
        return len(self._items)

    def is_empty(self) -> bool:
        return not self._items

    def __len__(self) -> int:
        return len(self._items)
