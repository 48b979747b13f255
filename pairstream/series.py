"""Per-series FIFO queues and the pair records drained from them."""
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Literal, Optional, Union

from pairstream.errors import QueueOverflowError

Number = Union[int, float]
QueueStrategy = Literal["bounded", "unbounded"]


class SeriesQueue(ABC):
    """FIFO of numeric values belonging to one series of the current block."""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    def push_back(self, value: Number) -> None:
        """Append a value; raises QueueOverflowError if the queue cannot take it."""

    @abstractmethod
    def pop_front(self) -> Optional[Number]:
        """Remove and return the oldest value, or None when empty."""

    @abstractmethod
    def clear(self) -> None:
        """Drop every queued value."""

    @abstractmethod
    def __len__(self) -> int:
        pass

    def size(self) -> int:
        return len(self)

    def snapshot(self) -> List[Number]:
        """Copy of the queued values, oldest first. Intended for diagnostics."""
        return list(self._iter_values())

    @abstractmethod
    def _iter_values(self):
        pass


class BoundedQueue(SeriesQueue):
    """Fixed-capacity ring buffer.

    The backing list is allocated once and kept across clears; clearing
    only rewinds the cursors, stale slots are overwritten by later pushes.
    """

    def __init__(self, name: str, capacity: int):
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        super().__init__(name)
        self.capacity = capacity
        self._data: List[Optional[Number]] = [None] * capacity
        self._start = 0
        self._count = 0

    def push_back(self, value: Number) -> None:
        if self._count >= self.capacity:
            raise QueueOverflowError(self.name, self.capacity)
        self._data[(self._start + self._count) % self.capacity] = value
        self._count += 1

    def pop_front(self) -> Optional[Number]:
        if self._count == 0:
            return None
        value = self._data[self._start]
        self._start = (self._start + 1) % self.capacity
        self._count -= 1
        if self._count == 0:
            self._start = 0
        return value

    def clear(self) -> None:
        self._start = 0
        self._count = 0

    def __len__(self) -> int:
        return self._count

    def _iter_values(self):
        for offset in range(self._count):
            yield self._data[(self._start + offset) % self.capacity]


class GrowableQueue(SeriesQueue):
    """Unbounded queue backed by a deque; only memory exhaustion stops a push."""

    capacity = None

    def __init__(self, name: str):
        super().__init__(name)
        self._data: Deque[Number] = deque()

    def push_back(self, value: Number) -> None:
        # deque.append either stores the value or raises MemoryError untouched
        self._data.append(value)

    def pop_front(self) -> Optional[Number]:
        if not self._data:
            return None
        return self._data.popleft()

    def clear(self) -> None:
        self._data = deque()

    def __len__(self) -> int:
        return len(self._data)

    def _iter_values(self):
        return iter(self._data)


def create_queue(name: str, strategy: QueueStrategy, capacity: int) -> SeriesQueue:
    """Build a queue for the configured strategy. Capacity is ignored when unbounded."""
    if strategy == "bounded":
        return BoundedQueue(name, capacity)
    elif strategy == "unbounded":
        return GrowableQueue(name)
    raise ValueError(f"Unknown queue strategy: {strategy}")


def format_number(value: Number) -> str:
    """Render a value in general decimal form without losing precision."""
    if isinstance(value, float):
        text = repr(value)
        # Whole numbers print as %g would: 91 rather than 91.0
        if text.endswith(".0"):
            return text[:-2]
        return text
    return str(value)


@dataclass
class PairRecord:
    """One matched pair, ready for output."""
    label: str
    first: Number
    second: Number
    index: Optional[int] = None
    qualifier: Optional[str] = None

    def fields(self) -> List[str]:
        """Output fields in order: [index] label [qualifier] first second."""
        out = []
        if self.index is not None:
            out.append(str(self.index))
        out.append(self.label)
        if self.qualifier is not None:
            out.append(self.qualifier)
        out.append(format_number(self.first))
        out.append(format_number(self.second))
        return out

    def format(self) -> str:
        return " ".join(self.fields())
