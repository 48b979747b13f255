"""Exception types raised by the pairing engine."""


class PairstreamError(Exception):
    """Base class for pairstream errors."""


class QueueOverflowError(PairstreamError):
    """A push was rejected because a bounded series queue is full."""

    def __init__(self, series: str, capacity: int):
        self.series = series
        self.capacity = capacity
        super().__init__(f"{series} queue full (max {capacity}), dropping value")


class StreamReadError(PairstreamError):
    """The upstream document could not be read to completion."""
