"""Line-oriented output sink for pair records and side-channel text."""
import io
import sys
from typing import TextIO, Tuple

from pairstream.config import OutputConfig
from pairstream.series import PairRecord


class LineSink:
    """Writes one record per line to a text stream."""

    def __init__(self, stream: TextIO):
        self.stream = stream
        self.lines_written = 0

    def write_pair(self, record: PairRecord):
        self.write_line(record.format())

    def write_line(self, text: str):
        self.stream.write(text)
        self.stream.write("\n")
        self.lines_written += 1

    def flush(self):
        self.stream.flush()


def open_output(config: OutputConfig) -> Tuple[TextIO, bool]:
    """
    Open the configured output stream.

    Returns the stream and whether the caller owns (and must close) it.
    Stdout is re-opened with the configured buffer size when it has a real
    file descriptor; otherwise it is used as is.
    """
    buffering = config.buffer_bytes if config.buffer_bytes > 0 else -1

    if config.path is not None:
        return open(config.path, "w", encoding="utf-8", buffering=buffering), True

    if config.buffer_bytes > 0:
        try:
            fd = sys.stdout.fileno()
        except (AttributeError, io.UnsupportedOperation, OSError):
            return sys.stdout, False
        sys.stdout.flush()
        return open(fd, "w", encoding="utf-8", buffering=buffering, closefd=False), True

    return sys.stdout, False
