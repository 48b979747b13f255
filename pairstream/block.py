"""Block state: the label and the two series queues of the current block."""
import logging
from typing import Callable, Dict, Optional

from pairstream.errors import QueueOverflowError
from pairstream.series import Number, PairRecord, SeriesQueue

logger = logging.getLogger(__name__)

DEFAULT_LABEL_SENTINEL = "(unknown_site)"
DEFAULT_QUALIFIER_SENTINEL = "(unknown_date)"
DEFAULT_MAX_TEXT = 511


def truncate_text(text: str, max_len: int) -> str:
    """Clip text to at most max_len characters."""
    if len(text) > max_len:
        return text[:max_len]
    return text


class BlockState:
    """
    State of the one live block.

    Created once per run and reset (never recreated) at every block boundary.
    Every successful push triggers a flush, so pairs leave as soon as both
    halves are present, strictly in arrival order.
    """

    def __init__(
        self,
        first: SeriesQueue,
        second: SeriesQueue,
        emit: Callable[[PairRecord], None],
        indexed: bool = False,
        track_qualifier: bool = False,
        label_sentinel: str = DEFAULT_LABEL_SENTINEL,
        qualifier_sentinel: str = DEFAULT_QUALIFIER_SENTINEL,
        max_text: int = DEFAULT_MAX_TEXT,
        metrics=None
    ):
        self.first = first
        self.second = second
        self.emit = emit
        self.indexed = indexed
        self.track_qualifier = track_qualifier
        self.label_sentinel = label_sentinel
        self.qualifier_sentinel = qualifier_sentinel
        self.max_text = max_text
        self.metrics = metrics

        self._label: Optional[str] = None
        self._qualifier: Optional[str] = None
        self.index = 1
        self.is_open = False

        # Run-wide tallies, not cleared by reset()
        self.pairs_emitted = 0
        self.blocks_started = 0
        self.dropped: Dict[str, int] = {first.name: 0, second.name: 0}
        self.discarded: Dict[str, int] = {first.name: 0, second.name: 0}

    @property
    def label(self) -> str:
        return self._label if self._label else self.label_sentinel

    @property
    def qualifier(self) -> str:
        return self._qualifier if self._qualifier else self.qualifier_sentinel

    def set_label(self, text: Optional[str]):
        """Replace the label; None or blank text falls back to the sentinel."""
        self._label = self._clean(text)

    def set_qualifier(self, text: Optional[str]):
        self._qualifier = self._clean(text)

    def _clean(self, text: Optional[str]) -> Optional[str]:
        # Surrounding whitespace from pretty-printed markup would split the record line
        text = text.strip() if text else None
        return truncate_text(text, self.max_text) if text else None

    def push_first(self, value: Number) -> bool:
        return self._push(self.first, value)

    def push_second(self, value: Number) -> bool:
        return self._push(self.second, value)

    def _push(self, queue: SeriesQueue, value: Number) -> bool:
        try:
            queue.push_back(value)
        except QueueOverflowError as e:
            logger.warning(str(e))
            self.dropped[queue.name] += 1
            if self.metrics:
                self.metrics.record_dropped(queue.name, "overflow")
            return False

        self.flush()
        return True

    def flush(self) -> int:
        """Emit every pair currently available. Returns the number emitted."""
        emitted = 0
        while len(self.first) > 0 and len(self.second) > 0:
            first_value = self.first.pop_front()
            second_value = self.second.pop_front()
            record = PairRecord(
                label=self.label,
                first=first_value,
                second=second_value,
                index=self.index if self.indexed else None,
                qualifier=self.qualifier if self.track_qualifier else None,
            )
            self.index += 1
            self.emit(record)
            emitted += 1

        if emitted:
            self.pairs_emitted += emitted
            if self.metrics:
                self.metrics.record_pairs(emitted)
        self._update_depth()
        return emitted

    def reset(self):
        """Clear label, qualifier, index and both queues. Unpaired values are discarded."""
        for queue in (self.first, self.second):
            leftover = len(queue)
            if leftover:
                logger.debug(
                    f"Discarding {leftover} unpaired {queue.name} value(s) "
                    f"for {self.label}"
                )
                self.discarded[queue.name] += leftover
                if self.metrics:
                    self.metrics.record_discarded(queue.name, leftover)
            queue.clear()

        self._label = None
        self._qualifier = None
        self.index = 1
        self._update_depth()

    def start_block(self):
        """Block-start marker: drop whatever the previous block left behind."""
        if self.is_open:
            logger.debug("Block started while another was open, resetting it")
        self.reset()
        self.is_open = True
        self.blocks_started += 1
        if self.metrics:
            self.metrics.record_block()

    def end_block(self):
        """Block-end marker: emit the last matched pairs, then reset."""
        self.flush()
        self.reset()
        self.is_open = False

    def _update_depth(self):
        if self.metrics:
            self.metrics.set_queue_depth(self.first.name, len(self.first))
            self.metrics.set_queue_depth(self.second.name, len(self.second))
