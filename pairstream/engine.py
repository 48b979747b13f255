"""Pairing engine: drives reader notifications through the dispatcher."""
import time
import logging
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, Iterable, Optional

from pairstream.block import BlockState
from pairstream.config import Config
from pairstream.dispatcher import EventDispatcher, ReaderEvent
from pairstream.errors import StreamReadError
from pairstream.prom_exporter import SelfMetrics
from pairstream.reader import XmlEventReader
from pairstream.series import create_queue
from pairstream.sink import LineSink

logger = logging.getLogger(__name__)


@dataclass
class RunStats:
    """Counters for one processing session."""
    events: int = 0
    pairs: int = 0
    passthrough: int = 0
    blocks: int = 0
    dropped: Dict[str, int] = field(default_factory=dict)
    malformed: Dict[str, int] = field(default_factory=dict)
    discarded: Dict[str, int] = field(default_factory=dict)
    duration_s: float = 0.0


class PairingEngine:
    """
    Wires the XML reader, the dispatcher and the single block state together.

    The engine is single-threaded and purely reactive: each notification is
    handled to completion before the next one is read.
    """

    def __init__(self, config: Config, sink: LineSink, metrics: Optional[SelfMetrics] = None):
        self.config = config
        self.sink = sink
        self.metrics = metrics
        self.profile = config.resolve_profile()

        engine_config = config.engine
        first = create_queue(
            self.profile.first_element,
            engine_config.queue_strategy,
            engine_config.first_capacity
        )
        second = create_queue(
            self.profile.second_element,
            engine_config.queue_strategy,
            engine_config.second_capacity
        )

        self.block = BlockState(
            first,
            second,
            emit=sink.write_pair,
            indexed=self.profile.indexed,
            track_qualifier=self.profile.qualifier_element is not None,
            label_sentinel=self.profile.label_sentinel,
            qualifier_sentinel=self.profile.qualifier_sentinel,
            max_text=engine_config.max_text,
            metrics=metrics
        )
        self.dispatcher = EventDispatcher(
            self.profile,
            self.block,
            passthrough=sink.write_line,
            max_text=engine_config.max_text,
            metrics=metrics
        )
        self.reader = XmlEventReader(self.dispatcher.text_elements, engine_config.chunk_size)

        if engine_config.queue_strategy == "bounded":
            capacity = f"{engine_config.first_capacity}/{engine_config.second_capacity}"
        else:
            capacity = "unbounded"
        logger.info(
            f"Pairing engine initialized: <{self.profile.first_element}> x "
            f"<{self.profile.second_element}> in <{self.profile.block_element}> "
            f"(queues: {capacity})"
        )

    def process(self, events: Iterable[ReaderEvent]) -> int:
        """Dispatch notifications in order. Returns how many were consumed."""
        count = 0
        for event in events:
            self.dispatcher.dispatch(event)
            count += 1
        return count

    def run(self, stream: BinaryIO) -> RunStats:
        """
        Process one document from a binary stream.

        Raises StreamReadError if the document is malformed or truncated;
        records written before the failure stay valid.
        """
        self.block.reset()
        self.block.is_open = False
        baseline = self._snapshot()
        start = time.time()
        consumed = 0

        try:
            consumed = self.process(self.reader.iter_events(stream))
        except StreamReadError as e:
            logger.error(f"Stopping run: {e}")
            if self.metrics:
                self.metrics.record_read_error()
            raise
        finally:
            self.sink.flush()

        # Leftovers still queued when the stream ends are abandoned, not flushed
        stats = self._stats_since(baseline)
        stats.events = consumed
        stats.duration_s = time.time() - start

        logger.info(
            f"Run complete: {stats.pairs} pairs from {stats.blocks} blocks "
            f"({stats.events} events) in {stats.duration_s:.3f}s"
        )
        if any(stats.dropped.values()) or any(stats.malformed.values()):
            logger.info(f"Dropped values: overflow={stats.dropped} malformed={stats.malformed}")
        return stats

    def _snapshot(self) -> RunStats:
        return RunStats(
            pairs=self.block.pairs_emitted,
            passthrough=self.dispatcher.passthrough_count,
            blocks=self.block.blocks_started,
            dropped=dict(self.block.dropped),
            malformed=dict(self.dispatcher.malformed),
            discarded=dict(self.block.discarded),
        )

    def _stats_since(self, baseline: RunStats) -> RunStats:
        current = self._snapshot()

        def delta(now: Dict[str, int], before: Dict[str, int]) -> Dict[str, int]:
            return {name: now[name] - before.get(name, 0) for name in now}

        return RunStats(
            pairs=current.pairs - baseline.pairs,
            passthrough=current.passthrough - baseline.passthrough,
            blocks=current.blocks - baseline.blocks,
            dropped=delta(current.dropped, baseline.dropped),
            malformed=delta(current.malformed, baseline.malformed),
            discarded=delta(current.discarded, baseline.discarded),
        )
