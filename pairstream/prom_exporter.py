"""Prometheus self-metrics for the pairing engine."""
from typing import Optional
from prometheus_client import (
    Counter, Gauge,
    CollectorRegistry, start_http_server, write_to_textfile
)
import logging

from pairstream.config import MetricsConfig

logger = logging.getLogger(__name__)


class SelfMetrics:
    """Self-monitoring metrics for a pairing run."""

    def __init__(self, registry=None, prefix=""):
        if registry is None:
            # Use a custom registry to avoid exporting default Python/process metrics
            registry = CollectorRegistry()
        self.registry = registry

        self.pairs_emitted_total = Counter(
            f"{prefix}pairs_emitted_total",
            "Total number of matched pairs emitted",
            registry=registry
        )

        self.values_dropped_total = Counter(
            f"{prefix}values_dropped_total",
            "Values dropped before queueing",
            ["series", "reason"],
            registry=registry
        )

        self.unpaired_discarded_total = Counter(
            f"{prefix}unpaired_discarded_total",
            "Queued values discarded unpaired at a block reset",
            ["series"],
            registry=registry
        )

        self.blocks_total = Counter(
            f"{prefix}blocks_total",
            "Number of blocks started",
            registry=registry
        )

        self.passthrough_total = Counter(
            f"{prefix}passthrough_total",
            "Side-channel lines echoed to the output",
            registry=registry
        )

        self.read_errors_total = Counter(
            f"{prefix}read_errors_total",
            "Fatal input read failures",
            registry=registry
        )

        self.queue_depth = Gauge(
            f"{prefix}queue_depth",
            "Unpaired values currently queued",
            ["series"],
            registry=registry
        )

    def record_pairs(self, count: int):
        """Record emitted pairs."""
        self.pairs_emitted_total.inc(count)

    def record_dropped(self, series: str, reason: str):
        """Record a value dropped for overflow or a malformed numeral."""
        self.values_dropped_total.labels(series=series, reason=reason).inc()

    def record_discarded(self, series: str, count: int):
        self.unpaired_discarded_total.labels(series=series).inc(count)

    def record_block(self):
        self.blocks_total.inc()

    def record_passthrough(self):
        self.passthrough_total.inc()

    def record_read_error(self):
        self.read_errors_total.inc()

    def set_queue_depth(self, series: str, depth: int):
        """Set current queue depth."""
        self.queue_depth.labels(series=series).set(depth)


class MetricsExporter:
    """Owns the self-metrics and their exposition (HTTP and/or textfile)."""

    def __init__(self, config: MetricsConfig):
        self.config = config
        self.self_metrics = SelfMetrics(prefix=config.prefix)

        if config.enabled:
            self._start_server()

    @property
    def registry(self):
        return self.self_metrics.registry

    def _start_server(self):
        """Start Prometheus HTTP server."""
        try:
            start_http_server(
                self.config.port,
                addr=self.config.bind_address,
                registry=self.registry
            )
            logger.info(
                f"Prometheus exporter listening on "
                f"{self.config.bind_address}:{self.config.port}/metrics"
            )
        except Exception as e:
            logger.error(f"Failed to start Prometheus HTTP server: {e}")
            raise

    def write_textfile(self, path: Optional[str] = None):
        """Write the current metrics in exposition format, if a path is configured."""
        path = path or self.config.textfile
        if not path:
            return
        write_to_textfile(path, self.registry)
        logger.info(f"Metrics written to {path}")
