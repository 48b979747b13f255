"""
Pytest configuration and fixtures for pairstream tests.
"""

import io

import pytest

from pairstream.block import BlockState
from pairstream.config import Config
from pairstream.engine import PairingEngine
from pairstream.series import BoundedQueue, GrowableQueue
from pairstream.sink import LineSink


@pytest.fixture
def emitted():
    """List collecting records emitted by a block."""
    return []


@pytest.fixture
def make_block(emitted):
    """Factory for a BlockState writing into the `emitted` list."""
    def _make(capacity=64, strategy="bounded", **kwargs):
        if strategy == "bounded":
            first = BoundedQueue("speed", capacity)
            second = BoundedQueue("vehicleFlowRate", capacity)
        else:
            first = GrowableQueue("speed")
            second = GrowableQueue("vehicleFlowRate")
        return BlockState(first, second, emit=emitted.append, **kwargs)
    return _make


@pytest.fixture
def run_xml():
    """Run a document through a fresh engine; returns (output lines, stats)."""
    def _run(xml: bytes, config: Config = None, metrics=None):
        out = io.StringIO()
        engine = PairingEngine(config or Config(), LineSink(out), metrics=metrics)
        stats = engine.run(io.BytesIO(xml))
        return out.getvalue().splitlines(), stats
    return _run
