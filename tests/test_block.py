"""Tests for block state, pairing and flush."""
import logging

from pairstream.block import BlockState, truncate_text
from pairstream.prom_exporter import SelfMetrics
from pairstream.series import BoundedQueue


def pairs(records):
    return [(r.label, r.first, r.second) for r in records]


def test_pairs_as_soon_as_both_halves_arrive(make_block, emitted):
    block = make_block()
    block.set_label("S1")
    block.push_first(10.5)
    block.push_first(11.0)
    assert emitted == []

    block.push_second(200)
    assert pairs(emitted) == [("S1", 10.5, 200)]
    assert block.first.snapshot() == [11.0]

    block.push_second(210)
    assert pairs(emitted) == [("S1", 10.5, 200), ("S1", 11.0, 210)]
    assert block.first.size() == 0
    assert block.second.size() == 0


def test_unmatched_leftover_is_discarded_at_block_end(make_block, emitted):
    block = make_block()
    block.start_block()
    block.set_label("S1")
    block.push_first(5.0)
    block.end_block()

    assert emitted == []
    assert block.first.size() == 0
    assert block.label == "(unknown_site)"
    assert block.discarded == {"speed": 1, "vehicleFlowRate": 0}


def test_fifo_pairing_for_any_interleaving(make_block, emitted):
    block = make_block()
    firsts = [1.0, 2.0, 3.0, 4.0, 5.0]
    seconds = [10, 20, 30, 40, 50]
    # Seconds arrive in bursts, firsts one at a time
    order = ["s", "s", "s", "f", "f", "s", "f", "f", "s", "f"]
    fi = si = 0
    for step in order:
        if step == "f":
            block.push_first(firsts[fi])
            fi += 1
        else:
            block.push_second(seconds[si])
            si += 1

    assert [(r.first, r.second) for r in emitted] == list(zip(firsts, seconds))


def test_no_pair_while_one_series_is_empty(make_block, emitted):
    block = make_block()
    for value in (1, 2, 3):
        block.push_second(value)
    assert emitted == []
    block.push_first(0.5)
    assert len(emitted) == 1


def test_reset_isolates_blocks(make_block, emitted):
    block = make_block()
    block.start_block()
    block.push_first(1.0)
    block.push_first(2.0)
    block.start_block()  # supersedes the open block
    block.push_second(99)

    assert emitted == []
    assert block.first.size() == 0
    assert block.second.snapshot() == [99]


def test_sentinel_label_when_never_set(make_block, emitted):
    block = make_block()
    block.push_first(1.0)
    block.push_second(2)
    assert emitted[0].label == "(unknown_site)"


def test_label_in_force_at_push_time(make_block, emitted):
    block = make_block()
    block.set_label("A")
    block.push_first(1.0)
    block.push_second(1)
    block.set_label("B")
    block.push_first(2.0)
    block.push_second(2)
    block.set_label(None)
    block.push_first(3.0)
    block.push_second(3)

    assert [r.label for r in emitted] == ["A", "B", "(unknown_site)"]


def test_reset_is_idempotent(make_block):
    block = make_block()
    block.reset()
    block.reset()
    block.set_label("S1")
    block.reset()
    block.reset()
    assert block.label == "(unknown_site)"
    assert block.first.size() == 0
    assert block.discarded == {"speed": 0, "vehicleFlowRate": 0}


def test_overflow_is_reported_and_processing_continues(make_block, emitted, caplog):
    block = make_block(capacity=2)

    with caplog.at_level(logging.WARNING, logger="pairstream.block"):
        assert block.push_first(1.0)
        assert block.push_first(2.0)
        assert not block.push_first(3.0)

    assert block.first.snapshot() == [1.0, 2.0]
    assert block.dropped["speed"] == 1
    assert "speed queue full (max 2), dropping value" in caplog.text

    block.push_second(7)
    assert pairs(emitted) == [("(unknown_site)", 1.0, 7)]


def test_index_restarts_each_block(make_block, emitted):
    block = make_block(indexed=True)
    block.start_block()
    block.push_first(1.0)
    block.push_second(1)
    block.push_first(2.0)
    block.push_second(2)
    block.end_block()
    block.start_block()
    block.push_first(3.0)
    block.push_second(3)

    assert [r.index for r in emitted] == [1, 2, 1]
    assert emitted[2].format() == "1 (unknown_site) 3 3"


def test_qualifier_and_custom_sentinels(make_block, emitted):
    block = make_block(
        track_qualifier=True,
        label_sentinel="(none)",
        qualifier_sentinel="(no-date)",
    )
    block.push_first(52.0)
    block.push_second(4.0)
    block.set_qualifier("2024-01-01")
    block.set_label("S9")
    block.push_first(53.0)
    block.push_second(5.0)

    assert emitted[0].format() == "(none) (no-date) 52 4"
    assert emitted[1].format() == "S9 2024-01-01 53 5"


def test_label_is_truncated(make_block):
    block = make_block(max_text=4)
    block.set_label("ABCDEFG")
    assert block.label == "ABCD"
    assert truncate_text("abc", 10) == "abc"


def test_metrics_are_recorded(emitted):
    metrics = SelfMetrics(prefix="t_")
    block = BlockState(
        BoundedQueue("lat", 1), BoundedQueue("lon", 1),
        emit=emitted.append, metrics=metrics
    )
    block.start_block()
    block.push_first(1.0)
    block.push_first(2.0)
    block.push_second(3.0)
    block.push_second(4.0)
    block.end_block()

    registry = metrics.registry
    assert registry.get_sample_value("t_pairs_emitted_total") == 1.0
    assert registry.get_sample_value("t_blocks_total") == 1.0
    assert registry.get_sample_value(
        "t_values_dropped_total", {"series": "lat", "reason": "overflow"}) == 1.0
    assert registry.get_sample_value(
        "t_unpaired_discarded_total", {"series": "lon"}) == 1.0
    assert registry.get_sample_value("t_queue_depth", {"series": "lon"}) == 0.0
