import logging
from datetime import datetime, timedelta, timezone

import pytest

from vpntraffic.services.tracker import ClientCounterRecord, ThroughputTracker

T0 = datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone.utc)


def rec(client_id, bytes_in, bytes_out, ip="10.0.0.5"):
    return ClientCounterRecord(client_id, ip, bytes_in, bytes_out)


@pytest.fixture
def tracker():
    return ThroughputTracker(name="test")


def test_first_observation_only_records_baseline(tracker):
    assert tracker.compute([rec("alice", 1000, 2000)], T0) == {}
    entry = tracker.get("alice")
    assert (entry.bytes_in, entry.bytes_out, entry.observed_at) == (1000, 2000, T0)


def test_rate_from_deltas(tracker):
    tracker.compute([rec("alice", 1000, 2000)], T0)
    samples = tracker.compute([rec("alice", 1500, 3000)], T0 + timedelta(seconds=5))
    sample = samples["alice"]
    assert sample.bytes_in_per_sec == 100.0
    assert sample.bytes_out_per_sec == 200.0
    assert sample.ip_address == "10.0.0.5"


def test_counter_reset_uses_raw_values(tracker, caplog):
    tracker.compute([rec("alice", 5000, 5000)], T0)
    with caplog.at_level(logging.WARNING):
        samples = tracker.compute([rec("alice", 200, 6000)], T0 + timedelta(seconds=10))
    assert samples["alice"].bytes_in_per_sec == 20.0
    # either counter dropping switches both to absolute values
    assert samples["alice"].bytes_out_per_sec == 600.0
    assert "Counter reset detected for alice" in caplog.text
    assert tracker.get("alice").bytes_in == 200


def test_non_positive_elapsed_updates_baseline_without_sample(tracker):
    tracker.compute([rec("alice", 1000, 1000)], T0)
    assert tracker.compute([rec("alice", 1100, 1100)], T0) == {}
    assert tracker.get("alice").bytes_in == 1100

    assert tracker.compute([rec("alice", 1200, 1200)], T0 - timedelta(seconds=3)) == {}
    entry = tracker.get("alice")
    assert entry.bytes_in == 1200
    assert entry.observed_at == T0 - timedelta(seconds=3)


def test_same_input_twice_is_a_no_op(tracker):
    tracker.compute([rec("alice", 1000, 1000)], T0)
    records = [rec("alice", 1500, 1500)]
    now = T0 + timedelta(seconds=5)
    assert "alice" in tracker.compute(records, now)
    before = tracker.history
    assert tracker.compute(records, now) == {}
    assert tracker.history == before


def test_evicts_clients_past_retention(tracker):
    tracker.compute([rec("alice", 1, 1), rec("bob", 1, 1)], T0)
    later = T0 + timedelta(minutes=61)
    tracker.compute([rec("bob", 2, 2)], later)
    assert "alice" not in tracker
    assert "bob" in tracker
    assert len(tracker) == 1


def test_eviction_runs_on_empty_snapshot(tracker):
    tracker.compute([rec("alice", 1, 1)], T0)
    assert tracker.compute([], T0 + timedelta(minutes=30)) == {}
    assert "alice" in tracker
    assert tracker.compute([], T0 + timedelta(hours=2)) == {}
    assert len(tracker) == 0


def test_client_at_exact_retention_edge_is_kept(tracker):
    tracker.compute([rec("alice", 1, 1)], T0)
    tracker.compute([], T0 + timedelta(hours=1))
    assert "alice" in tracker


def test_custom_retention_seconds():
    tracker = ThroughputTracker(retention=60)
    tracker.compute([rec("alice", 1, 1)], T0)
    tracker.compute([], T0 + timedelta(seconds=61))
    assert len(tracker) == 0


def test_stale_client_returning_is_diffed_before_eviction(tracker):
    tracker.compute([rec("alice", 1000, 1000), rec("bob", 1, 1)], T0)
    samples = tracker.compute([rec("alice", 5000, 5000)], T0 + timedelta(hours=2))
    # eviction runs after the records are folded in
    assert samples["alice"].bytes_in_per_sec == 4000 / 7200
    assert "alice" in tracker
    assert "bob" not in tracker


def test_duplicate_client_in_one_snapshot(tracker):
    tracker.compute([rec("alice", 1000, 1000)], T0)
    now = T0 + timedelta(seconds=10)
    samples = tracker.compute([rec("alice", 2000, 2000), rec("alice", 3000, 3000, ip="10.0.0.9")], now)
    # first occurrence emits, second sees zero elapsed and only moves the baseline
    assert len(samples) == 1
    assert samples["alice"].bytes_in_per_sec == 100.0
    assert tracker.get("alice").bytes_in == 3000
    assert tracker.get("alice").ip_address == "10.0.0.9"


def test_rates_are_never_negative(tracker):
    tracker.compute([rec("alice", 0, 0), rec("bob", 10, 10)], T0)
    samples = tracker.compute([rec("alice", 0, 0), rec("bob", 0, 0)], T0 + timedelta(seconds=1))
    for sample in samples.values():
        assert sample.bytes_in_per_sec >= 0
        assert sample.bytes_out_per_sec >= 0


def test_rate_floor_applies():
    tracker = ThroughputTracker(rate_floor=5.0)
    tracker.compute([rec("alice", 100, 100)], T0)
    samples = tracker.compute([rec("alice", 100, 200)], T0 + timedelta(seconds=10))
    assert samples["alice"].bytes_in_per_sec == 5.0
    assert samples["alice"].bytes_out_per_sec == 10.0


def test_independent_clients(tracker):
    tracker.compute([rec("alice", 0, 0)], T0)
    tracker.compute([rec("bob", 0, 0)], T0 + timedelta(seconds=5))
    samples = tracker.compute([rec("alice", 100, 0), rec("bob", 100, 0)], T0 + timedelta(seconds=10))
    assert samples["alice"].bytes_in_per_sec == 10.0
    assert samples["bob"].bytes_in_per_sec == 20.0


def test_forget_and_clear(tracker):
    tracker.compute([rec("alice", 1, 1), rec("bob", 1, 1)], T0)
    assert tracker.forget("alice") is True
    assert tracker.forget("alice") is False
    tracker.clear()
    assert len(tracker) == 0
