"""Tests for the per-fighter max stats table."""

import threading

import pytest

from strike_bridge.errors import StatsNotFound
from strike_bridge.models import CombatEvent
from strike_bridge.stats import MaxStatsTracker


def make_event(fighter=1, force=100.0, velocity=10.0, acceleration=20.0, timestamp=1000):
    return CombatEvent(
        event_type="slap",
        limb_name="Mano Derecha",
        fighter_id=f"fighter_{fighter}",
        competitor_name=f"Fighter {fighter}",
        velocity=velocity,
        acceleration=acceleration,
        force=force,
        timestamp=timestamp,
        confidence=1.0,
    )


class TestMaxStatsTracker:

    def setup_method(self):
        self.tracker = MaxStatsTracker()

    def test_first_event_sets_every_record(self):
        update = self.tracker.record(make_event())

        assert update is not None
        assert update.new_records == ["force", "velocity", "acceleration"]
        assert update.stats.max_force == 100.0
        assert update.stats.competitor_name == "Fighter 1"

    def test_only_exceeded_metrics_reported(self):
        self.tracker.record(make_event())

        update = self.tracker.record(make_event(force=150.0, velocity=5.0, acceleration=20.0))

        assert update.new_records == ["force"]
        assert update.stats.max_force == 150.0
        assert update.stats.max_velocity == 10.0

    def test_equal_values_are_not_records(self):
        self.tracker.record(make_event())
        assert self.tracker.record(make_event()) is None

    def test_missing_metrics_skipped(self):
        update = self.tracker.record(make_event(force=None, velocity=None, acceleration=3.0))
        assert update.new_records == ["acceleration"]
        assert update.stats.max_force == 0.0

    def test_values_never_decrease(self):
        values = [50.0, 10.0, 75.0, 74.0, 0.0, 120.0, 3.0]
        last = 0.0
        for value in values:
            self.tracker.record(make_event(force=value, velocity=value, acceleration=value))
            stats = self.tracker.query("fighter_1")
            assert stats.max_force >= last
            assert stats.max_force == stats.max_velocity == stats.max_acceleration
            last = stats.max_force
        assert last == 120.0

    def test_fighters_tracked_separately(self):
        self.tracker.record(make_event(fighter=1, force=300.0))
        self.tracker.record(make_event(fighter=2, force=100.0))

        assert self.tracker.query("fighter_1").max_force == 300.0
        assert self.tracker.query("fighter_2").max_force == 100.0
        assert len(self.tracker.query()) == 2

    def test_query_returns_snapshot(self):
        self.tracker.record(make_event())

        snapshot = self.tracker.query("fighter_1")
        snapshot.max_force = 9999.0

        assert self.tracker.query("fighter_1").max_force == 100.0

    def test_update_is_snapshot(self):
        update = self.tracker.record(make_event())
        self.tracker.record(make_event(force=500.0))
        assert update.stats.max_force == 100.0

    def test_unknown_fighter(self):
        with pytest.raises(StatsNotFound):
            self.tracker.query("fighter_42")

    def test_reset_clears_everything(self):
        self.tracker.record(make_event(fighter=1))
        self.tracker.record(make_event(fighter=2))

        self.tracker.reset()

        assert self.tracker.query() == []
        for fighter_id in ("fighter_1", "fighter_2"):
            with pytest.raises(StatsNotFound):
                self.tracker.query(fighter_id)

    def test_concurrent_records(self):
        def worker(offset):
            for i in range(200):
                self.tracker.record(make_event(force=float(offset + i)))

        threads = [threading.Thread(target=worker, args=(n * 1000,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert self.tracker.query("fighter_1").max_force == 3199.0
