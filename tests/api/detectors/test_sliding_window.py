"""Tests for the spam-rate and raid sliding windows."""

import threading

from api.detectors.sliding_window import RaidTracker, SpamRateTracker


class TestSpamRateTracker:
    def test_fifth_message_allowed_sixth_flagged(self):
        tracker = SpamRateTracker(window_seconds=10, max_messages=5)

        results = [tracker.is_spam("t1", "u1", 100.0 + i) for i in range(6)]

        assert results == [False, False, False, False, False, True]

    def test_window_slides(self):
        tracker = SpamRateTracker(window_seconds=10, max_messages=5)
        for i in range(5):
            tracker.record("t1", "u1", 100.0 + i)

        # t=110.5 expires the message sent at t=100
        assert tracker.is_spam("t1", "u1", 110.5) is False
        assert tracker.window_for("t1", "u1") == [101.0, 102.0, 103.0, 104.0, 110.5]

    def test_message_exactly_window_old_still_counts(self):
        tracker = SpamRateTracker(window_seconds=10, max_messages=5)

        results = [tracker.is_spam("t1", "u1", 100.0 + 2 * i) for i in range(6)]

        assert results == [False, False, False, False, False, True]
        assert tracker.window_for("t1", "u1")[0] == 100.0

    def test_users_and_tenants_are_independent(self):
        tracker = SpamRateTracker(window_seconds=10, max_messages=2)
        tracker.record("t1", "u1", 100.0)
        tracker.record("t1", "u1", 100.5)

        assert tracker.is_spam("t1", "u2", 101.0) is False
        assert tracker.is_spam("t2", "u1", 101.0) is False
        assert tracker.is_spam("t1", "u1", 101.0) is True

    def test_out_of_order_timestamps_are_clamped(self):
        tracker = SpamRateTracker(window_seconds=10, max_messages=5)
        tracker.record("t1", "u1", 200.0)
        tracker.record("t1", "u1", 150.0)

        assert tracker.window_for("t1", "u1") == [200.0, 200.0]

    def test_sweep_removes_empty_windows(self):
        tracker = SpamRateTracker(window_seconds=10, max_messages=5)
        tracker.record("t1", "u1", 100.0)
        tracker.record("t1", "u2", 105.0)

        assert tracker.sweep(112.0) == 1
        assert len(tracker) == 1
        assert tracker.window_for("t1", "u1") == []

    def test_concurrent_records_are_all_counted(self):
        tracker = SpamRateTracker(window_seconds=60, max_messages=1000)

        def send():
            for _ in range(50):
                tracker.record("t1", "u1", 100.0)

        threads = [threading.Thread(target=send) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(tracker.window_for("t1", "u1")) == 400


class TestRaidTracker:
    def test_two_users_allowed_third_flagged(self):
        tracker = RaidTracker(window_seconds=30, min_users=3)

        assert tracker.is_raid("t1", "fp", "u1", 100.0) is False
        assert tracker.is_raid("t1", "fp", "u2", 101.0) is False
        assert tracker.is_raid("t1", "fp", "u3", 102.0) is True

    def test_same_user_repeating_is_not_a_raid(self):
        tracker = RaidTracker(window_seconds=30, min_users=3)

        results = [tracker.is_raid("t1", "fp", "u1", 100.0 + i) for i in range(5)]

        assert not any(results)

    def test_bucket_resets_after_window(self):
        tracker = RaidTracker(window_seconds=30, min_users=3)
        tracker.record("t1", "fp", "u1", 100.0)
        tracker.record("t1", "fp", "u2", 101.0)

        # 31s after the first sighting the old bucket is stale
        assert tracker.is_raid("t1", "fp", "u3", 131.0) is False
        assert tracker.record("t1", "fp", "u4", 132.0) == 2

    def test_tenants_do_not_share_buckets(self):
        tracker = RaidTracker(window_seconds=30, min_users=3)
        tracker.record("t1", "fp", "u1", 100.0)
        tracker.record("t1", "fp", "u2", 100.0)

        assert tracker.is_raid("t2", "fp", "u3", 100.0) is False

    def test_sweep_discards_stale_buckets(self):
        tracker = RaidTracker(window_seconds=30, min_users=3)
        tracker.record("t1", "old", "u1", 100.0)
        tracker.record("t1", "new", "u1", 125.0)

        assert tracker.sweep(140.0) == 1
        assert len(tracker) == 1
