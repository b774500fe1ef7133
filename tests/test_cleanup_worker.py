"""
Tests for the session cleanup worker.
"""

import time
from unittest.mock import Mock

from slackagent.sessions import SessionCleanupWorker, SessionMetadata

META = SessionMetadata(team_id="T1", user_id="U1", channel_id="C1")


class TestRunOnce:
    """Tests for a single eviction pass."""

    def test_evicts_expired_sessions(self, store, wall_clock):
        store.get_or_create("old", META)
        wall_clock.advance(hours=25)
        store.get_or_create("new", META)
        worker = SessionCleanupWorker(store)

        assert worker.run_once() == 1

        stats = worker.get_stats()
        assert stats["passes"] == 1
        assert stats["evicted"] == 1
        assert stats["failures"] == 0
        assert stats["last_run_time"] is not None

    def test_failed_pass_is_counted_not_raised(self):
        store = Mock()
        store.evict_expired.side_effect = RuntimeError("database is locked")
        worker = SessionCleanupWorker(store)

        assert worker.run_once() == 0
        assert worker.get_stats()["failures"] == 1


class TestLifecycle:
    """Tests for the background thread."""

    def test_runs_on_schedule_until_stopped(self):
        store = Mock()
        store.evict_expired.return_value = 0
        worker = SessionCleanupWorker(store, interval_seconds=0.01)

        worker.start()
        assert worker.is_running
        deadline = time.time() + 2
        while store.evict_expired.call_count < 2 and time.time() < deadline:
            time.sleep(0.01)
        worker.stop(timeout=1)

        assert store.evict_expired.call_count >= 2
        assert not worker.is_running

    def test_does_not_run_immediately(self):
        store = Mock()
        worker = SessionCleanupWorker(store, interval_seconds=60)

        worker.start()
        worker.stop(timeout=1)

        store.evict_expired.assert_not_called()

    def test_start_twice_keeps_one_thread(self):
        store = Mock()
        worker = SessionCleanupWorker(store, interval_seconds=60)

        worker.start()
        thread = worker._thread
        worker.start()
        try:
            assert worker._thread is thread
        finally:
            worker.stop(timeout=1)

    def test_keeps_running_after_failure(self):
        store = Mock()
        store.evict_expired.side_effect = [RuntimeError("boom"), 3, 0, 0, 0, 0]
        worker = SessionCleanupWorker(store, interval_seconds=0.01)

        worker.start()
        deadline = time.time() + 2
        while worker.get_stats()["evicted"] < 3 and time.time() < deadline:
            time.sleep(0.01)
        worker.stop(timeout=1)

        assert worker.get_stats()["failures"] == 1
        assert worker.get_stats()["evicted"] == 3
