"""
tests/test_effects.py — Side-Effect Queue
==========================================
"""

from __future__ import annotations

import threading
from unittest.mock import MagicMock

from kudos.services.effects import SideEffectQueue


class TestInline:
    def test_runs_on_submit(self):
        q = SideEffectQueue(workers=0)
        fn = MagicMock()
        assert q.submit("task", fn, 1, key="v")
        fn.assert_called_once_with(1, key="v")

    def test_retries_then_succeeds(self):
        q = SideEffectQueue(workers=0, max_attempts=3, base_backoff=0)
        fn = MagicMock(side_effect=[RuntimeError("a"), RuntimeError("b"), None])
        q.submit("flaky", fn)
        assert fn.call_count == 3

    def test_gives_up_without_raising(self, caplog):
        q = SideEffectQueue(workers=0, max_attempts=2, base_backoff=0)
        fn = MagicMock(side_effect=RuntimeError("down"))
        assert q.submit("broken", fn)
        assert fn.call_count == 2
        assert "broken failed after 2 attempts" in caplog.text

    def test_submit_after_shutdown_dropped(self):
        q = SideEffectQueue(workers=0)
        q.shutdown()
        fn = MagicMock()
        assert not q.submit("late", fn)
        fn.assert_not_called()


class TestWorkers:
    def test_workers_drain_queue(self):
        q = SideEffectQueue(workers=2)
        done = []
        lock = threading.Lock()

        def work(i):
            with lock:
                done.append(i)

        for i in range(20):
            q.submit("work", work, i)
        q.join()
        assert sorted(done) == list(range(20))
        q.shutdown()

    def test_full_queue_drops(self):
        gate = threading.Event()
        q = SideEffectQueue(workers=1, maxsize=1)
        q.submit("blocker", gate.wait, 5)
        # One worker stuck on the blocker, one queue slot: most of these must drop
        results = [q.submit("fill", lambda: None) for _ in range(5)]
        gate.set()
        q.join()
        q.shutdown()
        assert False in results

    def test_shutdown_stops_threads(self):
        q = SideEffectQueue(workers=2)
        q.shutdown()
        assert all(not t.is_alive() for t in q._threads)
