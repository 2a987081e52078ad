"""Tests for the lock-guarded pending-changes set."""

import threading

from hyperfabric_client.infrastructure import PendingChangeSet


class TestPendingChangeSet:
    """Tests for PendingChangeSet behaviour."""

    def test_mark_and_snapshot(self) -> None:
        pending = PendingChangeSet()
        pending.mark("fabric-a")
        pending.mark("fabric-b")
        pending.mark("fabric-a")
        assert pending.snapshot() == frozenset({"fabric-a", "fabric-b"})
        assert len(pending) == 2
        assert "fabric-a" in pending

    def test_snapshot_is_detached_from_later_changes(self) -> None:
        pending = PendingChangeSet()
        pending.mark("fabric-a")
        snapshot = pending.snapshot()
        pending.mark("fabric-b")
        assert snapshot == frozenset({"fabric-a"})

    def test_discard_ignores_unknown_ids(self) -> None:
        pending = PendingChangeSet()
        pending.mark("fabric-a")
        pending.discard("missing")
        pending.discard("fabric-a")
        assert len(pending) == 0

    def test_concurrent_marks_are_not_lost(self) -> None:
        """Marks from many threads all land in the set."""
        pending = PendingChangeSet()
        barrier = threading.Barrier(8)

        def worker(index: int) -> None:
            barrier.wait()
            for item in range(200):
                pending.mark(f"fabric-{index}-{item}")

        threads = [threading.Thread(target=worker, args=(index,)) for index in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(pending) == 8 * 200

    def test_concurrent_mark_and_discard_leave_consistent_state(self) -> None:
        pending = PendingChangeSet()
        for item in range(500):
            pending.mark(f"fabric-{item}")

        def discard_even() -> None:
            for item in range(0, 500, 2):
                pending.discard(f"fabric-{item}")

        def mark_new() -> None:
            for item in range(500, 700):
                pending.mark(f"fabric-{item}")

        threads = [threading.Thread(target=discard_even), threading.Thread(target=mark_new)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        snapshot = pending.snapshot()
        assert len(snapshot) == 250 + 200
        assert "fabric-0" not in snapshot
        assert "fabric-1" in snapshot
