"""
Tests for scan/index coordination.

Tests cover:
- Single writer: a second mutating operation fails with BusyError
- The catalog lock file extends that to other processes
- State transitions and cooperative cancellation
- Reads proceed while a writer runs
"""

import os
import subprocess
import sys
import threading

import pytest

from coderoom.exit_codes import BusyError
from coderoom.services import CancelToken, Coordinator, OperationState, get_coordinator

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


class TestCoordinator:

    def test_state_follows_operation(self):
        coordinator = Coordinator()
        assert coordinator.state is OperationState.IDLE

        with coordinator.operation(OperationState.INDEXING):
            assert coordinator.state is OperationState.INDEXING
            assert coordinator.busy

        assert coordinator.state is OperationState.IDLE
        assert not coordinator.busy

    def test_second_operation_is_busy(self):
        coordinator = Coordinator()

        with coordinator.operation(OperationState.SCANNING):
            with pytest.raises(BusyError):
                with coordinator.operation(OperationState.INDEXING):
                    pass
            assert coordinator.state is OperationState.SCANNING

        # Released after the first one ends
        with coordinator.operation(OperationState.INDEXING):
            pass

    def test_released_after_error(self):
        coordinator = Coordinator()

        with pytest.raises(RuntimeError):
            with coordinator.operation(OperationState.SCANNING):
                raise RuntimeError("scan failed")

        assert coordinator.state is OperationState.IDLE

    def test_idle_is_not_an_operation(self):
        with pytest.raises(ValueError):
            with Coordinator().operation(OperationState.IDLE):
                pass

    def test_cancel(self):
        coordinator = Coordinator()
        assert coordinator.cancel() is False

        with coordinator.operation(OperationState.SCANNING) as token:
            assert not token.cancelled
            assert coordinator.cancel() is True
            assert token.cancelled

    def test_caller_token_is_used(self):
        token = CancelToken()
        with Coordinator().operation(OperationState.SCANNING, token) as active:
            assert active is token

    def test_busy_across_threads(self):
        coordinator = Coordinator()
        started = threading.Event()
        release = threading.Event()

        def hold():
            with coordinator.operation(OperationState.SCANNING):
                started.set()
                release.wait(5)

        worker = threading.Thread(target=hold)
        worker.start()
        try:
            assert started.wait(5)
            with pytest.raises(BusyError):
                with coordinator.operation(OperationState.INDEXING):
                    pass
        finally:
            release.set()
            worker.join(5)

        assert coordinator.state is OperationState.IDLE

    def test_registry_is_per_catalog(self, tmp_path):
        first = get_coordinator(tmp_path / "a.db")
        assert get_coordinator(str(tmp_path / "a.db")) is first
        assert get_coordinator(tmp_path / "b.db") is not first


CHILD_OPERATION = """
import sys
from coderoom.exit_codes import BusyError
from coderoom.services import OperationState, get_coordinator
try:
    with get_coordinator(sys.argv[1]).operation(OperationState.SCANNING):
        print("acquired")
except BusyError as e:
    print("busy: %s" % e)
"""


def _run_child(db_path):
    env = dict(os.environ, PYTHONPATH=os.pathsep.join(
        p for p in (PROJECT_ROOT, os.environ.get("PYTHONPATH")) if p
    ))
    result = subprocess.run(
        [sys.executable, "-c", CHILD_OPERATION, str(db_path)],
        capture_output=True, text=True, env=env, timeout=60,
    )
    assert result.returncode == 0, result.stderr
    return result.stdout.strip()


class TestCatalogLock:

    def test_lock_file_excludes_second_coordinator(self, tmp_path):
        lock_path = str(tmp_path / "catalog.db.lock")
        first = Coordinator(lock_path=lock_path)
        second = Coordinator(lock_path=lock_path)

        with first.operation(OperationState.INDEXING):
            with pytest.raises(BusyError, match="indexing"):
                with second.operation(OperationState.SCANNING):
                    pass
            assert second.state is OperationState.IDLE

        with second.operation(OperationState.SCANNING):
            assert second.state is OperationState.SCANNING

    def test_lock_released_after_error(self, tmp_path):
        lock_path = str(tmp_path / "catalog.db.lock")
        first = Coordinator(lock_path=lock_path)

        with pytest.raises(RuntimeError):
            with first.operation(OperationState.SCANNING):
                raise RuntimeError("boom")

        with Coordinator(lock_path=lock_path).operation(OperationState.SCANNING):
            pass

    def test_other_process_is_busy(self, tmp_path):
        db_path = tmp_path / "catalog.db"

        with get_coordinator(db_path).operation(OperationState.SCANNING):
            output = _run_child(db_path)

        assert output.startswith("busy:")
        assert "scanning" in output
        assert _run_child(db_path) == "acquired"


class TestFacadeCoordination:

    def test_scan_while_indexing_is_busy(self, room, tmp_path):
        with room.coordinator.operation(OperationState.INDEXING):
            with pytest.raises(BusyError):
                room.scan(str(tmp_path))
            with pytest.raises(BusyError):
                room.prune()
            assert room.state is OperationState.INDEXING

    def test_rebuild_while_scanning_is_busy(self, room):
        with room.coordinator.operation(OperationState.SCANNING):
            with pytest.raises(BusyError):
                room.commit_index_rebuild(all=True)

    def test_reads_during_write(self, room):
        with room.coordinator.operation(OperationState.SCANNING):
            assert room.repos().total == 0
            assert room.search_repos("anything").total == 0
            assert room.tag_counts() == []

    def test_cancel_running_scan(self, room):
        with room.coordinator.operation(OperationState.SCANNING) as token:
            assert room.cancel()
            assert token.cancelled
        assert not room.cancel()
