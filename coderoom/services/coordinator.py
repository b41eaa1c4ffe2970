"""
Scan/index coordination for coderoom.

At most one mutating catalog operation (scan, prune, commit-index rebuild)
runs per catalog at a time. A second request fails fast with BusyError
instead of queueing. Reads never go through the coordinator.

Within a process the gate is a thread lock; across processes (every CLI
invocation is its own process) it is an exclusive, non-blocking lock on a
``<catalog>.lock`` file next to the database.
"""

import logging
import os
import threading
from contextlib import contextmanager
from enum import Enum
from typing import Dict, Generator, Optional

from ..exit_codes import BusyError, StorageUnavailableError

IS_WINDOWS = os.name == "nt"
if not IS_WINDOWS:
    import fcntl
else:
    import msvcrt

logger = logging.getLogger(__name__)


class OperationState(Enum):
    """What the catalog's single writer is doing."""
    IDLE = "idle"
    SCANNING = "scanning"
    INDEXING = "indexing"


class CancelToken:
    """
    Cooperative cancellation flag handed to a running operation.

    The operation polls ``cancelled`` between units of work (directories,
    repositories) and stops at the next boundary.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class CatalogLock:
    """
    Exclusive lock file shared by every process writing one catalog.

    The holder writes its operation state into the file so a refused
    process can say what is running.
    """

    def __init__(self, path: str):
        self.path = path
        self._fh = None

    def acquire(self, state: OperationState) -> bool:
        """
        Take the lock without waiting.

        Returns:
            False if another holder has it
        """
        try:
            os.makedirs(os.path.dirname(self.path) or '.', exist_ok=True)
            fh = open(self.path, "a+")
        except OSError as e:
            raise StorageUnavailableError(f"Cannot open catalog lock {self.path}: {e}")

        try:
            fh.seek(0)
            if IS_WINDOWS:
                msvcrt.locking(fh.fileno(), msvcrt.LK_NBLCK, 1)
            else:
                fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError:
            fh.close()
            return False

        fh.seek(0)
        fh.truncate()
        fh.write(state.value)
        fh.flush()
        self._fh = fh
        return True

    def release(self) -> None:
        fh, self._fh = self._fh, None
        if fh is None:
            return
        try:
            fh.seek(0)
            fh.truncate()
            fh.flush()
            if IS_WINDOWS:
                msvcrt.locking(fh.fileno(), msvcrt.LK_UNLCK, 1)
            else:
                fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
        finally:
            fh.close()

    def holder_state(self) -> Optional[str]:
        """State written by the current holder, if readable."""
        try:
            with open(self.path) as f:
                return f.read().strip() or None
        except OSError:
            return None


class Coordinator:
    """
    Single-writer gate for one catalog.

    Example:
        coordinator = get_coordinator(db_path)
        with coordinator.operation(OperationState.SCANNING) as token:
            scanner.scan_root(root, cancel=token)
    """

    def __init__(self, lock_path: Optional[str] = None):
        self._lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._state = OperationState.IDLE
        self._token: Optional[CancelToken] = None
        self._file_lock = CatalogLock(lock_path) if lock_path else None

    @property
    def state(self) -> OperationState:
        with self._state_lock:
            return self._state

    @property
    def busy(self) -> bool:
        return self.state is not OperationState.IDLE

    @contextmanager
    def operation(
        self,
        state: OperationState,
        token: Optional[CancelToken] = None,
    ) -> Generator[CancelToken, None, None]:
        """
        Run a mutating operation, or raise BusyError if one is active.

        Args:
            state: SCANNING or INDEXING
            token: Cancel token to hand out; a fresh one by default

        Yields:
            The operation's cancel token
        """
        if state is OperationState.IDLE:
            raise ValueError("operation state must not be IDLE")
        if not self._lock.acquire(blocking=False):
            raise BusyError(f"Catalog is busy: {self.state.value} in progress")

        try:
            if self._file_lock is not None and not self._file_lock.acquire(state):
                running = self._file_lock.holder_state() or "another operation"
                raise BusyError(
                    f"Catalog is busy: {running} in progress in another process"
                )
        except BaseException:
            self._lock.release()
            raise

        token = token or CancelToken()
        with self._state_lock:
            self._state = state
            self._token = token
        logger.debug(f"Catalog {state.value} started")
        try:
            yield token
        finally:
            with self._state_lock:
                self._state = OperationState.IDLE
                self._token = None
            try:
                if self._file_lock is not None:
                    self._file_lock.release()
            finally:
                self._lock.release()
            logger.debug(f"Catalog {state.value} finished")

    def cancel(self) -> bool:
        """
        Ask the active operation to stop.

        Returns:
            False if nothing was running
        """
        with self._state_lock:
            token = self._token
        if token is None:
            return False
        token.cancel()
        return True


_registry: Dict[str, Coordinator] = {}
_registry_lock = threading.Lock()


def get_coordinator(db_path) -> Coordinator:
    """The process-wide coordinator for a catalog file, locked across processes."""
    key = os.path.realpath(os.path.expanduser(str(db_path)))
    with _registry_lock:
        coordinator = _registry.get(key)
        if coordinator is None:
            coordinator = _registry[key] = Coordinator(lock_path=key + ".lock")
        return coordinator
