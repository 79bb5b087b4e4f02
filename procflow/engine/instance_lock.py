"""Instance Lock Registry - Serializes mutations of a single process instance"""
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from ..config.settings import settings
from ..domain.errors import ConcurrencyError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class _LockEntry:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = threading.Lock()
        self.holders = 0


class InstanceLockRegistry:
    """
    In-process lock per process_id

    Entries are reference counted and dropped once no caller holds or
    waits on them. Cross-process safety comes from the revision check
    in the repository.
    """

    def __init__(self, timeout_seconds: Optional[float] = None):
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None
            else settings.process_lock_timeout_seconds
        )
        self._locks: Dict[str, _LockEntry] = {}
        self._global_lock = threading.Lock()

    @contextmanager
    def hold(self, process_id: str, timeout: Optional[float] = None) -> Iterator[None]:
        """
        Hold the lock for process_id for the duration of the block

        Raises:
            ConcurrencyError: If the lock cannot be acquired within the timeout
        """
        wait = self.timeout_seconds if timeout is None else timeout

        with self._global_lock:
            entry = self._locks.get(process_id)
            if entry is None:
                entry = _LockEntry()
                self._locks[process_id] = entry
            entry.holders += 1

        acquired = entry.lock.acquire(timeout=wait)
        try:
            if not acquired:
                logger.warning(
                    f"Timed out waiting for lock on {process_id}",
                    extra={"process_id": process_id}
                )
                raise ConcurrencyError(
                    f"Process {process_id} is being modified by another request",
                    details={"process_id": process_id}
                )
            yield
        finally:
            if acquired:
                entry.lock.release()
            with self._global_lock:
                entry.holders -= 1
                if entry.holders == 0:
                    self._locks.pop(process_id, None)

    def active_count(self) -> int:
        with self._global_lock:
            return len(self._locks)
