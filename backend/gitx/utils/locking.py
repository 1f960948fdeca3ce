import logging
import threading
from contextlib import contextmanager
from typing import Dict, Generator

logger = logging.getLogger(__name__)

_repo_locks: Dict[str, threading.Lock] = {}
_repo_locks_lock = threading.Lock()


def _get_repo_lock(key: str) -> threading.Lock:
    """Get or create the lock for one repository."""
    with _repo_locks_lock:
        if key not in _repo_locks:
            _repo_locks[key] = threading.Lock()
        return _repo_locks[key]


@contextmanager
def repo_lock(key: str) -> Generator[None, None, None]:
    """
    Serialize work on one repository within this process.

    Scheduled passes, manual triggers and refreshes of the same path take
    turns; different repositories never block each other.
    """
    lock = _get_repo_lock(key)
    if not lock.acquire(blocking=False):
        logger.debug(f"Waiting for lock on {key}")
        lock.acquire()
    try:
        yield
    finally:
        lock.release()
