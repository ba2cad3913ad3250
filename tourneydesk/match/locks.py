"""Per-tournament mutual exclusion for bracket and registration mutations."""

from __future__ import annotations

import contextlib
import logging
import threading
from collections.abc import Iterator

from tourneydesk.constants import BRACKET_LOCK_TIMEOUT
from tourneydesk.errors import LockTimeout

logger = logging.getLogger(__name__)

_registry_lock = threading.Lock()
# tournament id -> [lock, number of callers holding or waiting for it]
_locks: dict[str, list] = {}


def _acquire_entry(tournament_id: str) -> threading.Lock:
    with _registry_lock:
        entry = _locks.get(tournament_id)
        if entry is None:
            entry = _locks[tournament_id] = [threading.Lock(), 0]
        entry[1] += 1
        return entry[0]


def _release_entry(tournament_id: str) -> None:
    with _registry_lock:
        entry = _locks[tournament_id]
        entry[1] -= 1
        if entry[1] == 0:
            del _locks[tournament_id]


@contextlib.contextmanager
def tournament_lock(
    tournament_id: str, timeout: float = BRACKET_LOCK_TIMEOUT
) -> Iterator[None]:
    """Serialize mutations of one tournament within this process.

    Firestore transactions guard the individual documents; this lock keeps
    generation, result recording, progression and capacity changes for the
    same tournament from interleaving. The registry entry is dropped once
    no caller holds or waits for it.

    Raises:
        LockTimeout: If the lock is not acquired within `timeout` seconds.
    """
    lock = _acquire_entry(tournament_id)
    try:
        if not lock.acquire(timeout=timeout):
            logger.warning(f"Timed out waiting for the lock of tournament {tournament_id}")
            raise LockTimeout()
        try:
            yield
        finally:
            lock.release()
    finally:
        _release_entry(tournament_id)
