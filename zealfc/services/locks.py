from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, List


class KeyedLocks:
    """One mutex per key. Workflows take the game lock before the user lock.

    A key's mutex lives only while some caller holds or waits on it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        # key -> [mutex, holders and waiters]
        self._locks: Dict[Hashable, List] = {}

    def _acquire_slot(self, key: Hashable) -> threading.Lock:
        with self._lock:
            slot = self._locks.get(key)
            if slot is None:
                slot = [threading.Lock(), 0]
                self._locks[key] = slot
            slot[1] += 1
            return slot[0]

    def _release_slot(self, key: Hashable) -> None:
        with self._lock:
            slot = self._locks[key]
            slot[1] -= 1
            if slot[1] == 0:
                del self._locks[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._locks)

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        mutex = self._acquire_slot(key)
        try:
            with mutex:
                yield
        finally:
            self._release_slot(key)

    @contextmanager
    def hold_game_and_user(self, game_id: int, user_id: int) -> Iterator[None]:
        with self.hold(("game", game_id)), self.hold(("user", user_id)):
            yield


workflow_locks = KeyedLocks()
