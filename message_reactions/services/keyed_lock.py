from contextlib import asynccontextmanager
from typing import Dict, Hashable, Optional
import asyncio


class LockTimeoutError(Exception):
    """Raised when a keyed lock could not be acquired in time"""

    def __init__(self, key: Hashable, timeout: float):
        self.key = key
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout}s waiting for lock {key!r}")


class KeyedLock:
    """One asyncio.Lock per key, created on demand.

    Entries are reference counted and dropped once no task holds or waits
    on them, so the table only tracks keys that are currently in use.
    """

    def __init__(self) -> None:
        # key -> [lock, holders + waiters]
        self._locks: Dict[Hashable, list] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def locked(self, key: Hashable) -> bool:
        entry = self._locks.get(key)
        return bool(entry) and entry[0].locked()

    @asynccontextmanager
    async def hold(self, key: Hashable, timeout: Optional[float] = None):
        """Hold the lock for `key`; raises LockTimeoutError after `timeout` seconds."""
        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = [asyncio.Lock(), 0]
        entry[1] += 1
        lock = entry[0]
        try:
            if timeout is None:
                await lock.acquire()
            else:
                try:
                    await asyncio.wait_for(lock.acquire(), timeout=timeout)
                except asyncio.TimeoutError:
                    raise LockTimeoutError(key, timeout) from None
            try:
                yield
            finally:
                lock.release()
        finally:
            entry[1] -= 1
            if entry[1] == 0 and self._locks.get(key) is entry:
                del self._locks[key]
