from __future__ import annotations

import asyncio
import json
import weakref
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator


class InMemoryInstanceStore:
    """Process-local instance store for development and tests.

    Records are kept JSON encoded so callers never share mutable state with
    the store.
    """

    def __init__(self) -> None:
        self._records: dict[str, str] = {}
        # entries vanish once no task holds or waits on the lock
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    async def get(self, instance_id: str) -> dict[str, Any] | None:
        raw = self._records.get(instance_id)
        return json.loads(raw) if raw is not None else None

    async def put(self, instance_id: str, record: dict[str, Any]) -> None:
        self._records[instance_id] = json.dumps(record)

    async def delete(self, instance_id: str) -> None:
        self._records.pop(instance_id, None)

    @asynccontextmanager
    async def lock(self, instance_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(instance_id)
        if lock is None:
            lock = self._locks[instance_id] = asyncio.Lock()
        async with lock:
            yield

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None

    def size(self) -> int:
        return len(self._records)
