from __future__ import annotations

from typing import Any, AsyncContextManager, Protocol

from atlasbroker.config.settings import Settings
from atlasbroker.state.memory import InMemoryInstanceStore
from atlasbroker.state.models import InstanceRecord
from atlasbroker.state.redis_store import RedisInstanceStore


class InstanceStore(Protocol):
    async def get(self, instance_id: str) -> dict[str, Any] | None: ...

    async def put(self, instance_id: str, record: dict[str, Any]) -> None: ...

    async def delete(self, instance_id: str) -> None: ...

    def lock(self, instance_id: str) -> AsyncContextManager[None]: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


def store_from_settings(settings: Settings) -> InstanceStore:
    if settings.state_backend == "memory":
        return InMemoryInstanceStore()

    if settings.state_backend == "redis":
        return RedisInstanceStore(
            settings.redis_url,
            settings.redis_max_connections,
            key_prefix=settings.state_key_prefix,
            lock_ttl=settings.instance_lock_ttl,
        )

    raise ValueError(f"Unsupported state backend: {settings.state_backend}")


__all__ = [
    "InMemoryInstanceStore",
    "InstanceRecord",
    "InstanceStore",
    "RedisInstanceStore",
    "store_from_settings",
]
