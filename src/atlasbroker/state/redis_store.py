from __future__ import annotations

import asyncio
import json
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from atlasbroker.core.errors import CorruptInstanceState, InstanceBusy, StateStoreError

logger = structlog.get_logger()

_RELEASE_LOCK_SCRIPT = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""


class RedisInstanceStore:
    """Redis-backed instance store with a per-instance writer lock."""

    def __init__(
        self,
        redis_url: str,
        max_connections: int = 50,
        *,
        key_prefix: str = "atlas-broker:instance",
        lock_ttl: int = 30,
        lock_wait: float = 5.0,
        redis_client: aioredis.Redis | None = None,
    ) -> None:
        self._redis_url = redis_url
        self._key_prefix = key_prefix
        self._lock_ttl = lock_ttl
        self._lock_wait = lock_wait
        self._pool: aioredis.ConnectionPool | None = None
        self._client: aioredis.Redis | None = redis_client

        if redis_client is None:
            self._pool = aioredis.ConnectionPool.from_url(
                redis_url,
                max_connections=max_connections,
                decode_responses=True,
            )

    async def _get_client(self) -> aioredis.Redis:
        if self._client is None:
            self._client = aioredis.Redis(connection_pool=self._pool)
        return self._client

    def _key(self, instance_id: str) -> str:
        return f"{self._key_prefix}:{instance_id}"

    def _lock_key(self, instance_id: str) -> str:
        return f"{self._key_prefix}:{instance_id}:lock"

    async def get(self, instance_id: str) -> dict[str, Any] | None:
        client = await self._get_client()
        try:
            value = await client.get(self._key(instance_id))
        except RedisError as exc:
            raise StateStoreError(
                f"cannot read instance {instance_id!r}: {exc}", {"instance_id": instance_id}
            ) from exc

        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError as exc:
            raise CorruptInstanceState(
                f"instance record for {instance_id!r} is not valid JSON",
                {"instance_id": instance_id},
            ) from exc

    async def put(self, instance_id: str, record: dict[str, Any]) -> None:
        client = await self._get_client()
        try:
            await client.set(self._key(instance_id), json.dumps(record))
        except RedisError as exc:
            raise StateStoreError(
                f"cannot write instance {instance_id!r}: {exc}", {"instance_id": instance_id}
            ) from exc

    async def delete(self, instance_id: str) -> None:
        client = await self._get_client()
        try:
            await client.delete(self._key(instance_id))
        except RedisError as exc:
            raise StateStoreError(
                f"cannot delete instance {instance_id!r}: {exc}", {"instance_id": instance_id}
            ) from exc

    @asynccontextmanager
    async def lock(self, instance_id: str) -> AsyncIterator[None]:
        """Hold the single-writer lock for an instance.

        Raises:
            InstanceBusy: the lock could not be acquired within ``lock_wait`` seconds
        """
        client = await self._get_client()
        key = self._lock_key(instance_id)
        token = uuid.uuid4().hex
        deadline = time.monotonic() + self._lock_wait

        try:
            while not await client.set(key, token, nx=True, px=self._lock_ttl * 1000):
                if time.monotonic() >= deadline:
                    logger.warning("instance_lock_contended", instance_id=instance_id)
                    raise InstanceBusy(
                        f"instance {instance_id!r} is being modified by another request",
                        {"instance_id": instance_id},
                    )
                await asyncio.sleep(0.05)
        except RedisError as exc:
            raise StateStoreError(
                f"cannot lock instance {instance_id!r}: {exc}", {"instance_id": instance_id}
            ) from exc

        try:
            yield
        finally:
            try:
                await client.eval(_RELEASE_LOCK_SCRIPT, 1, key, token)
            except RedisError as exc:
                # the lock expires after its TTL
                logger.warning(
                    "instance_lock_release_failed", instance_id=instance_id, error=str(exc)
                )

    async def ping(self) -> bool:
        client = await self._get_client()
        try:
            return bool(await client.ping())
        except RedisError:
            return False

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.close()
        if self._pool is not None:
            await self._pool.disconnect()
