import asyncio
from typing import Any

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from atlasbroker.config import Settings
from atlasbroker.core.errors import CorruptInstanceState, InstanceBusy, StateStoreError
from atlasbroker.plans.models import APIKey, Cluster, Plan, Project, ProviderSettings
from atlasbroker.state import (
    InMemoryInstanceStore,
    InstanceRecord,
    RedisInstanceStore,
    store_from_settings,
)


class StubRedisClient:
    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.fail = False
        self.closed = False

    def _check(self) -> None:
        if self.fail:
            raise RedisConnectionError("connection refused")

    async def get(self, key: str) -> str | None:
        self._check()
        return self.values.get(key)

    async def set(self, key: str, value: str, nx: bool = False, px: int | None = None) -> bool | None:
        self._check()
        if nx and key in self.values:
            return None
        self.values[key] = value
        return True

    async def delete(self, key: str) -> int:
        self._check()
        return 1 if self.values.pop(key, None) is not None else 0

    async def eval(self, script: str, numkeys: int, key: str, token: Any) -> int:
        self._check()
        if self.values.get(key) == token:
            del self.values[key]
            return 1
        return 0

    async def ping(self) -> bool:
        self._check()
        return True

    async def close(self) -> None:
        self.closed = True


def _plan() -> Plan:
    return Plan(
        name="full-plan",
        api_key=APIKey(public_key="pub", private_key="priv", org_id="org1"),
        project=Project(id="p1", name="demo", org_id="org1"),
        cluster=Cluster(name="demo-cluster", provider_settings=ProviderSettings(instance_size_name="M20")),
    )


def test_instance_record_round_trip():
    record = InstanceRecord.for_plan("inst-1", "plan-1", _plan())

    restored = InstanceRecord.from_raw("inst-1", record.to_raw())

    assert restored.plan_id == "plan-1"
    assert restored.plan().to_document() == _plan().to_document()
    assert record.to_raw()["parameters"]["plan"]["apiKey"]["privateKey"] == "priv"


def test_instance_record_rejects_non_mapping():
    with pytest.raises(CorruptInstanceState):
        InstanceRecord.from_raw("inst-1", ["not", "a", "record"])


def test_instance_record_rejects_invalid_plan():
    record = InstanceRecord.from_raw("inst-1", {"parameters": {"plan": {"databaseUsers": [{}]}}})

    with pytest.raises(CorruptInstanceState) as exc_info:
        record.plan()

    assert exc_info.value.details["instance_id"] == "inst-1"


@pytest.mark.asyncio
async def test_memory_store_round_trip():
    store = InMemoryInstanceStore()
    record = {"planId": "plan-1", "parameters": {"plan": {"name": "x"}}}

    await store.put("inst-1", record)
    fetched = await store.get("inst-1")
    fetched["planId"] = "mutated"

    assert (await store.get("inst-1"))["planId"] == "plan-1"
    assert store.size() == 1

    await store.delete("inst-1")
    assert await store.get("inst-1") is None
    assert await store.ping()


@pytest.mark.asyncio
async def test_memory_store_lock_serializes_writers():
    store = InMemoryInstanceStore()
    order: list[str] = []

    async def writer(name: str) -> None:
        async with store.lock("inst-1"):
            order.append(f"{name}-start")
            await asyncio.sleep(0.01)
            order.append(f"{name}-end")

    await asyncio.gather(writer("a"), writer("b"))

    assert order in (
        ["a-start", "a-end", "b-start", "b-end"],
        ["b-start", "b-end", "a-start", "a-end"],
    )


@pytest.mark.asyncio
async def test_memory_store_drops_released_locks():
    store = InMemoryInstanceStore()

    for index in range(50):
        async with store.lock(f"inst-{index}"):
            assert f"inst-{index}" in store._locks

    assert len(store._locks) == 0


@pytest.mark.asyncio
async def test_redis_store_round_trip():
    client = StubRedisClient()
    store = RedisInstanceStore("redis://test", redis_client=client, key_prefix="test:instance")

    await store.put("inst-1", {"planId": "plan-1"})

    assert "test:instance:inst-1" in client.values
    assert await store.get("inst-1") == {"planId": "plan-1"}

    await store.delete("inst-1")
    assert await store.get("inst-1") is None


@pytest.mark.asyncio
async def test_redis_store_invalid_json_is_corrupt():
    client = StubRedisClient()
    client.values["atlas-broker:instance:inst-1"] = "{not json"
    store = RedisInstanceStore("redis://test", redis_client=client)

    with pytest.raises(CorruptInstanceState):
        await store.get("inst-1")


@pytest.mark.asyncio
async def test_redis_errors_become_state_store_errors():
    client = StubRedisClient()
    client.fail = True
    store = RedisInstanceStore("redis://test", redis_client=client)

    with pytest.raises(StateStoreError):
        await store.get("inst-1")
    with pytest.raises(StateStoreError):
        await store.put("inst-1", {})
    assert await store.ping() is False


@pytest.mark.asyncio
async def test_redis_lock_is_released():
    client = StubRedisClient()
    store = RedisInstanceStore("redis://test", redis_client=client)

    async with store.lock("inst-1"):
        assert "atlas-broker:instance:inst-1:lock" in client.values

    assert "atlas-broker:instance:inst-1:lock" not in client.values


@pytest.mark.asyncio
async def test_redis_lock_contention_raises_busy():
    client = StubRedisClient()
    client.values["atlas-broker:instance:inst-1:lock"] = "someone-else"
    store = RedisInstanceStore("redis://test", redis_client=client, lock_wait=0.1)

    with pytest.raises(InstanceBusy):
        async with store.lock("inst-1"):
            pass

    # a lock held by another writer is never released by us
    assert client.values["atlas-broker:instance:inst-1:lock"] == "someone-else"


@pytest.mark.asyncio
async def test_redis_lock_release_failure_keeps_original_error():
    client = StubRedisClient()
    store = RedisInstanceStore("redis://test", redis_client=client)

    with pytest.raises(ValueError, match="provision failed"):
        async with store.lock("inst-1"):
            client.fail = True
            raise ValueError("provision failed")


@pytest.mark.asyncio
async def test_redis_lock_release_failure_is_not_raised():
    client = StubRedisClient()
    store = RedisInstanceStore("redis://test", redis_client=client)

    async with store.lock("inst-1"):
        client.fail = True

    # left for the TTL to expire
    assert "atlas-broker:instance:inst-1:lock" in client.values


def test_store_from_settings():
    assert isinstance(store_from_settings(Settings(state_backend="memory")), InMemoryInstanceStore)
    assert isinstance(store_from_settings(Settings(state_backend="redis")), RedisInstanceStore)

    with pytest.raises(ValueError):
        store_from_settings(Settings(state_backend="etcd"))
