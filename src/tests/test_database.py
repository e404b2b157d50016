import asyncio

import pytest
from tortoise.exceptions import DBConnectionError

from pos_reports.core.database import (
    MODEL_MODULES, ConnectionProvider, DatabaseStatusCache, build_tortoise_config, check_database_ready,
)
from pos_reports.core.exceptions import DataSourceUnavailableError


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


async def count_products(client):
    _, rows = await client.execute_query("SELECT COUNT(*) AS n FROM products")
    return rows[0]["n"]


def test_build_tortoise_config():
    config = build_tortoise_config("sqlite://:memory:")
    assert config["connections"]["default"] == "sqlite://:memory:"
    assert config["apps"]["models"]["models"] == MODEL_MODULES
    assert config["timezone"] == "UTC"


def test_pool_size_must_be_positive():
    with pytest.raises(ValueError):
        ConnectionProvider(pool_size=0)


@pytest.mark.asyncio
async def test_run_lends_a_connection_and_gives_it_back(provider, catalog):
    assert await provider.run(count_products) == 4
    assert provider.in_use == 0


@pytest.mark.asyncio
async def test_slot_is_released_when_the_query_fails(provider):
    async def failing(client):
        raise ValueError("bad row")

    with pytest.raises(ValueError):
        await provider.run(failing)
    assert provider.in_use == 0


@pytest.mark.asyncio
async def test_acquire_timeout():
    provider = ConnectionProvider(pool_size=1, acquire_timeout=0.05)

    async with provider.connection():
        assert provider.in_use == 1
        with pytest.raises(DataSourceUnavailableError) as excinfo:
            async with provider.connection():
                pass
        assert "0.05 seconds" in excinfo.value.message

    assert provider.in_use == 0
    # The slot is usable again
    async with provider.connection():
        pass


@pytest.mark.asyncio
async def test_waiters_get_the_slot_once_released():
    provider = ConnectionProvider(pool_size=1, acquire_timeout=1)
    order = []

    async def job(name, hold):
        async with provider.connection():
            order.append(name)
            await asyncio.sleep(hold)

    await asyncio.gather(job("first", 0.02), job("second", 0), job("third", 0))
    assert order == ["first", "second", "third"]
    assert provider.in_use == 0


@pytest.mark.asyncio
async def test_query_timeout():
    provider = ConnectionProvider(query_timeout=0.05)

    async def slow(client):
        await asyncio.sleep(1)

    with pytest.raises(DataSourceUnavailableError):
        await provider.run(slow)
    assert provider.in_use == 0


@pytest.mark.asyncio
async def test_lost_connection_is_unavailable(provider):
    async def disconnected(client):
        raise DBConnectionError("server closed the connection")

    with pytest.raises(DataSourceUnavailableError):
        await provider.run(disconnected)


@pytest.mark.asyncio
async def test_unknown_connection_is_unavailable():
    provider = ConnectionProvider(connection_name="warehouse")
    with pytest.raises(DataSourceUnavailableError):
        await provider.run(count_products)
    assert provider.in_use == 0


@pytest.mark.asyncio
async def test_check_database_ready(provider):
    assert await check_database_ready(provider) is True
    assert await check_database_ready(ConnectionProvider(connection_name="warehouse")) is False


def test_status_cache_expires():
    clock = FakeClock()
    cache = DatabaseStatusCache(ttl_seconds=5, clock=clock)
    assert cache.get() is None

    cache.set(True)
    clock.now += 4.9
    assert cache.get() is True

    clock.now += 0.1
    assert cache.get() is None


def test_status_cache_invalidate():
    cache = DatabaseStatusCache(ttl_seconds=60, clock=FakeClock())
    cache.set(False)
    assert cache.get() is False
    cache.invalidate()
    assert cache.get() is None


@pytest.mark.asyncio
async def test_status_cache_probes_once_per_ttl():
    clock = FakeClock()
    cache = DatabaseStatusCache(ttl_seconds=5, clock=clock)
    probes = []

    async def probe():
        probes.append(clock.now)
        return True

    assert await cache.is_ready(probe) is True
    assert await cache.is_ready(probe) is True
    assert len(probes) == 1

    clock.now += 5
    await cache.is_ready(probe)
    assert len(probes) == 2
