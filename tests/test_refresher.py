import asyncio

import pytest

from meteo.cache import TTLCache
from meteo.refresher import BackgroundRefresher

INTERVAL = 0.05


@pytest.mark.asyncio
async def test_refresh_republishes_into_cache():
    cache = TTLCache(60)
    refresher = BackgroundRefresher(cache, interval=INTERVAL)
    calls = []

    async def fetch():
        calls.append(1)
        return {"run": len(calls)}

    try:
        refresher.start_refresh("belgrade_current", fetch)
        assert cache.get("belgrade_current") == (None, False)

        await asyncio.sleep(INTERVAL * 6)
    finally:
        refresher.shutdown()

    assert len(calls) >= 2
    value, found = cache.get("belgrade_current")
    assert found and value["run"] >= 1


@pytest.mark.asyncio
async def test_first_refresh_waits_one_interval():
    cache = TTLCache(60)
    refresher = BackgroundRefresher(cache, interval=1.0)
    calls = []

    async def fetch():
        calls.append(1)
        return "fresh"

    try:
        refresher.start_refresh("k", fetch)
        await asyncio.sleep(0.1)
    finally:
        refresher.shutdown()

    assert calls == []


@pytest.mark.asyncio
async def test_failed_refresh_keeps_entry_and_loop_running():
    cache = TTLCache(60)
    cache.set("k", "stale")
    refresher = BackgroundRefresher(cache, interval=INTERVAL)
    calls = []

    async def fetch():
        calls.append(1)
        raise RuntimeError("provider down")

    try:
        refresher.start_refresh("k", fetch)
        await asyncio.sleep(INTERVAL * 6)
        assert "k" in refresher.keys()
    finally:
        refresher.shutdown()

    assert len(calls) >= 2
    assert cache.get("k") == ("stale", True)


@pytest.mark.asyncio
async def test_registering_same_key_replaces_job():
    cache = TTLCache(60)
    refresher = BackgroundRefresher(cache, interval=INTERVAL)
    old_calls, new_calls = [], []

    async def old_fetch():
        old_calls.append(1)
        return "old"

    async def new_fetch():
        new_calls.append(1)
        return "new"

    try:
        refresher.start_refresh("k", old_fetch)
        job = refresher.start_refresh("k", new_fetch)
        assert refresher.keys() == ["k"]
        assert job.id == "k"

        await asyncio.sleep(INTERVAL * 6)
    finally:
        refresher.shutdown()

    assert old_calls == []
    assert new_calls
    assert cache.get("k") == ("new", True)


@pytest.mark.asyncio
async def test_stop_refresh_cancels_job():
    cache = TTLCache(60)
    refresher = BackgroundRefresher(cache, interval=INTERVAL)
    calls = []

    async def fetch():
        calls.append(1)
        return "v"

    try:
        refresher.start_refresh("k", fetch)
        assert refresher.stop_refresh("k") is True
        assert refresher.stop_refresh("k") is False
        await asyncio.sleep(INTERVAL * 4)
    finally:
        refresher.shutdown()

    assert calls == []
    assert refresher.running is False


def test_interval_defaults_to_cache_ttl():
    refresher = BackgroundRefresher(TTLCache(123))
    assert refresher.interval == 123.0


@pytest.mark.asyncio
async def test_shutdown_is_immediate_and_silences_pending_jobs():
    cache = TTLCache(60)
    refresher = BackgroundRefresher(cache, interval=INTERVAL)
    calls = []

    async def fetch():
        calls.append(1)
        return "late"

    job = refresher.start_refresh("k", fetch)
    refresher.shutdown()

    assert refresher.running is False
    await job.func(*job.args)
    await asyncio.sleep(INTERVAL * 4)

    assert calls == []
    assert cache.get("k") == (None, False)
