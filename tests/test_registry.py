import asyncio
from datetime import timedelta

import pytest

from coachtrack.config import Settings
from coachtrack.domain.common.errors import PersistenceFailure, StaleSessionConflict
from coachtrack.domain.stopwatch.models import ActiveSession, IDLE, RUNNING
from coachtrack.ui.telegram.stopwatch_registry import StopwatchRegistry

from conftest import STUDENT, TZ_NAME


def _settings(**overrides) -> Settings:
    params = dict(
        bot_token="test-token",
        db_path=":memory:",
        tz=TZ_NAME,
        coach_telegram_ids=frozenset(),
        date_check_seconds=3600,
        warning_check_seconds=3600,
        midnight_warning_minutes=60,
        stale_session_hours=24,
        log_level="INFO",
    )
    params.update(overrides)
    return Settings(**params)


@pytest.fixture
async def registry(gateway, clock):
    sent = []

    async def notify(user_id, kind, payload):
        sent.append((user_id, kind, payload))

    reg = StopwatchRegistry(gateway=gateway, clock=clock, settings=_settings(), notify=notify)
    reg.sent = sent
    yield reg
    reg.shutdown()


async def test_get_rehydrates_once_and_caches(registry, gateway, clock):
    gateway.active["a"] = ActiveSession(id="a", student_id=STUDENT, start_time=clock.now() - timedelta(minutes=3))

    service = await registry.get(STUDENT)

    assert service.state == RUNNING
    assert service.snapshot().elapsed_seconds == 180
    assert STUDENT in registry
    assert await registry.get(STUDENT) is service
    assert gateway.calls.count("get_active_session") == 1


async def test_each_user_gets_own_stopwatch(registry):
    a = await registry.get(1)
    b = await registry.get(2)
    await a.start()

    assert a is not b
    assert b.state == IDLE


async def test_sign_out_unloads_stopwatch(registry):
    service = await registry.get(STUDENT)
    await service.start()

    registry.sign_out(STUDENT)

    assert STUDENT not in registry
    # the stored session survives; a new stopwatch picks it up
    again = await registry.get(STUDENT)
    assert again is not service
    assert again.state == RUNNING


async def test_stale_session_is_reported_but_stopwatch_kept(registry, gateway, clock):
    gateway.active["old"] = ActiveSession(id="old", student_id=STUDENT, start_time=clock.now() - timedelta(days=2))

    with pytest.raises(StaleSessionConflict):
        await registry.get(STUDENT)

    assert STUDENT in registry
    assert (await registry.get(STUDENT)).state == IDLE


async def test_failed_rehydrate_is_not_cached(registry, gateway):
    gateway.fail_on.add("get_active_session")

    with pytest.raises(PersistenceFailure):
        await registry.get(STUDENT)
    assert STUDENT not in registry

    gateway.fail_on.clear()
    assert (await registry.get(STUDENT)).state == IDLE


async def test_concurrent_get_waits_for_first_rehydrate(registry, gateway, clock):
    gateway.active["a"] = ActiveSession(id="a", student_id=STUDENT, start_time=clock.now() - timedelta(minutes=3))
    release = asyncio.Event()
    load_row = gateway.get_active_session

    async def slow_get(student_id):
        await release.wait()
        return await load_row(student_id)

    gateway.get_active_session = slow_get

    first = asyncio.create_task(registry.get(STUDENT))
    second = asyncio.create_task(registry.get(STUDENT))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    assert not second.done()

    release.set()
    a, b = await asyncio.gather(first, second)

    assert a is b
    assert b.state == RUNNING
    assert gateway.calls.count("get_active_session") == 1


async def test_concurrent_get_shares_failed_rehydrate(registry, gateway):
    gateway.fail_on.add("get_active_session")

    results = await asyncio.gather(registry.get(STUDENT), registry.get(STUDENT), return_exceptions=True)

    assert all(isinstance(r, PersistenceFailure) for r in results)
    assert STUDENT not in registry
    assert gateway.calls.count("get_active_session") == 1
