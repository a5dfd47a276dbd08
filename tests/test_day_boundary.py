import pytest

from coachtrack.domain.stopwatch.day_boundary import MIDNIGHT_WARNING, ROLLOVER, DayBoundaryMonitor
from coachtrack.domain.stopwatch.models import RUNNING, Rollover

from conftest import STUDENT, TZ_NAME, local


@pytest.fixture
def notes():
    return []


@pytest.fixture
def monitor(service, clock, notes):
    async def notify(kind, payload):
        notes.append((kind, payload))

    return DayBoundaryMonitor(service, clock=clock, tz=TZ_NAME, warning_minutes=60, notify=notify)


async def test_date_change_rolls_over_running_session(service, monitor, gateway, clock, notes):
    clock.set(local(2026, 3, 10, 23, 50))
    await service.start()

    clock.set(local(2026, 3, 10, 23, 59))
    assert await monitor.check_date() is None

    clock.set(local(2026, 3, 11, 0, 0))
    result = await monitor.check_date()

    assert result == Rollover(session_date="2026-03-10", duration_seconds=600)
    assert notes == [(ROLLOVER, result)]
    assert service.state == RUNNING
    [fresh] = gateway.rows_for(STUDENT)
    assert fresh.start_time == local(2026, 3, 11, 0, 0)


async def test_date_change_while_idle_does_nothing(monitor, gateway, clock, notes):
    clock.advance(days=1)
    assert await monitor.check_date() is None
    assert gateway.completed == []
    assert notes == []


async def test_checks_skip_while_transition_in_flight(service, monitor, gateway, clock):
    clock.set(local(2026, 3, 10, 23, 50))
    await service.start()
    clock.set(local(2026, 3, 11, 0, 1))

    async with service._lock:
        assert await monitor.check_date() is None
        assert await monitor.check_warning() is False
    assert gateway.completed == []

    assert await monitor.check_date() is not None


async def test_warning_inside_last_hour(service, monitor, clock, notes):
    clock.set(local(2026, 3, 10, 23, 10))
    await service.start()

    assert await monitor.check_warning() is True
    assert service.snapshot().warning_active is True
    assert notes == [(MIDNIGHT_WARNING, 50)]

    # no second notification while it stays on
    clock.advance(minutes=5)
    assert await monitor.check_warning() is True
    assert len(notes) == 1


async def test_no_warning_earlier_in_the_evening(service, monitor, clock, notes):
    clock.set(local(2026, 3, 10, 22, 59))
    await service.start()

    assert await monitor.check_warning() is False
    clock.set(local(2026, 3, 10, 23, 0))
    assert await monitor.check_warning() is True


async def test_no_warning_when_paused_or_idle(service, monitor, clock, notes):
    clock.set(local(2026, 3, 10, 23, 30))
    assert await monitor.check_warning() is False

    await service.start()
    await service.pause()
    assert await monitor.check_warning() is False
    assert notes == []


async def test_warning_clears_after_stop_and_after_midnight(service, monitor, clock):
    clock.set(local(2026, 3, 10, 23, 30))
    await service.start()
    assert await monitor.check_warning() is True

    await service.stop()
    assert service.warning_active is False

    await service.start()
    assert await monitor.check_warning() is True
    clock.set(local(2026, 3, 11, 0, 2))
    await monitor.check_date()
    assert service.warning_active is False
    assert await monitor.check_warning() is False


async def test_monitor_without_notify(service, clock):
    monitor = DayBoundaryMonitor(service, clock=clock, tz=TZ_NAME)
    clock.set(local(2026, 3, 10, 23, 45))
    await service.start()
    assert await monitor.check_warning() is True
