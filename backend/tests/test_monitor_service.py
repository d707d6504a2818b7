"""Tests for monitor lifecycle operations and their scheduling side effects."""
from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from statusflow.exceptions import NotFoundError
from statusflow.models import CheckResult, Monitor
from statusflow.schemas.monitor import MonitorCreate, MonitorUpdate
from statusflow.services.monitor_service import MonitorService
from statusflow.services.scheduler import job_key

from conftest import make_result


@pytest.fixture
def service(scheduler):
    return MonitorService(scheduler=scheduler)


def job_interval(scheduler, monitor_id):
    job = scheduler.scheduler.get_job(job_key(monitor_id))
    return job.trigger.interval if job else None


@pytest.mark.asyncio
async def test_create_schedules_job(service, scheduler, session):
    monitor = await service.create_monitor(
        session, "user-1", MonitorCreate(name="Docs", url="https://docs.example.com", interval_seconds=120)
    )

    assert monitor.id is not None
    assert monitor.user_id == "user-1"
    assert job_interval(scheduler, monitor.id) == timedelta(seconds=120)


@pytest.mark.asyncio
async def test_create_paused_monitor_has_no_job(service, scheduler, session):
    monitor = await service.create_monitor(
        session, "user-1", MonitorCreate(name="Docs", url="https://docs.example.com", paused=True)
    )

    assert job_interval(scheduler, monitor.id) is None


@pytest.mark.asyncio
async def test_update_reschedules(service, scheduler, session):
    monitor = await service.create_monitor(session, "user-1", MonitorCreate(name="Docs", url="https://docs.example.com"))

    updated = await service.update_monitor(session, "user-1", monitor.id, MonitorUpdate(interval_seconds=30, name="Docs v2"))

    assert updated.name == "Docs v2"
    assert updated.url == "https://docs.example.com"
    assert job_interval(scheduler, monitor.id) == timedelta(seconds=30)


@pytest.mark.asyncio
async def test_pause_and_resume(service, scheduler, session):
    monitor = await service.create_monitor(session, "user-1", MonitorCreate(name="Docs", url="https://docs.example.com"))

    paused = await service.pause_monitor(session, "user-1", monitor.id)
    assert paused.paused is True
    assert job_interval(scheduler, monitor.id) is None

    resumed = await service.resume_monitor(session, "user-1", monitor.id)
    assert resumed.paused is False
    assert job_interval(scheduler, monitor.id) == timedelta(seconds=60)


@pytest.mark.asyncio
async def test_update_while_paused_keeps_job_removed(service, scheduler, session):
    monitor = await service.create_monitor(session, "user-1", MonitorCreate(name="Docs", url="https://docs.example.com"))
    await service.pause_monitor(session, "user-1", monitor.id)

    await service.update_monitor(session, "user-1", monitor.id, MonitorUpdate(interval_seconds=300))

    assert job_interval(scheduler, monitor.id) is None


@pytest.mark.asyncio
async def test_delete_removes_job_and_results(service, scheduler, session):
    monitor = await service.create_monitor(session, "user-1", MonitorCreate(name="Docs", url="https://docs.example.com"))
    session.add(make_result(monitor.id, True))
    await session.commit()

    await service.delete_monitor(session, "user-1", monitor.id)

    assert job_interval(scheduler, monitor.id) is None
    assert (await session.execute(select(Monitor))).scalars().all() == []
    assert (await session.execute(select(CheckResult))).scalars().all() == []


@pytest.mark.asyncio
async def test_other_users_monitor_not_found(service, session):
    monitor = await service.create_monitor(session, "user-1", MonitorCreate(name="Docs", url="https://docs.example.com"))

    with pytest.raises(NotFoundError):
        await service.pause_monitor(session, "user-2", monitor.id)
    with pytest.raises(NotFoundError):
        await service.delete_monitor(session, "user-2", monitor.id)


@pytest.mark.asyncio
async def test_get_monitor_metrics(service, session):
    monitor = await service.create_monitor(session, "user-1", MonitorCreate(name="Docs", url="https://docs.example.com"))
    start = datetime(2024, 5, 1, 0, 0)
    session.add_all([
        make_result(monitor.id, True, start + timedelta(minutes=5), response_time_ms=100),
        make_result(monitor.id, False, start + timedelta(minutes=20)),
        make_result(monitor.id, True, start + timedelta(minutes=50), response_time_ms=300),
    ])
    await session.commit()

    metrics = await service.get_monitor_metrics(
        session, "user-1", monitor.id, start, start + timedelta(hours=1), "15m"
    )

    assert metrics.interval == "15m"
    assert metrics.interval_ms == 900_000
    assert [b.total_checks for b in metrics.buckets] == [1, 1, 0, 1]
    assert metrics.buckets[2].uptime is None
    assert metrics.buckets[1].uptime == 0.0
    assert metrics.summary.total_checks == 3
    assert metrics.summary.incidents == 1


@pytest.mark.asyncio
async def test_metrics_unknown_interval_defaults_to_hour(service, session):
    monitor = await service.create_monitor(session, "user-1", MonitorCreate(name="Docs", url="https://docs.example.com"))
    start = datetime(2024, 5, 1, 0, 0)

    metrics = await service.get_monitor_metrics(session, "user-1", monitor.id, start, start + timedelta(hours=5), "7m")

    assert metrics.interval == "1h"
    assert len(metrics.buckets) == 5
