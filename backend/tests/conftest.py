"""Shared pytest fixtures."""
import logging
from datetime import datetime
from typing import List

import httpx
import pytest
from apscheduler.jobstores.memory import MemoryJobStore
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from statusflow import models  # noqa: F401
from statusflow.database import Base
from statusflow.exceptions import NotificationError
from statusflow.models import CheckResult, Monitor
from statusflow.services.alerter import AlerterService
from statusflow.services.notifier import NotificationDispatcher
from statusflow.services.scheduler import SchedulerService

# Configure logging for tests
logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


@pytest.fixture
async def engine():
    """In-memory SQLite shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


class FakeEmailSender:
    """Records outgoing mail instead of talking to SMTP."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[dict] = []

    async def send_email(self, recipients, subject, html, config=None):
        if self.fail:
            raise NotificationError("SMTP server unavailable")
        self.sent.append({"recipients": list(recipients), "subject": subject, "html": html})


class WebhookRecorder:
    """httpx.MockTransport handler answering every request with one status."""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json={"ok": self.status_code < 400})


@pytest.fixture
def email_sender():
    return FakeEmailSender()


@pytest.fixture
def webhook():
    return WebhookRecorder()


@pytest.fixture
def dispatcher(email_sender, webhook):
    return NotificationDispatcher(email_sender=email_sender, transport=httpx.MockTransport(webhook))


@pytest.fixture
def alerter(dispatcher):
    return AlerterService(dispatcher=dispatcher)


@pytest.fixture
def scheduler(session_factory, alerter):
    """Scheduler that is never started; jobs stay pending and inspectable."""
    return SchedulerService(
        alerter=alerter,
        session_factory=session_factory,
        max_concurrent_checks=2,
        retry_base_delay=0,
        jobstores={"default": MemoryJobStore()},
    )


def make_monitor(**overrides) -> Monitor:
    values = dict(
        user_id="user-1",
        name="API",
        url="https://api.example.com/health",
        http_method="GET",
        timeout_ms=5000,
        headers={},
        body=None,
        interval_seconds=60,
        max_latency_ms=500,
        max_consecutive_failures=3,
        paused=False,
    )
    values.update(overrides)
    return Monitor(**values)


def make_result(monitor_id=None, is_up=True, created_at=None, **overrides) -> CheckResult:
    values = dict(
        monitor_id=monitor_id,
        status_code=200 if is_up else 0,
        response_time_ms=120 if is_up else 0,
        is_up=is_up,
        error_message=None if is_up else "Connection refused by https://api.example.com/health",
        error_kind=None if is_up else "connection-refused",
        response_headers={},
        created_at=created_at or datetime.utcnow(),
    )
    values.update(overrides)
    return CheckResult(**values)


@pytest.fixture
async def monitor(session):
    monitor = make_monitor()
    session.add(monitor)
    await session.commit()
    return monitor
