"""Scheduler service - one recurring check job per monitor.

Design:
- Each non-paused monitor owns exactly one APScheduler interval job keyed
  "monitor-{id}", firing every `interval_seconds`
- Configuration changes re-register the job (remove, then add)
- Firings for different monitors run concurrently on the event loop,
  limited by a semaphore of MAX_CONCURRENT_CHECKS
- A job runs with max_instances=1, so a check that outlives its interval
  makes the next firing of that monitor skip instead of overlapping
- Job store operations are retried with exponential backoff and raised as
  JobQueueError once retries are exhausted

Capacity: with 10 concurrent checks and ~5s average check duration the
scheduler sustains ~120 monitors per minute on 60s intervals. The pool is
sized by configuration, not by monitor count.
"""
import asyncio
import logging
from typing import Callable, List, Optional

from apscheduler.jobstores.base import ConflictingIdError
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import InterfaceError, OperationalError

from ..config import settings
from ..database import async_session
from ..exceptions import JobAlreadyScheduledError, JobQueueError
from ..models import CheckResult, Monitor
from ..store import Store
from ..utils.db_utils import retry_with_backoff
from .alerter import AlerterService, alerter_service
from .checker import CheckerService, checker_service

logger = logging.getLogger(__name__)

JOB_PREFIX = "monitor-"

# Errors from the job store worth retrying
TRANSIENT_QUEUE_ERRORS = (OperationalError, InterfaceError, OSError)


def job_key(monitor_id) -> str:
    return f"{JOB_PREFIX}{monitor_id}"


def _build_jobstores() -> dict:
    if settings.job_store_url:
        from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
        return {"default": SQLAlchemyJobStore(url=settings.job_store_url, tablename="scheduled_checks")}
    return {"default": MemoryJobStore()}


# Instance whose scheduler is running; firings execute through it
_running_service: Optional["SchedulerService"] = None


async def run_monitor_check(monitor_id: int):
    """Job entry point.

    Module-level so persistent job stores can serialize the reference.
    Runs the check on the started SchedulerService, falling back to the
    global instance when none has been started.
    """
    service = _running_service or scheduler_service
    await service.run_check(monitor_id)


class SchedulerService:
    """Keeps scheduled jobs in sync with monitors and executes checks.

    Only one instance should be started per process: jobs reference the
    module-level `run_monitor_check`, which runs on the started instance.
    """

    def __init__(
        self,
        checker: Optional[CheckerService] = None,
        alerter: Optional[AlerterService] = None,
        session_factory: Optional[Callable] = None,
        max_concurrent_checks: Optional[int] = None,
        max_retries: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
        jobstores: Optional[dict] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.checker = checker or checker_service
        self.alerter = alerter or alerter_service
        self.session_factory = session_factory or async_session
        self.max_concurrent_checks = max_concurrent_checks or settings.max_concurrent_checks
        self.max_retries = max_retries if max_retries is not None else settings.queue_max_retries
        self.retry_base_delay = (
            retry_base_delay if retry_base_delay is not None else settings.queue_retry_base_delay
        )
        self.logger = logger or logging.getLogger(__name__)
        self._semaphore = asyncio.Semaphore(self.max_concurrent_checks)
        self.scheduler = AsyncIOScheduler(
            jobstores=jobstores if jobstores is not None else _build_jobstores(),
            job_defaults={"coalesce": True, "max_instances": 1},
        )
        self._running = False

    def start(self):
        """Start the scheduler."""
        global _running_service
        if self._running:
            return
        self.scheduler.start()
        _running_service = self
        self._running = True
        self.logger.info(f"Scheduler started (max_concurrent={self.max_concurrent_checks})")

    def stop(self):
        """Stop the scheduler. In-flight checks are not cancelled."""
        global _running_service
        if self._running:
            self.scheduler.shutdown(wait=False)
            self._running = False
            if _running_service is self:
                _running_service = None
            self.logger.info("Scheduler stopped")

    async def _queue_operation(self, func: Callable, description: str):
        try:
            return await retry_with_backoff(
                func,
                max_retries=self.max_retries,
                base_delay=self.retry_base_delay,
                retry_on=TRANSIENT_QUEUE_ERRORS,
                description=description,
            )
        except TRANSIENT_QUEUE_ERRORS as e:
            self.logger.error(f"{description} failed after {self.max_retries} attempts: {e}")
            raise JobQueueError(f"{description} failed: {e}") from e

    async def schedule(self, monitor: Monitor):
        """Register the recurring check for a monitor.

        Raises JobAlreadyScheduledError if the monitor already has a job;
        callers must unschedule first.
        """
        job_id = job_key(monitor.id)
        existing = await self._queue_operation(
            lambda: self.scheduler.get_job(job_id), f"Lookup of job {job_id}"
        )
        if existing is not None:
            raise JobAlreadyScheduledError(job_id)

        try:
            await self._queue_operation(
                lambda: self.scheduler.add_job(
                    run_monitor_check,
                    trigger=IntervalTrigger(seconds=monitor.interval_seconds),
                    id=job_id,
                    name=f"Check {monitor.name}",
                    args=[monitor.id],
                    replace_existing=False,
                    misfire_grace_time=monitor.interval_seconds,
                ),
                f"Adding job {job_id}",
            )
        except ConflictingIdError as e:
            # Added concurrently between the lookup and the add
            raise JobAlreadyScheduledError(job_id) from e
        self.logger.info(f"Scheduled monitor check for {monitor.name} every {monitor.interval_seconds} seconds")

    async def unschedule(self, monitor_id) -> bool:
        """Remove the monitor's job. Returns False if there was none."""
        job_id = job_key(monitor_id)
        job = await self._queue_operation(
            lambda: self.scheduler.get_job(job_id), f"Lookup of job {job_id}"
        )
        if job is None:
            return False
        await self._queue_operation(lambda: self.scheduler.remove_job(job_id), f"Removing job {job_id}")
        self.logger.info(f"Removed monitor check for job ID: {job_id}")
        return True

    async def reschedule(self, monitor: Monitor):
        """Re-register the job after a configuration change."""
        await self.unschedule(monitor.id)
        await self.schedule(monitor)
        self.logger.info(f"Updated monitor check for job ID: {job_key(monitor.id)}")

    async def pause(self, monitor_id):
        await self.unschedule(monitor_id)
        self.logger.info(f"Paused monitor check for monitor {monitor_id}")

    async def resume(self, monitor: Monitor):
        await self.schedule(monitor)
        self.logger.info(f"Resumed monitor check for monitor {monitor.id}")

    async def scheduled_job_ids(self) -> List[str]:
        jobs = await self._queue_operation(self.scheduler.get_jobs, "Listing jobs")
        return [job.id for job in jobs if job.id.startswith(JOB_PREFIX)]

    async def restore_jobs(self) -> int:
        """Re-establish one job per non-paused monitor, e.g. after a restart.

        Stale jobs for deleted or paused monitors are removed.
        """
        async with self.session_factory() as session:
            monitors = await Store(session).list_active_monitors()

        active = {job_key(m.id) for m in monitors}
        for job_id in await self.scheduled_job_ids():
            if job_id not in active:
                await self._queue_operation(lambda: self.scheduler.remove_job(job_id), f"Removing job {job_id}")
                self.logger.info(f"Removed stale job {job_id}")

        for monitor in monitors:
            await self.reschedule(monitor)

        self.logger.info(f"Restored {len(monitors)} monitor jobs")
        return len(monitors)

    async def run_check(self, monitor_id: int) -> Optional[CheckResult]:
        """Execute one firing: probe, persist, stamp last_checked_at, alert.

        The steps run strictly in this order inside one session. Errors are
        logged here so a failing monitor never takes down the scheduler.
        """
        async with self._semaphore:
            try:
                async with self.session_factory() as session:
                    store = Store(session)
                    monitor = await store.find_monitor(monitor_id)
                    if monitor is None:
                        self.logger.warning(f"Monitor {monitor_id} not found, skipping check")
                        return None
                    if monitor.paused:
                        self.logger.debug(f"Monitor {monitor_id} is paused, skipping check")
                        return None

                    outcome = await self.checker.execute(monitor)

                    result = await store.save_check_result(CheckResult(
                        monitor_id=monitor.id,
                        status_code=outcome.status_code,
                        response_time_ms=outcome.response_time_ms,
                        is_up=outcome.is_up,
                        error_message=outcome.error_message,
                        error_kind=outcome.error_kind,
                        response_headers=outcome.response_headers,
                    ))
                    await store.touch_last_checked(monitor, result.created_at)
                    await store.commit()

                    await self.alerter.check_and_send_alerts(store, monitor, result)
                    await store.commit()

                    self.logger.debug(f"Monitor {monitor.name}: {'up' if result.is_up else 'down'}")
                    return result
            except Exception as e:
                self.logger.exception(f"Error checking monitor {monitor_id}: {e}")
                return None


# Global instance
scheduler_service = SchedulerService()
