"""Monitor service - lifecycle operations that keep jobs in sync with monitors."""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import NotFoundError
from ..models import Monitor
from ..schemas.metrics import MonitorMetrics
from ..schemas.monitor import MonitorCreate, MonitorUpdate
from ..store import Store
from . import metrics
from .scheduler import SchedulerService, scheduler_service

logger = logging.getLogger(__name__)


class MonitorService:
    """CRUD-facing operations. Persist first, then touch the scheduler."""

    def __init__(self, scheduler: Optional[SchedulerService] = None, logger: Optional[logging.Logger] = None):
        self.scheduler = scheduler or scheduler_service
        self.logger = logger or logging.getLogger(__name__)

    async def _get_owned(self, store: Store, user_id: str, monitor_id: int) -> Monitor:
        monitor = await store.find_monitor(monitor_id, user_id)
        if monitor is None:
            raise NotFoundError(f"Monitor {monitor_id} not found")
        return monitor

    async def create_monitor(self, session: AsyncSession, user_id: str, data: MonitorCreate) -> Monitor:
        store = Store(session)
        monitor = Monitor(user_id=user_id, **data.model_dump())
        session.add(monitor)
        await session.flush()
        await store.commit()
        await session.refresh(monitor)

        if not monitor.paused:
            await self.scheduler.schedule(monitor)
        self.logger.info(f"Created monitor {monitor.name} ({monitor.id})")
        return monitor

    async def update_monitor(
        self,
        session: AsyncSession,
        user_id: str,
        monitor_id: int,
        patch: MonitorUpdate,
    ) -> Monitor:
        store = Store(session)
        monitor = await self._get_owned(store, user_id, monitor_id)

        for field, value in patch.model_dump(exclude_unset=True).items():
            setattr(monitor, field, value)
        await store.commit()
        await session.refresh(monitor)

        if not monitor.paused:
            await self.scheduler.reschedule(monitor)
        return monitor

    async def delete_monitor(self, session: AsyncSession, user_id: str, monitor_id: int):
        store = Store(session)
        monitor = await self._get_owned(store, user_id, monitor_id)

        await self.scheduler.unschedule(monitor.id)
        await session.delete(monitor)
        await store.commit()
        self.logger.info(f"Deleted monitor {monitor_id}")

    async def pause_monitor(self, session: AsyncSession, user_id: str, monitor_id: int) -> Monitor:
        store = Store(session)
        monitor = await self._get_owned(store, user_id, monitor_id)

        monitor.paused = True
        await store.commit()
        await session.refresh(monitor)
        await self.scheduler.pause(monitor.id)
        return monitor

    async def resume_monitor(self, session: AsyncSession, user_id: str, monitor_id: int) -> Monitor:
        store = Store(session)
        monitor = await self._get_owned(store, user_id, monitor_id)

        monitor.paused = False
        await store.commit()
        await session.refresh(monitor)
        # Re-register from scratch so a leftover job never blocks the resume
        await self.scheduler.reschedule(monitor)
        return monitor

    async def get_monitor_metrics(
        self,
        session: AsyncSession,
        user_id: str,
        monitor_id: int,
        start: datetime,
        end: datetime,
        interval: Optional[str] = None,
    ) -> MonitorMetrics:
        """Bucketed uptime and latency over [start, end)."""
        store = Store(session)
        await self._get_owned(store, user_id, monitor_id)

        interval_name = metrics.normalize_interval(interval)
        interval_ms = metrics.parse_interval(interval_name)
        results = await store.list_check_results(monitor_id, start, end)

        return MonitorMetrics(
            monitor_id=monitor_id,
            start=start,
            end=end,
            interval=interval_name,
            interval_ms=interval_ms,
            buckets=metrics.aggregate(results, start, end, interval_ms),
            summary=metrics.summarize(results),
        )


# Global instance
monitor_service = MonitorService()
