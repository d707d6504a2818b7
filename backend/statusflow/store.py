"""Persistence interface used by the scheduling and alerting engine.

The engine never builds queries itself; everything it reads or appends goes
through `Store`, which wraps one async SQLAlchemy session (one unit of work).
"""
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import select, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    Monitor,
    CheckResult,
    AlertRule,
    AlertHistory,
    AlertStatus,
    NotificationChannel,
    ChannelType,
)
from .utils.db_utils import retry_on_lock

logger = logging.getLogger(__name__)

OPEN_ALERT_STATUSES = (AlertStatus.TRIGGERED.value, AlertStatus.ACKNOWLEDGED.value)


class Store:
    """Query and append operations over one database session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def commit(self):
        await retry_on_lock(self.session.commit)

    # Monitors

    async def find_monitor(self, monitor_id: int, user_id: Optional[str] = None) -> Optional[Monitor]:
        query = select(Monitor).where(Monitor.id == monitor_id)
        if user_id is not None:
            query = query.where(Monitor.user_id == user_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_active_monitors(self) -> List[Monitor]:
        result = await self.session.execute(
            select(Monitor).where(Monitor.paused.is_(False)).order_by(Monitor.id)
        )
        return list(result.scalars().all())

    async def touch_last_checked(self, monitor: Monitor, checked_at: Optional[datetime] = None):
        monitor.last_checked_at = checked_at or datetime.utcnow()
        await self.session.flush()

    # Check results

    async def save_check_result(self, check_result: CheckResult) -> CheckResult:
        self.session.add(check_result)
        await self.session.flush()  # Assigns id and created_at
        return check_result

    async def count_recent_failures(self, monitor_id: int, window_size: int) -> int:
        """Count consecutive failures over the newest `window_size` results.

        Returns the window length when every result in it is down, and 0 as
        soon as a single up result appears anywhere in the window.
        """
        if window_size <= 0:
            return 0
        result = await self.session.execute(
            select(CheckResult.is_up)
            .where(CheckResult.monitor_id == monitor_id)
            .order_by(CheckResult.created_at.desc(), CheckResult.id.desc())
            .limit(window_size)
        )
        window = list(result.scalars().all())
        if any(window):
            return 0
        return len(window)

    async def list_check_results(
        self,
        monitor_id: int,
        start: datetime,
        end: datetime,
    ) -> List[CheckResult]:
        """Results with start <= created_at < end, oldest first."""
        result = await self.session.execute(
            select(CheckResult)
            .where(
                and_(
                    CheckResult.monitor_id == monitor_id,
                    CheckResult.created_at >= start,
                    CheckResult.created_at < end,
                )
            )
            .order_by(CheckResult.created_at.asc(), CheckResult.id.asc())
        )
        return list(result.scalars().all())

    # Alert rules and history

    async def find_enabled_rules(self, monitor_id: int, user_id: str) -> List[AlertRule]:
        """Enabled rules bound to the monitor plus the owner's global rules."""
        result = await self.session.execute(
            select(AlertRule)
            .where(
                AlertRule.enabled.is_(True),
                or_(
                    AlertRule.monitor_id == monitor_id,
                    and_(AlertRule.monitor_id.is_(None), AlertRule.user_id == user_id),
                ),
            )
            .order_by(AlertRule.id)
        )
        return list(result.scalars().all())

    async def find_open_incident(self, rule_id: int, monitor_id: int) -> Optional[AlertHistory]:
        result = await self.session.execute(
            select(AlertHistory)
            .where(
                AlertHistory.alert_rule_id == rule_id,
                AlertHistory.monitor_id == monitor_id,
                AlertHistory.status.in_(OPEN_ALERT_STATUSES),
            )
            .order_by(AlertHistory.triggered_at.desc(), AlertHistory.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def save_alert_history(self, history: AlertHistory) -> AlertHistory:
        self.session.add(history)
        await self.session.flush()
        return history

    async def find_alert_history(self, history_id: int, user_id: Optional[str] = None) -> Optional[AlertHistory]:
        query = select(AlertHistory).where(AlertHistory.id == history_id)
        if user_id is not None:
            query = query.join(AlertRule, AlertRule.id == AlertHistory.alert_rule_id).where(
                AlertRule.user_id == user_id
            )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    # Notification channels

    async def find_channel(self, channel_id: int, user_id: Optional[str] = None) -> Optional[NotificationChannel]:
        query = select(NotificationChannel).where(NotificationChannel.id == channel_id)
        if user_id is not None:
            query = query.where(NotificationChannel.user_id == user_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def find_email_channels(self, user_id: str) -> Sequence[NotificationChannel]:
        result = await self.session.execute(
            select(NotificationChannel)
            .where(
                NotificationChannel.user_id == user_id,
                NotificationChannel.type == ChannelType.EMAIL.value,
                NotificationChannel.enabled.is_(True),
            )
            .order_by(NotificationChannel.id)
        )
        return result.scalars().all()
