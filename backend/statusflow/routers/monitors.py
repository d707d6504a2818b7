"""Monitor API endpoints."""
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..exceptions import JobQueueError, NotFoundError
from ..schemas.metrics import MonitorMetrics
from ..schemas.monitor import MonitorCreate, MonitorUpdate, MonitorResponse
from ..services.monitor_service import monitor_service
from .dependencies import get_current_user_id

router = APIRouter(prefix="/api/monitors", tags=["monitors"])


def _to_utc_naive(value: datetime) -> datetime:
    """Stored timestamps are naive UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


@router.post("", response_model=MonitorResponse, status_code=201)
async def create_monitor(
    monitor: MonitorCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Create a monitor and schedule its checks."""
    try:
        return await monitor_service.create_monitor(db, user_id, monitor)
    except JobQueueError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.patch("/{monitor_id}", response_model=MonitorResponse)
async def update_monitor(
    monitor_id: int,
    update: MonitorUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Update a monitor. A changed interval takes effect on the next firing."""
    try:
        return await monitor_service.update_monitor(db, user_id, monitor_id, update)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Monitor not found")
    except JobQueueError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.delete("/{monitor_id}", status_code=204)
async def delete_monitor(
    monitor_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Delete a monitor along with its results and alert history."""
    try:
        await monitor_service.delete_monitor(db, user_id, monitor_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Monitor not found")
    except JobQueueError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.post("/{monitor_id}/pause", response_model=MonitorResponse)
async def pause_monitor(
    monitor_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await monitor_service.pause_monitor(db, user_id, monitor_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Monitor not found")
    except JobQueueError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.post("/{monitor_id}/resume", response_model=MonitorResponse)
async def resume_monitor(
    monitor_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await monitor_service.resume_monitor(db, user_id, monitor_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Monitor not found")
    except JobQueueError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/{monitor_id}/metrics", response_model=MonitorMetrics)
async def get_monitor_metrics(
    monitor_id: int,
    start: Optional[datetime] = Query(default=None, alias="from"),
    end: Optional[datetime] = Query(default=None, alias="to"),
    interval: Optional[str] = Query(default=None),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Bucketed uptime and latency metrics. Defaults to the last 24 hours."""
    end = _to_utc_naive(end) if end else datetime.utcnow()
    start = _to_utc_naive(start) if start else end - timedelta(hours=24)
    if start >= end:
        raise HTTPException(status_code=400, detail="'from' must be before 'to'")

    try:
        return await monitor_service.get_monitor_metrics(db, user_id, monitor_id, start, end, interval)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Monitor not found")
