"""Metrics schemas - time-bucketed check statistics."""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel


class MetricsBucket(BaseModel):
    """Statistics for one fixed-width time slice.

    Empty buckets report None for uptime and latency so they can't be
    mistaken for a fully down slice.
    """
    start: datetime
    end: datetime
    total_checks: int = 0
    errors: int = 0
    uptime: Optional[float] = None  # Percentage
    avg_response_time: Optional[float] = None
    p95_response_time: Optional[int] = None


class MetricsSummary(BaseModel):
    """Range-wide statistics over the unbucketed result set."""
    total_checks: int = 0
    successful_checks: int = 0
    errors: int = 0
    uptime: Optional[float] = None
    avg_response_time: Optional[float] = None
    min_response_time: Optional[int] = None
    max_response_time: Optional[int] = None
    p95_response_time: Optional[int] = None
    p99_response_time: Optional[int] = None
    incidents: int = 0
    downtime_minutes: float = 0.0


class MonitorMetrics(BaseModel):
    monitor_id: int
    start: datetime
    end: datetime
    interval: str
    interval_ms: int
    buckets: List[MetricsBucket]
    summary: MetricsSummary
