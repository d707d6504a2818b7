"""Metrics service - time-bucketed uptime and latency statistics.

Check results are grouped into fixed-width buckets covering the whole
requested range. Percentiles use the nearest-rank method on the ascending
sorted response times: index = ceil(p/100 * n) - 1.
"""
import math
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from ..models import CheckResult
from ..schemas.metrics import MetricsBucket, MetricsSummary

INTERVALS_MS = {
    "1m": 60 * 1000,
    "5m": 5 * 60 * 1000,
    "15m": 15 * 60 * 1000,
    "1h": 60 * 60 * 1000,
    "6h": 6 * 60 * 60 * 1000,
    "1d": 24 * 60 * 60 * 1000,
}
DEFAULT_INTERVAL = "1h"


def parse_interval(interval: Optional[str]) -> int:
    """Bucket width in milliseconds. Unknown values fall back to 1h."""
    return INTERVALS_MS.get(interval or DEFAULT_INTERVAL, INTERVALS_MS[DEFAULT_INTERVAL])


def normalize_interval(interval: Optional[str]) -> str:
    return interval if interval in INTERVALS_MS else DEFAULT_INTERVAL


def percentile(sorted_values: Sequence[int], p: float) -> Optional[int]:
    """Nearest-rank percentile of an ascending list, None when empty."""
    n = len(sorted_values)
    if n == 0:
        return None
    index = math.ceil(p * n / 100) - 1
    return sorted_values[max(0, min(index, n - 1))]


def _mean(values: Sequence[int]) -> Optional[float]:
    if not values:
        return None
    return sum(values) / len(values)


def _uptime(results: Sequence[CheckResult]) -> Optional[float]:
    if not results:
        return None
    up_count = sum(1 for r in results if r.is_up)
    return 100 * up_count / len(results)


def _millis(delta: timedelta) -> int:
    return (delta.days * 86400 + delta.seconds) * 1000 + delta.microseconds // 1000


def bucket_count(start: datetime, end: datetime, interval_ms: int) -> int:
    span = _millis(end - start)
    if span <= 0:
        return 0
    return math.ceil(span / interval_ms)


def aggregate(
    results: Sequence[CheckResult],
    start: datetime,
    end: datetime,
    interval_ms: int,
) -> List[MetricsBucket]:
    """Bucket results over [start, end) in chronological order.

    Every slice gets a bucket, including slices with no results; the last
    bucket is truncated at `end`. Results outside the range are ignored.
    """
    if interval_ms <= 0:
        raise ValueError("interval_ms must be positive")

    count = bucket_count(start, end, interval_ms)
    width = timedelta(milliseconds=interval_ms)
    grouped: List[List[CheckResult]] = [[] for _ in range(count)]

    for result in results:
        created = result.created_at
        if created is None or created < start or created >= end:
            continue
        index = _millis(created - start) // interval_ms
        if index < count:
            grouped[index].append(result)

    buckets = []
    for i, bucket_results in enumerate(grouped):
        bucket_start = start + width * i
        bucket_end = min(bucket_start + width, end)
        if not bucket_results:
            buckets.append(MetricsBucket(start=bucket_start, end=bucket_end))
            continue
        times = sorted(r.response_time_ms for r in bucket_results)
        buckets.append(MetricsBucket(
            start=bucket_start,
            end=bucket_end,
            total_checks=len(bucket_results),
            errors=sum(1 for r in bucket_results if not r.is_up),
            uptime=_uptime(bucket_results),
            avg_response_time=_mean(times),
            p95_response_time=percentile(times, 95),
        ))
    return buckets


def calculate_downtime(results: Sequence[CheckResult]):
    """Count downtime incidents and their total length in minutes.

    An incident opens at a down result and closes at the next up result;
    one still open at the end runs until the last result.
    """
    ordered = sorted(results, key=lambda r: r.created_at)
    incidents = 0
    total_minutes = 0.0
    incident_start = None

    for result in ordered:
        if not result.is_up and incident_start is None:
            incident_start = result.created_at
            incidents += 1
        elif result.is_up and incident_start is not None:
            total_minutes += (result.created_at - incident_start).total_seconds() / 60
            incident_start = None

    if incident_start is not None:
        total_minutes += (ordered[-1].created_at - incident_start).total_seconds() / 60

    return incidents, total_minutes


def summarize(results: Sequence[CheckResult]) -> MetricsSummary:
    """Range-wide statistics with the same formulas as the buckets."""
    if not results:
        return MetricsSummary()

    times = sorted(r.response_time_ms for r in results)
    successful = sum(1 for r in results if r.is_up)
    incidents, downtime_minutes = calculate_downtime(results)

    return MetricsSummary(
        total_checks=len(results),
        successful_checks=successful,
        errors=len(results) - successful,
        uptime=_uptime(results),
        avg_response_time=_mean(times),
        min_response_time=times[0],
        max_response_time=times[-1],
        p95_response_time=percentile(times, 95),
        p99_response_time=percentile(times, 99),
        incidents=incidents,
        downtime_minutes=round(downtime_minutes, 2),
    )
