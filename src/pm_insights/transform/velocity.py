"""Task-completion velocity over a trailing window."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta

import numpy as np

from ..config import AnalyticsThresholds
from ..models import TaskMetric, TaskStatus, Trend, VelocityMetrics
from ..utils.date_utils import days_between, to_utc, utc_now
from ..utils.math_utils import round_half_up


def completed_with_timestamp(tasks: Sequence[TaskMetric]) -> list[TaskMetric]:
    """DONE tasks that carry a completion timestamp, input order preserved."""
    return [t for t in tasks if t.status is TaskStatus.DONE and t.completed_at]


def classify_trend(
    recent: Sequence[object],
    increase_factor: float = 1.2,
    decrease_factor: float = 0.8,
) -> Trend:
    """Compare the two halves of a trailing-window sample by size.

    The split is at index len // 2, so for one element the first half is
    empty and the second has one member; that case is reported as stable.
    """
    if len(recent) < 2:
        return Trend.STABLE
    midpoint = len(recent) // 2
    first, second = len(recent[:midpoint]), len(recent[midpoint:])
    if second > first * increase_factor:
        return Trend.INCREASING
    if second < first * decrease_factor:
        return Trend.DECREASING
    return Trend.STABLE


def calculate_velocity(
    tasks: Sequence[TaskMetric],
    now: datetime | None = None,
    thresholds: AnalyticsThresholds | None = None,
) -> VelocityMetrics:
    """Average completion time, weekly throughput and trend.

    Args:
        tasks: Normalized tasks, any status.
        now: Reference instant for the trailing window (UTC). Defaults to now.
        thresholds: Window length and trend factors.

    Returns:
        VelocityMetrics; all zeros and "stable" when nothing qualifies.
    """
    thresholds = thresholds or AnalyticsThresholds()
    completed = completed_with_timestamp(tasks)
    if not completed:
        return VelocityMetrics()

    now = to_utc(now) if now else utc_now()

    # Tasks without created_at still count for throughput, not for duration
    durations = np.array(
        [days_between(t.created_at, t.completed_at) for t in completed if t.created_at],
        dtype=float,
    )
    average = float(durations.mean()) if durations.size else 0.0

    window_start = now - timedelta(days=thresholds.velocity_window_days)
    recent = [t for t in completed if t.completed_at >= window_start]
    weeks = thresholds.velocity_window_days / 7

    return VelocityMetrics(
        average_completion_time=round_half_up(average, 1),
        tasks_per_week=round_half_up(len(recent) / weeks, 1),
        trend=classify_trend(
            recent,
            thresholds.trend_increase_factor,
            thresholds.trend_decrease_factor,
        ),
    )
