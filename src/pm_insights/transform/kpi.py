"""KPI aggregation and chart bucketing for a date range.

All range checks are inclusive on both ends and done in UTC. Weekly buckets
are anchored at the range start (not at Monday) so the first bucket always
begins on the first day the user asked for.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

import pandas as pd

from ..models import ProjectMetric, TaskMetric, TaskStatus
from ..utils.date_utils import days_between, to_utc
from ..utils.math_utils import round_half_up, safe_ratio
from .normalizer import NormalizedDataset

logger = logging.getLogger(__name__)

COMPLETED_PROJECT_STATUS = "COMPLETED"
DAYS_PER_WEEK = 7


@dataclass(frozen=True)
class KPIMetrics:
    project_completion_rate: float
    task_completion_rate: float
    total_hours_logged: float
    average_project_duration: float
    team_utilization: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "projectCompletionRate": self.project_completion_rate,
            "taskCompletionRate": self.task_completion_rate,
            "totalHoursLogged": self.total_hours_logged,
            "averageProjectDuration": self.average_project_duration,
            "teamUtilization": self.team_utilization,
        }


@dataclass(frozen=True)
class WeeklyBucket:
    label: str
    week_start: datetime
    week_end: datetime
    task_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "week": self.label,
            "weekStart": self.week_start.date().isoformat(),
            "weekEnd": self.week_end.date().isoformat(),
            "taskCount": self.task_count,
        }


def _in_range(value: datetime | None, start: datetime, end: datetime) -> bool:
    return value is not None and start <= value <= end


def average_project_duration(
    dataset: NormalizedDataset, start: datetime, end: datetime
) -> float:
    """Mean lifetime in whole days of projects completed inside the range."""
    durations = [
        days_between(p.created_at, p.completed_at)
        for p in dataset.project_lifecycles
        if p.status == COMPLETED_PROJECT_STATUS
        and _in_range(p.completed_at, start, end)
        and p.created_at is not None
    ]
    if not durations:
        return 0
    return round_half_up(sum(durations) / len(durations))


def team_utilization(dataset: NormalizedDataset, start: datetime, end: datetime) -> float:
    """Share of active users that logged time inside the range, in percent."""
    active = [u for u in dataset.users if u.is_active]
    logging_users = {
        e.user_id for e in dataset.time_entries if _in_range(e.date, start, end)
    }
    with_time = sum(1 for u in active if u.id in logging_users)
    return safe_ratio(with_time, len(active)) * 100


def compute_kpis(dataset: NormalizedDataset, start: datetime, end: datetime) -> KPIMetrics:
    """Aggregate completion rates, hours, duration and utilization.

    Args:
        dataset: Normalized records for the request.
        start: Range start (inclusive).
        end: Range end (inclusive).

    Returns:
        KPIMetrics; every rate is 0 when its denominator is empty.
    """
    start, end = to_utc(start), to_utc(end)

    created_projects = sum(
        1 for p in dataset.project_lifecycles if _in_range(p.created_at, start, end)
    )
    completed_projects = sum(
        1
        for p in dataset.project_lifecycles
        if p.status == COMPLETED_PROJECT_STATUS and _in_range(p.completed_at, start, end)
    )
    created_tasks = sum(1 for t in dataset.tasks if _in_range(t.created_at, start, end))
    completed_tasks = sum(
        1
        for t in dataset.tasks
        if t.status is TaskStatus.DONE and _in_range(t.completed_at, start, end)
    )
    hours = sum(e.hours for e in dataset.time_entries if _in_range(e.date, start, end))

    return KPIMetrics(
        project_completion_rate=safe_ratio(completed_projects, created_projects) * 100,
        task_completion_rate=safe_ratio(completed_tasks, created_tasks) * 100,
        total_hours_logged=hours,
        average_project_duration=average_project_duration(dataset, start, end),
        team_utilization=team_utilization(dataset, start, end),
    )


def weekly_completion_buckets(
    tasks: Sequence[TaskMetric], start: datetime, end: datetime
) -> list[WeeklyBucket]:
    """Count completed tasks per 7-day window across [start, end].

    One bucket per window beginning at start, start+7d, ... while the window
    start date is <= the end date. Empty windows are kept with a count of 0. A task lands
    in the window whose calendar days [week_start, week_start+6d] contain its
    UTC completion date.
    """
    start, end = to_utc(start), to_utc(end)
    if end < start:
        return []

    span_days = (end.date() - start.date()).days
    week_starts = pd.date_range(
        start=start, periods=span_days // DAYS_PER_WEEK + 1, freq=f"{DAYS_PER_WEEK}D"
    )

    offsets = pd.Series(
        [
            (t.completed_at.date() - start.date()).days
            for t in tasks
            if t.status is TaskStatus.DONE and t.completed_at is not None
        ],
        dtype="int64",
    )
    offsets = offsets[(offsets >= 0) & (offsets <= span_days)]
    counts = (
        (offsets // DAYS_PER_WEEK)
        .value_counts()
        .reindex(range(len(week_starts)), fill_value=0)
    )

    return [
        WeeklyBucket(
            label=f"Week {i + 1}",
            week_start=ws.to_pydatetime(),
            week_end=ws.to_pydatetime() + timedelta(days=DAYS_PER_WEEK - 1),
            task_count=int(counts.iloc[i]),
        )
        for i, ws in enumerate(week_starts)
    ]


def task_status_breakdown(tasks: Sequence[TaskMetric]) -> list[dict[str, Any]]:
    """Count and percentage per task status, in workflow order."""
    total = len(tasks)
    breakdown = []
    for status in TaskStatus:
        count = sum(1 for t in tasks if t.status is status)
        breakdown.append(
            {
                "status": status.value,
                "count": count,
                "percentage": round_half_up(safe_ratio(count, total) * 100, 1),
            }
        )
    return breakdown


def budget_analysis(projects: Sequence[ProjectMetric]) -> list[dict[str, Any]]:
    """Remaining budget and utilization percentage per project."""
    return [
        {
            "project": p.name,
            "budget": p.budget,
            "spent": p.spent,
            "remaining": p.budget - p.spent,
            "utilization": round_half_up(safe_ratio(p.spent, p.budget) * 100),
        }
        for p in projects
    ]
