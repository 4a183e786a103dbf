"""Sprint-level story-point velocity and burndown."""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Any

from ..config import AnalyticsThresholds
from ..models import SprintRecord, SprintTask, TaskStatus
from ..utils.date_utils import days_between, end_of_day, to_utc, utc_now
from ..utils.math_utils import round_half_up, safe_ratio

COMPLETED_SPRINT_STATUS = "COMPLETED"


def sprint_duration_days(sprint: SprintRecord) -> int:
    """Whole days between sprint start and end, rounded up."""
    if sprint.start_date is None or sprint.end_date is None:
        return 0
    return max(0, math.ceil(days_between(sprint.start_date, sprint.end_date)))


def _done(tasks: Sequence[SprintTask]) -> list[SprintTask]:
    return [t for t in tasks if t.status is TaskStatus.DONE and t.completed_at is not None]


def _sprint_summary(sprint: SprintRecord) -> dict[str, Any]:
    done = _done(sprint.tasks)
    points = sum(t.story_points for t in done)
    duration = sprint_duration_days(sprint)

    contributions: dict[str, dict[str, Any]] = {}
    for task in done:
        if task.assignee_id is None:
            continue
        entry = contributions.setdefault(
            task.assignee_id,
            {
                "id": task.assignee_id,
                "name": task.assignee_name or "",
                "storyPoints": 0.0,
                "tasksCompleted": 0,
            },
        )
        entry["storyPoints"] += task.story_points
        entry["tasksCompleted"] += 1

    return {
        "sprintId": sprint.id,
        "sprintName": sprint.name,
        "projectName": sprint.project_name,
        "startDate": sprint.start_date.isoformat() if sprint.start_date else None,
        "endDate": sprint.end_date.isoformat() if sprint.end_date else None,
        "duration": duration,
        "completedStoryPoints": points,
        "totalTasks": len(done),
        "velocity": round_half_up(safe_ratio(points, duration), 2),
        "teamContributions": list(contributions.values()),
    }


def sprint_trend(velocities: Sequence[float], thresholds: AnalyticsThresholds) -> str:
    """Compare the mean of the last N sprints with the N before them."""
    window = thresholds.sprint_trend_window
    if len(velocities) < window * 2:
        return "stable"
    recent = sum(velocities[-window:]) / window
    previous = sum(velocities[-2 * window : -window]) / window
    if previous == 0:
        return "stable"
    change = (recent - previous) / previous * 100
    if change > thresholds.sprint_trend_change_pct:
        return "improving"
    if change < -thresholds.sprint_trend_change_pct:
        return "declining"
    return "stable"


def calculate_sprint_velocity(
    sprints: Sequence[SprintRecord],
    since: datetime | None = None,
    thresholds: AnalyticsThresholds | None = None,
) -> dict[str, Any]:
    """Story-point velocity across completed sprints.

    Args:
        sprints: Normalized sprints, any status.
        since: Only sprints ending on or after this instant are included.
        thresholds: Trend window and change threshold.

    Returns:
        Dict with velocityData (per sprint, ordered by end date), statistics,
        teamPerformance and predictedCapacity.
    """
    thresholds = thresholds or AnalyticsThresholds()
    since = to_utc(since) if since else None

    selected = [
        s
        for s in sprints
        if s.status == COMPLETED_SPRINT_STATUS
        and s.end_date is not None
        and (since is None or s.end_date >= since)
    ]
    selected.sort(key=lambda s: s.end_date)
    velocity_data = [_sprint_summary(s) for s in selected]
    velocities = [v["velocity"] for v in velocity_data]

    team: dict[str, dict[str, Any]] = {}
    for summary in velocity_data:
        for member in summary["teamContributions"]:
            entry = team.setdefault(
                member["id"],
                {
                    "id": member["id"],
                    "name": member["name"],
                    "totalStoryPoints": 0.0,
                    "totalTasks": 0,
                    "sprintsParticipated": 0,
                    "averageVelocity": 0.0,
                },
            )
            entry["totalStoryPoints"] += member["storyPoints"]
            entry["totalTasks"] += member["tasksCompleted"]
            entry["sprintsParticipated"] += 1
    for entry in team.values():
        entry["averageVelocity"] = round_half_up(
            safe_ratio(entry["totalStoryPoints"], entry["sprintsParticipated"]), 2
        )

    last = velocities[-1] if velocities else 0.0
    return {
        "velocityData": velocity_data,
        "statistics": {
            "totalStoryPoints": sum(v["completedStoryPoints"] for v in velocity_data),
            "totalSprints": len(velocity_data),
            "averageVelocity": round_half_up(safe_ratio(sum(velocities), len(velocities)), 2),
            "trend": sprint_trend(velocities, thresholds),
            "lastSprintVelocity": last,
        },
        "teamPerformance": list(team.values()),
        "predictedCapacity": {
            "nextSprint": last,
            "next2Weeks": last * 2,
            "nextMonth": last * 4,
        },
    }


def calculate_burndown(sprint: SprintRecord, today: datetime | None = None) -> dict[str, Any]:
    """Ideal vs. actual remaining story points for one sprint.

    Days are UTC calendar days counted from the sprint start. The actual line
    stops at today (or the sprint end, whichever comes first).
    """
    today = to_utc(today) if today else utc_now()
    total_points = sum(t.story_points for t in sprint.tasks)
    total_days = sprint_duration_days(sprint)
    start = sprint.start_date

    if start is None:
        days_elapsed = 0
    else:
        days_elapsed = min(math.ceil(days_between(start, today)), total_days)

    ideal = []
    actual = []
    if start is not None:
        for day in range(total_days + 1):
            burned = total_points * safe_ratio(day, total_days)
            ideal.append(
                {
                    "date": (start + timedelta(days=day)).date().isoformat(),
                    "day": day,
                    "remaining": max(0.0, round_half_up(total_points - burned, 2)),
                }
            )

        done = _done(sprint.tasks)
        for day in range(days_elapsed + 1):
            cutoff = end_of_day(start + timedelta(days=day))
            completed = sum(t.story_points for t in done if t.completed_at <= cutoff)
            actual.append(
                {
                    "date": (start + timedelta(days=day)).date().isoformat(),
                    "day": day,
                    "remaining": max(0.0, total_points - completed),
                    "completed": completed,
                }
            )

    current_completed = actual[-1]["completed"] if actual else 0.0
    average_velocity = safe_ratio(current_completed, days_elapsed) if days_elapsed > 0 else 0.0

    predicted_day = None
    predicted_date = None
    if average_velocity > 0:
        predicted_day = math.ceil(total_points / average_velocity)
        if predicted_day <= total_days and start is not None:
            predicted_date = (start + timedelta(days=predicted_day)).date().isoformat()

    if days_elapsed > 0:
        on_track = current_completed >= total_points * safe_ratio(days_elapsed, total_days)
    else:
        on_track = True

    return {
        "sprintId": sprint.id,
        "idealBurndown": ideal,
        "actualBurndown": actual,
        "metrics": {
            "totalStoryPoints": total_points,
            "completedStoryPoints": current_completed,
            "remainingStoryPoints": total_points - current_completed,
            "totalDays": total_days,
            "daysElapsed": max(0, days_elapsed),
            "daysRemaining": total_days - max(0, days_elapsed),
            "averageVelocity": round_half_up(average_velocity, 2),
            "predictedCompletionDay": predicted_day,
            "predictedCompletionDate": predicted_date,
            "isOnTrack": on_track,
            "progress": round_half_up(safe_ratio(current_completed, total_points) * 100),
        },
        "taskBreakdown": {
            status.value.lower(): sum(1 for t in sprint.tasks if t.status is status)
            for status in TaskStatus
        },
    }
