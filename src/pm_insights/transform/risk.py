"""Budget, timeline and workload risk assessment.

Each dimension is a ratio in [0, 1] of "at risk" items over all items. A
dimension produces a RiskFinding once its ratio passes a trigger threshold,
and is rated high above a second threshold. All thresholds come from
AnalyticsThresholds.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from ..config import AnalyticsThresholds
from ..models import (
    Level,
    ProjectMetric,
    RiskAssessment,
    RiskFinding,
    RiskType,
    TaskMetric,
    TaskStatus,
    TeamMemberMetric,
)
from ..utils.date_utils import days_between, to_utc, utc_now
from ..utils.math_utils import round_half_up, safe_ratio

MITIGATIONS = {
    RiskType.BUDGET: "Review budget allocation and optimize resource usage",
    RiskType.TIMELINE: "Reassess task priorities and deadlines",
    RiskType.WORKLOAD: "Redistribute tasks or add additional resources",
}


def over_budget(projects: Sequence[ProjectMetric], spend_ratio: float) -> list[ProjectMetric]:
    """Projects whose spend exceeds spend_ratio of their budget."""
    return [p for p in projects if p.spent > p.budget * spend_ratio]


def overloaded(members: Sequence[TeamMemberMetric], limit: float) -> list[TeamMemberMetric]:
    """Members whose workload score exceeds limit."""
    return [m for m in members if m.workload > limit]


def overdue(tasks: Sequence[TaskMetric], age_days: float, now: datetime) -> list[TaskMetric]:
    """Open tasks created more than age_days ago."""
    return [
        t
        for t in tasks
        if t.status is not TaskStatus.DONE
        and t.completed_at is None
        and t.created_at is not None
        and days_between(t.created_at, now) > age_days
    ]


def budget_risk_ratio(
    projects: Sequence[ProjectMetric], thresholds: AnalyticsThresholds
) -> float:
    return safe_ratio(len(over_budget(projects, thresholds.budget_spend_ratio)), len(projects))


def timeline_risk_ratio(
    tasks: Sequence[TaskMetric], thresholds: AnalyticsThresholds, now: datetime
) -> float:
    return safe_ratio(len(overdue(tasks, thresholds.timeline_age_days, now)), len(tasks))


def workload_risk_ratio(
    members: Sequence[TeamMemberMetric], thresholds: AnalyticsThresholds
) -> float:
    return safe_ratio(len(overloaded(members, thresholds.workload_overload)), len(members))


def _finding(
    risk_type: RiskType, ratio: float, trigger: float, high: float, template: str
) -> RiskFinding | None:
    if ratio <= trigger:
        return None
    return RiskFinding(
        type=risk_type,
        level=Level.HIGH if ratio > high else Level.MEDIUM,
        description=template.format(pct=int(round_half_up(ratio * 100))),
        mitigation=MITIGATIONS[risk_type],
    )


def overall_level(findings: Sequence[RiskFinding]) -> Level:
    if any(f.level is Level.HIGH for f in findings):
        return Level.HIGH
    if findings:
        return Level.MEDIUM
    return Level.LOW


def assess_risk(
    projects: Sequence[ProjectMetric],
    tasks: Sequence[TaskMetric],
    members: Sequence[TeamMemberMetric],
    thresholds: AnalyticsThresholds | None = None,
    now: datetime | None = None,
) -> RiskAssessment:
    """Compute risk ratios, findings, overall level and composite score.

    Args:
        projects: Normalized projects.
        tasks: Normalized tasks.
        members: Deduplicated team members.
        thresholds: Trigger/high thresholds per dimension.
        now: Reference instant for task age (UTC). Defaults to now.

    Returns:
        RiskAssessment with findings in budget, timeline, workload order.
    """
    thresholds = thresholds or AnalyticsThresholds()
    now = to_utc(now) if now else utc_now()

    budget = budget_risk_ratio(projects, thresholds)
    timeline = timeline_risk_ratio(tasks, thresholds, now)
    workload = workload_risk_ratio(members, thresholds)

    candidates = [
        _finding(
            RiskType.BUDGET,
            budget,
            thresholds.budget_trigger,
            thresholds.budget_high,
            "{pct}% of projects are approaching budget limits",
        ),
        _finding(
            RiskType.TIMELINE,
            timeline,
            thresholds.timeline_trigger,
            thresholds.timeline_high,
            "{pct}% of tasks are overdue",
        ),
        _finding(
            RiskType.WORKLOAD,
            workload,
            thresholds.workload_trigger,
            thresholds.workload_high,
            "{pct}% of team members are overloaded",
        ),
    ]
    findings = [f for f in candidates if f is not None]

    return RiskAssessment(
        overall_risk=overall_level(findings),
        risks=findings,
        risk_score=min(100.0, (budget + timeline + workload) * thresholds.risk_score_weight),
        budget_risk_ratio=budget,
        timeline_risk_ratio=timeline,
        workload_risk_ratio=workload,
    )
