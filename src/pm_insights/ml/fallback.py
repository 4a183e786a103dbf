"""Deterministic fallback generators.

Used whenever the generative oracle is unavailable or returns something
unusable. Each generator mirrors the shape of the corresponding oracle
result so callers never need to know which path produced it.

- Insights reuse the risk module's counting helpers (budget and workload
  alerts) with fixed confidence and action items.
- Recommendations are a fixed catalog.
- Predictive analysis projects a fixed 30-day horizon with fixed risk
  figures; the budget forecast is the sum of current budgets.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from ..config import AnalyticsThresholds
from ..models import (
    BudgetForecast,
    Insight,
    InsightType,
    Level,
    PredictiveAnalysis,
    ProjectCompletionForecast,
    Recommendation,
    RecommendationCategory,
    TeamPerformanceForecast,
    Trend,
)
from ..transform.normalizer import NormalizedDataset
from ..transform.risk import over_budget, overloaded
from ..utils.date_utils import to_utc, utc_now

GENERATOR_ID = "heuristic-v1.0"

BUDGET_ALERT_CONFIDENCE = 0.95
WORKLOAD_ALERT_CONFIDENCE = 0.90

COMPLETION_HORIZON_DAYS = 30
COMPLETION_CONFIDENCE = 0.70
BUDGET_OVERRUN_RISK = 0.20
BURNOUT_RISK = 0.25


def fallback_insights(
    dataset: NormalizedDataset, thresholds: AnalyticsThresholds | None = None
) -> list[Insight]:
    """Budget and team-overload alerts computed from the normalized data."""
    thresholds = thresholds or AnalyticsThresholds()
    insights: list[Insight] = []

    near_limit = over_budget(dataset.projects, thresholds.budget_alert_ratio)
    if near_limit:
        insights.append(
            Insight(
                type=InsightType.WARNING,
                title="Budget Alert",
                description=f"{len(near_limit)} project(s) approaching budget limit",
                confidence=BUDGET_ALERT_CONFIDENCE,
                action_items=["Review budget allocation", "Optimize resource usage"],
                impact=Level.HIGH,
            )
        )

    busy = overloaded(dataset.team_members, thresholds.workload_overload)
    if busy:
        insights.append(
            Insight(
                type=InsightType.WARNING,
                title="Team Overload",
                description=f"{len(busy)} team member(s) have high workload",
                confidence=WORKLOAD_ALERT_CONFIDENCE,
                action_items=["Redistribute tasks", "Consider additional resources"],
                impact=Level.MEDIUM,
            )
        )

    return insights


def fallback_recommendations(dataset: NormalizedDataset) -> list[Recommendation]:
    """Fixed catalog; the dataset is accepted for signature parity."""
    return [
        Recommendation(
            category=RecommendationCategory.TEAM,
            title="Improve Team Communication",
            description="Implement daily standups and weekly retrospectives",
            priority=Level.MEDIUM,
            estimated_impact="Increased productivity by 15-20%",
            implementation=[
                "Schedule daily standups",
                "Set up retrospective meetings",
                "Use collaboration tools",
            ],
        )
    ]


def fallback_predictive_analysis(
    dataset: NormalizedDataset, now: datetime | None = None
) -> PredictiveAnalysis:
    """Fixed-horizon forecast. Only the budget total depends on the data."""
    now = to_utc(now) if now else utc_now()
    return PredictiveAnalysis(
        project_completion=ProjectCompletionForecast(
            estimated_date=(now + timedelta(days=COMPLETION_HORIZON_DAYS)).date().isoformat(),
            confidence=COMPLETION_CONFIDENCE,
            factors=["Current velocity", "Team capacity"],
        ),
        budget_forecast=BudgetForecast(
            estimated_total=sum(p.budget for p in dataset.projects),
            overrun_risk=BUDGET_OVERRUN_RISK,
            recommendations=["Monitor spending closely", "Review resource allocation"],
        ),
        team_performance=TeamPerformanceForecast(
            burnout_risk=BURNOUT_RISK,
            productivity_trend=Trend.STABLE,
            recommendations=["Maintain current pace", "Monitor team satisfaction"],
        ),
    )
