"""Unit tests for the deterministic fallback generators."""

from __future__ import annotations

from datetime import datetime, timezone

from pm_insights.config import AnalyticsThresholds
from pm_insights.models import InsightType, Level, RecommendationCategory, Trend
from pm_insights.ml.fallback import (
    fallback_insights,
    fallback_predictive_analysis,
    fallback_recommendations,
)
from pm_insights.transform.normalizer import DataNormalizer, NormalizedDataset


class TestFallbackInsights:
    """Tests for fallback_insights."""

    def test_budget_alert(self, raw_projects) -> None:
        """A project past 90% of budget raises one high-impact alert."""
        dataset = DataNormalizer().normalize(raw_projects)
        insights = fallback_insights(dataset)

        assert len(insights) == 1
        alert = insights[0]
        assert alert.type is InsightType.WARNING
        assert alert.title == "Budget Alert"
        assert alert.description == "1 project(s) approaching budget limit"
        assert alert.confidence == 0.95
        assert alert.impact is Level.HIGH
        assert alert.action_items == ["Review budget allocation", "Optimize resource usage"]

    def test_alert_uses_ninety_percent(self, raw_projects) -> None:
        """85% spent triggers risk assessment but not the fallback alert."""
        raw_projects[0]["spent"] = 850
        dataset = DataNormalizer().normalize(raw_projects)
        assert fallback_insights(dataset) == []

    def test_team_overload(self) -> None:
        """Members above workload 80 raise a medium-impact alert."""
        raw = [
            {
                "id": "p",
                "budget": 100,
                "spent": 0,
                "members": [
                    {"user": {"id": "u1", "assignedTasks": [{"status": "TODO"}] * 6}},
                    {"user": {"id": "u2", "assignedTasks": []}},
                ],
            }
        ]
        insights = fallback_insights(DataNormalizer().normalize(raw))
        assert [i.title for i in insights] == ["Team Overload"]
        assert insights[0].description == "1 team member(s) have high workload"
        assert insights[0].confidence == 0.90
        assert insights[0].impact is Level.MEDIUM

    def test_custom_threshold(self, raw_projects) -> None:
        """The alert ratio comes from the thresholds."""
        dataset = DataNormalizer().normalize(raw_projects)
        thresholds = AnalyticsThresholds(budget_alert_ratio=0.99)
        assert fallback_insights(dataset, thresholds) == []

    def test_empty_dataset(self) -> None:
        """No data, no alerts."""
        assert fallback_insights(NormalizedDataset()) == []


class TestFallbackRecommendations:
    """Tests for fallback_recommendations."""

    def test_fixed_catalog(self) -> None:
        """One team-communication recommendation regardless of data."""
        recs = fallback_recommendations(NormalizedDataset())
        assert len(recs) == 1
        assert recs[0].category is RecommendationCategory.TEAM
        assert recs[0].priority is Level.MEDIUM
        assert recs[0].title == "Improve Team Communication"
        assert len(recs[0].implementation) == 3


class TestFallbackPredictiveAnalysis:
    """Tests for fallback_predictive_analysis."""

    def test_fixed_horizon(self, raw_projects) -> None:
        """Completion 30 days out, budget total is the sum of budgets."""
        now = datetime(2024, 6, 30, 23, 0, tzinfo=timezone.utc)
        dataset = DataNormalizer().normalize(raw_projects)

        result = fallback_predictive_analysis(dataset, now)

        assert result.project_completion.estimated_date == "2024-07-30"
        assert result.project_completion.confidence == 0.70
        assert result.budget_forecast.estimated_total == 6000
        assert result.budget_forecast.overrun_risk == 0.20
        assert result.team_performance.burnout_risk == 0.25
        assert result.team_performance.productivity_trend is Trend.STABLE

    def test_deterministic(self, raw_projects) -> None:
        """Same data and instant give equal results."""
        now = datetime(2024, 6, 30, tzinfo=timezone.utc)
        dataset = DataNormalizer().normalize(raw_projects)
        assert fallback_predictive_analysis(dataset, now) == fallback_predictive_analysis(
            dataset, now
        )

    def test_to_dict_shape(self) -> None:
        """Nested camelCase wire shape."""
        data = fallback_predictive_analysis(NormalizedDataset()).to_dict()
        assert set(data) == {"projectCompletion", "budgetForecast", "teamPerformance"}
        assert data["teamPerformance"]["productivityTrend"] == "stable"
        assert data["budgetForecast"]["estimatedTotal"] == 0
