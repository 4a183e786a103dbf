"""Report assembly for the presentation collaborator.

Each report normalizes the raw records once, runs the synchronous pipelines,
awaits the orchestrator where qualitative output is needed, and returns the
camelCase dict the HTTP layer serializes as-is.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from .config import Config
from .ml.insights import AnalysisKind, InsightOrchestrator
from .ml.oracle import Oracle
from .transform.kpi import (
    budget_analysis,
    compute_kpis,
    task_status_breakdown,
    weekly_completion_buckets,
)
from .transform.normalizer import DataNormalizer, NoDataError, NormalizedDataset
from .transform.recommendation_filter import filter_recommendations, validate_filters
from .transform.risk import assess_risk
from .transform.sprints import calculate_burndown, calculate_sprint_velocity
from .transform.velocity import calculate_velocity
from .utils.date_utils import DEFAULT_TIME_RANGE, parse_time_range, to_utc, utc_now
from .utils.math_utils import round_half_up, safe_ratio

logger = logging.getLogger(__name__)

RawRecords = Iterable[Mapping[str, Any]]


def _timestamp(now: datetime | None) -> str:
    return (to_utc(now) if now else utc_now()).isoformat()


def data_analysis(dataset: NormalizedDataset) -> dict[str, Any]:
    """Volume and budget summary attached to the recommendations report."""
    projects = dataset.projects
    return {
        **dataset.data_points(),
        "totalBudget": sum(p.budget for p in projects),
        "totalSpent": sum(p.spent for p in projects),
        "averageProgress": round_half_up(
            safe_ratio(sum(p.progress for p in projects), len(projects)), 1
        ),
    }


class AnalyticsService:
    """Build the insights, recommendations, predictions, KPI and sprint reports.

    Args:
        config: Resolved configuration.
        oracle: Optional oracle; defaults to the OpenAI-backed one.
    """

    def __init__(self, config: Config | None = None, oracle: Oracle | None = None) -> None:
        self.config = config or Config()
        self.orchestrator = InsightOrchestrator(self.config, oracle)

    def normalize(
        self,
        raw_projects: RawRecords,
        project_ids: Iterable[str] | None = None,
        raw_users: RawRecords | None = None,
        workload_unit: float | None = None,
        require_projects: bool = True,
    ) -> NormalizedDataset:
        """Normalize raw records, raising NoDataError when nothing is selected."""
        normalizer = DataNormalizer(workload_unit or self.config.workload.unit)
        dataset = normalizer.normalize(raw_projects, project_ids, raw_users)
        if require_projects and dataset.is_empty:
            raise NoDataError("No projects found for analysis")
        return dataset

    async def insights_report(
        self,
        raw_projects: RawRecords,
        project_ids: Iterable[str] | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        # Insights historically scored workload with the smaller unit
        dataset = self.normalize(
            raw_projects, project_ids, workload_unit=self.config.workload.insights_unit
        )
        insights = await self.orchestrator.generate_insights(dataset)
        return {
            "insights": [i.to_dict() for i in insights],
            "dataPoints": dataset.data_points(),
            "generatedAt": _timestamp(now),
        }

    async def recommendations_report(
        self,
        raw_projects: RawRecords,
        category: str | None = None,
        priority: str | None = None,
        project_ids: Iterable[str] | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Recommendations, filtered when category or priority is given.

        Raises:
            FilterValidationError: Before any oracle call, on an unknown filter.
            NoDataError: If no projects are selected.
        """
        wanted_category, wanted_priority = validate_filters(category, priority)
        dataset = self.normalize(raw_projects, project_ids)
        recommendations = await self.orchestrator.generate_recommendations(dataset)

        report: dict[str, Any] = {
            "recommendations": [r.to_dict() for r in recommendations],
            "dataAnalysis": data_analysis(dataset),
            "generatedAt": _timestamp(now),
        }
        if wanted_category is None and wanted_priority is None:
            return report

        result = filter_recommendations(recommendations, wanted_category, wanted_priority)
        logger.info(
            f"Filtered recommendations: {result.filtered_count} of "
            f"{result.total_recommendations} kept"
        )
        report["recommendations"] = [r.to_dict() for r in result.recommendations]
        report["filters"] = {
            "category": wanted_category.value if wanted_category else None,
            "priority": wanted_priority.value if wanted_priority else None,
        }
        report["totalRecommendations"] = result.total_recommendations
        report["filteredCount"] = result.filtered_count
        return report

    async def predictions_report(
        self,
        raw_projects: RawRecords,
        project_ids: Iterable[str] | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        dataset = self.normalize(raw_projects, project_ids)
        thresholds = self.config.thresholds

        # Deterministic metrics do not depend on the oracle result
        velocity = calculate_velocity(dataset.tasks, now, thresholds)
        risk = assess_risk(
            dataset.projects, dataset.tasks, dataset.team_members, thresholds, now
        )
        predictions = await self.orchestrator.generate_predictive_analysis(dataset, now)

        return {
            "predictions": predictions.to_dict(),
            "velocity": velocity.to_dict(),
            "riskAssessment": risk.to_dict(),
            "dataPoints": dataset.data_points(),
            "generatedAt": _timestamp(now),
        }

    def kpi_report(
        self,
        raw_projects: RawRecords,
        raw_users: RawRecords | None = None,
        time_range: str = DEFAULT_TIME_RANGE,
        project_ids: Iterable[str] | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """KPIs and chart data; an empty dataset yields zeroed metrics."""
        dataset = self.normalize(
            raw_projects, project_ids, raw_users, require_projects=False
        )
        start, end = parse_time_range(time_range, now)
        return {
            "kpi": compute_kpis(dataset, start, end).to_dict(),
            "velocity": [
                b.to_dict() for b in weekly_completion_buckets(dataset.tasks, start, end)
            ],
            "taskStatus": task_status_breakdown(dataset.tasks),
            "budgetAnalysis": budget_analysis(dataset.projects),
            "timeRange": {
                "preset": time_range,
                "start": start.isoformat(),
                "end": end.isoformat(),
            },
            "generatedAt": _timestamp(now),
        }

    def sprint_velocity_report(
        self,
        raw_projects: RawRecords,
        time_range: str | None = None,
        project_ids: Iterable[str] | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        dataset = self.normalize(raw_projects, project_ids)
        since = parse_time_range(time_range, now)[0] if time_range else None
        report = calculate_sprint_velocity(dataset.sprints, since, self.config.thresholds)
        report["generatedAt"] = _timestamp(now)
        return report

    def burndown_report(
        self,
        raw_projects: RawRecords,
        sprint_id: str,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Burndown for one sprint.

        Raises:
            NoDataError: If no sprint with sprint_id exists in the input.
        """
        dataset = self.normalize(raw_projects, require_projects=False)
        sprint = next((s for s in dataset.sprints if s.id == sprint_id), None)
        if sprint is None:
            raise NoDataError(f"Sprint not found: {sprint_id}")
        report = calculate_burndown(sprint, now)
        report["generatedAt"] = _timestamp(now)
        return report

    def prompt_artifact(
        self,
        kind: AnalysisKind,
        raw_projects: RawRecords,
        project_ids: Iterable[str] | None = None,
    ) -> dict[str, Any]:
        """The oracle request for kind, built from the same dataset a report would use."""
        unit = (
            self.config.workload.insights_unit
            if kind is AnalysisKind.INSIGHTS
            else self.config.workload.unit
        )
        dataset = self.normalize(raw_projects, project_ids, workload_unit=unit)
        return self.orchestrator.prompt_artifact(kind, dataset)
