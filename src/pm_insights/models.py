"""Metric DTOs and analytics result types.

Everything here is ephemeral: recomputed per request from externally-owned
records and never persisted. ``to_dict()`` produces the camelCase wire shape
consumed by the presentation layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any


class TaskStatus(str, Enum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    REVIEW = "REVIEW"
    DONE = "DONE"
    CANCELLED = "CANCELLED"


class TaskPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class RiskType(str, Enum):
    BUDGET = "budget"
    TIMELINE = "timeline"
    WORKLOAD = "workload"


class Level(str, Enum):
    """Shared low/medium/high scale (risk level, impact, priority)."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Trend(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class InsightType(str, Enum):
    WARNING = "warning"
    SUCCESS = "success"
    INFO = "info"
    PREDICTION = "prediction"


class RecommendationCategory(str, Enum):
    BUDGET = "budget"
    TIMELINE = "timeline"
    TEAM = "team"
    QUALITY = "quality"
    RISK = "risk"


def _iso(value: datetime | date | None) -> str | None:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class ProjectMetric:
    """Normalized project. Invariants: 0 <= progress <= 100,
    tasks_completed <= total_tasks."""

    id: str
    name: str
    status: str
    progress: float
    budget: float
    spent: float
    deadline: datetime | None
    tasks_completed: int
    total_tasks: int
    team_size: int
    start_date: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "progress": self.progress,
            "budget": self.budget,
            "spent": self.spent,
            "deadline": _iso(self.deadline),
            "tasksCompleted": self.tasks_completed,
            "totalTasks": self.total_tasks,
            "teamSize": self.team_size,
            "startDate": _iso(self.start_date),
        }


@dataclass(frozen=True)
class TaskMetric:
    """Normalized task. A DONE task may lack completed_at."""

    id: str
    title: str
    status: TaskStatus
    priority: TaskPriority
    estimated_hours: float
    actual_hours: float
    assigned_to: str
    created_at: datetime | None
    completed_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status.value,
            "priority": self.priority.value,
            "estimatedHours": self.estimated_hours,
            "actualHours": self.actual_hours,
            "assignedTo": self.assigned_to,
            "createdAt": _iso(self.created_at),
            "completedAt": _iso(self.completed_at),
        }


@dataclass(frozen=True)
class TeamMemberMetric:
    id: str
    name: str
    role: str
    tasks_completed: int
    hours_logged: float
    efficiency: float
    workload: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "tasksCompleted": self.tasks_completed,
            "hoursLogged": self.hours_logged,
            "efficiency": self.efficiency,
            "workload": self.workload,
        }


@dataclass(frozen=True)
class RiskFinding:
    type: RiskType
    level: Level
    description: str
    mitigation: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "level": self.level.value,
            "description": self.description,
            "mitigation": self.mitigation,
        }


@dataclass(frozen=True)
class RiskAssessment:
    overall_risk: Level
    risks: list[RiskFinding]
    risk_score: float
    budget_risk_ratio: float = 0.0
    timeline_risk_ratio: float = 0.0
    workload_risk_ratio: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "overallRisk": self.overall_risk.value,
            "risks": [r.to_dict() for r in self.risks],
            "riskScore": self.risk_score,
        }


@dataclass(frozen=True)
class VelocityMetrics:
    average_completion_time: float = 0.0
    tasks_per_week: float = 0.0
    trend: Trend = Trend.STABLE

    def to_dict(self) -> dict[str, Any]:
        return {
            "averageCompletionTime": self.average_completion_time,
            "tasksPerWeek": self.tasks_per_week,
            "trend": self.trend.value,
        }


@dataclass(frozen=True)
class Insight:
    type: InsightType
    title: str
    description: str
    confidence: float
    impact: Level
    action_items: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "title": self.title,
            "description": self.description,
            "confidence": self.confidence,
            "actionItems": list(self.action_items),
            "impact": self.impact.value,
        }


@dataclass(frozen=True)
class Recommendation:
    category: RecommendationCategory
    title: str
    description: str
    priority: Level
    estimated_impact: str
    implementation: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "estimatedImpact": self.estimated_impact,
            "implementation": list(self.implementation),
        }


@dataclass(frozen=True)
class ProjectCompletionForecast:
    estimated_date: str
    confidence: float
    factors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class BudgetForecast:
    estimated_total: float
    overrun_risk: float
    recommendations: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class TeamPerformanceForecast:
    burnout_risk: float
    productivity_trend: Trend
    recommendations: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PredictiveAnalysis:
    project_completion: ProjectCompletionForecast
    budget_forecast: BudgetForecast
    team_performance: TeamPerformanceForecast

    def to_dict(self) -> dict[str, Any]:
        return {
            "projectCompletion": {
                "estimatedDate": self.project_completion.estimated_date,
                "confidence": self.project_completion.confidence,
                "factors": list(self.project_completion.factors),
            },
            "budgetForecast": {
                "estimatedTotal": self.budget_forecast.estimated_total,
                "overrunRisk": self.budget_forecast.overrun_risk,
                "recommendations": list(self.budget_forecast.recommendations),
            },
            "teamPerformance": {
                "burnoutRisk": self.team_performance.burnout_risk,
                "productivityTrend": self.team_performance.productivity_trend.value,
                "recommendations": list(self.team_performance.recommendations),
            },
        }


@dataclass(frozen=True)
class ProjectLifecycle:
    """Project timestamps needed for completion-rate and duration KPIs."""

    id: str
    status: str
    created_at: datetime | None
    completed_at: datetime | None = None


@dataclass(frozen=True)
class TimeEntryRecord:
    id: str | None
    user_id: str | None
    hours: float
    date: datetime | None


@dataclass(frozen=True)
class UserActivity:
    id: str
    role: str
    is_active: bool = True


@dataclass(frozen=True)
class SprintTask:
    id: str
    status: TaskStatus
    story_points: float
    created_at: datetime | None
    completed_at: datetime | None
    assignee_id: str | None = None
    assignee_name: str | None = None


@dataclass(frozen=True)
class SprintRecord:
    id: str
    name: str
    project_name: str
    status: str
    start_date: datetime | None
    end_date: datetime | None
    tasks: list[SprintTask] = field(default_factory=list)
