"""Oracle-backed insights, recommendations and predictive analysis.

Produces three kinds of qualitative output from a NormalizedDataset:
- insights: list of Insight (warning/success/info/prediction)
- recommendations: list of Recommendation (budget/timeline/team/quality/risk)
- predictions: one PredictiveAnalysis

Each kind goes through the same path:
  build_prompt -> invoke_external (bounded by a timeout) -> parse_and_validate

Any failure on that path is recovered here by returning the deterministic
fallback for the same kind; callers never see an oracle error. Task
cancellation (asyncio.CancelledError) is not a failure and propagates, which
also cancels the in-flight oracle call.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum
from typing import Any, TypeVar

from ..config import AnalyticsThresholds, Config
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
from ..utils.date_utils import parse_datetime
from ..utils.math_utils import coerce_number
from .fallback import (
    GENERATOR_ID,
    fallback_insights,
    fallback_predictive_analysis,
    fallback_recommendations,
)
from .oracle import (
    ExternalOracleError,
    OpenAIOracle,
    Oracle,
    OracleResponseError,
    OracleTimeoutError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Bump when prompt wording or the requested JSON shape changes
PROMPT_VERSION = "analytics-v1"


class AnalysisKind(str, Enum):
    INSIGHTS = "insights"
    RECOMMENDATIONS = "recommendations"
    PREDICTIONS = "predictions"


SYSTEM_PROMPTS = {
    AnalysisKind.INSIGHTS: (
        "You are an expert project management analyst. Analyze the provided data "
        "and generate actionable insights. Respond only with valid JSON."
    ),
    AnalysisKind.RECOMMENDATIONS: (
        "You are a senior project management consultant. Provide strategic "
        "recommendations based on the project data. Respond only with valid JSON."
    ),
    AnalysisKind.PREDICTIONS: (
        "You are a data scientist specializing in project management predictions. "
        "Analyze trends and provide forecasts. Respond only with valid JSON."
    ),
}

INSTRUCTIONS = {
    AnalysisKind.INSIGHTS: """Generate insights in this JSON format:
{
  "insights": [
    {
      "type": "warning|success|info|prediction",
      "title": "Brief insight title",
      "description": "Detailed description of the insight",
      "confidence": 0.85,
      "actionItems": ["Action 1", "Action 2"],
      "impact": "low|medium|high"
    }
  ]
}

Focus on:
- Budget overruns or savings
- Timeline risks or opportunities
- Team performance patterns
- Quality indicators
- Resource allocation issues
- Productivity trends

Provide the 3-5 most important insights.""",
    AnalysisKind.RECOMMENDATIONS: """Generate recommendations in this JSON format:
{
  "recommendations": [
    {
      "category": "budget|timeline|team|quality|risk",
      "title": "Recommendation title",
      "description": "Detailed description",
      "priority": "low|medium|high",
      "estimatedImpact": "Expected outcome",
      "implementation": ["Step 1", "Step 2", "Step 3"]
    }
  ]
}

Focus on actionable recommendations for:
- Process improvements
- Resource optimization
- Risk mitigation
- Quality enhancement
- Team development

Provide 3-5 strategic recommendations.""",
    AnalysisKind.PREDICTIONS: """Generate predictions in this JSON format:
{
  "projectCompletion": {
    "estimatedDate": "YYYY-MM-DD",
    "confidence": 0.78,
    "factors": ["Factor 1", "Factor 2"]
  },
  "budgetForecast": {
    "estimatedTotal": 125000,
    "overrunRisk": 0.25,
    "recommendations": ["Rec 1", "Rec 2"]
  },
  "teamPerformance": {
    "burnoutRisk": 0.15,
    "productivityTrend": "increasing|decreasing|stable",
    "recommendations": ["Rec 1", "Rec 2"]
  }
}

Base predictions on current trends, velocity, and historical patterns.""",
}

PREAMBLES = {
    AnalysisKind.INSIGHTS: "Analyze the following project management data and generate actionable insights:",
    AnalysisKind.RECOMMENDATIONS: "Based on the project data, provide strategic recommendations:",
    AnalysisKind.PREDICTIONS: "Perform predictive analysis on the project data:",
}


# ============================================================================
# Response validation
# ============================================================================


def _load_json(raw: str) -> Any:
    text = raw.strip()
    # Models sometimes wrap JSON in a markdown fence despite instructions
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise OracleResponseError(f"Response is not valid JSON: {e}") from e


def _unwrap_list(data: Any, key: str) -> list[Any]:
    if isinstance(data, dict) and key in data:
        data = data[key]
    if not isinstance(data, list):
        raise OracleResponseError(f"Expected a '{key}' array")
    return data


def _text(item: dict[str, Any], key: str) -> str:
    value = item.get(key)
    if not isinstance(value, str) or not value.strip():
        raise OracleResponseError(f"'{key}' must be a non-empty string")
    return value


def _probability(item: dict[str, Any], key: str) -> float:
    value = item.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise OracleResponseError(f"'{key}' must be a number")
    if not 0.0 <= value <= 1.0:
        raise OracleResponseError(f"'{key}' must be within [0, 1], got {value}")
    return float(value)


def _strings(item: dict[str, Any], key: str, required: bool = False) -> list[str]:
    value = item.get(key)
    if value is None and not required:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise OracleResponseError(f"'{key}' must be an array of strings")
    return list(value)


def _choice(item: dict[str, Any], key: str, enum_cls: type[T]) -> T:
    value = item.get(key)
    try:
        return enum_cls(str(value).lower())  # type: ignore[call-arg]
    except ValueError:
        raise OracleResponseError(f"'{key}' has unexpected value {value!r}") from None


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key)
    if not isinstance(value, dict):
        raise OracleResponseError(f"Missing '{key}' object")
    return value


def _parse_items(
    items: list[Any], kind: AnalysisKind, parse_one: Callable[[dict[str, Any]], T]
) -> list[T]:
    parsed: list[T] = []
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            logger.warning(f"Skipping {kind.value} item {idx}: not an object")
            continue
        try:
            parsed.append(parse_one(item))
        except OracleResponseError as e:
            logger.warning(f"Skipping {kind.value} item {idx}: {e}")
    if not parsed:
        raise OracleResponseError(f"No valid {kind.value} in response")
    return parsed


def _insight(item: dict[str, Any]) -> Insight:
    return Insight(
        type=_choice(item, "type", InsightType),
        title=_text(item, "title"),
        description=_text(item, "description"),
        confidence=_probability(item, "confidence"),
        action_items=_strings(item, "actionItems"),
        impact=_choice(item, "impact", Level),
    )


def _recommendation(item: dict[str, Any]) -> Recommendation:
    return Recommendation(
        category=_choice(item, "category", RecommendationCategory),
        title=_text(item, "title"),
        description=_text(item, "description"),
        priority=_choice(item, "priority", Level),
        estimated_impact=_text(item, "estimatedImpact"),
        implementation=_strings(item, "implementation"),
    )


def _predictive_analysis(data: Any) -> PredictiveAnalysis:
    if isinstance(data, dict) and isinstance(data.get("predictions"), dict):
        data = data["predictions"]
    if not isinstance(data, dict):
        raise OracleResponseError("Expected a predictions object")

    completion = _section(data, "projectCompletion")
    budget = _section(data, "budgetForecast")
    team = _section(data, "teamPerformance")

    estimated_date = _text(completion, "estimatedDate")
    if parse_datetime(estimated_date) is None:
        raise OracleResponseError(f"'estimatedDate' is not a date: {estimated_date!r}")

    total = budget.get("estimatedTotal")
    if isinstance(total, bool) or not isinstance(total, (int, float)):
        raise OracleResponseError("'estimatedTotal' must be a number")
    # NaN, Infinity and out-of-range ints come back as -1
    estimated_total = coerce_number(total, default=-1.0)
    if estimated_total < 0:
        raise OracleResponseError("'estimatedTotal' must be a finite non-negative number")

    return PredictiveAnalysis(
        project_completion=ProjectCompletionForecast(
            estimated_date=estimated_date[:10],
            confidence=_probability(completion, "confidence"),
            factors=_strings(completion, "factors"),
        ),
        budget_forecast=BudgetForecast(
            estimated_total=estimated_total,
            overrun_risk=_probability(budget, "overrunRisk"),
            recommendations=_strings(budget, "recommendations"),
        ),
        team_performance=TeamPerformanceForecast(
            burnout_risk=_probability(team, "burnoutRisk"),
            productivity_trend=_choice(team, "productivityTrend", Trend),
            recommendations=_strings(team, "recommendations"),
        ),
    )


# ============================================================================
# Orchestrator
# ============================================================================


class InsightOrchestrator:
    """Generate oracle-backed analysis with a guaranteed deterministic fallback.

    Holds configuration only; no per-request state is kept between calls.
    """

    def __init__(self, config: Config | None = None, oracle: Oracle | None = None) -> None:
        """Initialize the orchestrator.

        Args:
            config: Resolved configuration (thresholds and oracle settings).
            oracle: Oracle implementation. Defaults to OpenAIOracle.
        """
        self.config = config or Config()
        self.oracle = oracle or OpenAIOracle(self.config.oracle)

    @property
    def thresholds(self) -> AnalyticsThresholds:
        return self.config.thresholds

    def _temperature(self, kind: AnalysisKind) -> float:
        oracle = self.config.oracle
        return {
            AnalysisKind.INSIGHTS: oracle.insights_temperature,
            AnalysisKind.RECOMMENDATIONS: oracle.recommendations_temperature,
            AnalysisKind.PREDICTIONS: oracle.predictions_temperature,
        }[kind]

    def _max_tokens(self, kind: AnalysisKind) -> int:
        if kind is AnalysisKind.RECOMMENDATIONS:
            return self.config.oracle.recommendations_max_tokens
        return self.config.oracle.max_tokens

    def build_prompt(self, kind: AnalysisKind, dataset: NormalizedDataset) -> str:
        """Serialize the normalized data followed by the JSON-shape instruction."""

        def dump(rows: list[Any]) -> str:
            return json.dumps([r.to_dict() for r in rows], indent=2)

        return (
            f"{PREAMBLES[kind]}\n\n"
            f"PROJECTS:\n{dump(dataset.projects)}\n\n"
            f"TASKS:\n{dump(dataset.tasks)}\n\n"
            f"TEAM MEMBERS:\n{dump(dataset.team_members)}\n\n"
            f"{INSTRUCTIONS[kind]}\n\n"
            "Respond ONLY with valid JSON matching this format."
        )

    def prompt_artifact(self, kind: AnalysisKind, dataset: NormalizedDataset) -> dict[str, Any]:
        """Everything that would be sent to the oracle, without sending it."""
        return {
            "kind": kind.value,
            "prompt_version": PROMPT_VERSION,
            "model": self.config.oracle.model,
            "max_tokens": self._max_tokens(kind),
            "temperature": self._temperature(kind),
            "system": SYSTEM_PROMPTS[kind],
            "prompt": self.build_prompt(kind, dataset),
            "generated_at": datetime.now(timezone.utc).isoformat(),
        }

    async def invoke_external(self, kind: AnalysisKind, prompt: str) -> str:
        """Call the oracle, bounded by the configured timeout.

        Raises:
            OracleTimeoutError: If no reply arrives in time.
            ExternalOracleError: On any other oracle failure.
        """
        timeout = self.config.oracle.timeout_seconds
        try:
            return await asyncio.wait_for(
                self.oracle.complete(
                    SYSTEM_PROMPTS[kind],
                    prompt,
                    self._temperature(kind),
                    self._max_tokens(kind),
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise OracleTimeoutError(f"No reply within {timeout}s") from e

    def parse_and_validate(self, raw: str, kind: AnalysisKind) -> Any:
        """Parse oracle text into the typed result for kind.

        Items that fail validation are dropped; a response with no valid
        items, or a predictions object with any invalid section, is rejected.

        Raises:
            OracleResponseError: If the text is not JSON of the expected shape.
        """
        data = _load_json(raw)
        if kind is AnalysisKind.INSIGHTS:
            return _parse_items(_unwrap_list(data, "insights"), kind, _insight)
        if kind is AnalysisKind.RECOMMENDATIONS:
            return _parse_items(
                _unwrap_list(data, "recommendations"), kind, _recommendation
            )
        return _predictive_analysis(data)

    async def _generate(
        self, kind: AnalysisKind, dataset: NormalizedDataset, fallback: Callable[[], T]
    ) -> T:
        start_time = time.perf_counter()
        try:
            prompt = self.build_prompt(kind, dataset)
            raw = await self.invoke_external(kind, prompt)
            result = self.parse_and_validate(raw, kind)
        except ExternalOracleError as e:
            logger.warning(
                f"Oracle {kind.value} failed ({type(e).__name__}: {e}), "
                f"using fallback {GENERATOR_ID}"
            )
            return fallback()
        except Exception as e:
            logger.warning(
                f"Unexpected error generating {kind.value} "
                f"({type(e).__name__}: {e}), using fallback {GENERATOR_ID}"
            )
            return fallback()

        elapsed = time.perf_counter() - start_time
        logger.info(f"Oracle {kind.value} generated in {elapsed:.2f}s")
        return result

    async def generate_insights(self, dataset: NormalizedDataset) -> list[Insight]:
        return await self._generate(
            AnalysisKind.INSIGHTS,
            dataset,
            lambda: fallback_insights(dataset, self.thresholds),
        )

    async def generate_recommendations(
        self, dataset: NormalizedDataset
    ) -> list[Recommendation]:
        return await self._generate(
            AnalysisKind.RECOMMENDATIONS,
            dataset,
            lambda: fallback_recommendations(dataset),
        )

    async def generate_predictive_analysis(
        self, dataset: NormalizedDataset, now: datetime | None = None
    ) -> PredictiveAnalysis:
        """Predictive analysis; now anchors the fallback's completion date."""
        return await self._generate(
            AnalysisKind.PREDICTIONS,
            dataset,
            lambda: fallback_predictive_analysis(dataset, now),
        )
