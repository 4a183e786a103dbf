"""Configuration for pm-insights.

Load order (each layer overrides the previous):
  1. Built-in defaults (the models below)
  2. Optional config.yaml (sections: thresholds, workload, oracle)
  3. Environment variables (OPENAI_MODEL, OPENAI_API_KEY,
     PM_INSIGHTS_ORACLE_TIMEOUT)
  4. Explicit overrides (CLI flags)

Every heuristic threshold used by the derivation pipelines and the fallback
generators lives in AnalyticsThresholds. Call sites never hard-code them.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeFloat,
    PositiveFloat,
    PositiveInt,
    SecretStr,
    ValidationError,
    ValidationInfo,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Active-task multiplier for the member workload score. The insights report
# historically used 10 while predictions/recommendations used 15; both are
# kept until product confirms which one is intended.
WORKLOAD_UNIT = 15
INSIGHTS_WORKLOAD_UNIT = 10

DEFAULT_MODEL = "gpt-4"
DEFAULT_ORACLE_TIMEOUT_SECONDS = 30.0


class ConfigurationError(Exception):
    """Invalid configuration file or values."""


class AnalyticsThresholds(BaseModel):
    """Heuristic thresholds for risk ratios, velocity trend and fallbacks."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Budget: a project is "at risk" once spent exceeds this share of budget
    budget_spend_ratio: NonNegativeFloat = 0.8
    budget_trigger: NonNegativeFloat = 0.3
    budget_high: NonNegativeFloat = 0.6

    # Timeline: open tasks older than this many days count as overdue
    timeline_age_days: NonNegativeFloat = 7.0
    timeline_trigger: NonNegativeFloat = 0.2
    timeline_high: NonNegativeFloat = 0.4

    # Workload: members above this workload score are overloaded
    workload_overload: NonNegativeFloat = 80.0
    workload_trigger: NonNegativeFloat = 0.3
    workload_high: NonNegativeFloat = 0.5

    # Composite risk score weight per ratio (3 ratios -> ~100)
    risk_score_weight: NonNegativeFloat = 33.33

    # Velocity
    velocity_window_days: PositiveInt = 28
    trend_increase_factor: NonNegativeFloat = 1.2
    trend_decrease_factor: NonNegativeFloat = 0.8

    # Sprint velocity trend (last 3 vs previous 3 sprints, percent change)
    sprint_trend_window: PositiveInt = 3
    sprint_trend_change_pct: NonNegativeFloat = 10.0

    # Fallback insight alert: projects past this share of budget
    budget_alert_ratio: NonNegativeFloat = 0.9

    @field_validator("budget_high", "timeline_high", "workload_high")
    @classmethod
    def validate_trigger_below_high(cls, v: float, info: ValidationInfo) -> float:
        trigger = info.field_name.replace("_high", "_trigger")
        trigger_value = info.data.get(trigger)
        if trigger_value is not None and trigger_value > v:
            raise ValueError(f"{trigger} must not exceed {info.field_name}")
        return v


class WorkloadConfig(BaseModel):
    """Workload-unit constants, see WORKLOAD_UNIT."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    unit: PositiveFloat = WORKLOAD_UNIT
    insights_unit: PositiveFloat = INSIGHTS_WORKLOAD_UNIT


class OracleConfig(BaseModel):
    """Generative oracle (OpenAI chat completions) settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    model: str = Field(default=DEFAULT_MODEL, min_length=1)
    api_key: SecretStr | None = None
    timeout_seconds: PositiveFloat = DEFAULT_ORACLE_TIMEOUT_SECONDS
    max_tokens: PositiveInt = 2000
    recommendations_max_tokens: PositiveInt = 2500
    insights_temperature: NonNegativeFloat = 0.3
    recommendations_temperature: NonNegativeFloat = 0.4
    predictions_temperature: NonNegativeFloat = 0.2


class OracleEnvironment(BaseSettings):
    """Oracle settings read from the process environment.

    Unset and empty variables are None so they never mask config.yaml values.
    """

    model_config = SettingsConfigDict(extra="ignore", env_ignore_empty=True)

    model: str | None = Field(default=None, alias="OPENAI_MODEL")
    api_key: SecretStr | None = Field(default=None, alias="OPENAI_API_KEY")
    timeout_seconds: float | None = Field(
        default=None, alias="PM_INSIGHTS_ORACLE_TIMEOUT"
    )

    def overrides(self) -> dict[str, Any]:
        return {
            name: value
            for name, value in (
                ("model", self.model),
                ("api_key", self.api_key),
                ("timeout_seconds", self.timeout_seconds),
            )
            if value is not None
        }


class Config(BaseModel):
    """Resolved configuration passed to every component."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    thresholds: AnalyticsThresholds = Field(default_factory=AnalyticsThresholds)
    workload: WorkloadConfig = Field(default_factory=WorkloadConfig)
    oracle: OracleConfig = Field(default_factory=OracleConfig)

    def log_summary(self) -> None:
        """Log the effective configuration (secrets omitted)."""
        logger.info("Configuration:")
        logger.info(f"  Oracle model: {self.oracle.model}")
        logger.info(f"  Oracle timeout: {self.oracle.timeout_seconds}s")
        logger.info(
            f"  Oracle API key: {'set' if self.oracle.api_key else 'not set'}"
        )
        logger.info(
            f"  Workload units: {self.workload.unit} "
            f"(insights: {self.workload.insights_unit})"
        )
        logger.info(f"  Velocity window: {self.thresholds.velocity_window_days} days")


def _read_yaml(config_path: Path) -> dict[str, Any]:
    if not config_path.exists():
        raise ConfigurationError(f"Config file not found: {config_path}")
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config root must be a mapping: {config_path}")
    return data


def load_config(
    config_path: Path | None = None,
    model: str | None = None,
    timeout_seconds: float | None = None,
    api_key: str | None = None,
) -> Config:
    """Load and validate configuration.

    Args:
        config_path: Optional path to config.yaml.
        model: Override for the oracle model name.
        timeout_seconds: Override for the oracle timeout.
        api_key: Override for the OpenAI API key.

    Returns:
        Validated Config.

    Raises:
        ConfigurationError: If the file, the environment or any value is invalid.
    """
    data = _read_yaml(config_path) if config_path else {}
    # An empty section in YAML means "use the defaults"
    data = {section: values for section, values in data.items() if values is not None}

    oracle = data.get("oracle", {})
    if not isinstance(oracle, dict):
        raise ConfigurationError("'oracle' section must be a mapping")

    try:
        environment = OracleEnvironment()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid oracle environment variables: {e}") from e

    flags = {"model": model, "timeout_seconds": timeout_seconds, "api_key": api_key}
    oracle = {
        **oracle,
        **environment.overrides(),
        **{name: value for name, value in flags.items() if value not in (None, "")},
    }

    try:
        return Config.model_validate({**data, "oracle": oracle})
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
