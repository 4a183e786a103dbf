"""CLI entry point for pm-insights."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .config import ConfigurationError, load_config
from .ml.insights import AnalysisKind
from .service import AnalyticsService
from .transform.normalizer import NoDataError
from .transform.recommendation_filter import FilterValidationError, validate_filters
from .utils.date_utils import DEFAULT_TIME_RANGE, TIME_RANGE_DAYS
from .utils.logging_config import LoggingConfig, setup_logging

if TYPE_CHECKING:
    from argparse import Namespace

    from .config import Config

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NO_DATA = 2
EXIT_CANCELLED = 130


class InputError(Exception):
    """The --input file is missing or not in the expected shape."""


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--input",
        type=Path,
        required=True,
        help="JSON export: a list of projects, or an object with 'projects' and optional 'users'",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("reports"),
        help="Output directory for report JSON (default: reports)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config.yaml",
    )
    parser.add_argument(
        "--project-id",
        dest="project_ids",
        action="append",
        help="Restrict analysis to this project id (repeatable)",
    )


def _add_oracle_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--model",
        type=str,
        help="OpenAI model name (overrides OPENAI_MODEL and config.yaml)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Oracle timeout in seconds (default: 30)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Write the oracle prompt to <output>/prompt.json without calling the API",
    )


def create_parser() -> argparse.ArgumentParser:  # pragma: no cover
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="pm-insights",
        description="Derive project-management metrics and AI-augmented insights.",
    )

    # Global options
    parser.add_argument(
        "--log-format",
        type=str,
        choices=["console", "jsonl"],
        default="console",
        help="Log format: console (human-readable) or jsonl (structured)",
    )
    parser.add_argument(
        "--artifacts-dir",
        type=Path,
        default=Path("run_artifacts"),
        help="Directory for run artifacts (logs)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    insights_parser = subparsers.add_parser(
        "insights",
        help="Generate insights (oracle with deterministic fallback)",
    )
    _add_common_arguments(insights_parser)
    _add_oracle_arguments(insights_parser)

    rec_parser = subparsers.add_parser(
        "recommendations",
        help="Generate recommendations, optionally filtered",
    )
    _add_common_arguments(rec_parser)
    _add_oracle_arguments(rec_parser)
    rec_parser.add_argument(
        "--category",
        type=str,
        help="Keep only this category (budget, timeline, team, quality, risk)",
    )
    rec_parser.add_argument(
        "--priority",
        type=str,
        help="Keep only this priority (low, medium, high)",
    )

    pred_parser = subparsers.add_parser(
        "predictions",
        help="Predictive analysis with velocity and risk assessment",
    )
    _add_common_arguments(pred_parser)
    _add_oracle_arguments(pred_parser)

    kpi_parser = subparsers.add_parser(
        "kpis",
        help="KPI metrics and weekly completion buckets",
    )
    _add_common_arguments(kpi_parser)
    kpi_parser.add_argument(
        "--time-range",
        type=str,
        choices=sorted(TIME_RANGE_DAYS),
        default=DEFAULT_TIME_RANGE,
        help=f"Reporting window (default: {DEFAULT_TIME_RANGE})",
    )

    sprint_parser = subparsers.add_parser(
        "sprint-velocity",
        help="Story-point velocity across completed sprints",
    )
    _add_common_arguments(sprint_parser)
    sprint_parser.add_argument(
        "--time-range",
        type=str,
        choices=sorted(TIME_RANGE_DAYS),
        help="Only sprints ending inside this window (default: all)",
    )

    burndown_parser = subparsers.add_parser(
        "burndown",
        help="Ideal vs. actual burndown for one sprint",
    )
    _add_common_arguments(burndown_parser)
    burndown_parser.add_argument(
        "--sprint-id",
        type=str,
        required=True,
        help="Sprint to chart",
    )

    return parser


def load_input(path: Path) -> tuple[list[Any], list[Any] | None]:
    """Read projects (and optional users) from a JSON export.

    Raises:
        InputError: If the file is missing, not JSON, or has the wrong shape.
    """
    if not path.exists():
        raise InputError(f"Input file not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise InputError(f"Invalid JSON in {path}: {e}") from e

    if isinstance(data, list):
        return data, None
    if isinstance(data, dict) and isinstance(data.get("projects"), list):
        users = data.get("users")
        if users is not None and not isinstance(users, list):
            raise InputError("'users' must be a list")
        return data["projects"], users
    raise InputError("Input must be a list of projects or an object with 'projects'")


def write_report(output_dir: Path, name: str, report: dict[str, Any]) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"{name}.json"
    with path.open("w", encoding="utf-8") as f:
        json.dump(report, f, indent=2, sort_keys=True)
    logger.info(f"Wrote {path}")
    return path


def _resolve_config(args: Namespace) -> Config:
    config = load_config(
        config_path=args.config,
        model=getattr(args, "model", None),
        timeout_seconds=getattr(args, "timeout", None),
    )
    config.log_summary()
    return config


def _write_prompt(
    service: AnalyticsService, kind: AnalysisKind, args: Namespace, projects: list[Any]
) -> int:
    artifact = service.prompt_artifact(kind, projects, args.project_ids)
    path = write_report(args.output, "prompt", artifact)
    logger.info(f"Dry run: prompt written to {path}, no API call made")
    return EXIT_OK


def cmd_insights(args: Namespace) -> int:
    """Execute the insights command."""
    projects, _ = load_input(args.input)
    service = AnalyticsService(_resolve_config(args))
    if args.dry_run:
        return _write_prompt(service, AnalysisKind.INSIGHTS, args, projects)

    report = asyncio.run(service.insights_report(projects, args.project_ids))
    write_report(args.output, "insights", report)
    logger.info(f"Generated {len(report['insights'])} insights")
    return EXIT_OK


def cmd_recommendations(args: Namespace) -> int:
    """Execute the recommendations command."""
    projects, _ = load_input(args.input)
    validate_filters(args.category, args.priority)
    service = AnalyticsService(_resolve_config(args))
    if args.dry_run:
        return _write_prompt(service, AnalysisKind.RECOMMENDATIONS, args, projects)

    report = asyncio.run(
        service.recommendations_report(
            projects, args.category, args.priority, args.project_ids
        )
    )
    write_report(args.output, "recommendations", report)
    logger.info(f"Generated {len(report['recommendations'])} recommendations")
    return EXIT_OK


def cmd_predictions(args: Namespace) -> int:
    """Execute the predictions command."""
    projects, _ = load_input(args.input)
    service = AnalyticsService(_resolve_config(args))
    if args.dry_run:
        return _write_prompt(service, AnalysisKind.PREDICTIONS, args, projects)

    report = asyncio.run(service.predictions_report(projects, args.project_ids))
    write_report(args.output, "predictions", report)
    logger.info(f"Overall risk: {report['riskAssessment']['overallRisk']}")
    return EXIT_OK


def cmd_kpis(args: Namespace) -> int:
    """Execute the kpis command."""
    projects, users = load_input(args.input)
    service = AnalyticsService(_resolve_config(args))
    report = service.kpi_report(projects, users, args.time_range, args.project_ids)
    write_report(args.output, "kpis", report)
    return EXIT_OK


def cmd_sprint_velocity(args: Namespace) -> int:
    """Execute the sprint-velocity command."""
    projects, _ = load_input(args.input)
    service = AnalyticsService(_resolve_config(args))
    report = service.sprint_velocity_report(projects, args.time_range, args.project_ids)
    write_report(args.output, "sprint_velocity", report)
    logger.info(f"Analyzed {report['statistics']['totalSprints']} completed sprints")
    return EXIT_OK


def cmd_burndown(args: Namespace) -> int:
    """Execute the burndown command."""
    projects, _ = load_input(args.input)
    service = AnalyticsService(_resolve_config(args))
    report = service.burndown_report(projects, args.sprint_id)
    write_report(args.output, f"burndown_{args.sprint_id}", report)
    return EXIT_OK


COMMANDS = {
    "insights": cmd_insights,
    "recommendations": cmd_recommendations,
    "predictions": cmd_predictions,
    "kpis": cmd_kpis,
    "sprint-velocity": cmd_sprint_velocity,
    "burndown": cmd_burndown,
}


def main() -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args()

    # Setup logging early
    log_config = LoggingConfig(
        format=getattr(args, "log_format", "console"),
        artifacts_dir=getattr(args, "artifacts_dir", Path("run_artifacts")),
    )
    setup_logging(log_config)

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        return EXIT_ERROR

    start_time = time.perf_counter()
    try:
        exit_code = command(args)
    except KeyboardInterrupt:
        logger.info("Operation cancelled by user")
        return EXIT_CANCELLED
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_ERROR
    except InputError as e:
        logger.error(f"Input error: {e}")
        return EXIT_ERROR
    except FilterValidationError as e:
        logger.error(f"Invalid filter: {e}")
        return EXIT_ERROR
    except NoDataError as e:
        logger.warning(f"No data: {e}")
        return EXIT_NO_DATA
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return EXIT_ERROR

    logger.info(f"{args.command} completed in {time.perf_counter() - start_time:.2f}s")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
