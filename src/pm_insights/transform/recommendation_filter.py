"""Predicate filtering over generated recommendations."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from ..models import Level, Recommendation, RecommendationCategory


class FilterValidationError(ValueError):
    """A filter value is not one of the recognized options.

    Attributes:
        field: Name of the offending filter ("category" or "priority").
        value: The rejected value as received.
    """

    def __init__(self, field: str, value: object, allowed: Sequence[str]) -> None:
        self.field = field
        self.value = value
        self.allowed = list(allowed)
        super().__init__(
            f"Invalid {field} {value!r}; expected one of: {', '.join(self.allowed)}"
        )


@dataclass(frozen=True)
class FilterResult:
    recommendations: list[Recommendation] = field(default_factory=list)
    total_recommendations: int = 0
    filtered_count: int = 0


def _parse(field_name: str, value: object, enum_cls: type[Enum]) -> Enum | None:
    if value is None or value == "":
        return None
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        raise FilterValidationError(
            field_name, value, [member.value for member in enum_cls]
        ) from None


def validate_filters(
    category: object = None, priority: object = None
) -> tuple[RecommendationCategory | None, Level | None]:
    """Parse raw filter values, raising FilterValidationError on unknown ones."""
    return (
        _parse("category", category, RecommendationCategory),
        _parse("priority", priority, Level),
    )


def filter_recommendations(
    recommendations: Sequence[Recommendation],
    category: object = None,
    priority: object = None,
) -> FilterResult:
    """Keep recommendations matching every supplied predicate.

    Args:
        recommendations: Orchestrator output.
        category: Optional category value (enum member or string).
        priority: Optional priority value (enum member or string).

    Returns:
        FilterResult with the stable subset and the before/after counts.
        With no predicates the input is returned unchanged.

    Raises:
        FilterValidationError: If a predicate value is not recognized.
    """
    wanted_category, wanted_priority = validate_filters(category, priority)

    kept = [
        rec
        for rec in recommendations
        if (wanted_category is None or rec.category is wanted_category)
        and (wanted_priority is None or rec.priority is wanted_priority)
    ]
    return FilterResult(
        recommendations=kept,
        total_recommendations=len(recommendations),
        filtered_count=len(kept),
    )
