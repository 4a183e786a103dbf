"""Raw record -> normalized metric DTO conversion.

Input is the nested shape the persistence layer exports::

    project
      tasks[]        (assignedTo, timeEntries[])
      members[].user (assignedTasks[], timeEntries[])
      sprints[]      (tasks[] with storyPoints, assignee)

This is a reporting system, not a system of record: missing or malformed
numbers become 0 and unparseable dates become None. Nothing here raises for
bad field values.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from ..config import WORKLOAD_UNIT
from ..models import (
    ProjectLifecycle,
    ProjectMetric,
    SprintRecord,
    SprintTask,
    TaskMetric,
    TaskPriority,
    TaskStatus,
    TeamMemberMetric,
    TimeEntryRecord,
    UserActivity,
)
from ..utils.date_utils import parse_datetime
from ..utils.math_utils import clamp, coerce_number, round_half_up, safe_ratio

logger = logging.getLogger(__name__)

UNASSIGNED = "Unassigned"


class NoDataError(Exception):
    """The selected dataset has no projects to analyze."""


@dataclass
class NormalizedDataset:
    """Canonical, null-safe projection of one request's raw records."""

    projects: list[ProjectMetric] = field(default_factory=list)
    tasks: list[TaskMetric] = field(default_factory=list)
    team_members: list[TeamMemberMetric] = field(default_factory=list)
    project_lifecycles: list[ProjectLifecycle] = field(default_factory=list)
    time_entries: list[TimeEntryRecord] = field(default_factory=list)
    users: list[UserActivity] = field(default_factory=list)
    sprints: list[SprintRecord] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.projects

    def data_points(self) -> dict[str, int]:
        return {
            "projectsAnalyzed": len(self.projects),
            "tasksAnalyzed": len(self.tasks),
            "teamMembersAnalyzed": len(self.team_members),
        }


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        return value
    return []


def _as_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def _non_negative(value: Any) -> float:
    return max(0.0, coerce_number(value))


def _parse_status(value: Any) -> TaskStatus:
    try:
        return TaskStatus(_as_str(value).upper())
    except ValueError:
        logger.debug(f"Unknown task status {value!r}, treating as TODO")
        return TaskStatus.TODO


def _parse_priority(value: Any) -> TaskPriority:
    try:
        return TaskPriority(_as_str(value).upper())
    except ValueError:
        logger.debug(f"Unknown task priority {value!r}, treating as MEDIUM")
        return TaskPriority.MEDIUM


def display_name(person: Any) -> str | None:
    """Resolve "First Last" from a user record, or pass a string through."""
    if isinstance(person, str):
        return person.strip() or None
    if not isinstance(person, Mapping):
        return None
    if person.get("name"):
        return _as_str(person["name"])
    full = f"{_as_str(person.get('firstName'))} {_as_str(person.get('lastName'))}"
    return full.strip() or None


def sum_hours(entries: Iterable[Any]) -> float:
    """Total hours across time entries, skipping malformed ones."""
    return sum(
        _non_negative(entry.get("hours")) for entry in entries if isinstance(entry, Mapping)
    )


def compute_progress(completed: int, total: int) -> float:
    """Whole-number completion percentage, 0 when there are no tasks."""
    return round_half_up(safe_ratio(completed, total) * 100)


def dedupe_team_members(members: Iterable[TeamMemberMetric]) -> list[TeamMemberMetric]:
    """Drop repeated member ids, keeping the first occurrence in order."""
    seen: set[str] = set()
    unique: list[TeamMemberMetric] = []
    for member in members:
        if member.id in seen:
            continue
        seen.add(member.id)
        unique.append(member)
    return unique


class DataNormalizer:
    """Convert raw nested project records into metric DTOs.

    Args:
        workload_unit: Workload points per active (not DONE) assigned task.
    """

    def __init__(self, workload_unit: float = WORKLOAD_UNIT) -> None:
        self.workload_unit = workload_unit

    def normalize(
        self,
        raw_projects: Iterable[Mapping[str, Any]],
        project_ids: Iterable[str] | None = None,
        raw_users: Iterable[Mapping[str, Any]] | None = None,
    ) -> NormalizedDataset:
        """Normalize a batch of raw projects.

        Args:
            raw_projects: Nested project records.
            project_ids: Optional selection; projects not listed are skipped.
            raw_users: Optional organisation-wide user list used for team
                utilization. Defaults to the projects' members.

        Returns:
            NormalizedDataset with input order preserved.
        """
        selected = set(project_ids) if project_ids else None
        dataset = NormalizedDataset()
        members: list[TeamMemberMetric] = []
        seen_entries: set[str] = set()
        skipped = 0

        for raw in raw_projects:
            if not isinstance(raw, Mapping):
                skipped += 1
                continue
            project_id = _as_str(raw.get("id"))
            if selected is not None and project_id not in selected:
                continue

            dataset.projects.append(self.normalize_project(raw))
            dataset.project_lifecycles.append(
                ProjectLifecycle(
                    id=project_id,
                    status=_as_str(raw.get("status")).upper(),
                    created_at=parse_datetime(raw.get("createdAt")),
                    completed_at=parse_datetime(raw.get("completedAt")),
                )
            )

            for raw_task in _as_list(raw.get("tasks")):
                if not isinstance(raw_task, Mapping):
                    skipped += 1
                    continue
                dataset.tasks.append(self.normalize_task(raw_task))
                for entry in _as_list(raw_task.get("timeEntries")):
                    record = self._time_entry(entry, raw_task)
                    if record is None:
                        continue
                    if record.id is not None:
                        if record.id in seen_entries:
                            continue
                        seen_entries.add(record.id)
                    dataset.time_entries.append(record)

            for membership in _as_list(raw.get("members")):
                user = membership.get("user") if isinstance(membership, Mapping) else None
                if not isinstance(user, Mapping):
                    skipped += 1
                    continue
                members.append(self.normalize_member(user))

            dataset.sprints.extend(
                self.normalize_sprint(s, _as_str(raw.get("name")))
                for s in _as_list(raw.get("sprints"))
                if isinstance(s, Mapping)
            )

        dataset.team_members = dedupe_team_members(members)

        if raw_users is not None:
            dataset.users = [
                UserActivity(
                    id=_as_str(u.get("id")),
                    role=_as_str(u.get("role"), "Unknown"),
                    is_active=bool(u.get("isActive", True)),
                )
                for u in raw_users
                if isinstance(u, Mapping)
            ]
        else:
            dataset.users = [
                UserActivity(id=m.id, role=m.role) for m in dataset.team_members
            ]

        if skipped:
            logger.debug(f"Skipped {skipped} malformed nested records")
        logger.debug(
            f"Normalized {len(dataset.projects)} projects, {len(dataset.tasks)} tasks, "
            f"{len(dataset.team_members)} team members"
        )
        return dataset

    def normalize_project(self, raw: Mapping[str, Any]) -> ProjectMetric:
        tasks = [t for t in _as_list(raw.get("tasks")) if isinstance(t, Mapping)]
        total = len(tasks)
        completed = sum(1 for t in tasks if _parse_status(t.get("status")) is TaskStatus.DONE)

        stored = raw.get("progress")
        if stored is not None:
            progress = clamp(coerce_number(stored), 0.0, 100.0)
        else:
            progress = compute_progress(completed, total)

        return ProjectMetric(
            id=_as_str(raw.get("id")),
            name=_as_str(raw.get("name")),
            status=_as_str(raw.get("status")),
            progress=progress,
            budget=_non_negative(raw.get("budget")),
            spent=_non_negative(raw.get("spent")),
            deadline=parse_datetime(raw.get("deadline")),
            tasks_completed=completed,
            total_tasks=total,
            team_size=len(_as_list(raw.get("members"))),
            start_date=parse_datetime(raw.get("createdAt") or raw.get("startDate")),
        )

    def normalize_task(self, raw: Mapping[str, Any]) -> TaskMetric:
        return TaskMetric(
            id=_as_str(raw.get("id")),
            title=_as_str(raw.get("title")),
            status=_parse_status(raw.get("status")),
            priority=_parse_priority(raw.get("priority")),
            estimated_hours=_non_negative(raw.get("estimatedHours")),
            actual_hours=sum_hours(_as_list(raw.get("timeEntries"))),
            assigned_to=display_name(raw.get("assignedTo")) or UNASSIGNED,
            created_at=parse_datetime(raw.get("createdAt")),
            completed_at=parse_datetime(raw.get("completedAt")),
        )

    def normalize_member(self, user: Mapping[str, Any]) -> TeamMemberMetric:
        assigned = [t for t in _as_list(user.get("assignedTasks")) if isinstance(t, Mapping)]
        completed = sum(
            1 for t in assigned if _parse_status(t.get("status")) is TaskStatus.DONE
        )
        active = len(assigned) - completed

        return TeamMemberMetric(
            id=_as_str(user.get("id")),
            name=display_name(user) or "",
            role=_as_str(user.get("role")),
            tasks_completed=completed,
            hours_logged=sum_hours(_as_list(user.get("timeEntries"))),
            efficiency=min(100.0, safe_ratio(completed, len(assigned)) * 100),
            workload=min(100.0, active * self.workload_unit),
        )

    def normalize_sprint(self, raw: Mapping[str, Any], project_name: str = "") -> SprintRecord:
        tasks = []
        for t in _as_list(raw.get("tasks")):
            if not isinstance(t, Mapping):
                continue
            assignee = t.get("assignee") or t.get("assignedTo")
            assignee_id = t.get("assigneeId")
            if assignee_id is None and isinstance(assignee, Mapping):
                assignee_id = assignee.get("id")
            tasks.append(
                SprintTask(
                    id=_as_str(t.get("id")),
                    status=_parse_status(t.get("status")),
                    story_points=_non_negative(t.get("storyPoints")),
                    created_at=parse_datetime(t.get("createdAt")),
                    completed_at=parse_datetime(t.get("completedAt")),
                    assignee_id=_as_str(assignee_id) if assignee_id is not None else None,
                    assignee_name=display_name(assignee),
                )
            )
        project = raw.get("project")
        if isinstance(project, Mapping) and project.get("name"):
            project_name = _as_str(project["name"])
        return SprintRecord(
            id=_as_str(raw.get("id")),
            name=_as_str(raw.get("name")),
            project_name=project_name,
            status=_as_str(raw.get("status")).upper(),
            start_date=parse_datetime(raw.get("startDate")),
            end_date=parse_datetime(raw.get("endDate")),
            tasks=tasks,
        )

    @staticmethod
    def _time_entry(entry: Any, raw_task: Mapping[str, Any]) -> TimeEntryRecord | None:
        if not isinstance(entry, Mapping):
            return None
        user_id = entry.get("userId")
        if user_id is None and isinstance(entry.get("user"), Mapping):
            user_id = entry["user"].get("id")
        entry_id = entry.get("id")
        return TimeEntryRecord(
            id=_as_str(entry_id) if entry_id is not None else None,
            user_id=_as_str(user_id) if user_id is not None else None,
            hours=_non_negative(entry.get("hours")),
            date=parse_datetime(entry.get("date") or entry.get("createdAt")),
        )
