"""Shared fixtures: raw records shaped like the persistence export."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest

NOW = datetime(2024, 6, 30, 12, 0, tzinfo=timezone.utc)


def make_task(
    task_id: str,
    status: str = "TODO",
    created_at: str | None = "2024-06-01T09:00:00Z",
    completed_at: str | None = None,
    **extra: Any,
) -> dict[str, Any]:
    task = {
        "id": task_id,
        "title": f"Task {task_id}",
        "status": status,
        "priority": "MEDIUM",
        "estimatedHours": 4,
        "createdAt": created_at,
        "completedAt": completed_at,
        "timeEntries": [],
    }
    task.update(extra)
    return task


def make_user(
    user_id: str, first: str = "Ada", last: str = "Lovelace", statuses: tuple = ()
) -> dict[str, Any]:
    return {
        "user": {
            "id": user_id,
            "firstName": first,
            "lastName": last,
            "role": "DEVELOPER",
            "assignedTasks": [
                {"id": f"{user_id}-t{i}", "status": s} for i, s in enumerate(statuses)
            ],
            "timeEntries": [],
        }
    }


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def raw_projects() -> list[dict[str, Any]]:
    """Two projects; the first is over 90% of budget, u1 appears in both."""
    return [
        {
            "id": "p1",
            "name": "Website Redesign",
            "status": "ACTIVE",
            "budget": 1000,
            "spent": 950,
            "deadline": "2024-08-01T00:00:00Z",
            "createdAt": "2024-05-01T00:00:00Z",
            "tasks": [
                make_task(
                    "t1",
                    "DONE",
                    created_at="2024-06-20T00:00:00Z",
                    completed_at="2024-06-22T00:00:00Z",
                    assignedTo={"firstName": "Ada", "lastName": "Lovelace"},
                    timeEntries=[
                        {"id": "e1", "userId": "u1", "hours": 3, "date": "2024-06-21T10:00:00Z"},
                        {"id": "e2", "userId": "u1", "hours": 2.5, "date": "2024-06-22T10:00:00Z"},
                    ],
                ),
                make_task("t2", "IN_PROGRESS", created_at="2024-06-10T00:00:00Z"),
                make_task("t3", "TODO", created_at="2024-06-29T00:00:00Z"),
            ],
            "members": [
                make_user("u1", statuses=("DONE", "IN_PROGRESS")),
                make_user("u2", "Grace", "Hopper", statuses=("TODO",)),
            ],
        },
        {
            "id": "p2",
            "name": "Mobile App",
            "status": "COMPLETED",
            "budget": 5000,
            "spent": 1000,
            "createdAt": "2024-06-01T00:00:00Z",
            "completedAt": "2024-06-21T00:00:00Z",
            "tasks": [
                make_task(
                    "t4",
                    "DONE",
                    created_at="2024-06-02T00:00:00Z",
                    completed_at="2024-06-26T00:00:00Z",
                ),
            ],
            "members": [make_user("u1", statuses=("DONE", "IN_PROGRESS"))],
        },
    ]


@pytest.fixture
def raw_sprint_project() -> list[dict[str, Any]]:
    """One project with a completed 10-day sprint and one active sprint."""
    return [
        {
            "id": "p1",
            "name": "Platform",
            "budget": 100,
            "spent": 10,
            "tasks": [],
            "members": [],
            "sprints": [
                {
                    "id": "s1",
                    "name": "Sprint 1",
                    "status": "COMPLETED",
                    "startDate": "2024-06-01T00:00:00Z",
                    "endDate": "2024-06-11T00:00:00Z",
                    "tasks": [
                        {
                            "id": "st1",
                            "status": "DONE",
                            "storyPoints": 5,
                            "completedAt": "2024-06-03T15:00:00Z",
                            "assignee": {"id": "u1", "firstName": "Ada", "lastName": "Lovelace"},
                        },
                        {
                            "id": "st2",
                            "status": "DONE",
                            "storyPoints": 3,
                            "completedAt": "2024-06-05T09:00:00Z",
                            "assignee": {"id": "u2", "firstName": "Grace", "lastName": "Hopper"},
                        },
                        {"id": "st3", "status": "TODO", "storyPoints": 2},
                    ],
                },
                {
                    "id": "s2",
                    "name": "Sprint 2",
                    "status": "ACTIVE",
                    "startDate": "2024-06-12T00:00:00Z",
                    "endDate": "2024-06-22T00:00:00Z",
                    "tasks": [],
                },
            ],
        }
    ]
