"""Unit tests for DataNormalizer."""

from __future__ import annotations

from pm_insights.config import INSIGHTS_WORKLOAD_UNIT
from pm_insights.models import TaskPriority, TaskStatus, TeamMemberMetric
from pm_insights.transform.normalizer import (
    UNASSIGNED,
    DataNormalizer,
    compute_progress,
    dedupe_team_members,
    display_name,
    sum_hours,
)


class TestComputeProgress:
    """Tests for derived project progress."""

    def test_zero_tasks_is_zero(self) -> None:
        """No tasks means 0% rather than a division error."""
        assert compute_progress(0, 0) == 0

    def test_rounds_half_up(self) -> None:
        """1 of 8 done is 12.5%, rounded to 13."""
        assert compute_progress(1, 8) == 13

    def test_all_done(self) -> None:
        """All tasks done is exactly 100."""
        assert compute_progress(3, 3) == 100


class TestHelpers:
    """Tests for name and hour helpers."""

    def test_display_name_from_parts(self) -> None:
        """First and last name are joined."""
        assert display_name({"firstName": "Ada", "lastName": "Lovelace"}) == "Ada Lovelace"

    def test_display_name_missing(self) -> None:
        """Empty or non-mapping values give None."""
        assert display_name({}) is None
        assert display_name(None) is None

    def test_sum_hours_skips_malformed(self) -> None:
        """Non-numeric and negative hours count as 0."""
        entries = [{"hours": 2}, {"hours": "abc"}, {"hours": -5}, "junk", {"hours": "1.5"}]
        assert sum_hours(entries) == 3.5

    def test_dedupe_keeps_first_occurrence(self) -> None:
        """Duplicate ids collapse to the first entry, order preserved."""
        a = TeamMemberMetric("u1", "Ada", "DEV", 1, 0, 50, 15)
        b = TeamMemberMetric("u2", "Grace", "DEV", 0, 0, 0, 0)
        a2 = TeamMemberMetric("u1", "Ada (dup)", "DEV", 9, 9, 9, 9)
        assert dedupe_team_members([a, b, a2]) == [a, b]


class TestDataNormalizer:
    """Tests for DataNormalizer.normalize."""

    def test_duplicate_member_across_projects(self, raw_projects) -> None:
        """User u1 on two projects yields one team member entry."""
        dataset = DataNormalizer().normalize(raw_projects)
        ids = [m.id for m in dataset.team_members]
        assert ids == ["u1", "u2"]

    def test_project_invariants(self, raw_projects) -> None:
        """Progress stays in [0, 100] and completed never exceeds total."""
        dataset = DataNormalizer().normalize(raw_projects)
        for project in dataset.projects:
            assert 0 <= project.progress <= 100
            assert project.tasks_completed <= project.total_tasks

    def test_progress_derived_when_missing(self, raw_projects) -> None:
        """1 of 3 tasks done gives 33."""
        project = DataNormalizer().normalize(raw_projects).projects[0]
        assert project.tasks_completed == 1
        assert project.total_tasks == 3
        assert project.progress == 33

    def test_stored_progress_is_clamped(self) -> None:
        """A stored progress value outside [0, 100] is clamped."""
        project = DataNormalizer().normalize_project({"id": "p", "progress": 140})
        assert project.progress == 100

    def test_actual_hours_from_time_entries(self, raw_projects) -> None:
        """Task hours are the sum of its time entries."""
        tasks = DataNormalizer().normalize(raw_projects).tasks
        assert tasks[0].actual_hours == 5.5
        assert tasks[1].actual_hours == 0

    def test_unassigned_task(self, raw_projects) -> None:
        """A task with no assignee is reported as Unassigned."""
        tasks = DataNormalizer().normalize(raw_projects).tasks
        assert tasks[0].assigned_to == "Ada Lovelace"
        assert tasks[1].assigned_to == UNASSIGNED

    def test_member_efficiency_and_workload(self, raw_projects) -> None:
        """u1: 1 of 2 assigned done, one active task."""
        member = DataNormalizer().normalize(raw_projects).team_members[0]
        assert member.efficiency == 50
        assert member.workload == 15

    def test_insights_workload_unit(self, raw_projects) -> None:
        """The insights unit scores one active task at 10."""
        normalizer = DataNormalizer(workload_unit=INSIGHTS_WORKLOAD_UNIT)
        member = normalizer.normalize(raw_projects).team_members[0]
        assert member.workload == 10

    def test_workload_capped_at_100(self) -> None:
        """Ten active tasks at 15 each still score 100."""
        user = {"id": "u9", "assignedTasks": [{"status": "TODO"}] * 10}
        member = DataNormalizer().normalize_member(user)
        assert member.workload == 100
        assert member.efficiency == 0

    def test_malformed_fields_default(self) -> None:
        """Bad or overflowing numbers become 0, bad dates None, unknown enums the defaults."""
        raw = [
            {
                "id": "p",
                "budget": "lots",
                "spent": 10**400,
                "deadline": "not-a-date",
                "tasks": [{"id": "t", "status": "WEIRD", "priority": 7, "createdAt": 123}],
                "members": [{"user": None}, "junk"],
            }
        ]
        dataset = DataNormalizer().normalize(raw)
        project = dataset.projects[0]
        task = dataset.tasks[0]
        assert project.budget == 0
        assert project.spent == 0
        assert project.deadline is None
        assert task.status is TaskStatus.TODO
        assert task.priority is TaskPriority.MEDIUM
        assert task.created_at is None
        assert dataset.team_members == []

    def test_project_selection(self, raw_projects) -> None:
        """Only listed project ids are normalized."""
        dataset = DataNormalizer().normalize(raw_projects, project_ids=["p2"])
        assert [p.id for p in dataset.projects] == ["p2"]
        assert [t.id for t in dataset.tasks] == ["t4"]

    def test_empty_selection_is_empty(self, raw_projects) -> None:
        """Selecting an unknown id leaves an empty dataset."""
        dataset = DataNormalizer().normalize(raw_projects, project_ids=["nope"])
        assert dataset.is_empty

    def test_time_entries_deduplicated(self, raw_projects) -> None:
        """Entries are collected once per id."""
        raw_projects[1]["tasks"][0]["timeEntries"] = [
            {"id": "e1", "userId": "u1", "hours": 3, "date": "2024-06-21T10:00:00Z"}
        ]
        dataset = DataNormalizer().normalize(raw_projects)
        assert [e.id for e in dataset.time_entries] == ["e1", "e2"]

    def test_users_default_to_members(self, raw_projects) -> None:
        """Without a user list, team members stand in for users."""
        dataset = DataNormalizer().normalize(raw_projects)
        assert [u.id for u in dataset.users] == ["u1", "u2"]

    def test_explicit_users(self, raw_projects) -> None:
        """An explicit user list carries the active flag."""
        users = [{"id": "u1", "role": "DEV"}, {"id": "u3", "isActive": False}]
        dataset = DataNormalizer().normalize(raw_projects, raw_users=users)
        assert [(u.id, u.is_active) for u in dataset.users] == [("u1", True), ("u3", False)]

    def test_data_points(self, raw_projects) -> None:
        """Counts reflect normalized records."""
        dataset = DataNormalizer().normalize(raw_projects)
        assert dataset.data_points() == {
            "projectsAnalyzed": 2,
            "tasksAnalyzed": 4,
            "teamMembersAnalyzed": 2,
        }
