"""Tests for the bottom-up status cascade."""

import pytest

from src.cascade import StatusCascadePropagator, evaluate_parent_status
from src.snapshot import RemoteSnapshot, fetch_snapshot
from src.status import StatusTransitioner


class TestEvaluateParentStatus:
    @pytest.mark.parametrize(
        "parent, children, expected",
        [
            # all done -> done
            ("Not picked yet", ["Done", "Done", "Done"], "Done"),
            ("On track", ["Done", "Done, BAU"], "Done"),
            ("Delayed", ["done"], "Done"),
            # already done
            ("Done", ["Done", "Done"], None),
            ("Done, BAU", ["Done"], None),
            # mixed progress lifts a not-started parent
            ("Not picked yet", ["Done", "Done", "On track"], "On track"),
            ("To Do", ["Not picked yet", "Delayed"], "On track"),
            ("To Do", ["Review Stage"], "On track"),
            # advanced parents are left alone
            ("Delayed", ["Done", "On track"], None),
            ("Not on track", ["On track"], None),
            # nothing started
            ("Not picked yet", ["Not picked yet", "To Do"], None),
            ("To Do", ["Dependent", "Deprioritised"], None),
        ],
    )
    def test_rules(self, sync_config, parent, children, expected) -> None:
        assert evaluate_parent_status(parent, children, sync_config.statuses) == expected

    def test_no_children(self, sync_config) -> None:
        assert evaluate_parent_status("To Do", [], sync_config.statuses) is None


class TestPropagate:
    def _propagator(self, tracker, sync_config, dry_run=False) -> StatusCascadePropagator:
        return StatusCascadePropagator(StatusTransitioner(tracker, sync_config.statuses, dry_run=dry_run), sync_config)

    def test_partial_progress_moves_parent_on_track(self, tracker, sync_config) -> None:
        j = tracker.add_issue("J", "JTBD", status="Not picked yet")
        for status in ("Done", "Done", "On track"):
            tracker.add_issue("T", "Thread", status=status, parent=j)

        result = self._propagator(tracker, sync_config).propagate(lambda: fetch_snapshot(tracker, sync_config))

        assert tracker.issues[j]["status"] == "On track"
        assert result.cascaded == 1

    def test_all_done_moves_parent_done(self, tracker, sync_config) -> None:
        j = tracker.add_issue("J", "JTBD", status="On track")
        for _ in range(3):
            tracker.add_issue("T", "Thread", status="Done", parent=j)

        self._propagator(tracker, sync_config).propagate(lambda: fetch_snapshot(tracker, sync_config))

        assert tracker.issues[j]["status"] == "Done"

    def test_two_level_roll_up_uses_fresh_statuses(self, tracker, sync_config) -> None:
        """Milestones finish a Thread, which in turn finishes its JTBD."""
        j = tracker.add_issue("J", "JTBD", status="On track")
        t = tracker.add_issue("T", "Thread", status="On track", parent=j)
        tracker.add_issue("M1", "Milestone", status="Done", parent=t)
        tracker.add_issue("M2", "Milestone", status="Done, BAU", parent=t)

        result = self._propagator(tracker, sync_config).propagate(lambda: fetch_snapshot(tracker, sync_config))

        assert tracker.issues[t]["status"] == "Done"
        assert tracker.issues[j]["status"] == "Done"
        assert result.cascaded == 2
        assert len(tracker.calls_of("search_project_issues")) == 2

    def test_parent_without_children_is_untouched(self, tracker, sync_config) -> None:
        j = tracker.add_issue("J", "JTBD", status="Not picked yet")
        self._propagator(tracker, sync_config).propagate(lambda: fetch_snapshot(tracker, sync_config))
        assert tracker.issues[j]["status"] == "Not picked yet"
        assert tracker.calls_of("transition_issue") == []

    def test_children_of_other_levels_are_ignored(self, tracker, sync_config) -> None:
        j = tracker.add_issue("J", "JTBD", status="Not picked yet")
        tracker.add_issue("Stray", "Task", status="Done", parent=j)
        self._propagator(tracker, sync_config).propagate(lambda: fetch_snapshot(tracker, sync_config))
        assert tracker.issues[j]["status"] == "Not picked yet"

    def test_blocked_transition_is_counted(self, tracker, sync_config) -> None:
        tracker.workflow = {"On track": ["Delayed"]}
        j = tracker.add_issue("J", "JTBD", status="On track")
        tracker.add_issue("T", "Thread", status="Done", parent=j)

        result = self._propagator(tracker, sync_config).propagate(lambda: fetch_snapshot(tracker, sync_config))

        assert result.failed == 1
        assert result.cascaded == 0
        assert tracker.issues[j]["status"] == "On track"

    def test_degraded_snapshot_skips_pass(self, tracker, sync_config) -> None:
        result = self._propagator(tracker, sync_config).propagate(lambda: RemoteSnapshot(degraded=True))
        assert result.cascaded == 0
        assert result.failed == 0
        assert tracker.calls == []

    def test_dry_run_changes_nothing(self, tracker, sync_config) -> None:
        j = tracker.add_issue("J", "JTBD", status="Not picked yet")
        tracker.add_issue("T", "Thread", status="Done", parent=j)

        result = self._propagator(tracker, sync_config, dry_run=True).propagate(
            lambda: fetch_snapshot(tracker, sync_config)
        )

        assert result.cascaded == 1
        assert tracker.issues[j]["status"] == "Not picked yet"
        assert tracker.calls_of("transition_issue") == []
