"""Tests for operations module - operation tracker and its state machine."""

import pytest

from intake.exceptions import OperationTransitionError
from intake.operations import (
    VALID_TRANSITIONS,
    OperationStatus,
    OperationTracker,
    OperationType,
    clamp_progress,
)
from intake.tracking import aggregate_progress


@pytest.fixture
def tracker(date_clock):
    return OperationTracker(clock=date_clock)


class TestTransitions:
    """Tests for the status transition table."""

    def test_all_statuses_have_transitions(self):
        for status in OperationStatus:
            assert status in VALID_TRANSITIONS

    def test_terminal_statuses(self):
        assert VALID_TRANSITIONS[OperationStatus.COMPLETED] == set()
        assert VALID_TRANSITIONS[OperationStatus.FAILED] == set()

    def test_pending_only_starts(self):
        assert VALID_TRANSITIONS[OperationStatus.PENDING] == {OperationStatus.RUNNING}


class TestStartOperation:
    def test_creates_running_operation(self, tracker, date_clock):
        op_id = tracker.start_operation(
            OperationType.FILE_UPLOAD, "Upload", "Two files", estimated_duration=2000
        )
        op = tracker.get_operation(op_id)
        assert op.status == OperationStatus.RUNNING
        assert op.progress == 0
        assert op.start_time == date_clock.now
        assert op.end_time is None
        assert op.description == "Two files"
        assert op.estimated_duration == 2000
        assert op.sub_operations == ()

    def test_accepts_string_type(self, tracker):
        op_id = tracker.start_operation("git_clone", "Clone")
        assert tracker.get_operation(op_id).type == OperationType.GIT_CLONE

    def test_ids_are_unique(self, tracker):
        ids = {tracker.start_operation("general", f"op {i}") for i in range(200)}
        assert len(ids) == 200

    def test_unknown_type_rejected(self, tracker):
        with pytest.raises(ValueError):
            tracker.start_operation("teleport", "Nope")


class TestProgress:
    @pytest.mark.parametrize(
        "value,expected",
        [(-20, 0), (0, 0), (42.5, 42.5), (100, 100), (250, 100)],
    )
    def test_progress_is_clamped(self, tracker, value, expected):
        op_id = tracker.start_operation("general", "Work")
        tracker.update_progress(op_id, value)
        assert tracker.get_operation(op_id).progress == expected
        assert clamp_progress(value) == expected

    def test_unknown_id_is_noop(self, tracker):
        tracker.update_progress("missing", 50)
        assert tracker.operations == ()

    def test_late_update_after_removal(self, tracker):
        op_id = tracker.start_operation("general", "Work")
        tracker.remove_operation(op_id)
        tracker.update_progress(op_id, 70)
        assert tracker.get_operation(op_id) is None

    def test_update_replaces_instead_of_mutating(self, tracker):
        op_id = tracker.start_operation("general", "Work")
        before = tracker.get_operation(op_id)
        tracker.update_progress(op_id, 30)
        after = tracker.get_operation(op_id)
        assert before.progress == 0
        assert after.progress == 30
        assert before is not after

    def test_unchanged_operations_keep_identity(self, tracker):
        a = tracker.start_operation("general", "A")
        b = tracker.start_operation("general", "B")
        first = tracker.operations
        tracker.update_progress(b, 10)
        second = tracker.operations
        assert first[0] is second[0]
        assert first[1] is not second[1]
        assert [op.id for op in second] == [a, b]


class TestCompleteAndFail:
    def test_complete_sets_progress_and_end_time(self, tracker, date_clock):
        op_id = tracker.start_operation("general", "Work")
        date_clock.advance(seconds=2)
        tracker.complete_operation(op_id)
        op = tracker.get_operation(op_id)
        assert op.status == OperationStatus.COMPLETED
        assert op.progress == 100
        assert op.end_time == date_clock.now
        assert op.duration_ms == 2000

    def test_complete_is_idempotent(self, tracker, date_clock):
        op_id = tracker.start_operation("general", "Work")
        tracker.complete_operation(op_id)
        once = tracker.get_operation(op_id)
        date_clock.advance(seconds=5)
        tracker.complete_operation(op_id)
        assert tracker.get_operation(op_id) == once

    def test_fail_keeps_progress(self, tracker):
        op_id = tracker.start_operation("general", "Work")
        tracker.update_progress(op_id, 60)
        tracker.fail_operation(op_id, "disk gone")
        op = tracker.get_operation(op_id)
        assert op.status == OperationStatus.FAILED
        assert op.progress == 60
        assert op.error == "disk gone"
        assert op.end_time is not None

    def test_terminal_operation_is_immutable(self, tracker):
        op_id = tracker.start_operation("general", "Work")
        tracker.update_progress(op_id, 40)
        tracker.fail_operation(op_id)
        frozen = tracker.get_operation(op_id)

        tracker.update_progress(op_id, 90)
        tracker.complete_operation(op_id)
        tracker.update_operation(op_id, title="Renamed")
        tracker.add_sub_operation(op_id, "late")

        assert tracker.get_operation(op_id) == frozen

    def test_fail_after_complete_ignored(self, tracker):
        op_id = tracker.start_operation("general", "Work")
        tracker.complete_operation(op_id)
        tracker.fail_operation(op_id)
        assert tracker.get_operation(op_id).status == OperationStatus.COMPLETED


class TestUpdateOperation:
    def test_partial_update(self, tracker):
        op_id = tracker.start_operation("general", "Work")
        tracker.update_operation(op_id, title="Renamed", progress=150)
        op = tracker.get_operation(op_id)
        assert op.title == "Renamed"
        assert op.progress == 100

    def test_invalid_status_transition_ignored(self, tracker):
        op_id = tracker.start_operation("general", "Work")
        tracker.update_operation(op_id, status="pending")
        assert tracker.get_operation(op_id).status == OperationStatus.RUNNING

    def test_status_to_completed_sets_end(self, tracker):
        op_id = tracker.start_operation("general", "Work")
        tracker.update_operation(op_id, status=OperationStatus.COMPLETED)
        op = tracker.get_operation(op_id)
        assert op.status == OperationStatus.COMPLETED
        assert op.progress == 100
        assert op.end_time is not None

    def test_unknown_field_rejected(self, tracker):
        op_id = tracker.start_operation("general", "Work")
        with pytest.raises(TypeError):
            tracker.update_operation(op_id, colour="blue")

    def test_transition_to(self, tracker):
        op_id = tracker.start_operation("general", "Work")
        assert tracker.transition_to(op_id, OperationStatus.COMPLETED)
        assert not tracker.transition_to(op_id, OperationStatus.RUNNING)
        assert not tracker.transition_to("missing", OperationStatus.FAILED)

    def test_require_transition_raises(self, tracker):
        op_id = tracker.start_operation("general", "Work")
        tracker.fail_operation(op_id)
        with pytest.raises(OperationTransitionError) as exc_info:
            tracker.require_transition(op_id, OperationStatus.COMPLETED)
        assert exc_info.value.from_state == "failed"
        assert exc_info.value.to_state == "completed"


class TestSubOperations:
    def test_add_and_update(self, tracker):
        op_id = tracker.start_operation("file_upload", "Upload")
        sub_id = tracker.add_sub_operation(op_id, "Processing a.py")
        sub = tracker.get_operation(op_id).get_sub_operation(sub_id)
        assert sub.status == OperationStatus.PENDING
        assert sub.progress == 0

        tracker.update_sub_operation(op_id, sub_id, status="running", progress=120)
        sub = tracker.get_operation(op_id).get_sub_operation(sub_id)
        assert sub.status == OperationStatus.RUNNING
        assert sub.progress == 100

    def test_sub_operations_keep_order(self, tracker):
        op_id = tracker.start_operation("file_upload", "Upload")
        ids = [tracker.add_sub_operation(op_id, f"step {i}") for i in range(3)]
        assert [s.id for s in tracker.get_operation(op_id).sub_operations] == ids

    def test_missing_parent_dropped(self, tracker):
        sub_id = tracker.add_sub_operation("missing", "orphan")
        assert sub_id
        tracker.update_sub_operation("missing", sub_id, progress=50)
        assert tracker.operations == ()

    def test_unknown_sub_id_dropped(self, tracker):
        op_id = tracker.start_operation("general", "Work")
        before = tracker.get_operation(op_id)
        tracker.update_sub_operation(op_id, "missing", progress=50)
        assert tracker.get_operation(op_id) is before

    def test_removed_with_parent(self, tracker):
        op_id = tracker.start_operation("general", "Work")
        tracker.add_sub_operation(op_id, "child")
        tracker.remove_operation(op_id)
        assert tracker.get_operation(op_id) is None


class TestQueries:
    def test_is_loading(self, tracker):
        assert not tracker.is_loading()
        op_id = tracker.start_operation("ai_analysis", "Analyze")
        assert tracker.is_loading()
        assert tracker.is_loading("ai_analysis")
        assert not tracker.is_loading(OperationType.GIT_CLONE)
        tracker.complete_operation(op_id)
        assert not tracker.is_loading()

    def test_global_loading_flag(self, tracker):
        tracker.set_global_loading(True)
        assert tracker.is_loading(OperationType.GIT_CLONE)
        tracker.set_global_loading(False)
        assert not tracker.is_loading()

    def test_active_operations_in_insertion_order(self, tracker):
        a = tracker.start_operation("general", "A")
        b = tracker.start_operation("general", "B")
        c = tracker.start_operation("general", "C")
        tracker.complete_operation(b)
        assert [op.id for op in tracker.get_active_operations()] == [a, c]

    def test_clear_operations(self, tracker):
        tracker.start_operation("general", "A")
        tracker.clear_operations()
        assert tracker.operations == ()

    def test_listener_receives_snapshots(self, tracker):
        seen = []
        tracker.add_listener(seen.append)
        op_id = tracker.start_operation("general", "A")
        tracker.update_progress(op_id, 10)
        tracker.remove_listener(seen.append)
        tracker.update_progress(op_id, 20)
        assert len(seen) == 2
        assert seen[-1][0].progress == 10


class TestCompositeProgress:
    """Composite progress is computed by the caller and fed in."""

    def test_three_file_upload(self, tracker):
        op_id = tracker.start_operation(OperationType.FILE_UPLOAD, "Upload 3 files")
        subs = [tracker.add_sub_operation(op_id, f"file {i}") for i in range(3)]
        for sub_id, value in zip(subs, (100, 50, 0)):
            tracker.update_sub_operation(op_id, sub_id, progress=value)

        overall = aggregate_progress(index=1, progress=50, count=3)
        tracker.update_progress(op_id, overall)

        op = tracker.get_operation(op_id)
        assert sum(s.progress for s in op.sub_operations) / 3 == pytest.approx(50)
        assert op.progress == pytest.approx(50)


class TestOperationLog:
    def test_lifecycle_written_as_jsonl(self, tracker, isolated_logs):
        import json

        op_id = tracker.start_operation("general", "Logged")
        tracker.fail_operation(op_id, "boom")

        lines = isolated_logs.operation_log_path.read_text().splitlines()
        events = [json.loads(line) for line in lines]
        assert [e["event_type"] for e in events] == ["start", "fail"]
        assert events[1]["error"] == "boom"
        assert events[1]["operation_id"] == op_id
