"""Unit tests for family_roster.enrollment_reconciler."""

from __future__ import annotations

import pytest

from family_roster.enrollment_reconciler import (
    OP_CREATE,
    OP_DELETE,
    OP_UPDATE,
    plan_enrollment_sync,
    plan_full_replace,
    sync_enrollments,
    validate_enrollment,
    validate_enrollments,
)
from family_roster.models import Enrollment, EnrollmentDraft
from family_roster.shared import InvalidEnrollment, RemoteError, SubmissionCounters


def _stored(eid: int, program_id: int, days: list[str]) -> Enrollment:
    return Enrollment(eid, program_id, len(days), days)


def _draft(program_id: int | None, days: tuple[str, ...] = ("Monday",), per_week: int | None = None) -> EnrollmentDraft:
    return EnrollmentDraft(
        program_id=program_id,
        days_per_week=len(days) if per_week is None else per_week,
        selected_days=days,
    )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class TestValidateEnrollment:
    def test_matching_count_passes(self):
        validate_enrollment(_draft(1, ("Monday", "Wednesday")))

    def test_count_mismatch_rejected(self):
        with pytest.raises(InvalidEnrollment) as exc_info:
            validate_enrollment(
                EnrollmentDraft(5, 3, ("Mon", "Tue"), program="Ninja Zone"),
                member_key="member-1",
            )
        err = exc_info.value
        assert err.program_id == 5
        assert err.days_per_week == 3
        assert err.selected_count == 2
        assert err.member_key == "member-1"
        assert "Ninja Zone" in str(err)
        assert "3" in str(err)

    def test_duplicate_days_rejected(self):
        with pytest.raises(InvalidEnrollment):
            validate_enrollment(_draft(1, ("Monday", "Monday")))

    def test_days_per_week_out_of_range(self):
        with pytest.raises(InvalidEnrollment):
            validate_enrollment(EnrollmentDraft(1, 0, ()))
        with pytest.raises(InvalidEnrollment):
            validate_enrollment(EnrollmentDraft(1, 8, tuple(f"d{i}" for i in range(8))))

    def test_placeholder_is_ignored(self):
        validate_enrollment(EnrollmentDraft(None, 3, ()))

    def test_duplicate_program_rejected(self):
        with pytest.raises(InvalidEnrollment):
            validate_enrollments([_draft(1), _draft(1, ("Tuesday",))])


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------

class TestPlanEnrollmentSync:
    def test_diff_existing_123_desired_24(self):
        existing = [_stored(11, 1, ["Monday"]), _stored(12, 2, ["Monday"]), _stored(13, 3, ["Friday"])]
        desired = [_draft(2, ("Tuesday", "Thursday")), _draft(4, ("Saturday",))]

        ops = plan_enrollment_sync(existing, desired)

        assert [(op.action, op.program_id) for op in ops] == [
            (OP_DELETE, 1), (OP_DELETE, 3), (OP_UPDATE, 2), (OP_CREATE, 4),
        ]
        assert [op.enrollment_id for op in ops if op.action == OP_DELETE] == [11, 13]
        update = ops[2]
        assert update.days_per_week == 2
        assert update.selected_days == ("Tuesday", "Thursday")

    def test_deletes_precede_everything_else(self):
        existing = [_stored(11, 1, ["Monday"])]
        desired = [_draft(2), _draft(3)]
        actions = [op.action for op in plan_enrollment_sync(existing, desired)]
        assert actions == [OP_DELETE, OP_CREATE, OP_CREATE]

    def test_placeholders_skipped(self):
        ops = plan_enrollment_sync([], [_draft(None), _draft(4)])
        assert [(op.action, op.program_id) for op in ops] == [(OP_CREATE, 4)]

    def test_empty_desired_deletes_all(self):
        ops = plan_enrollment_sync([_stored(11, 1, ["Monday"])], [])
        assert [op.action for op in ops] == [OP_DELETE]

    def test_invalid_desired_raises_before_planning(self):
        with pytest.raises(InvalidEnrollment):
            plan_enrollment_sync([], [EnrollmentDraft(3, 3, ("Mon", "Tue"))])


class TestPlanFullReplace:
    def test_deletes_all_then_creates(self):
        existing = [_stored(11, 1, ["Monday"]), _stored(12, 2, ["Monday"])]
        ops = plan_full_replace(existing, [_draft(2), _draft(None)])
        assert [(op.action, op.program_id) for op in ops] == [
            (OP_DELETE, 1), (OP_DELETE, 2), (OP_CREATE, 2),
        ]


# ---------------------------------------------------------------------------
# Applying
# ---------------------------------------------------------------------------

class TestSyncEnrollments:
    def test_day_count_mismatch_makes_no_remote_call(self, store):
        with pytest.raises(InvalidEnrollment):
            sync_enrollments(store, 7, [EnrollmentDraft(3, 3, ("Mon", "Tue"))])
        assert store.calls == []

    def test_applies_diff(self, store):
        keep = store.add_enrollment(7, 2, ["Monday"])
        drop = store.add_enrollment(7, 1, ["Monday"])
        counters = SubmissionCounters()

        result = sync_enrollments(
            store, 7, [_draft(2, ("Tuesday", "Thursday")), _draft(4)], counters,
        )

        assert result.ok
        assert drop not in store.enrollments
        assert store.enrollments[keep]["selected_days"] == ["Tuesday", "Thursday"]
        assert counters.enrollments_deleted == 1
        assert counters.enrollments_updated == 1
        assert counters.enrollments_created == 1

    def test_failure_does_not_stop_remaining_ops(self, store):
        store.fail_enrollment[(2, 7)] = RemoteError(500, "boom")
        counters = SubmissionCounters()

        result = sync_enrollments(store, 7, [_draft(2), _draft(3)], counters)

        assert not result.ok
        assert len(result.failures) == 1
        op, exc = result.failures[0]
        assert op.program_id == 2
        assert str(exc) == "boom"
        assert [op.program_id for op in result.applied] == [3]
        assert counters.enrollment_errors == 1
        assert len(counters.warnings) == 1

    def test_replace_strategy_recreates(self, store):
        store.add_enrollment(7, 2, ["Monday"])
        sync_enrollments(store, 7, [_draft(2)], strategy="replace")
        assert len(store.called("delete_enrollment")) == 1
        assert len(store.called("create_or_update_enrollment")) == 1
