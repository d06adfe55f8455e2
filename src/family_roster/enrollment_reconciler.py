"""family_roster.enrollment_reconciler

Diff a member's desired enrollments against what is stored and sync them.

Planning is pure:
  1. Validate every desired entry with a program: len(selected_days) must
     equal days_per_week (1..7), no duplicate days, no duplicate programs.
     Any failure raises InvalidEnrollment before a single remote call.
  2. Stored entries whose program is no longer desired → delete.
  3. Desired entries whose program is already stored → update, else create.
  4. Desired placeholders (program_id None) are skipped.

Deletes come first so the (program_id, member_id) uniqueness constraint is
free before anything is re-added.

Applying is not all-or-nothing: each operation is attempted independently
and RemoteErrors are collected into the SyncResult. A failed read of the
stored enrollments is collected the same way (as a "list" op) and nothing
is written for that member.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from family_roster.models import Enrollment, EnrollmentDraft
from family_roster.shared import InvalidEnrollment, RemoteError, SubmissionCounters
from family_roster.store import FamilyStore

log = logging.getLogger(__name__)

OP_DELETE = "delete"
OP_UPDATE = "update"
OP_CREATE = "create"
OP_LIST = "list"

MAX_DAYS_PER_WEEK = 7


@dataclass(frozen=True)
class EnrollmentOp:
    action: str
    program_id: int | None
    enrollment_id: int | None = None
    days_per_week: int | None = None
    selected_days: tuple[str, ...] = ()


@dataclass
class SyncResult:
    member_id: int
    applied: list[EnrollmentOp] = field(default_factory=list)
    failures: list[tuple[EnrollmentOp, RemoteError]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_enrollment(draft: EnrollmentDraft, member_key: str | None = None) -> None:
    """Raise InvalidEnrollment unless the draft's day selection is consistent."""
    if draft.program_id is None:
        return
    label = draft.program or f"program {draft.program_id}"
    if not 1 <= draft.days_per_week <= MAX_DAYS_PER_WEEK:
        raise InvalidEnrollment(
            f"{label}: days per week must be between 1 and {MAX_DAYS_PER_WEEK}, "
            f"got {draft.days_per_week}",
            program_id=draft.program_id,
            program=draft.program,
            days_per_week=draft.days_per_week,
            selected_count=len(draft.selected_days),
            member_key=member_key,
        )
    if len(set(draft.selected_days)) != len(draft.selected_days):
        raise InvalidEnrollment(
            f"{label}: the same day is selected more than once",
            program_id=draft.program_id,
            program=draft.program,
            days_per_week=draft.days_per_week,
            selected_count=len(draft.selected_days),
            member_key=member_key,
        )
    if len(draft.selected_days) != draft.days_per_week:
        raise InvalidEnrollment(
            f"{label}: please select exactly {draft.days_per_week} day(s), "
            f"got {len(draft.selected_days)}",
            program_id=draft.program_id,
            program=draft.program,
            days_per_week=draft.days_per_week,
            selected_count=len(draft.selected_days),
            member_key=member_key,
        )


def validate_enrollments(
    desired: Iterable[EnrollmentDraft],
    member_key: str | None = None,
) -> None:
    seen: set[int] = set()
    for draft in desired:
        validate_enrollment(draft, member_key)
        if draft.program_id is None:
            continue
        if draft.program_id in seen:
            raise InvalidEnrollment(
                f"{draft.program or f'program {draft.program_id}'}: "
                "a member can hold only one enrollment per program",
                program_id=draft.program_id,
                program=draft.program,
                days_per_week=draft.days_per_week,
                selected_count=len(draft.selected_days),
                member_key=member_key,
            )
        seen.add(draft.program_id)


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------

def plan_enrollment_sync(
    existing: Sequence[Enrollment],
    desired: Sequence[EnrollmentDraft],
    member_key: str | None = None,
) -> list[EnrollmentOp]:
    """Return the ordered delete/update/create operations (deletes first)."""
    validate_enrollments(desired, member_key)

    desired_programs = {d.program_id for d in desired if d.program_id is not None}
    stored_programs = {e.program_id for e in existing}

    ops: list[EnrollmentOp] = [
        EnrollmentOp(OP_DELETE, program_id=e.program_id, enrollment_id=e.id)
        for e in existing
        if e.program_id not in desired_programs
    ]
    for d in desired:
        if d.program_id is None:
            continue
        ops.append(EnrollmentOp(
            OP_UPDATE if d.program_id in stored_programs else OP_CREATE,
            program_id=d.program_id,
            days_per_week=d.days_per_week,
            selected_days=tuple(d.selected_days),
        ))
    return ops


def plan_full_replace(
    existing: Sequence[Enrollment],
    desired: Sequence[EnrollmentDraft],
    member_key: str | None = None,
) -> list[EnrollmentOp]:
    """Delete every stored enrollment, then create every desired one."""
    validate_enrollments(desired, member_key)
    ops = [
        EnrollmentOp(OP_DELETE, program_id=e.program_id, enrollment_id=e.id)
        for e in existing
    ]
    ops += [
        EnrollmentOp(
            OP_CREATE,
            program_id=d.program_id,
            days_per_week=d.days_per_week,
            selected_days=tuple(d.selected_days),
        )
        for d in desired
        if d.program_id is not None
    ]
    return ops


# ---------------------------------------------------------------------------
# Applying
# ---------------------------------------------------------------------------

def apply_enrollment_ops(
    store: FamilyStore,
    member_id: int,
    ops: Sequence[EnrollmentOp],
    counters: SubmissionCounters | None = None,
) -> SyncResult:
    result = SyncResult(member_id=member_id)
    for op in ops:
        try:
            if op.action == OP_DELETE:
                store.delete_enrollment(op.enrollment_id)  # type: ignore[arg-type]
            else:
                store.create_or_update_enrollment(
                    op.program_id, member_id, op.days_per_week,  # type: ignore[arg-type]
                    list(op.selected_days),
                )
        except RemoteError as exc:
            result.failures.append((op, exc))
            msg = (
                f"enrollment {op.action} failed member_id={member_id} "
                f"program_id={op.program_id}: {exc}"
            )
            log.warning(msg)
            if counters is not None:
                counters.enrollment_errors += 1
                counters.warnings.append(msg)
            continue
        result.applied.append(op)
        if counters is not None:
            if op.action == OP_DELETE:
                counters.enrollments_deleted += 1
            elif op.action == OP_UPDATE:
                counters.enrollments_updated += 1
            else:
                counters.enrollments_created += 1
    return result


def sync_enrollments(
    store: FamilyStore,
    member_id: int,
    desired: Sequence[EnrollmentDraft],
    counters: SubmissionCounters | None = None,
    strategy: str = "diff",
    member_key: str | None = None,
    existing: Sequence[Enrollment] | None = None,
) -> SyncResult:
    """Validate, read stored enrollments, plan and apply.

    strategy='replace' deletes everything stored and recreates the desired
    list instead of diffing. Pass existing=[] for a member created in this
    run to skip the read.
    """
    validate_enrollments(desired, member_key)
    if existing is None:
        try:
            existing = store.list_enrollments(member_id)
        except RemoteError as exc:
            msg = f"enrollment list failed member_id={member_id}: {exc}"
            log.warning(msg)
            if counters is not None:
                counters.enrollment_errors += 1
                counters.warnings.append(msg)
            result = SyncResult(member_id=member_id)
            result.failures.append((EnrollmentOp(OP_LIST, None), exc))
            return result
    if strategy == "replace":
        ops = plan_full_replace(existing, desired, member_key)
    else:
        ops = plan_enrollment_sync(existing, desired, member_key)
    return apply_enrollment_ops(store, member_id, ops, counters)
