"""family_roster.shared

Shared pieces used by every workflow mode: the exception taxonomy,
SubmissionCounters, and report-writing support.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class RosterError(Exception):
    """Base class for every error raised by family_roster."""


class ValidationError(RosterError, ValueError):
    """Missing or malformed staged input, detected before any remote call."""

    def __init__(
        self,
        message: str,
        member_key: str | None = None,
        section: str | None = None,
    ) -> None:
        super().__init__(message)
        self.member_key = member_key
        self.section = section


class InvalidEnrollment(ValidationError):
    """Selected-day count does not match days-per-week (or a duplicate program)."""

    def __init__(
        self,
        message: str,
        program_id: int | None = None,
        program: str | None = None,
        days_per_week: int | None = None,
        selected_count: int | None = None,
        member_key: str | None = None,
    ) -> None:
        super().__init__(message, member_key=member_key, section="enrollment")
        self.program_id = program_id
        self.program = program
        self.days_per_week = days_per_week
        self.selected_count = selected_count


class InvalidDate(ValidationError):
    """A birth date that cannot be parsed."""


class ConflictError(RosterError):
    """Account creation collided with an existing account's email."""

    def __init__(
        self,
        email: str,
        archived: bool,
        existing_account_id: int | None = None,
        message: str | None = None,
    ) -> None:
        super().__init__(message or f"an account with email {email!r} already exists")
        self.email = email
        self.archived = archived
        self.existing_account_id = existing_account_id


class AccountNotArchived(RosterError):
    """A create_new decision was attempted against a live account."""

    def __init__(self, email: str) -> None:
        super().__init__(
            f"account {email!r} is active; only archived accounts can be detached"
        )
        self.email = email


class RemoteError(RosterError):
    """Non-2xx response or transport failure from the persistence service."""

    GENERIC_MESSAGE = "remote call failed"

    def __init__(self, status_code: int | None = None, message: str | None = None) -> None:
        super().__init__(message or self.GENERIC_MESSAGE)
        self.status_code = status_code
        self.server_message = message


class WorkflowStateError(RosterError):
    """A workflow operation was requested in a state that forbids it."""


# ---------------------------------------------------------------------------
# SubmissionCounters
# ---------------------------------------------------------------------------

@dataclass
class SubmissionCounters:
    members_read: int = 0
    accounts_created: int = 0
    accounts_reused: int = 0
    accounts_revived: int = 0
    accounts_detached: int = 0
    accounts_updated: int = 0
    families_created: int = 0
    families_updated: int = 0
    members_created: int = 0
    members_updated: int = 0
    enrollments_created: int = 0
    enrollments_updated: int = 0
    enrollments_deleted: int = 0
    enrollment_errors: int = 0
    conflicts: int = 0
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        d = {k: v for k, v in self.__dict__.items() if k != "warnings"}
        d["warnings"] = self.warnings[:50]
        return d


# ---------------------------------------------------------------------------
# Report writer
# ---------------------------------------------------------------------------

def build_submission_report(counters: SubmissionCounters, mode: str, dry_run: bool) -> str:
    lines = [
        "=== Family Roster Run Report ===",
        f"mode             : {mode}",
        f"dry_run          : {dry_run}",
        f"members_read     : {counters.members_read}",
        "",
        "--- Accounts ---",
        f"accounts_created : {counters.accounts_created}",
        f"accounts_reused  : {counters.accounts_reused}",
        f"accounts_revived : {counters.accounts_revived}",
        f"accounts_detached: {counters.accounts_detached}",
        f"accounts_updated : {counters.accounts_updated}",
        f"conflicts        : {counters.conflicts}",
        "",
        "--- Families / Members ---",
        f"families_created : {counters.families_created}",
        f"families_updated : {counters.families_updated}",
        f"members_created  : {counters.members_created}",
        f"members_updated  : {counters.members_updated}",
        "",
        "--- Enrollments ---",
        f"created          : {counters.enrollments_created}",
        f"updated          : {counters.enrollments_updated}",
        f"deleted          : {counters.enrollments_deleted}",
        f"errors           : {counters.enrollment_errors}",
    ]
    if counters.warnings:
        lines += ["", "--- Warnings (first 10) ---"]
        lines += [f"  {w}" for w in counters.warnings[:10]]
    return "\n".join(lines)


def write_run_report(
    run_id: str,
    started_at: str,
    mode: str,
    dry_run: bool,
    details: dict[str, Any],
    counters: SubmissionCounters,
    report_dir: Path = Path("./artifacts/reports"),
) -> Path:
    report = {
        "run_id": run_id,
        "mode": mode,
        "started_at": started_at,
        "finished_at": datetime.utcnow().isoformat(),
        "dry_run": dry_run,
        **details,
        "counters": counters.to_dict(),
    }
    report_path = report_dir / f"{run_id}.json"
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(json.dumps(report, indent=2, default=str))
    return report_path
