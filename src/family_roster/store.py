"""family_roster.store

The persistence contract the reconciliation core issues its operations
against. Two implementations ship with the package:

    HttpFamilyStore      (family_roster.api_client)  REST backend
    PostgresFamilyStore  (family_roster.pg_store)    direct PostgreSQL

Error contract shared by every implementation:
    create_account  → ConflictError(email, archived) on an email collision
                      AccountNotArchived for action='create_new' on a live account
    everything else → RemoteError for any non-success outcome
"""

from __future__ import annotations

from datetime import date
from typing import Any, Protocol

from family_roster.models import Account, ContactRecord, Enrollment, Family, Program

# Decision actions accepted by create_account(action=...)
ACTION_CREATE_NEW = "create_new"
ACTION_REVIVE = "revive"


class FamilyStore(Protocol):
    # -- accounts --------------------------------------------------------
    def create_account(self, contact: ContactRecord, action: str | None = None) -> int:
        """Create a login account; with action, resolve a prior email conflict."""
        ...

    def update_account(self, account_id: int, **fields: Any) -> None:
        """Update full_name / email / phone / username / password / address."""
        ...

    def get_account(self, account_id: int) -> Account:
        ...

    def search_accounts(self, query: str) -> list[Account]:
        ...

    # -- families --------------------------------------------------------
    def create_family(
        self,
        family_name: str | None,
        primary_account_id: int,
        guardian_ids: list[int],
    ) -> int:
        ...

    def update_family(
        self,
        family_id: int,
        family_name: str | None,
        primary_account_id: int | None,
        guardian_ids: list[int],
    ) -> None:
        ...

    def get_family(self, family_id: int) -> Family:
        ...

    def search_families(self, query: str) -> list[Family]:
        ...

    def archive_family(self, family_id: int, archived: bool) -> None:
        ...

    def delete_family(self, family_id: int) -> None:
        """Hard delete; cascades to the family's athletes."""
        ...

    # -- members ---------------------------------------------------------
    def create_member(
        self,
        family_id: int,
        first_name: str,
        last_name: str,
        date_of_birth: date | None,
        medical_notes: str | None = None,
        internal_flags: str | None = None,
        account_id: int | None = None,
    ) -> int:
        ...

    def update_member(self, member_id: int, **fields: Any) -> None:
        """Update first_name / last_name / date_of_birth / medical_notes /
        internal_flags / account_id."""
        ...

    # -- enrollments -----------------------------------------------------
    def list_enrollments(self, member_id: int) -> list[Enrollment]:
        ...

    def create_or_update_enrollment(
        self,
        program_id: int,
        member_id: int,
        days_per_week: int,
        selected_days: list[str],
    ) -> None:
        """Idempotent upsert keyed on (program_id, member_id)."""
        ...

    def delete_enrollment(self, enrollment_id: int) -> None:
        ...

    # -- catalog (read-only) ---------------------------------------------
    def list_programs(self, include_archived: bool = False) -> list[Program]:
        ...
