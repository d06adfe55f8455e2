"""Unit test fixtures.

FakeFamilyStore is an in-memory FamilyStore that records every call as
(method_name, args) in ``calls`` so tests can assert on the exact remote
traffic a workflow produced. Conflicts and failures are configured per
email / per operation.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

import pytest

from family_roster.models import (
    Account,
    Athlete,
    ContactRecord,
    Enrollment,
    Family,
    Guardian,
    Program,
)
from family_roster.shared import AccountNotArchived, ConflictError, RemoteError
from family_roster.store import ACTION_CREATE_NEW


class FakeFamilyStore:
    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.accounts: dict[int, Account] = {}
        self.families: dict[int, Family] = {}
        self.athletes: dict[int, Athlete] = {}
        self.enrollments: dict[int, dict[str, Any]] = {}
        self.programs: dict[int, Program] = {
            1: Program(1, "gymnastics", "Tumbling"),
            2: Program(2, "gymnastics", "Artistic"),
            3: Program(3, "ninja", "Ninja Zone"),
            4: Program(4, "cheer", "Cheer Prep"),
        }
        # method name -> exception raised on every call
        self.fail_on: dict[str, Exception] = {}
        # (program_id, member_id) -> exception raised on that upsert
        self.fail_enrollment: dict[tuple[int, int], Exception] = {}
        self._ids = 100

    def _next_id(self) -> int:
        self._ids += 1
        return self._ids

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if name in self.fail_on:
            raise self.fail_on[name]

    def called(self, name: str) -> list[tuple[Any, ...]]:
        return [args for n, args in self.calls if n == name]

    # -- seeding helpers -------------------------------------------------

    def add_account(self, email: str, archived: bool = False, **kwargs: Any) -> Account:
        account = Account(
            id=self._next_id(),
            full_name=kwargs.pop("full_name", "Existing Person"),
            email=email,
            archived=archived,
            **kwargs,
        )
        self.accounts[account.id] = account
        return account

    def add_family(self, family_name: str, guardians: list[Account]) -> Family:
        family = Family(
            id=self._next_id(),
            family_name=family_name,
            primary_user_id=guardians[0].id if guardians else None,
            guardians=[
                Guardian(a.id, a.full_name, a.email, a.phone, i == 0)
                for i, a in enumerate(guardians)
            ],
        )
        self.families[family.id] = family
        return family

    def add_athlete(self, family: Family, first: str, last: str, dob: Any, user_id: int | None = None) -> Athlete:
        athlete = Athlete(self._next_id(), family.id, first, last, dob, user_id=user_id)
        self.athletes[athlete.id] = athlete
        family.athletes.append(athlete)
        return athlete

    def add_enrollment(self, member_id: int, program_id: int, days: list[str]) -> int:
        eid = self._next_id()
        self.enrollments[eid] = {
            "member_id": member_id, "program_id": program_id,
            "days_per_week": len(days), "selected_days": list(days),
        }
        return eid

    # -- accounts --------------------------------------------------------

    def create_account(self, contact: ContactRecord, action: str | None = None) -> int:
        self._record("create_account", contact, action)
        existing = next(
            (a for a in self.accounts.values() if a.email.lower() == contact.email.lower()), None
        )
        if existing is not None:
            if action is None:
                raise ConflictError(contact.email, existing.archived, existing.id)
            if action == ACTION_CREATE_NEW and not existing.archived:
                raise AccountNotArchived(contact.email)
            self.accounts[existing.id] = replace(
                existing, full_name=contact.full_name, username=contact.username,
                phone=contact.phone, archived=False,
            )
            return existing.id
        account = Account(
            id=self._next_id(), full_name=contact.full_name, email=contact.email,
            phone=contact.phone, username=contact.username, address=contact.address or "",
            role=contact.role,
        )
        self.accounts[account.id] = account
        return account.id

    def update_account(self, account_id: int, **fields: Any) -> None:
        self._record("update_account", account_id, dict(fields))
        fields.pop("password", None)
        self.accounts[account_id] = replace(self.accounts[account_id], **fields)

    def get_account(self, account_id: int) -> Account:
        self._record("get_account", account_id)
        return self.accounts[account_id]

    def search_accounts(self, query: str) -> list[Account]:
        self._record("search_accounts", query)
        q = query.lower()
        return [a for a in self.accounts.values() if q in (a.username or "").lower()]

    # -- families --------------------------------------------------------

    def create_family(self, family_name, primary_account_id, guardian_ids) -> int:
        self._record("create_family", family_name, primary_account_id, list(guardian_ids))
        family = Family(
            id=self._next_id(), family_name=family_name, primary_user_id=primary_account_id,
            guardians=[
                Guardian(gid, self.accounts[gid].full_name) for gid in guardian_ids
            ],
        )
        self.families[family.id] = family
        return family.id

    def update_family(self, family_id, family_name, primary_account_id, guardian_ids) -> None:
        self._record("update_family", family_id, family_name, primary_account_id, list(guardian_ids))
        family = self.families[family_id]
        family.family_name = family_name
        family.primary_user_id = primary_account_id
        family.guardians = [Guardian(gid, self.accounts[gid].full_name) for gid in guardian_ids]

    def get_family(self, family_id: int) -> Family:
        self._record("get_family", family_id)
        return self.families[family_id]

    def search_families(self, query: str) -> list[Family]:
        self._record("search_families", query)
        return [f for f in self.families.values() if query.lower() in (f.family_name or "").lower()]

    def archive_family(self, family_id: int, archived: bool) -> None:
        self._record("archive_family", family_id, archived)
        self.families[family_id].archived = archived

    def delete_family(self, family_id: int) -> None:
        self._record("delete_family", family_id)
        del self.families[family_id]

    # -- members ---------------------------------------------------------

    def create_member(self, family_id, first_name, last_name, date_of_birth,
                      medical_notes=None, internal_flags=None, account_id=None) -> int:
        self._record(
            "create_member", family_id, first_name, last_name, date_of_birth,
            medical_notes, internal_flags, account_id,
        )
        athlete = Athlete(
            self._next_id(), family_id, first_name, last_name, date_of_birth,
            medical_notes, internal_flags, account_id,
        )
        self.athletes[athlete.id] = athlete
        return athlete.id

    def update_member(self, member_id: int, **fields: Any) -> None:
        self._record("update_member", member_id, dict(fields))
        if "account_id" in fields:
            fields["user_id"] = fields.pop("account_id")
        for key, value in fields.items():
            setattr(self.athletes[member_id], key, value)

    # -- enrollments -----------------------------------------------------

    def list_enrollments(self, member_id: int) -> list[Enrollment]:
        self._record("list_enrollments", member_id)
        return [
            Enrollment(
                eid, e["program_id"], e["days_per_week"], list(e["selected_days"]),
                self.programs[e["program_id"]].display_name,
            )
            for eid, e in sorted(self.enrollments.items())
            if e["member_id"] == member_id
        ]

    def create_or_update_enrollment(self, program_id, member_id, days_per_week, selected_days) -> None:
        self._record("create_or_update_enrollment", program_id, member_id, days_per_week, list(selected_days))
        if (program_id, member_id) in self.fail_enrollment:
            raise self.fail_enrollment[(program_id, member_id)]
        for e in self.enrollments.values():
            if e["member_id"] == member_id and e["program_id"] == program_id:
                e["days_per_week"] = days_per_week
                e["selected_days"] = list(selected_days)
                return
        self.add_enrollment(member_id, program_id, list(selected_days))

    def delete_enrollment(self, enrollment_id: int) -> None:
        self._record("delete_enrollment", enrollment_id)
        if enrollment_id not in self.enrollments:
            raise RemoteError(404, f"enrollment {enrollment_id} not found")
        del self.enrollments[enrollment_id]

    # -- catalog ---------------------------------------------------------

    def list_programs(self, include_archived: bool = False) -> list[Program]:
        self._record("list_programs", include_archived)
        return [p for p in self.programs.values() if include_archived or not p.archived]


@pytest.fixture
def store() -> FakeFamilyStore:
    return FakeFamilyStore()
