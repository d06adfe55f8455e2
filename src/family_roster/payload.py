"""family_roster.payload

Load a family payload file (YAML or JSON) and replay it onto a
FamilyWorkflow as the same section transitions a person editing the form
would perform.

Format:
    family_name: Smith Family          # create_family only, optional
    members:
      - contact:
          first_name: Ann
          last_name: Smith
          email: ann@example.com
          phone: "555-123-4567"
          address_street: 1 Main St
          address_city: Springfield
          address_state: IL
          address_zip: "62701"
        login: {username: annsm, password: s3cret}      # optional
        date_of_birth: "1985-02-03"
        medical_notes: null
        enrollments:
          - {program_id: 3, days_per_week: 2, selected_days: [Monday, Wednesday]}
      - key: member-2                  # edit an existing (hydrated) member
        enrollments: []                # replaces the member's enrollment list

Existing members can also be matched by account_id or athlete_id. Entries
that match nothing fill the workflow's blank members first, then new ones
are added.

Replay per member:
    contact      → (open) EditSection → Continue      (login opens next)
    login        → (open) EditSection → Minimize
    profile      → SetProfile
    enrollments  → RemoveEnrollment each current entry, then per entry
                   (open) SelectProgram → SetDaysPerWeek → ToggleDay... → Continue
    finally      → FinishedWithMember
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from family_roster.family_workflow import FamilyWorkflow
from family_roster.member_sections import (
    CONTACT_INFO,
    ENROLLMENT,
    LOGIN_SECURITY,
    ContactInfo,
    Continue,
    EditSection,
    FinishedWithMember,
    LoginSecurity,
    MemberDraft,
    Minimize,
    RemoveEnrollment,
    SelectProgram,
    SetDaysPerWeek,
    SetProfile,
    ToggleDay,
    ToggleSection,
)
from family_roster.models import account_id_of, athlete_id_of

CONTACT_KEYS = frozenset(ContactInfo.__dataclass_fields__)
LOGIN_KEYS = frozenset(LoginSecurity.__dataclass_fields__)
ENROLLMENT_KEYS = frozenset({"program_id", "program", "days_per_week", "selected_days"})
MEMBER_KEYS = frozenset({
    "key", "account_id", "athlete_id", "contact", "login",
    "date_of_birth", "medical_notes", "internal_flags", "enrollments",
})


class PayloadValidationError(ValueError):
    """Raised when a payload file does not match the expected layout."""


@dataclass
class MemberPayload:
    key: str | None = None
    account_id: int | None = None
    athlete_id: int | None = None
    contact: dict[str, Any] = field(default_factory=dict)
    login: dict[str, Any] = field(default_factory=dict)
    date_of_birth: str | None = None
    medical_notes: str | None = None
    internal_flags: str | None = None
    enrollments: list[dict[str, Any]] | None = None

    @property
    def targets_existing(self) -> bool:
        return any(v is not None for v in (self.key, self.account_id, self.athlete_id))


@dataclass
class FamilyPayload:
    members: list[MemberPayload]
    family_name: str | None = None
    source_path: Path | None = None


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def load_payload(path: Path) -> FamilyPayload:
    raw = path.read_text(encoding="utf-8")
    data = json.loads(raw) if path.suffix.lower() == ".json" else yaml.safe_load(raw)
    payload = parse_payload(data)
    payload.source_path = path
    return payload


def parse_payload(data: Any) -> FamilyPayload:
    if not isinstance(data, dict):
        raise PayloadValidationError("payload must be a mapping with a 'members' list")
    unknown = set(data) - {"family_name", "members"}
    if unknown:
        raise PayloadValidationError(f"unknown payload key(s): {sorted(unknown)}")
    members = data.get("members")
    if not isinstance(members, list):
        raise PayloadValidationError("'members' must be a list")
    return FamilyPayload(
        members=[_parse_member(i, m) for i, m in enumerate(members)],
        family_name=data.get("family_name"),
    )


def _parse_member(index: int, data: Any) -> MemberPayload:
    where = f"members[{index}]"
    if not isinstance(data, dict):
        raise PayloadValidationError(f"{where} must be a mapping")
    unknown = set(data) - MEMBER_KEYS
    if unknown:
        raise PayloadValidationError(f"{where}: unknown key(s) {sorted(unknown)}")
    for name, allowed in (("contact", CONTACT_KEYS), ("login", LOGIN_KEYS)):
        section = data.get(name) or {}
        if not isinstance(section, dict):
            raise PayloadValidationError(f"{where}.{name} must be a mapping")
        bad = set(section) - allowed
        if bad:
            raise PayloadValidationError(f"{where}.{name}: unknown key(s) {sorted(bad)}")
    enrollments = data.get("enrollments")
    if enrollments is not None:
        if not isinstance(enrollments, list):
            raise PayloadValidationError(f"{where}.enrollments must be a list")
        for j, e in enumerate(enrollments):
            if not isinstance(e, dict) or "program_id" not in e:
                raise PayloadValidationError(f"{where}.enrollments[{j}] needs a program_id")
            bad = set(e) - ENROLLMENT_KEYS
            if bad:
                raise PayloadValidationError(
                    f"{where}.enrollments[{j}]: unknown key(s) {sorted(bad)}"
                )

    def _text(value: Any) -> str | None:
        return None if value is None else str(value)

    return MemberPayload(
        key=data.get("key"),
        account_id=data.get("account_id"),
        athlete_id=data.get("athlete_id"),
        contact={k: "" if v is None else str(v) for k, v in (data.get("contact") or {}).items()},
        login={k: "" if v is None else str(v) for k, v in (data.get("login") or {}).items()},
        date_of_birth=_text(data.get("date_of_birth")),
        medical_notes=_text(data.get("medical_notes")),
        internal_flags=_text(data.get("internal_flags")),
        enrollments=enrollments,
    )


# ---------------------------------------------------------------------------
# Replay
# ---------------------------------------------------------------------------

def apply_payload(
    workflow: FamilyWorkflow,
    payload: FamilyPayload,
    programs: dict[int, str] | None = None,
) -> list[str]:
    """Replay the payload onto the workflow; return the touched member keys.

    programs maps program id → display name. When given, unknown program ids
    are rejected and display names are filled in.
    """
    if payload.family_name:
        workflow.family_name = payload.family_name
    blanks = [d.key for d in workflow.drafts if d.link is None and not d.is_finished]
    keys: list[str] = []
    for index, member in enumerate(payload.members):
        if member.targets_existing:
            key = _match_existing(workflow, member, index)
        elif blanks:
            key = blanks.pop(0)
        else:
            key = workflow.add_member()
        _replay_member(workflow, key, member, programs)
        keys.append(key)
    return keys


def _match_existing(workflow: FamilyWorkflow, member: MemberPayload, index: int) -> str:
    for draft in workflow.drafts:
        if member.key is not None and draft.key == member.key:
            return draft.key
        if member.account_id is not None and account_id_of(draft.link) == member.account_id:
            return draft.key
        if member.athlete_id is not None and athlete_id_of(draft.link) == member.athlete_id:
            return draft.key
    raise PayloadValidationError(f"members[{index}] does not match any member of the family")


def _open(workflow: FamilyWorkflow, key: str, section: str) -> MemberDraft:
    draft = workflow.draft(key)
    if not draft.section(section).is_expanded:
        draft = workflow.dispatch(key, ToggleSection(section))
    return draft


def _replay_member(
    workflow: FamilyWorkflow,
    key: str,
    member: MemberPayload,
    programs: dict[int, str] | None,
) -> None:
    if member.contact:
        _open(workflow, key, CONTACT_INFO)
        workflow.dispatch(key, EditSection(CONTACT_INFO, member.contact))
        workflow.dispatch(key, Continue(CONTACT_INFO))

    if member.login:
        _open(workflow, key, LOGIN_SECURITY)
        workflow.dispatch(key, EditSection(LOGIN_SECURITY, member.login))
    if workflow.draft(key).section(LOGIN_SECURITY).is_expanded:
        workflow.dispatch(key, Minimize(LOGIN_SECURITY))

    workflow.dispatch(key, SetProfile(
        date_of_birth=member.date_of_birth,
        medical_notes=member.medical_notes,
        internal_flags=member.internal_flags,
    ))

    if member.enrollments is not None:
        for existing in workflow.draft(key).enrollments:
            workflow.dispatch(key, RemoveEnrollment(existing.id))  # type: ignore[arg-type]
        for entry in member.enrollments:
            program_id = entry["program_id"]
            if program_id is not None:
                program_id = int(program_id)
            if programs is not None and program_id is not None and program_id not in programs:
                raise PayloadValidationError(f"{key}: unknown program_id {program_id}")
            name = entry.get("program") or (programs or {}).get(program_id)  # type: ignore[arg-type]
            _open(workflow, key, ENROLLMENT)
            workflow.dispatch(key, SelectProgram(program_id, name))
            workflow.dispatch(key, SetDaysPerWeek(int(entry.get("days_per_week", 1))))
            for day in entry.get("selected_days") or []:
                workflow.dispatch(key, ToggleDay(str(day)))
            workflow.dispatch(key, Continue(ENROLLMENT))

    workflow.dispatch(key, FinishedWithMember())
