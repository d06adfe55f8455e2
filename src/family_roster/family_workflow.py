"""family_roster.family_workflow

Multi-member family submission: owns the session's member drafts and turns
them into accounts, a family, member rows and enrollments.

Modes (one FamilyWorkflow per editing session):
    create_family   create_new_family()      new family + every member
    add_members     add_to_existing_family() new members for a known family
    edit_member     edit_existing_member()   one guardian's account plus the
                                             family's members, hydrated from
                                             storage by populate_drafts()

Submission order, per mode:
  1. Validate every draft (names, contact, login, birth date, enrollment day
     counts, no unsaved section edits). Nothing is sent on failure.
  2. Resolve every adult identity that has no account yet, in draft order.
     A conflict stores a PendingDecision on the workflow and halts before any
     family or member write. resolve_pending(decision) applies the decision
     and re-runs the submission; resolved accounts are cached per member key.
  3. Family write (create_family, or update_family to attach new guardians).
  4. Per member, in draft order: account update (edit mode) → member row →
     enrollment sync. Enrollment failures are collected, not fatal. Any other
     RemoteError aborts the submission.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any

from family_roster.address import Address, parse_address
from family_roster.age_classifier import classify_optional
from family_roster.config import RosterSettings
from family_roster.enrollment_reconciler import (
    EnrollmentOp,
    SyncResult,
    sync_enrollments,
    validate_enrollments,
)
from family_roster.identity_resolver import (
    PendingDecision,
    apply_decision,
    generate_username,
    resolve_identity,
)
from family_roster.member_sections import (
    ALL_SECTIONS,
    Action,
    ContactInfo,
    FinishedWithMember,
    LoginSecurity,
    MemberDraft,
    SectionState,
    Sections,
    ToggleExpand,
    new_member_draft,
    transition,
)
from family_roster.models import (
    Account,
    Athlete,
    BothLink,
    ContactRecord,
    Enrollment,
    EnrollmentDraft,
    Family,
    GuardianLink,
    AthleteLink,
    MemberLink,
    account_id_of,
    athlete_id_of,
    with_account,
    with_athlete,
)
from family_roster.normalize import (
    clean_phone,
    format_phone,
    full_name,
    normalize_email,
    parse_date_only,
    parse_name_parts,
    trim,
)
from family_roster.shared import (
    InvalidDate,
    RemoteError,
    SubmissionCounters,
    ValidationError,
    WorkflowStateError,
)
from family_roster.store import ACTION_REVIVE, FamilyStore

log = logging.getLogger(__name__)

MODE_CREATE_FAMILY = "create_family"
MODE_ADD_MEMBERS = "add_members"
MODE_EDIT_MEMBER = "edit_member"
WORKFLOW_MODES = (MODE_CREATE_FAMILY, MODE_ADD_MEMBERS, MODE_EDIT_MEMBER)

STATUS_COMPLETED = "completed"
STATUS_PENDING_DECISION = "pending_decision"

MIN_SEARCH_LENGTH = 2


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass
class SubmissionResult:
    status: str
    family_id: int | None = None
    pending: PendingDecision | None = None
    member_ids: dict[str, int] = field(default_factory=dict)
    account_ids: dict[str, int] = field(default_factory=dict)
    enrollment_results: dict[str, SyncResult] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return self.status == STATUS_COMPLETED

    @property
    def enrollment_failures(self) -> list[tuple[str, EnrollmentOp, RemoteError]]:
        return [
            (key, op, exc)
            for key, sync in self.enrollment_results.items()
            for op, exc in sync.failures
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "family_id": self.family_id,
            "pending": self.pending.to_dict() if self.pending else None,
            "member_ids": dict(self.member_ids),
            "account_ids": dict(self.account_ids),
            "enrollment_failures": [
                {"member_key": key, "action": op.action, "program_id": op.program_id,
                 "error": str(exc)}
                for key, op, exc in self.enrollment_failures
            ],
            "warnings": list(self.warnings),
        }


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------

class FamilyWorkflow:
    """One editing session over a family's member drafts."""

    def __init__(
        self,
        store: FamilyStore,
        mode: str,
        settings: RosterSettings | None = None,
        family: Family | None = None,
        family_name: str | None = None,
        editing_account_id: int | None = None,
        reference_date: date | None = None,
        counters: SubmissionCounters | None = None,
    ) -> None:
        if mode not in WORKFLOW_MODES:
            raise ValueError(f"unknown workflow mode {mode!r}")
        if mode != MODE_CREATE_FAMILY and family is None:
            raise ValueError(f"mode {mode!r} needs an existing family")
        if mode == MODE_EDIT_MEMBER and editing_account_id is None:
            raise ValueError("edit_member needs the id of the guardian being edited")
        self.store = store
        self.mode = mode
        self.settings = settings or RosterSettings()
        self.family = family
        self.family_id: int | None = family.id if family else None
        self.family_name = family_name
        self.editing_account_id = editing_account_id
        self.reference_date = reference_date or date.today()
        self.counters = counters or SubmissionCounters()
        self.pending: PendingDecision | None = None
        self.resolved_accounts: dict[str, int] = {}
        # member keys whose account was revived; those stay in their own family
        self.revived_keys: set[str] = set()
        self.focused_key: str | None = None
        self._drafts: dict[str, MemberDraft] = {}
        self._seq = 0
        self._completed = False

    # -- construction ----------------------------------------------------

    @classmethod
    def for_new_family(
        cls,
        store: FamilyStore,
        settings: RosterSettings | None = None,
        family_name: str | None = None,
        **kwargs: Any,
    ) -> FamilyWorkflow:
        """A create session holding one blank (primary) member."""
        wf = cls(store, MODE_CREATE_FAMILY, settings, family_name=family_name, **kwargs)
        wf.add_member()
        return wf

    @classmethod
    def for_existing_family(
        cls,
        store: FamilyStore,
        family_id: int,
        settings: RosterSettings | None = None,
        **kwargs: Any,
    ) -> FamilyWorkflow:
        """An add session for a stored family, starting with one blank member."""
        family = store.get_family(family_id)
        wf = cls(store, MODE_ADD_MEMBERS, settings, family=family, **kwargs)
        wf.add_member()
        return wf

    @classmethod
    def for_member_edit(
        cls,
        store: FamilyStore,
        family_id: int,
        guardian_id: int,
        settings: RosterSettings | None = None,
        **kwargs: Any,
    ) -> FamilyWorkflow:
        """An edit session with every family person hydrated from storage."""
        family = store.get_family(family_id)
        if guardian_id not in family.guardian_ids:
            raise WorkflowStateError(
                f"account {guardian_id} is not a guardian of family {family_id}"
            )
        wf = cls(
            store, MODE_EDIT_MEMBER, settings, family=family,
            editing_account_id=guardian_id, **kwargs,
        )
        for draft in populate_drafts(store, family, guardian_id):
            wf._drafts[draft.key] = draft
            wf._seq += 1
            if draft.is_expanded:
                wf.focused_key = draft.key
        return wf

    def resume(
        self,
        resolved_accounts: dict[str, int],
        pending: PendingDecision | None,
        revived_keys: list[str] | tuple[str, ...] = (),
    ) -> None:
        """Restore the identity state of a previously halted submission."""
        self.resolved_accounts.update(resolved_accounts)
        self.revived_keys.update(revived_keys)
        self.pending = pending

    # -- drafts ----------------------------------------------------------

    @property
    def drafts(self) -> list[MemberDraft]:
        return list(self._drafts.values())

    def draft(self, key: str) -> MemberDraft:
        try:
            return self._drafts[key]
        except KeyError:
            raise WorkflowStateError(f"unknown member {key!r}") from None

    def add_member(self) -> str:
        self._seq += 1
        key = f"member-{self._seq}"
        self._drafts[key] = new_member_draft(key, default_password=self.settings.default_password)
        self.focused_key = key
        return key

    def remove_member(self, key: str) -> None:
        draft = self.draft(key)
        if draft.link is not None:
            raise WorkflowStateError(f"member {key!r} is stored and cannot be removed here")
        del self._drafts[key]
        if self.focused_key == key:
            self.focused_key = self._first_unfinished()

    def dispatch(self, key: str, action: Action) -> MemberDraft:
        """Run one state machine transition on a member's draft."""
        new = transition(self.draft(key), action)
        self._drafts[key] = new
        if isinstance(action, FinishedWithMember) and self.focused_key == key:
            self.focused_key = self._first_unfinished()
        elif isinstance(action, ToggleExpand) and new.is_expanded:
            self.focused_key = key
        return new

    def toggle_expand(self, key: str) -> MemberDraft:
        return self.dispatch(key, ToggleExpand())

    def finished_with_member(self, key: str) -> MemberDraft:
        return self.dispatch(key, FinishedWithMember())

    def _first_unfinished(self) -> str | None:
        return next((k for k, d in self._drafts.items() if not d.is_finished), None)

    # -- submission ------------------------------------------------------

    def submit(self) -> SubmissionResult:
        if self._completed:
            raise WorkflowStateError("this submission has already completed")
        if self.pending is not None:
            raise WorkflowStateError(
                f"a decision is pending for {self.pending.email!r}; resolve it first"
            )
        self.counters.members_read = len(self._drafts)
        try:
            if self.mode == MODE_CREATE_FAMILY:
                return self.create_new_family()
            if self.mode == MODE_ADD_MEMBERS:
                return self.add_to_existing_family()
            return self.edit_existing_member()
        except RemoteError as exc:
            log.error("%s submission failed family_id=%s: %s", self.mode, self.family_id, exc)
            raise

    def resolve_pending(self, decision: str) -> SubmissionResult:
        """Apply the caller's decision to the pending conflict and resubmit."""
        if self.pending is None:
            raise WorkflowStateError("no decision is pending")
        pending = self.pending
        if not pending.contact.password:
            # checkpoints never hold the password; take it from the replayed draft
            pending = replace(
                pending, contact=replace(pending.contact, password=self._password_for(pending.member_key)),
            )
        resolved = apply_decision(self.store, pending, decision, self.counters)
        if pending.member_key is not None:
            self.resolved_accounts[pending.member_key] = resolved.account_id
            if resolved.action == ACTION_REVIVE:
                self.revived_keys.add(pending.member_key)
        self.pending = None
        return self.submit()

    def _password_for(self, key: str | None) -> str:
        draft = self._drafts.get(key) if key is not None else None
        return (draft.login.password if draft else "") or self.settings.default_password

    def create_new_family(self) -> SubmissionResult:
        drafts = self.drafts
        self._validate_create(drafts)

        role = self.settings.guardian_role
        candidates = [(drafts[0], True, role)] + [
            (d, False, role) for d in drafts[1:] if self._is_adult(d)
        ]
        pending = self._resolve_identities(candidates)
        if pending is not None:
            return self._halt(pending)

        primary = drafts[0]
        primary_id = self._account_id(primary)
        guardian_ids: list[int] = []
        for draft, _, _ in candidates:
            account_id = self._new_guardian_id(draft)
            if account_id is not None and account_id not in guardian_ids:
                guardian_ids.append(account_id)

        if self.family_id is None:
            name = self.family_name or f"{full_name(primary.contact.first_name, primary.contact.last_name)} Family"
            self.family_id = self.store.create_family(name, primary_id, guardian_ids)  # type: ignore[arg-type]
            self.counters.families_created += 1
            log.info("family created family_id=%s guardians=%s", self.family_id, guardian_ids)

        result = SubmissionResult(STATUS_COMPLETED, family_id=self.family_id)
        for draft in drafts:
            self._persist_member(draft, result, "diff")
        return self._complete(result)

    def add_to_existing_family(self) -> SubmissionResult:
        drafts = self.drafts
        self._validate_existing(drafts)

        pending = self._resolve_identities([
            (d, False, self.settings.guardian_role)
            for d in drafts
            if account_id_of(d.link) is None and self._is_adult(d)
        ])
        if pending is not None:
            return self._halt(pending)

        result = SubmissionResult(STATUS_COMPLETED, family_id=self.family_id)
        guardian_ids = list(self.family.guardian_ids)  # type: ignore[union-attr]
        for draft in drafts:
            self._attach_guardian(self._new_guardian_id(draft), guardian_ids, result)
            self._persist_member(draft, result, "diff")
        return self._complete(result)

    def edit_existing_member(self) -> SubmissionResult:
        drafts = self.drafts
        editing = next(
            (d for d in drafts if account_id_of(d.link) == self.editing_account_id), None
        )
        if editing is None:
            raise WorkflowStateError(
                f"no member of family {self.family_id} holds account {self.editing_account_id}"
            )
        self._validate_existing(drafts)
        if not trim(editing.contact.email):
            raise ValidationError(
                f"{_label(editing)}: email is required", member_key=editing.key,
                section="contact_info",
            )

        pending = self._resolve_identities([
            (d, False, self.settings.guardian_role)
            for d in drafts
            if d.link is None and self._is_adult(d)
        ])
        if pending is not None:
            return self._halt(pending)

        result = SubmissionResult(STATUS_COMPLETED, family_id=self.family_id)
        self._update_account(editing)

        guardian_ids = list(self.family.guardian_ids)  # type: ignore[union-attr]
        strategy = self.settings.edit_enrollment_strategy
        for draft in drafts:
            if isinstance(draft.link, GuardianLink):
                continue
            if athlete_id_of(draft.link) is None:
                self._attach_guardian(self._new_guardian_id(draft), guardian_ids, result)
                self._persist_member(draft, result, "diff")
                continue
            account_id = account_id_of(draft.link)
            if (
                account_id is not None
                and account_id != self.editing_account_id
                and self._is_adult(draft)
            ):
                self._update_account(draft)
            self._persist_member(draft, result, strategy)
        return self._complete(result)

    # -- validation ------------------------------------------------------

    def _validate_common(self, drafts: list[MemberDraft]) -> None:
        if not drafts:
            raise ValidationError("there are no members to submit")
        for draft in drafts:
            for section in ALL_SECTIONS:
                if draft.has_unsaved_changes(section):
                    raise ValidationError(
                        f"{_label(draft)}: unsaved changes in {section}; "
                        "continue or cancel the section first",
                        member_key=draft.key, section=section,
                    )
            if not trim(draft.contact.first_name) or not trim(draft.contact.last_name):
                raise ValidationError(
                    f"{_label(draft)}: first and last name are required",
                    member_key=draft.key, section="contact_info",
                )
            birth = self._birth_date(draft)
            if (
                birth is None
                and self.settings.require_birth_date
                and not isinstance(draft.link, GuardianLink)
                and athlete_id_of(draft.link) is None
            ):
                raise ValidationError(
                    f"{_label(draft)}: date of birth is required for a new member",
                    member_key=draft.key, section="status_verification",
                )
            validate_enrollments(draft.enrollments, member_key=draft.key)

    def _validate_create(self, drafts: list[MemberDraft]) -> None:
        self._validate_common(drafts)
        for draft in drafts:
            c = draft.contact
            missing = [
                name for name, value in (("email", c.email), ("phone", c.phone))
                if not trim(value)
            ]
            if missing:
                raise ValidationError(
                    f"{_label(draft)}: {' and '.join(missing)} required",
                    member_key=draft.key, section="contact_info",
                )
        primary = drafts[0]
        if account_id_of(primary.link) is None and (
            not trim(primary.login.username) or not primary.login.password
        ):
            raise ValidationError(
                f"{_label(primary)}: username and password are required for the primary member",
                member_key=primary.key, section="login_security",
            )
        if primary.date_of_birth and not self._is_adult(primary):
            raise ValidationError(
                f"{_label(primary)}: the primary member must be an adult",
                member_key=primary.key, section="status_verification",
            )

    def _validate_existing(self, drafts: list[MemberDraft]) -> None:
        self._validate_common(drafts)
        for draft in drafts:
            if account_id_of(draft.link) is not None or not self._is_adult(draft):
                continue
            if not trim(draft.contact.email) or not trim(draft.login.username):
                raise ValidationError(
                    f"{_label(draft)}: an adult member needs an email and a username",
                    member_key=draft.key, section="login_security",
                )

    def _birth_date(self, draft: MemberDraft) -> date | None:
        try:
            return parse_date_only(draft.date_of_birth)
        except ValueError as exc:
            raise InvalidDate(
                f"{_label(draft)}: unparseable birth date {draft.date_of_birth!r}",
                member_key=draft.key, section="status_verification",
            ) from exc

    def _is_adult(self, draft: MemberDraft) -> bool:
        self._birth_date(draft)
        return classify_optional(
            draft.date_of_birth, self.reference_date, self.settings.adult_age
        ).is_adult

    # -- identities ------------------------------------------------------

    def _resolve_identities(
        self,
        candidates: list[tuple[MemberDraft, bool, str]],
    ) -> PendingDecision | None:
        for draft, is_primary, role in candidates:
            if account_id_of(draft.link) is not None:
                continue
            if draft.key in self.resolved_accounts:
                self.counters.accounts_reused += 1
                continue
            contact = self._contact_record(draft, role)
            result = resolve_identity(self.store, contact, draft.key, is_primary, self.counters)
            if isinstance(result, PendingDecision):
                log.info("submission halted on pending decision member=%s", draft.key)
                return result
            self.resolved_accounts[draft.key] = result.account_id
        return None

    def _contact_record(self, draft: MemberDraft, role: str) -> ContactRecord:
        c = draft.contact
        if draft.username_locked:
            username = trim(draft.login.username) or ""
        else:
            username = generate_username(
                self.store, c.first_name, c.last_name, self.settings.username_max_suffix
            )
        return ContactRecord(
            full_name=full_name(c.first_name, c.last_name),
            email=normalize_email(c.email) or "",
            phone=clean_phone(c.phone),
            username=username,
            password=draft.login.password or self.settings.default_password,
            address=c.address() or None,
            role=role,
        )

    def _account_id(self, draft: MemberDraft) -> int | None:
        return account_id_of(draft.link) or self.resolved_accounts.get(draft.key)

    def _new_guardian_id(self, draft: MemberDraft) -> int | None:
        """Account to list as this family's guardian; None for revived accounts."""
        if draft.key in self.revived_keys:
            return None
        return self._account_id(draft)

    def _halt(self, pending: PendingDecision) -> SubmissionResult:
        self.pending = pending
        return SubmissionResult(STATUS_PENDING_DECISION, family_id=self.family_id, pending=pending)

    def _complete(self, result: SubmissionResult) -> SubmissionResult:
        self._completed = True
        log.info(
            "%s completed family_id=%s members=%d enrollment_failures=%d",
            self.mode, result.family_id, len(result.member_ids), len(result.enrollment_failures),
        )
        return result

    # -- writes ----------------------------------------------------------

    def _update_account(self, draft: MemberDraft) -> None:
        c = draft.contact
        fields: dict[str, Any] = {
            "full_name": full_name(c.first_name, c.last_name),
            "email": normalize_email(c.email),
            "phone": clean_phone(c.phone),
            "address": c.address() or None,
        }
        if trim(draft.login.username):
            fields["username"] = trim(draft.login.username)
        password = draft.login.password
        if password and password != self.settings.default_password:
            fields["password"] = password
        self.store.update_account(account_id_of(draft.link), **fields)  # type: ignore[arg-type]
        self.counters.accounts_updated += 1

    def _attach_guardian(
        self,
        account_id: int | None,
        guardian_ids: list[int],
        result: SubmissionResult,
    ) -> None:
        if account_id is None or account_id in guardian_ids:
            return
        family = self.family
        new_ids = guardian_ids + [account_id]
        try:
            self.store.update_family(
                self.family_id,  # type: ignore[arg-type]
                family.family_name if family else None,
                (family.primary_user_id if family else None) or new_ids[0],
                new_ids,
            )
        except RemoteError as exc:
            msg = (
                f"could not attach guardian account_id={account_id} "
                f"to family_id={self.family_id}: {exc}"
            )
            if self.settings.guardian_attach_failure == "fail":
                log.error(msg)
                raise
            log.warning(msg)
            result.warnings.append(msg)
            self.counters.warnings.append(msg)
            return
        guardian_ids.append(account_id)
        self.counters.families_updated += 1

    def _persist_member(self, draft: MemberDraft, result: SubmissionResult, strategy: str) -> None:
        c = draft.contact
        account_id = self._account_id(draft)
        athlete_id = athlete_id_of(draft.link)
        values = {
            "first_name": trim(c.first_name) or "",
            "last_name": trim(c.last_name) or "",
            "date_of_birth": self._birth_date(draft),
            "medical_notes": trim(draft.medical_notes),
            "internal_flags": trim(draft.internal_flags),
        }
        existing: list[Enrollment] | None = None
        if athlete_id is None:
            existing = []
            athlete_id = self.store.create_member(
                self.family_id, account_id=account_id, **values,  # type: ignore[arg-type]
            )
            self.counters.members_created += 1
        else:
            if account_id is not None and account_id_of(draft.link) is None:
                values["account_id"] = account_id
            self.store.update_member(athlete_id, **values)
            self.counters.members_updated += 1

        link: MemberLink | None = draft.link
        if account_id is not None:
            link = with_account(link, account_id)
            result.account_ids[draft.key] = account_id
        self._drafts[draft.key] = replace(self._drafts[draft.key], link=with_athlete(link, athlete_id))
        result.member_ids[draft.key] = athlete_id

        result.enrollment_results[draft.key] = sync_enrollments(
            self.store, athlete_id, draft.enrollments, self.counters,
            strategy=strategy, member_key=draft.key, existing=existing,
        )


def _label(draft: MemberDraft) -> str:
    return full_name(draft.contact.first_name, draft.contact.last_name) or draft.key


# ---------------------------------------------------------------------------
# Draft hydration
# ---------------------------------------------------------------------------

def populate_drafts(
    store: FamilyStore,
    family: Family,
    editing_account_id: int | None = None,
    start: int = 1,
) -> list[MemberDraft]:
    """One draft per family person; a guardian who is also an athlete is one draft."""
    guardian_ids = set(family.guardian_ids)
    athlete_of_guardian = {
        a.user_id: a for a in family.athletes if a.user_id in guardian_ids
    }
    drafts: list[MemberDraft] = []
    seq = start

    for guardian in family.guardians:
        athlete = athlete_of_guardian.get(guardian.id)
        link: MemberLink = (
            BothLink(guardian.id, athlete.id) if athlete else GuardianLink(guardian.id)
        )
        drafts.append(_hydrate(
            store, f"member-{seq}", store.get_account(guardian.id), athlete, link,
            editing=guardian.id == editing_account_id,
        ))
        seq += 1

    for athlete in family.athletes:
        if athlete_of_guardian.get(athlete.user_id) is athlete:
            continue
        account = store.get_account(athlete.user_id) if athlete.user_id is not None else None
        link = BothLink(athlete.user_id, athlete.id) if account else AthleteLink(athlete.id)  # type: ignore[arg-type]
        drafts.append(_hydrate(store, f"member-{seq}", account, athlete, link, editing=False))
        seq += 1
    return drafts


def _hydrate(
    store: FamilyStore,
    key: str,
    account: Account | None,
    athlete: Athlete | None,
    link: MemberLink,
    editing: bool,
) -> MemberDraft:
    if athlete is not None:
        first, last = athlete.first_name, athlete.last_name
    else:
        first, last = parse_name_parts(account.full_name if account else "")
    address = parse_address(account.address) if account else Address("", "", "", "")
    contact = ContactInfo(
        first_name=first or "",
        last_name=last or "",
        email=account.email if account else "",
        phone=format_phone(account.phone) if account else "",
        address_street=address.street,
        address_city=address.city,
        address_state=address.state,
        address_zip=address.zip_code,
    )
    login = LoginSecurity(username=account.username if account else "", password="")

    enrollments: tuple[EnrollmentDraft, ...] = ()
    if athlete is not None:
        enrollments = tuple(
            EnrollmentDraft(
                program_id=e.program_id,
                days_per_week=e.days_per_week,
                selected_days=tuple(e.selected_days),
                program=e.program_display_name or f"Program {e.program_id}",
                id=str(e.id),
                is_completed=True,
            )
            for e in store.list_enrollments(athlete.id)
        )

    if athlete is not None:
        archived = athlete.archived
    else:
        archived = account.archived if account else False
    return MemberDraft(
        key=key,
        contact=contact,
        login=login,
        enrollments=enrollments,
        date_of_birth=athlete.date_of_birth.isoformat() if athlete and athlete.date_of_birth else "",
        medical_notes=(athlete.medical_notes or "") if athlete else "",
        internal_flags=(athlete.internal_flags or "") if athlete else "",
        link=link,
        is_active=not archived,
        is_finished=True,
        is_expanded=editing,
        username_locked=True,
        sections=Sections(
            contact_info=SectionState(is_expanded=editing, temp_data=contact),
            login_security=SectionState(
                is_expanded=editing and bool(login.username), temp_data=login
            ),
        ),
    )


# ---------------------------------------------------------------------------
# Admin operations
# ---------------------------------------------------------------------------

def search_families(store: FamilyStore, query: str | None) -> list[Family]:
    q = trim(query) or ""
    if len(q) < MIN_SEARCH_LENGTH:
        return []
    return store.search_families(q)


def set_family_archived(store: FamilyStore, family_id: int, archived: bool) -> None:
    store.archive_family(family_id, archived)
    log.info("family %s family_id=%s", "archived" if archived else "unarchived", family_id)


def delete_family(store: FamilyStore, family_id: int, confirm: bool = False) -> None:
    """Hard delete a family and its members. Refused unless confirm is True."""
    if not confirm:
        raise WorkflowStateError(
            f"refusing to delete family {family_id} without explicit confirmation"
        )
    store.delete_family(family_id)
    log.warning("family deleted family_id=%s", family_id)
