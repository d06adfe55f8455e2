"""family_roster.member_sections

Per-member staged editing, expressed as a pure reducer:

    transition(draft: MemberDraft, action) -> MemberDraft

A MemberDraft holds the member's committed fields plus one SectionState per
wizard section. Each SectionState has its own is_expanded flag and a
temp_data buffer that is distinct from the committed fields:

    contact_info  →  login_security  →  enrollment      (status_verification
                                                         is display-only)

Transitions:
    ToggleExpand        flip the member's own display state; staged data kept
    ToggleSection(s)    collapsed → expanded re-seeds temp_data from committed
                        values (prior uncommitted edits are discarded);
                        expanded → collapsed never commits
    EditSection(s, ..)  merge field changes into temp_data
    Continue(s)         commit temp_data, collapse s, expand the next section
    Minimize(s)         commit temp_data, collapse s
    Cancel(s)           reset temp_data to committed values, collapse s
    FinishedWithMember  is_finished = True

The enrollment section commits by appending the staged form to the
member's enrollment list (when a program is chosen) after checking the
day count, then resets the form. It never auto-advances.

Invalid input raises ValidationError / InvalidEnrollment; because the
reducer is pure the caller's previous draft is left untouched.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from typing import Any, Union

from family_roster.address import combine_address
from family_roster.enrollment_reconciler import MAX_DAYS_PER_WEEK, validate_enrollments
from family_roster.models import NON_PARTICIPANT, EnrollmentDraft, MemberLink
from family_roster.normalize import username_base
from family_roster.shared import InvalidEnrollment, ValidationError

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

CONTACT_INFO = "contact_info"
LOGIN_SECURITY = "login_security"
ENROLLMENT = "enrollment"
STATUS_VERIFICATION = "status_verification"

SECTION_ORDER = (CONTACT_INFO, LOGIN_SECURITY, ENROLLMENT)
ALL_SECTIONS = SECTION_ORDER + (STATUS_VERIFICATION,)


@dataclass(frozen=True)
class ContactInfo:
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    address_street: str = ""
    address_city: str = ""
    address_state: str = ""
    address_zip: str = ""

    def address(self) -> str:
        return combine_address(
            self.address_street, self.address_city, self.address_state, self.address_zip
        )


@dataclass(frozen=True)
class LoginSecurity:
    username: str = ""
    password: str = ""


@dataclass(frozen=True)
class EnrollmentForm:
    program_id: int | None = None
    program: str = NON_PARTICIPANT
    days_per_week: int = 1
    selected_days: tuple[str, ...] = ()

    def to_draft(self, enrollment_id: str | None = None) -> EnrollmentDraft:
        return EnrollmentDraft(
            program_id=self.program_id,
            days_per_week=self.days_per_week,
            selected_days=tuple(self.selected_days),
            program=self.program,
            id=enrollment_id,
            is_completed=True,
        )


BLANK_ENROLLMENT_FORM = EnrollmentForm()

SectionData = Union[ContactInfo, LoginSecurity, EnrollmentForm, None]


@dataclass(frozen=True)
class SectionState:
    is_expanded: bool = False
    temp_data: SectionData = None


@dataclass(frozen=True)
class Sections:
    contact_info: SectionState = SectionState(temp_data=ContactInfo())
    login_security: SectionState = SectionState(temp_data=LoginSecurity())
    enrollment: SectionState = SectionState(temp_data=BLANK_ENROLLMENT_FORM)
    status_verification: SectionState = SectionState()

    def get(self, section: str) -> SectionState:
        _check_section(section, ALL_SECTIONS)
        return getattr(self, section)

    def with_section(self, section: str, state: SectionState) -> Sections:
        _check_section(section, ALL_SECTIONS)
        return replace(self, **{section: state})


# ---------------------------------------------------------------------------
# Draft
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MemberDraft:
    key: str
    contact: ContactInfo = ContactInfo()
    login: LoginSecurity = LoginSecurity()
    enrollments: tuple[EnrollmentDraft, ...] = ()
    date_of_birth: str = ""
    medical_notes: str = ""
    internal_flags: str = ""
    link: MemberLink | None = None
    is_active: bool = True
    is_finished: bool = False
    is_expanded: bool = False
    username_locked: bool = False
    sections: Sections = field(default_factory=Sections)

    def section(self, section: str) -> SectionState:
        return self.sections.get(section)

    def has_unsaved_changes(self, section: str) -> bool:
        state = self.section(section)
        if section == STATUS_VERIFICATION or not state.is_expanded:
            return False
        return state.temp_data != committed_values(self, section)


def new_member_draft(key: str, default_password: str = "", expanded: bool = True) -> MemberDraft:
    """A blank member row: contact section open, everything else collapsed."""
    login = LoginSecurity(password=default_password)
    return MemberDraft(
        key=key,
        login=login,
        is_expanded=expanded,
        sections=Sections(
            contact_info=SectionState(is_expanded=True, temp_data=ContactInfo()),
            login_security=SectionState(temp_data=login),
        ),
    )


def committed_values(draft: MemberDraft, section: str) -> SectionData:
    """What temp_data is seeded with when a section is (re)opened or cancelled."""
    if section == CONTACT_INFO:
        return draft.contact
    if section == LOGIN_SECURITY:
        return draft.login
    if section == ENROLLMENT:
        return BLANK_ENROLLMENT_FORM
    return None


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ToggleExpand:
    pass


@dataclass(frozen=True)
class ToggleSection:
    section: str


@dataclass(frozen=True)
class EditSection:
    section: str
    changes: Mapping[str, Any]


@dataclass(frozen=True)
class SelectProgram:
    program_id: int | None
    program: str | None = None


@dataclass(frozen=True)
class SetDaysPerWeek:
    days_per_week: int


@dataclass(frozen=True)
class ToggleDay:
    day: str


@dataclass(frozen=True)
class Continue:
    section: str


@dataclass(frozen=True)
class Minimize:
    section: str


@dataclass(frozen=True)
class Cancel:
    section: str


@dataclass(frozen=True)
class FinishedWithMember:
    pass


@dataclass(frozen=True)
class RemoveEnrollment:
    enrollment_id: str


@dataclass(frozen=True)
class SetProfile:
    date_of_birth: str | None = None
    medical_notes: str | None = None
    internal_flags: str | None = None


Action = Union[
    ToggleExpand, ToggleSection, EditSection, SelectProgram, SetDaysPerWeek,
    ToggleDay, Continue, Minimize, Cancel, FinishedWithMember,
    RemoveEnrollment, SetProfile,
]


# ---------------------------------------------------------------------------
# Reducer
# ---------------------------------------------------------------------------

def transition(draft: MemberDraft, action: Action) -> MemberDraft:
    if isinstance(action, ToggleExpand):
        return replace(draft, is_expanded=not draft.is_expanded)
    if isinstance(action, ToggleSection):
        return _toggle_section(draft, action.section)
    if isinstance(action, EditSection):
        return _edit_section(draft, action.section, action.changes)
    if isinstance(action, SelectProgram):
        return _set_enrollment_form(draft, EnrollmentForm(
            program_id=action.program_id,
            program=action.program or (
                NON_PARTICIPANT if action.program_id is None else f"Program {action.program_id}"
            ),
        ))
    if isinstance(action, SetDaysPerWeek):
        return _set_days_per_week(draft, action.days_per_week)
    if isinstance(action, ToggleDay):
        return _toggle_day(draft, action.day)
    if isinstance(action, Continue):
        return _commit(draft, action.section, advance=True)
    if isinstance(action, Minimize):
        return _commit(draft, action.section, advance=False)
    if isinstance(action, Cancel):
        return _cancel(draft, action.section)
    if isinstance(action, FinishedWithMember):
        return replace(draft, is_finished=True)
    if isinstance(action, RemoveEnrollment):
        return replace(
            draft,
            enrollments=tuple(e for e in draft.enrollments if e.id != action.enrollment_id),
        )
    if isinstance(action, SetProfile):
        changes = {
            k: v for k, v in (
                ("date_of_birth", action.date_of_birth),
                ("medical_notes", action.medical_notes),
                ("internal_flags", action.internal_flags),
            ) if v is not None
        }
        return replace(draft, **changes)
    raise TypeError(f"unknown action: {action!r}")


def _check_section(section: str, allowed: tuple[str, ...]) -> None:
    if section not in allowed:
        raise ValidationError(f"unknown section {section!r}", section=section)


def _with_section(draft: MemberDraft, section: str, **changes: Any) -> MemberDraft:
    state = replace(draft.section(section), **changes)
    return replace(draft, sections=draft.sections.with_section(section, state))


def _toggle_section(draft: MemberDraft, section: str) -> MemberDraft:
    _check_section(section, ALL_SECTIONS)
    state = draft.section(section)
    if section == STATUS_VERIFICATION:
        return _with_section(draft, section, is_expanded=not state.is_expanded)
    if state.is_expanded:
        return _with_section(draft, section, is_expanded=False)
    return _with_section(
        draft, section, is_expanded=True, temp_data=committed_values(draft, section)
    )


def _edit_section(draft: MemberDraft, section: str, changes: Mapping[str, Any]) -> MemberDraft:
    _check_section(section, SECTION_ORDER)
    temp = draft.section(section).temp_data
    allowed = {f.name for f in fields(temp)}  # type: ignore[arg-type]
    unknown = set(changes) - allowed
    if unknown:
        raise ValidationError(
            f"unknown {section} field(s): {sorted(unknown)}",
            member_key=draft.key, section=section,
        )
    values = dict(changes)
    if "selected_days" in values:
        values["selected_days"] = tuple(values["selected_days"])
    new_temp = replace(temp, **values)  # type: ignore[type-var]
    result = _with_section(draft, section, temp_data=new_temp)

    if section == CONTACT_INFO and ({"first_name", "last_name"} & set(changes)):
        if not draft.username_locked:
            login_temp = result.section(LOGIN_SECURITY).temp_data
            result = _with_section(
                result, LOGIN_SECURITY,
                temp_data=replace(
                    login_temp,  # type: ignore[type-var]
                    username=username_base(new_temp.first_name, new_temp.last_name),  # type: ignore[union-attr]
                ),
            )
    if section == LOGIN_SECURITY and "username" in changes:
        result = replace(result, username_locked=True)
    return result


def _set_enrollment_form(draft: MemberDraft, form: EnrollmentForm) -> MemberDraft:
    return _with_section(draft, ENROLLMENT, temp_data=form)


def _set_days_per_week(draft: MemberDraft, days_per_week: int) -> MemberDraft:
    form: EnrollmentForm = draft.section(ENROLLMENT).temp_data  # type: ignore[assignment]
    if not 1 <= days_per_week <= MAX_DAYS_PER_WEEK:
        raise InvalidEnrollment(
            f"days per week must be between 1 and {MAX_DAYS_PER_WEEK}",
            program_id=form.program_id, program=form.program,
            days_per_week=days_per_week, selected_count=len(form.selected_days),
            member_key=draft.key,
        )
    selected = form.selected_days if len(form.selected_days) == days_per_week else ()
    return _set_enrollment_form(
        draft, replace(form, days_per_week=days_per_week, selected_days=selected)
    )


def _toggle_day(draft: MemberDraft, day: str) -> MemberDraft:
    form: EnrollmentForm = draft.section(ENROLLMENT).temp_data  # type: ignore[assignment]
    if day in form.selected_days:
        selected = tuple(d for d in form.selected_days if d != day)
    elif len(form.selected_days) < form.days_per_week:
        selected = form.selected_days + (day,)
    else:
        raise InvalidEnrollment(
            f"Please select exactly {form.days_per_week} day(s)",
            program_id=form.program_id, program=form.program,
            days_per_week=form.days_per_week, selected_count=len(form.selected_days) + 1,
            member_key=draft.key,
        )
    return _set_enrollment_form(draft, replace(form, selected_days=selected))


_ENROLLMENT_ID_RE = re.compile(r"^enrollment-(\d+)$")


def _next_enrollment_id(enrollments: tuple[EnrollmentDraft, ...]) -> str:
    highest = 0
    for e in enrollments:
        m = _ENROLLMENT_ID_RE.match(e.id or "")
        if m:
            highest = max(highest, int(m.group(1)))
    return f"enrollment-{highest + 1 if highest else len(enrollments) + 1}"


def _commit(draft: MemberDraft, section: str, advance: bool) -> MemberDraft:
    _check_section(section, ALL_SECTIONS)
    if section == STATUS_VERIFICATION:
        return _with_section(draft, section, is_expanded=False)

    temp = draft.section(section).temp_data
    if section == ENROLLMENT:
        form: EnrollmentForm = temp  # type: ignore[assignment]
        result = draft
        if form.program_id is not None:
            staged = form.to_draft(_next_enrollment_id(draft.enrollments))
            enrollments = draft.enrollments + (staged,)
            # day count, duplicate days and one entry per program
            validate_enrollments(enrollments, member_key=draft.key)
            result = replace(draft, enrollments=enrollments)
        return _with_section(result, ENROLLMENT, is_expanded=False, temp_data=BLANK_ENROLLMENT_FORM)

    if section == CONTACT_INFO:
        result = replace(draft, contact=temp)  # type: ignore[arg-type]
        if not draft.username_locked:
            # derived username follows the committed name
            base = username_base(temp.first_name, temp.last_name)  # type: ignore[union-attr]
            login_temp = draft.section(LOGIN_SECURITY).temp_data
            result = replace(result, login=replace(draft.login, username=base))
            result = _with_section(
                result, LOGIN_SECURITY,
                temp_data=replace(login_temp, username=base),  # type: ignore[type-var]
            )
    else:
        result = replace(draft, login=temp)  # type: ignore[arg-type]
    result = _with_section(result, section, is_expanded=False)
    if advance:
        nxt = SECTION_ORDER[SECTION_ORDER.index(section) + 1]
        result = _with_section(result, nxt, is_expanded=True)
    return result


def _cancel(draft: MemberDraft, section: str) -> MemberDraft:
    _check_section(section, ALL_SECTIONS)
    return _with_section(
        draft, section, is_expanded=False, temp_data=committed_values(draft, section)
    )
