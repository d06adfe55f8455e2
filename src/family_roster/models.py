"""family_roster.models

Durable entities as returned by a FamilyStore, plus the staged enrollment
draft and the tagged link describing which durable records a family person
already has.

A person in a family is a login account (Guardian), an athlete row, or
both. That is modelled explicitly as GuardianLink | AthleteLink | BothLink
so callers never have to guess from optional ids whether the account record
may be touched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Union

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

STATUS_ENROLLED = "enrolled"
STATUS_STAND_BY = "stand-by"
STATUS_ARCHIVED = "archived"

NON_PARTICIPANT = "Non-Participant"


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ContactRecord:
    """Everything needed to create (or revive) a login account."""

    full_name: str
    email: str
    phone: str
    username: str
    password: str
    address: str | None
    role: str


@dataclass
class Account:
    id: int
    full_name: str
    email: str
    phone: str = ""
    username: str = ""
    address: str = ""
    role: str = ""
    is_active: bool = True
    archived: bool = False


# ---------------------------------------------------------------------------
# Family / Guardian / Athlete
# ---------------------------------------------------------------------------

@dataclass
class Guardian:
    id: int  # same as the underlying account id
    full_name: str
    email: str = ""
    phone: str = ""
    is_primary_billing: bool = False


@dataclass
class Athlete:
    id: int
    family_id: int | None
    first_name: str
    last_name: str
    date_of_birth: date | None = None
    medical_notes: str | None = None
    internal_flags: str | None = None
    user_id: int | None = None
    archived: bool = False
    enrollment_count: int = 0

    @property
    def status(self) -> str:
        return derive_member_status(self.archived, self.enrollment_count)


@dataclass
class Family:
    id: int
    family_name: str | None = None
    primary_user_id: int | None = None
    archived: bool = False
    guardians: list[Guardian] = field(default_factory=list)
    athletes: list[Athlete] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def guardian_ids(self) -> list[int]:
        return [g.id for g in self.guardians]


def derive_member_status(archived: bool, enrollment_count: int) -> str:
    if archived:
        return STATUS_ARCHIVED
    if enrollment_count > 0:
        return STATUS_ENROLLED
    return STATUS_STAND_BY


# ---------------------------------------------------------------------------
# Programs / Enrollments
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Program:
    id: int
    category: str
    display_name: str
    skill_level: str | None = None
    is_active: bool = True
    archived: bool = False
    age_min: int | None = None
    age_max: int | None = None


@dataclass
class Enrollment:
    """A stored enrollment row (member ↔ program)."""

    id: int
    program_id: int
    days_per_week: int
    selected_days: list[str] = field(default_factory=list)
    program_display_name: str = ""


@dataclass(frozen=True)
class EnrollmentDraft:
    """A staged enrollment. program_id None marks a placeholder never persisted."""

    program_id: int | None
    days_per_week: int = 1
    selected_days: tuple[str, ...] = ()
    program: str = NON_PARTICIPANT
    id: str | None = None
    is_completed: bool = False


# ---------------------------------------------------------------------------
# Member link (tagged variant)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GuardianLink:
    guardian_id: int


@dataclass(frozen=True)
class AthleteLink:
    athlete_id: int


@dataclass(frozen=True)
class BothLink:
    guardian_id: int
    athlete_id: int


MemberLink = Union[GuardianLink, AthleteLink, BothLink]


def account_id_of(link: MemberLink | None) -> int | None:
    if isinstance(link, (GuardianLink, BothLink)):
        return link.guardian_id
    return None


def athlete_id_of(link: MemberLink | None) -> int | None:
    if isinstance(link, (AthleteLink, BothLink)):
        return link.athlete_id
    return None


def with_account(link: MemberLink | None, account_id: int) -> MemberLink:
    """Return the link extended with a (new) account id."""
    athlete_id = athlete_id_of(link)
    if athlete_id is None:
        return GuardianLink(account_id)
    return BothLink(guardian_id=account_id, athlete_id=athlete_id)


def with_athlete(link: MemberLink | None, athlete_id: int) -> MemberLink:
    """Return the link extended with a (new) athlete id."""
    account_id = account_id_of(link)
    if account_id is None:
        return AthleteLink(athlete_id)
    return BothLink(guardian_id=account_id, athlete_id=athlete_id)
