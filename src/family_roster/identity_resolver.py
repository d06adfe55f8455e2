"""family_roster.identity_resolver

Obtain a login account for a staged contact, surfacing email collisions as
an explicit pending decision instead of retrying.

    resolve_identity(store, contact) → Resolved(account_id)
                                     | PendingDecision(contact, email, archived)

A PendingDecision halts the caller's workflow. The caller later supplies
exactly one decision through apply_decision():

    create_new  detach the existing (archived) account from its prior family
                and assign it fresh; AccountNotArchived for a live account
    revive      update the existing account in place, keeping its family

Any other store failure propagates unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

from family_roster.models import ContactRecord
from family_roster.normalize import full_name, username_base
from family_roster.shared import (
    AccountNotArchived,
    ConflictError,
    SubmissionCounters,
    ValidationError,
)
from family_roster.store import ACTION_CREATE_NEW, ACTION_REVIVE, FamilyStore

log = logging.getLogger(__name__)

VALID_DECISIONS = frozenset({ACTION_CREATE_NEW, ACTION_REVIVE})


@dataclass(frozen=True)
class Resolved:
    account_id: int
    action: str | None = None  # None, 'create_new' or 'revive'


@dataclass(frozen=True)
class PendingDecision:
    contact: ContactRecord
    email: str
    archived: bool
    existing_account_id: int | None = None
    member_key: str | None = None
    is_primary: bool = False

    def to_dict(self) -> dict:
        """JSON-safe form. The staged password is left out."""
        return {
            "contact": {
                "full_name": self.contact.full_name,
                "email": self.contact.email,
                "phone": self.contact.phone,
                "username": self.contact.username,
                "address": self.contact.address,
                "role": self.contact.role,
            },
            "email": self.email,
            "archived": self.archived,
            "existing_account_id": self.existing_account_id,
            "member_key": self.member_key,
            "is_primary": self.is_primary,
        }

    @classmethod
    def from_dict(cls, data: dict) -> PendingDecision:
        return cls(
            contact=ContactRecord(**{**data["contact"], "password": ""}),
            email=data["email"],
            archived=bool(data["archived"]),
            existing_account_id=data.get("existing_account_id"),
            member_key=data.get("member_key"),
            is_primary=bool(data.get("is_primary", False)),
        )


IdentityResult = Union[Resolved, PendingDecision]


def resolve_identity(
    store: FamilyStore,
    contact: ContactRecord,
    member_key: str | None = None,
    is_primary: bool = False,
    counters: SubmissionCounters | None = None,
) -> IdentityResult:
    """Try to create the account; an email collision becomes a PendingDecision."""
    try:
        account_id = store.create_account(contact)
    except ConflictError as exc:
        log.info(
            "account conflict email=%s archived=%s member=%s",
            contact.email, exc.archived, member_key,
        )
        if counters is not None:
            counters.conflicts += 1
        return PendingDecision(
            contact=contact,
            email=exc.email or contact.email,
            archived=exc.archived,
            existing_account_id=exc.existing_account_id,
            member_key=member_key,
            is_primary=is_primary,
        )
    if counters is not None:
        counters.accounts_created += 1
    return Resolved(account_id)


def generate_username(
    store: FamilyStore,
    first_name: str,
    last_name: str,
    max_suffix: int = 100,
) -> str:
    """username_base(first, last), suffixed 1, 2, ... while already taken.

    Raises ValidationError when the first name has no usable characters or
    every candidate up to max_suffix is taken.
    """
    base = username_base(first_name, last_name)
    if not base:
        raise ValidationError(
            f"cannot derive a username from {full_name(first_name, last_name)!r}",
            section="login_security",
        )
    taken = {(a.username or "").lower() for a in store.search_accounts(base)}
    if base not in taken:
        return base
    for suffix in range(1, max_suffix + 1):
        candidate = f"{base}{suffix}"
        if candidate not in taken:
            return candidate
    raise ValidationError(
        f"no free username for {base!r} up to suffix {max_suffix}",
        section="login_security",
    )


def apply_decision(
    store: FamilyStore,
    pending: PendingDecision,
    decision: str,
    counters: SubmissionCounters | None = None,
) -> Resolved:
    """Re-submit the pending contact with the caller's decision."""
    if decision not in VALID_DECISIONS:
        raise ValueError(
            f"unknown decision {decision!r}; expected one of {sorted(VALID_DECISIONS)}"
        )
    if decision == ACTION_CREATE_NEW and not pending.archived:
        raise AccountNotArchived(pending.email)

    account_id = store.create_account(pending.contact, action=decision)
    log.info("decision %s applied email=%s account_id=%s", decision, pending.email, account_id)
    if counters is not None:
        if decision == ACTION_CREATE_NEW:
            counters.accounts_detached += 1
        else:
            counters.accounts_revived += 1
    return Resolved(account_id, action=decision)
