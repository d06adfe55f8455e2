"""family_roster.pg_store

PostgresFamilyStore: the FamilyStore contract directly against the schema in
migrations/0001_family_core.sql.

The caller owns the connection and its transaction (commit, or rollback for
a dry run). Every store operation runs inside its own SAVEPOINT so that a
failed operation (for example one enrollment violating the day-count check)
is rolled back alone and the rest of the submission can continue.

Error mapping:
  email already present (case-insensitive) on create_account → ConflictError
  action='create_new' against a live account                  → AccountNotArchived
  missing row                                                  → RemoteError(404, ...)
  psycopg.Error                                                → RemoteError(None, ...)

Passwords are stored as a SHA-256 hex digest placeholder.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from typing import Any

import psycopg

from family_roster.models import (
    Account,
    Athlete,
    ContactRecord,
    Enrollment,
    Family,
    Guardian,
    Program,
)
from family_roster.shared import AccountNotArchived, ConflictError, RemoteError, RosterError
from family_roster.store import ACTION_CREATE_NEW, ACTION_REVIVE

log = logging.getLogger(__name__)

# store field name → column
_ACCOUNT_COLUMNS = {
    "full_name": "full_name",
    "email": "email",
    "phone": "phone",
    "username": "username",
    "password": "password_hash",
    "address": "address",
    "role": "role",
    "archived": "archived",
}
_MEMBER_COLUMNS = {
    "first_name": "first_name",
    "last_name": "last_name",
    "date_of_birth": "date_of_birth",
    "medical_notes": "medical_notes",
    "internal_flags": "internal_flags",
    "account_id": "user_id",
}

_ACCOUNT_SELECT = """
    SELECT id, full_name, email, coalesce(phone, ''), username,
           coalesce(address, ''), role, is_active, archived
    FROM app_user
"""


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def _set_clause(fields: dict[str, Any], columns: dict[str, str]) -> tuple[str, list[Any]]:
    unknown = set(fields) - set(columns)
    if unknown:
        raise TypeError(f"unsupported field(s): {sorted(unknown)}")
    parts: list[str] = []
    values: list[Any] = []
    for key, value in fields.items():
        if key == "password":
            value = hash_password(value)
        parts.append(f"{columns[key]} = %s")
        values.append(value)
    return ", ".join(parts), values


class PostgresFamilyStore:
    def __init__(self, conn: psycopg.Connection) -> None:
        self.conn = conn
        self._sp_seq = 0

    @contextmanager
    def _savepoint(self, what: str) -> Iterator[None]:
        self._sp_seq += 1
        sp = f"roster_op_{self._sp_seq}"
        self.conn.execute(f"SAVEPOINT {sp}")
        try:
            yield
        except RosterError:
            self.conn.execute(f"ROLLBACK TO SAVEPOINT {sp}")
            raise
        except psycopg.Error as exc:
            self.conn.execute(f"ROLLBACK TO SAVEPOINT {sp}")
            log.warning("%s failed: %s", what, exc)
            raise RemoteError(None, f"{what}: {exc}") from exc
        else:
            self.conn.execute(f"RELEASE SAVEPOINT {sp}")

    # -- accounts --------------------------------------------------------

    def create_account(self, contact: ContactRecord, action: str | None = None) -> int:
        with self._savepoint("create account"):
            row = self.conn.execute(
                "SELECT id, archived FROM app_user WHERE lower(email) = lower(%s)",
                (contact.email,),
            ).fetchone()

            if row is None:
                new = self.conn.execute(
                    """
                    INSERT INTO app_user
                        (full_name, email, phone, username, password_hash, role, address)
                    VALUES (%s, %s, %s, %s, %s, %s, %s)
                    RETURNING id
                    """,
                    (
                        contact.full_name, contact.email, contact.phone or None,
                        contact.username, hash_password(contact.password),
                        contact.role, contact.address,
                    ),
                ).fetchone()
                return int(new[0])

            existing_id, archived = int(row[0]), bool(row[1])
            if action is None:
                raise ConflictError(contact.email, archived, existing_account_id=existing_id)
            if action == ACTION_CREATE_NEW:
                if not archived:
                    raise AccountNotArchived(contact.email)
                # detach from the prior family before reassigning
                self.conn.execute("DELETE FROM family_guardian WHERE user_id = %s", (existing_id,))
                self.conn.execute("UPDATE athlete SET user_id = NULL WHERE user_id = %s", (existing_id,))
            elif action != ACTION_REVIVE:
                raise ValueError(f"unknown account action {action!r}")

            self.conn.execute(
                """
                UPDATE app_user
                SET full_name = %s, phone = %s, username = %s, password_hash = %s,
                    role = %s, address = %s, archived = false, is_active = true,
                    updated_at = now()
                WHERE id = %s
                """,
                (
                    contact.full_name, contact.phone or None, contact.username,
                    hash_password(contact.password), contact.role, contact.address,
                    existing_id,
                ),
            )
            log.info("account %s applied account_id=%s", action, existing_id)
            return existing_id

    def update_account(self, account_id: int, **fields: Any) -> None:
        if not fields:
            return
        clause, values = _set_clause(fields, _ACCOUNT_COLUMNS)
        with self._savepoint("update account"):
            cur = self.conn.execute(
                f"UPDATE app_user SET {clause}, updated_at = now() WHERE id = %s",
                (*values, account_id),
            )
            if cur.rowcount == 0:
                raise RemoteError(404, f"account {account_id} not found")

    def get_account(self, account_id: int) -> Account:
        with self._savepoint("get account"):
            row = self.conn.execute(f"{_ACCOUNT_SELECT} WHERE id = %s", (account_id,)).fetchone()
        if row is None:
            raise RemoteError(404, f"account {account_id} not found")
        return Account(*row)

    def search_accounts(self, query: str) -> list[Account]:
        pattern = f"%{query}%"
        with self._savepoint("search accounts"):
            rows = self.conn.execute(
                f"""{_ACCOUNT_SELECT}
                WHERE username ILIKE %s OR email ILIKE %s OR full_name ILIKE %s
                ORDER BY id
                """,
                (pattern, pattern, pattern),
            ).fetchall()
        return [Account(*r) for r in rows]

    # -- families --------------------------------------------------------

    def _replace_guardians(self, family_id: int, guardian_ids: list[int]) -> None:
        self.conn.execute("DELETE FROM family_guardian WHERE family_id = %s", (family_id,))
        for user_id in dict.fromkeys(guardian_ids):
            self.conn.execute(
                "INSERT INTO family_guardian (family_id, user_id) VALUES (%s, %s)",
                (family_id, user_id),
            )

    def create_family(
        self,
        family_name: str | None,
        primary_account_id: int,
        guardian_ids: list[int],
    ) -> int:
        with self._savepoint("create family"):
            row = self.conn.execute(
                "INSERT INTO family (family_name, primary_user_id) VALUES (%s, %s) RETURNING id",
                (family_name, primary_account_id),
            ).fetchone()
            family_id = int(row[0])
            self._replace_guardians(family_id, guardian_ids)
        return family_id

    def update_family(
        self,
        family_id: int,
        family_name: str | None,
        primary_account_id: int | None,
        guardian_ids: list[int],
    ) -> None:
        with self._savepoint("update family"):
            cur = self.conn.execute(
                """
                UPDATE family SET family_name = %s, primary_user_id = %s, updated_at = now()
                WHERE id = %s
                """,
                (family_name, primary_account_id, family_id),
            )
            if cur.rowcount == 0:
                raise RemoteError(404, f"family {family_id} not found")
            self._replace_guardians(family_id, guardian_ids)

    def get_family(self, family_id: int) -> Family:
        with self._savepoint("get family"):
            row = self.conn.execute(
                """
                SELECT id, family_name, primary_user_id, archived, created_at, updated_at
                FROM family WHERE id = %s
                """,
                (family_id,),
            ).fetchone()
            if row is None:
                raise RemoteError(404, f"family {family_id} not found")
            guardians = self.conn.execute(
                """
                SELECT u.id, u.full_name, u.email, coalesce(u.phone, ''),
                       u.id = f.primary_user_id
                FROM family_guardian fg
                JOIN app_user u ON u.id = fg.user_id
                JOIN family f ON f.id = fg.family_id
                WHERE fg.family_id = %s
                ORDER BY (u.id = f.primary_user_id) DESC, fg.created_at, u.id
                """,
                (family_id,),
            ).fetchall()
            athletes = self.conn.execute(
                """
                SELECT a.id, a.family_id, a.first_name, a.last_name, a.date_of_birth,
                       a.medical_notes, a.internal_flags, a.user_id, a.archived,
                       (SELECT count(*) FROM member_program mp WHERE mp.athlete_id = a.id)
                FROM athlete a
                WHERE a.family_id = %s
                ORDER BY a.id
                """,
                (family_id,),
            ).fetchall()
        return Family(
            id=int(row[0]),
            family_name=row[1],
            primary_user_id=row[2],
            archived=bool(row[3]),
            guardians=[Guardian(*g) for g in guardians],
            athletes=[Athlete(*a) for a in athletes],
            created_at=row[4],
            updated_at=row[5],
        )

    def search_families(self, query: str) -> list[Family]:
        pattern = f"%{query}%"
        with self._savepoint("search families"):
            ids = self.conn.execute(
                """
                SELECT DISTINCT f.id
                FROM family f
                LEFT JOIN family_guardian fg ON fg.family_id = f.id
                LEFT JOIN app_user u ON u.id = fg.user_id
                LEFT JOIN athlete a ON a.family_id = f.id
                WHERE f.family_name ILIKE %s
                   OR u.full_name ILIKE %s OR u.email ILIKE %s
                   OR (a.first_name || ' ' || a.last_name) ILIKE %s
                ORDER BY f.id
                """,
                (pattern, pattern, pattern, pattern),
            ).fetchall()
        return [self.get_family(int(r[0])) for r in ids]

    def archive_family(self, family_id: int, archived: bool) -> None:
        with self._savepoint("archive family"):
            cur = self.conn.execute(
                "UPDATE family SET archived = %s, updated_at = now() WHERE id = %s",
                (archived, family_id),
            )
            if cur.rowcount == 0:
                raise RemoteError(404, f"family {family_id} not found")

    def delete_family(self, family_id: int) -> None:
        with self._savepoint("delete family"):
            cur = self.conn.execute("DELETE FROM family WHERE id = %s", (family_id,))
            if cur.rowcount == 0:
                raise RemoteError(404, f"family {family_id} not found")

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
        with self._savepoint("create member"):
            row = self.conn.execute(
                """
                INSERT INTO athlete
                    (family_id, first_name, last_name, date_of_birth,
                     medical_notes, internal_flags, user_id)
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                RETURNING id
                """,
                (family_id, first_name, last_name, date_of_birth,
                 medical_notes, internal_flags, account_id),
            ).fetchone()
        return int(row[0])

    def update_member(self, member_id: int, **fields: Any) -> None:
        if not fields:
            return
        clause, values = _set_clause(fields, _MEMBER_COLUMNS)
        with self._savepoint("update member"):
            cur = self.conn.execute(
                f"UPDATE athlete SET {clause}, updated_at = now() WHERE id = %s",
                (*values, member_id),
            )
            if cur.rowcount == 0:
                raise RemoteError(404, f"member {member_id} not found")

    # -- enrollments -----------------------------------------------------

    def list_enrollments(self, member_id: int) -> list[Enrollment]:
        with self._savepoint("list enrollments"):
            rows = self.conn.execute(
                """
                SELECT mp.id, mp.program_id, mp.days_per_week, mp.selected_days, p.display_name
                FROM member_program mp
                JOIN program p ON p.id = mp.program_id
                WHERE mp.athlete_id = %s
                ORDER BY mp.id
                """,
                (member_id,),
            ).fetchall()
        return [
            Enrollment(id=r[0], program_id=r[1], days_per_week=r[2],
                       selected_days=list(r[3] or []), program_display_name=r[4])
            for r in rows
        ]

    def create_or_update_enrollment(
        self,
        program_id: int,
        member_id: int,
        days_per_week: int,
        selected_days: list[str],
    ) -> None:
        with self._savepoint("upsert enrollment"):
            self.conn.execute(
                """
                INSERT INTO member_program (athlete_id, program_id, days_per_week, selected_days)
                VALUES (%s, %s, %s, %s)
                ON CONFLICT (athlete_id, program_id) DO UPDATE
                SET days_per_week = EXCLUDED.days_per_week,
                    selected_days = EXCLUDED.selected_days,
                    updated_at    = now()
                """,
                (member_id, program_id, days_per_week, list(selected_days)),
            )

    def delete_enrollment(self, enrollment_id: int) -> None:
        with self._savepoint("delete enrollment"):
            cur = self.conn.execute("DELETE FROM member_program WHERE id = %s", (enrollment_id,))
            if cur.rowcount == 0:
                raise RemoteError(404, f"enrollment {enrollment_id} not found")

    # -- catalog ---------------------------------------------------------

    def list_programs(self, include_archived: bool = False) -> list[Program]:
        with self._savepoint("list programs"):
            rows = self.conn.execute(
                """
                SELECT id, category, display_name, skill_level, is_active, archived,
                       age_min, age_max
                FROM program
                WHERE %s OR NOT archived
                ORDER BY id
                """,
                (include_archived,),
            ).fetchall()
        return [Program(*r) for r in rows]
