"""Integration tests for family_roster.pg_store against a real PostgreSQL schema."""

from __future__ import annotations

from datetime import date

import pytest

from family_roster.models import ContactRecord
from family_roster.pg_store import PostgresFamilyStore, hash_password
from family_roster.shared import AccountNotArchived, ConflictError, RemoteError


def _contact(email: str = "ann@example.com", username: str = "annsm") -> ContactRecord:
    return ContactRecord(
        full_name="Ann Smith", email=email, phone="5551234567", username=username,
        password="vortex", address="1 Main St, Springfield, IL 62701",
        role="PARENT_GUARDIAN",
    )


@pytest.fixture
def store(db_conn) -> PostgresFamilyStore:
    conn, _ = db_conn
    return PostgresFamilyStore(conn)


def _archive_account(conn, account_id: int) -> None:
    conn.execute("UPDATE app_user SET archived = true WHERE id = %s", (account_id,))


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

class TestCreateAccount:
    def test_insert(self, store, db_conn):
        conn, _ = db_conn
        account_id = store.create_account(_contact())
        row = conn.execute(
            "SELECT email, password_hash, archived FROM app_user WHERE id = %s", (account_id,)
        ).fetchone()
        assert row == ("ann@example.com", hash_password("vortex"), False)

    def test_email_collision_is_case_insensitive(self, store):
        first = store.create_account(_contact())
        with pytest.raises(ConflictError) as exc_info:
            store.create_account(_contact("ANN@example.com", "annsm1"))
        assert exc_info.value.archived is False
        assert exc_info.value.existing_account_id == first

    def test_conflict_leaves_transaction_usable(self, store, db_conn):
        conn, _ = db_conn
        store.create_account(_contact())
        with pytest.raises(ConflictError):
            store.create_account(_contact())
        assert conn.execute("SELECT count(*) FROM app_user").fetchone()[0] == 1

    def test_create_new_on_active_account(self, store):
        store.create_account(_contact())
        with pytest.raises(AccountNotArchived):
            store.create_account(_contact(), action="create_new")

    def test_create_new_detaches_archived_account(self, store, db_conn):
        conn, _ = db_conn
        account_id = store.create_account(_contact())
        old_family = store.create_family("Old Family", account_id, [account_id])
        athlete_id = store.create_member(old_family, "Ann", "Smith", date(1980, 2, 1), account_id=account_id)
        _archive_account(conn, account_id)

        result = store.create_account(_contact(), action="create_new")

        assert result == account_id
        assert store.get_account(account_id).archived is False
        assert conn.execute(
            "SELECT count(*) FROM family_guardian WHERE user_id = %s", (account_id,)
        ).fetchone()[0] == 0
        assert conn.execute(
            "SELECT user_id FROM athlete WHERE id = %s", (athlete_id,)
        ).fetchone()[0] is None

    def test_revive_keeps_family(self, store, db_conn):
        conn, _ = db_conn
        account_id = store.create_account(_contact())
        family_id = store.create_family("Old Family", account_id, [account_id])
        _archive_account(conn, account_id)

        assert store.create_account(_contact(), action="revive") == account_id

        assert store.get_family(family_id).guardian_ids == [account_id]
        assert store.get_account(account_id).archived is False

    def test_update_account_hashes_password(self, store, db_conn):
        conn, _ = db_conn
        account_id = store.create_account(_contact())
        store.update_account(account_id, phone="5550000000", password="n3w")
        row = conn.execute(
            "SELECT phone, password_hash FROM app_user WHERE id = %s", (account_id,)
        ).fetchone()
        assert row == ("5550000000", hash_password("n3w"))

    def test_update_missing_account(self, store):
        with pytest.raises(RemoteError) as exc_info:
            store.update_account(9999, phone="1")
        assert exc_info.value.status_code == 404

    def test_search_accounts(self, store):
        store.create_account(_contact())
        assert [a.username for a in store.search_accounts("ANNSM")] == ["annsm"]


# ---------------------------------------------------------------------------
# Families
# ---------------------------------------------------------------------------

class TestFamilies:
    def test_primary_guardian_listed_first(self, store):
        a = store.create_account(_contact())
        b = store.create_account(_contact("bob@example.com", "bobsm"))
        family_id = store.create_family("Smith Family", b, [a, b])

        family = store.get_family(family_id)

        assert family.guardian_ids == [b, a]
        assert family.guardians[0].is_primary_billing is True

    def test_guardian_in_one_family_only(self, store):
        a = store.create_account(_contact())
        store.create_family("Smith Family", a, [a])
        with pytest.raises(RemoteError):
            store.create_family("Second Family", a, [a])

    def test_search_matches_athlete_names(self, store):
        a = store.create_account(_contact())
        family_id = store.create_family("Smith Family", a, [a])
        store.create_member(family_id, "Cara", "Jones", date(2015, 9, 9))
        assert [f.id for f in store.search_families("cara jo")] == [family_id]

    def test_archive(self, store):
        a = store.create_account(_contact())
        family_id = store.create_family("Smith Family", a, [a])
        store.archive_family(family_id, True)
        assert store.get_family(family_id).archived is True

    def test_delete_cascades(self, store, db_conn, programs):
        conn, _ = db_conn
        a = store.create_account(_contact())
        family_id = store.create_family("Smith Family", a, [a])
        member_id = store.create_member(family_id, "Cara", "Smith", date(2015, 9, 9))
        store.create_or_update_enrollment(programs["Tumbling"], member_id, 1, ["Monday"])

        store.delete_family(family_id)

        for table in ("family", "family_guardian", "athlete", "member_program"):
            assert conn.execute(f"SELECT count(*) FROM {table}").fetchone()[0] == 0
        assert conn.execute("SELECT count(*) FROM app_user").fetchone()[0] == 1

    def test_get_missing_family(self, store):
        with pytest.raises(RemoteError) as exc_info:
            store.get_family(9999)
        assert exc_info.value.status_code == 404


# ---------------------------------------------------------------------------
# Members / enrollments
# ---------------------------------------------------------------------------

class TestEnrollments:
    @pytest.fixture
    def member_id(self, store) -> int:
        a = store.create_account(_contact())
        family_id = store.create_family("Smith Family", a, [a])
        return store.create_member(family_id, "Cara", "Smith", date(2015, 9, 9))

    def test_upsert_is_idempotent(self, store, member_id, programs):
        pid = programs["Artistic"]
        store.create_or_update_enrollment(pid, member_id, 1, ["Monday"])
        store.create_or_update_enrollment(pid, member_id, 2, ["Tuesday", "Thursday"])

        (e,) = store.list_enrollments(member_id)
        assert e.program_id == pid
        assert e.days_per_week == 2
        assert e.selected_days == ["Tuesday", "Thursday"]
        assert e.program_display_name == "Artistic"

    def test_day_count_check_fails_alone(self, store, member_id, programs):
        with pytest.raises(RemoteError):
            store.create_or_update_enrollment(programs["Tumbling"], member_id, 2, ["Monday"])

        store.create_or_update_enrollment(programs["Ninja Zone"], member_id, 1, ["Friday"])
        assert [e.program_id for e in store.list_enrollments(member_id)] == [programs["Ninja Zone"]]

    def test_delete_missing_enrollment(self, store):
        with pytest.raises(RemoteError) as exc_info:
            store.delete_enrollment(9999)
        assert exc_info.value.status_code == 404

    def test_update_member_links_account(self, store, member_id, db_conn):
        conn, _ = db_conn
        account_id = store.create_account(_contact("cara@example.com", "carasm"))
        store.update_member(member_id, account_id=account_id, medical_notes="asthma")
        row = conn.execute(
            "SELECT user_id, medical_notes FROM athlete WHERE id = %s", (member_id,)
        ).fetchone()
        assert row == (account_id, "asthma")


class TestPrograms:
    def test_archived_hidden_by_default(self, store, programs):
        assert "Retired Cheer" not in [p.display_name for p in store.list_programs()]
        assert "Retired Cheer" in [p.display_name for p in store.list_programs(include_archived=True)]
