"""Unit tests for family_roster.decision_checkpoint."""

from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path

from family_roster.decision_checkpoint import DecisionCheckpoint, DecisionState
from family_roster.identity_resolver import PendingDecision
from family_roster.models import ContactRecord


def _state() -> DecisionState:
    contact = ContactRecord(
        full_name="Ann Smith", email="ann@example.com", phone="5551234567",
        username="annsm", password="vortex", address=None, role="PARENT_GUARDIAN",
    )
    return DecisionState(
        run_id="run-1",
        mode="add_members",
        payload_path="members.yml",
        pending=PendingDecision(contact, "ann@example.com", True, 9, "member-2"),
        family_id=12,
        resolved_accounts={"member-1": 41},
        revived_keys=["member-1"],
    )


class TestDecisionCheckpoint:
    def test_load_without_file(self, tmp_path: Path):
        cp = DecisionCheckpoint(tmp_path / "pending.json")
        assert cp.exists() is False
        assert cp.load() is None

    def test_save_then_load(self, tmp_path: Path):
        cp = DecisionCheckpoint(tmp_path / "nested" / "pending.json")
        cp.save(_state())

        assert cp.exists()
        loaded = cp.load()
        expected = _state()
        expected.pending = replace(
            expected.pending, contact=replace(expected.pending.contact, password=""),
        )
        assert loaded == expected
        assert loaded.pending.member_key == "member-2"
        assert loaded.revived_keys == ["member-1"]

    def test_file_is_plain_json(self, tmp_path: Path):
        cp = DecisionCheckpoint(tmp_path / "pending.json")
        cp.save(_state())
        data = json.loads(cp.path.read_text(encoding="utf-8"))
        assert data["mode"] == "add_members"
        assert data["pending"]["archived"] is True
        assert data["resolved_accounts"] == {"member-1": 41}
        assert "password" not in data["pending"]["contact"]
        assert "vortex" not in cp.path.read_text(encoding="utf-8")

    def test_clear(self, tmp_path: Path):
        cp = DecisionCheckpoint(tmp_path / "pending.json")
        cp.save(_state())
        cp.clear()
        assert not cp.exists()
        cp.clear()  # no file: no error
