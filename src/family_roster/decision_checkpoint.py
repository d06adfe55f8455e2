"""family_roster.decision_checkpoint

Persist a submission that halted on an account conflict so a later run can
supply the decision (create_new / revive) and resume.

File layout (JSON):
    {
      "run_id": "...",
      "mode": "create_family" | "add_members" | "edit_member",
      "payload_path": "members.yml",
      "family_id": 12 | null,
      "guardian_id": 7 | null,
      "resolved_accounts": {"member-1": 41},
      "revived_keys": ["member-1"],
      "pending": { ...PendingDecision.to_dict()... }
    }

The staged password is never written; resuming takes it from the replayed
payload.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from family_roster.identity_resolver import PendingDecision

log = logging.getLogger(__name__)

DEFAULT_CHECKPOINT_PATH = Path("./artifacts/checkpoints/pending_decision.json")


@dataclass
class DecisionState:
    run_id: str
    mode: str
    payload_path: str | None
    pending: PendingDecision
    family_id: int | None = None
    guardian_id: int | None = None
    resolved_accounts: dict[str, int] = field(default_factory=dict)
    revived_keys: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "mode": self.mode,
            "payload_path": self.payload_path,
            "family_id": self.family_id,
            "guardian_id": self.guardian_id,
            "resolved_accounts": dict(self.resolved_accounts),
            "revived_keys": list(self.revived_keys),
            "pending": self.pending.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DecisionState:
        return cls(
            run_id=data["run_id"],
            mode=data["mode"],
            payload_path=data.get("payload_path"),
            pending=PendingDecision.from_dict(data["pending"]),
            family_id=data.get("family_id"),
            guardian_id=data.get("guardian_id"),
            resolved_accounts={k: int(v) for k, v in (data.get("resolved_accounts") or {}).items()},
            revived_keys=list(data.get("revived_keys") or []),
        )


class DecisionCheckpoint:
    """One pending decision per checkpoint file."""

    def __init__(self, path: Path = DEFAULT_CHECKPOINT_PATH) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def load(self) -> DecisionState | None:
        """Return the saved state, or None when there is no checkpoint."""
        if not self._path.exists():
            return None
        data = json.loads(self._path.read_text(encoding="utf-8"))
        return DecisionState.from_dict(data)

    def save(self, state: DecisionState) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(state.to_dict(), indent=2), encoding="utf-8")
        log.info("pending decision saved to %s", self._path)

    def clear(self) -> None:
        if self._path.exists():
            self._path.unlink()
