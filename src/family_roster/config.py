"""family_roster.config

YAML settings for the roster workflows.

Usage:
    from pathlib import Path
    from family_roster.config import load_settings

    settings = load_settings(Path("config/roster.yml"))
    settings.adult_age          # 18
    settings.api_token()        # value of $ROSTER_API_TOKEN, or None

A missing file yields the defaults. Every key is optional; unknown keys or
wrongly typed values raise SettingsValidationError. Secrets never live in
the file: only the NAME of the environment variable holding the bearer
token is configured.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_SETTINGS_PATH = Path("config/roster.yml")

VALID_ENROLLMENT_STRATEGIES = ("diff", "replace")
VALID_ATTACH_FAILURE_MODES = ("warn", "fail")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class SettingsValidationError(ValueError):
    """Raised when a settings file fails schema validation."""


# ---------------------------------------------------------------------------
# RosterSettings dataclass
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RosterSettings:
    api_base_url: str = "http://localhost:3001"
    api_token_env: str = "ROSTER_API_TOKEN"
    request_timeout_seconds: float = 30
    adult_age: int = 18
    default_password: str = "vortex"
    guardian_role: str = "PARENT_GUARDIAN"
    require_birth_date: bool = True
    edit_enrollment_strategy: str = "diff"
    guardian_attach_failure: str = "warn"
    username_max_suffix: int = 100

    def api_token(self) -> str | None:
        return os.environ.get(self.api_token_env) or None


# key -> accepted python types (bool is checked before int since bool ⊂ int)
_KEY_TYPES: dict[str, tuple[type, ...]] = {
    "api_base_url": (str,),
    "api_token_env": (str,),
    "request_timeout_seconds": (int, float),
    "adult_age": (int,),
    "default_password": (str,),
    "guardian_role": (str,),
    "require_birth_date": (bool,),
    "edit_enrollment_strategy": (str,),
    "guardian_attach_failure": (str,),
    "username_max_suffix": (int,),
}


# ---------------------------------------------------------------------------
# Loader + validator
# ---------------------------------------------------------------------------

def load_settings(path: Path | None = None) -> RosterSettings:
    """Load and validate settings; a missing file means all defaults.

    Raises:
        SettingsValidationError: unknown key, wrong type, or bad value.
    """
    path = path or DEFAULT_SETTINGS_PATH
    if not path.exists():
        return RosterSettings()
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    validate_settings(data)
    return RosterSettings(**data)


def validate_settings(data: Any) -> None:
    if not isinstance(data, dict):
        raise SettingsValidationError("settings file must contain a mapping at the top level")

    known = {f.name for f in fields(RosterSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise SettingsValidationError(f"unknown settings key(s): {unknown}")

    for key, value in data.items():
        allowed = _KEY_TYPES[key]
        if isinstance(value, bool) and bool not in allowed:
            raise SettingsValidationError(f"{key} must be {allowed[0].__name__}, got bool")
        if not isinstance(value, allowed):
            raise SettingsValidationError(
                f"{key} must be {' or '.join(t.__name__ for t in allowed)}, "
                f"got {type(value).__name__}"
            )

    if data.get("edit_enrollment_strategy", "diff") not in VALID_ENROLLMENT_STRATEGIES:
        raise SettingsValidationError(
            f"edit_enrollment_strategy must be one of {VALID_ENROLLMENT_STRATEGIES}"
        )
    if data.get("guardian_attach_failure", "warn") not in VALID_ATTACH_FAILURE_MODES:
        raise SettingsValidationError(
            f"guardian_attach_failure must be one of {VALID_ATTACH_FAILURE_MODES}"
        )
    if data.get("adult_age", 18) < 1:
        raise SettingsValidationError("adult_age must be positive")
    if data.get("request_timeout_seconds", 30) <= 0:
        raise SettingsValidationError("request_timeout_seconds must be positive")
    if data.get("username_max_suffix", 100) < 0:
        raise SettingsValidationError("username_max_suffix must not be negative")
    if not data.get("api_token_env", "x"):
        raise SettingsValidationError("api_token_env must not be empty")
