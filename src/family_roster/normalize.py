"""Normalization functions for staged family-member input.

All functions accept str | None and return the appropriate type or None,
except the phone/username helpers, which return '' for empty input because
their results are written straight back into form buffers.
"""

from __future__ import annotations

import re
import unicodedata
from datetime import date, datetime

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


# ---------------------------------------------------------------------------
# Rule 1: trim
# ---------------------------------------------------------------------------

def trim(value: str | None) -> str | None:
    """Strip leading/trailing whitespace; treat empty string as None."""
    if value is None:
        return None
    v = value.strip()
    return v if v else None


# ---------------------------------------------------------------------------
# Rule 2: normalize_space
# ---------------------------------------------------------------------------

def normalize_space(value: str | None) -> str | None:
    """Collapse internal runs of whitespace to single spaces, then trim."""
    v = trim(value)
    if v is None:
        return None
    return re.sub(r"\s+", " ", v)


# ---------------------------------------------------------------------------
# Rule 3: normalize_email
# ---------------------------------------------------------------------------

def normalize_email(value: str | None) -> str | None:
    """Lowercase and trim an email address."""
    v = trim(value)
    if v is None:
        return None
    return v.lower()


# ---------------------------------------------------------------------------
# Rule 4: phone helpers
# ---------------------------------------------------------------------------

def clean_phone(value: str | None) -> str:
    """Keep digits only. This is the form the backend stores."""
    if not value:
        return ""
    return re.sub(r"\D", "", value)


def format_phone(value: str | None) -> str:
    """Render up to 10 digits progressively as XXX, XXX-XXX, XXX-XXX-XXXX.

    Extra digits beyond the tenth are dropped.
    """
    digits = clean_phone(value)[:10]
    if len(digits) <= 3:
        return digits
    if len(digits) <= 6:
        return f"{digits[:3]}-{digits[3:]}"
    return f"{digits[:3]}-{digits[3:6]}-{digits[6:]}"


# ---------------------------------------------------------------------------
# Rule 5: names
# ---------------------------------------------------------------------------

def parse_name_parts(full_name: str | None) -> tuple[str, str]:
    """Split a stored full name into (first_name, last_name).

    Guardians are stored with a single full_name column; the first token is
    the first name and everything after it is the last name.
    """
    v = normalize_space(full_name)
    if not v:
        return ("", "")
    tokens = v.split(" ")
    return (tokens[0], " ".join(tokens[1:]))


def full_name(first_name: str | None, last_name: str | None) -> str:
    """Join first and last name with one space, dropping blanks."""
    return " ".join(p for p in (trim(first_name), trim(last_name)) if p)


def _ascii_alnum(value: str | None) -> str:
    v = trim(value)
    if v is None:
        return ""
    # Decompose unicode (e.g. accented chars) then drop combining marks
    v = unicodedata.normalize("NFKD", v)
    v = "".join(c for c in v if not unicodedata.combining(c))
    return re.sub(r"[^a-z0-9]", "", v.lower())


def username_base(first_name: str | None, last_name: str | None = "") -> str:
    """Lowercase alnum first name + first two alnum chars of last name.

    Returns '' when the first name has no usable characters.
    """
    first = _ascii_alnum(first_name)
    if not first:
        return ""
    return first + _ascii_alnum(last_name)[:2]


# ---------------------------------------------------------------------------
# Rule 6: parse_date_only
# ---------------------------------------------------------------------------

def parse_date_only(value: str | date | None) -> date | None:
    """Parse a calendar date without any timezone conversion.

    Accepts 'YYYY-MM-DD', an ISO timestamp (date part is used), 'MM/DD/YYYY',
    or a date/datetime object. Blank input → None. Raises ValueError for
    anything else.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    v = trim(value)
    if v is None:
        return None
    if "T" in v:
        v = v.split("T", 1)[0]
    if _ISO_DATE_RE.match(v):
        return datetime.strptime(v, "%Y-%m-%d").date()
    return datetime.strptime(v, "%m/%d/%Y").date()
