"""family_roster.address

Free-text mailing address codec.

Accounts store a single ``address`` column; staged contact sections hold it
as four fields. The stored form is always::

    street, city, state zip

with empty parts dropped. ``parse_address(combine_address(...))`` returns the
original fields whenever all four are non-empty and contain no commas.
"""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class Address:
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""

    def combined(self) -> str:
        return combine_address(self.street, self.city, self.state, self.zip_code)

    def is_empty(self) -> bool:
        return not (self.street or self.city or self.state or self.zip_code)


def combine_address(
    street: str | None,
    city: str | None,
    state: str | None,
    zip_code: str | None,
) -> str:
    """Join the non-empty parts with ', '; state and zip share the last part.

    Returns '' when every part is empty.
    """
    parts: list[str] = []
    s = (street or "").strip()
    c = (city or "").strip()
    if s:
        parts.append(s)
    if c:
        parts.append(c)
    state_zip = " ".join(p for p in ((state or "").strip(), (zip_code or "").strip()) if p)
    if state_zip:
        parts.append(state_zip)
    return ", ".join(parts)


def parse_address(address: str | None) -> Address:
    """Split a stored address back into street/city/state/zip.

    - 3+ comma parts: street, city, then the third part split on whitespace
      into state (first token) and zip (remaining tokens). Extra parts are
      ignored.
    - 2 parts: street, city.
    - 1 part: street.
    """
    if not address:
        return Address()
    parts = [p.strip() for p in address.split(",") if p.strip()]
    if len(parts) >= 3:
        tokens = re.split(r"\s+", parts[2])
        state = tokens[0] if tokens else ""
        zip_code = " ".join(tokens[1:])
        return Address(parts[0], parts[1], state, zip_code)
    if len(parts) == 2:
        return Address(parts[0], parts[1])
    if len(parts) == 1:
        return Address(parts[0])
    return Address()
