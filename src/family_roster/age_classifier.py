"""family_roster.age_classifier

Adult/minor determination from a date of birth.

Age is full elapsed years, decremented by one while the reference date's
(month, day) precedes the birth date's (month, day). A Feb 29 birthday is
therefore reached on Mar 1 in non-leap years.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from family_roster.normalize import parse_date_only
from family_roster.shared import InvalidDate

ADULT_AGE = 18


@dataclass(frozen=True)
class AgeClassification:
    age: int | None
    is_adult: bool

    @property
    def is_known(self) -> bool:
        return self.age is not None


UNKNOWN_AGE = AgeClassification(age=None, is_adult=False)


def _coerce_birth_date(birth_date: str | date | None) -> date | None:
    try:
        return parse_date_only(birth_date)
    except ValueError as exc:
        raise InvalidDate(f"unparseable birth date: {birth_date!r}") from exc


def age_on(birth: date, reference: date) -> int:
    age = reference.year - birth.year
    if (reference.month, reference.day) < (birth.month, birth.day):
        age -= 1
    return age


def classify(
    birth_date: str | date,
    reference_date: date | None = None,
    adult_age: int = ADULT_AGE,
) -> AgeClassification:
    """Return age and adult flag. Raises InvalidDate for unparseable/blank input."""
    birth = _coerce_birth_date(birth_date)
    if birth is None:
        raise InvalidDate(f"unparseable birth date: {birth_date!r}")
    age = age_on(birth, reference_date or date.today())
    return AgeClassification(age=age, is_adult=age >= adult_age)


def classify_optional(
    birth_date: str | date | None,
    reference_date: date | None = None,
    adult_age: int = ADULT_AGE,
) -> AgeClassification:
    """Like classify(), but a blank birth date means "age unknown, not adult".

    Minors are staged before their profile is complete, so callers deciding
    whether a login account is required go through this function.
    """
    if _coerce_birth_date(birth_date) is None:
        return UNKNOWN_AGE
    return classify(birth_date, reference_date, adult_age)  # type: ignore[arg-type]


def is_adult(
    birth_date: str | date | None,
    reference_date: date | None = None,
    adult_age: int = ADULT_AGE,
) -> bool:
    return classify_optional(birth_date, reference_date, adult_age).is_adult
