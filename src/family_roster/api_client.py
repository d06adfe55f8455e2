"""family_roster.api_client

HttpFamilyStore: the FamilyStore contract over the admin REST API.

Every response uses the envelope {"success": bool, "data": ..., "message": str}.

Status mapping:
  409 with a boolean "archived" in the body on POST /api/admin/users
      → ConflictError(email, archived)
      → AccountNotArchived when the request carried action='create_new'
  any other non-2xx, or success == false
      → RemoteError(status, body["message"])
  requests.RequestException
      → RemoteError(None, str(exc))

Enrollment mutations carry the bearer token (Authorization: Bearer ...).
Nothing is retried.

Usage:
    store = HttpFamilyStore("http://localhost:3001", token=os.environ["ROSTER_API_TOKEN"])
    family = store.get_family(12)
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

import requests

from family_roster.models import (
    Account,
    Athlete,
    ContactRecord,
    Enrollment,
    Family,
    Guardian,
    Program,
)
from family_roster.normalize import parse_date_only
from family_roster.shared import AccountNotArchived, ConflictError, RemoteError
from family_roster.store import ACTION_CREATE_NEW

log = logging.getLogger(__name__)

USER_AGENT = "family-roster/0.1"

# store field name → API body key
_ACCOUNT_FIELDS = {
    "full_name": "fullName",
    "email": "email",
    "phone": "phone",
    "username": "username",
    "password": "password",
    "address": "address",
    "role": "role",
    "archived": "archived",
}
_MEMBER_FIELDS = {
    "first_name": "firstName",
    "last_name": "lastName",
    "date_of_birth": "dateOfBirth",
    "medical_notes": "medicalNotes",
    "internal_flags": "internalFlags",
    "account_id": "userId",
}


class HttpFamilyStore:
    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 30,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})

    # -- transport -------------------------------------------------------

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        auth: bool = False,
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(
                method, url, json=json, params=params,
                headers=self._auth_headers() if auth else None,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            log.error("%s %s failed: %s", method, path, exc)
            raise RemoteError(None, str(exc)) from exc
        log.debug("%s %s -> %s", method, path, resp.status_code)
        return resp

    def _call(self, method: str, path: str, **kwargs: Any) -> Any:
        """Perform a request and return the envelope's data."""
        resp = self._request(method, path, **kwargs)
        body = _json_body(resp)
        if not 200 <= resp.status_code < 300 or body.get("success") is False:
            raise RemoteError(resp.status_code, body.get("message"))
        return body.get("data")

    # -- accounts --------------------------------------------------------

    def create_account(self, contact: ContactRecord, action: str | None = None) -> int:
        payload: dict[str, Any] = {
            "fullName": contact.full_name,
            "email": contact.email,
            "phone": contact.phone,
            "username": contact.username,
            "password": contact.password,
            "role": contact.role,
            "address": contact.address,
        }
        if action is not None:
            payload["action"] = action
        resp = self._request("POST", "/api/admin/users", json=payload)
        body = _json_body(resp)
        if resp.status_code == 409 and isinstance(body.get("archived"), bool):
            if action == ACTION_CREATE_NEW and body["archived"] is False:
                raise AccountNotArchived(contact.email)
            raise ConflictError(
                email=contact.email,
                archived=body["archived"],
                existing_account_id=body.get("existingUserId") or body.get("userId"),
                message=body.get("message"),
            )
        if not 200 <= resp.status_code < 300 or body.get("success") is False:
            raise RemoteError(resp.status_code, body.get("message"))
        data = body.get("data") or {}
        if data.get("id") is None:
            raise RemoteError(resp.status_code, "account id missing from response")
        return int(data["id"])

    def update_account(self, account_id: int, **fields: Any) -> None:
        self._call("PUT", f"/api/admin/users/{account_id}", json=_translate(fields, _ACCOUNT_FIELDS))

    def get_account(self, account_id: int) -> Account:
        return _account_from_api(self._call("GET", f"/api/admin/users/{account_id}"))

    def search_accounts(self, query: str) -> list[Account]:
        data = self._call("GET", "/api/admin/users", params={"search": query}) or []
        return [_account_from_api(d) for d in data]

    # -- families --------------------------------------------------------

    def create_family(
        self,
        family_name: str | None,
        primary_account_id: int,
        guardian_ids: list[int],
    ) -> int:
        data = self._call("POST", "/api/admin/families", json={
            "familyName": family_name,
            "primaryUserId": primary_account_id,
            "guardianIds": list(guardian_ids),
        })
        return int(data["id"])

    def update_family(
        self,
        family_id: int,
        family_name: str | None,
        primary_account_id: int | None,
        guardian_ids: list[int],
    ) -> None:
        self._call("PUT", f"/api/admin/families/{family_id}", json={
            "familyName": family_name,
            "primaryUserId": primary_account_id,
            "guardianIds": list(guardian_ids),
        })

    def get_family(self, family_id: int) -> Family:
        return _family_from_api(self._call("GET", f"/api/admin/families/{family_id}"))

    def search_families(self, query: str) -> list[Family]:
        data = self._call("GET", "/api/admin/families", params={"search": query}) or []
        return [_family_from_api(d) for d in data]

    def archive_family(self, family_id: int, archived: bool) -> None:
        self._call("PATCH", f"/api/admin/families/{family_id}/archive", json={"archived": archived})

    def delete_family(self, family_id: int) -> None:
        self._call("DELETE", f"/api/admin/families/{family_id}")

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
        data = self._call("POST", "/api/admin/athletes", json={
            "familyId": family_id,
            "firstName": first_name,
            "lastName": last_name,
            "dateOfBirth": date_of_birth.isoformat() if date_of_birth else None,
            "medicalNotes": medical_notes,
            "internalFlags": internal_flags,
            "userId": account_id,
        })
        return int(data["id"])

    def update_member(self, member_id: int, **fields: Any) -> None:
        if isinstance(fields.get("date_of_birth"), date):
            fields["date_of_birth"] = fields["date_of_birth"].isoformat()
        self._call("PUT", f"/api/admin/athletes/{member_id}", json=_translate(fields, _MEMBER_FIELDS))

    # -- enrollments -----------------------------------------------------

    def list_enrollments(self, member_id: int) -> list[Enrollment]:
        data = self._call("GET", f"/api/admin/athletes/{member_id}/enrollments", auth=True) or []
        return [_enrollment_from_api(d) for d in data]

    def create_or_update_enrollment(
        self,
        program_id: int,
        member_id: int,
        days_per_week: int,
        selected_days: list[str],
    ) -> None:
        self._call("POST", "/api/members/enroll", auth=True, json={
            "programId": program_id,
            "familyMemberId": member_id,
            "daysPerWeek": days_per_week,
            "selectedDays": list(selected_days),
        })

    def delete_enrollment(self, enrollment_id: int) -> None:
        self._call("DELETE", f"/api/members/enrollments/{enrollment_id}", auth=True)

    # -- catalog ---------------------------------------------------------

    def list_programs(self, include_archived: bool = False) -> list[Program]:
        data = list(self._call("GET", "/api/admin/programs", params={"archived": "false"}) or [])
        if include_archived:
            data += self._call("GET", "/api/admin/programs", params={"archived": "true"}) or []
        return [_program_from_api(d) for d in data]


# ---------------------------------------------------------------------------
# Decoding helpers
# ---------------------------------------------------------------------------

def _json_body(resp: requests.Response) -> dict[str, Any]:
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {"data": body}


def _translate(fields: dict[str, Any], mapping: dict[str, str]) -> dict[str, Any]:
    unknown = set(fields) - set(mapping)
    if unknown:
        raise TypeError(f"unsupported field(s): {sorted(unknown)}")
    return {mapping[k]: v for k, v in fields.items()}


def _pick(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    """First present key; the API mixes snake_case rows and camelCase DTOs."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _account_from_api(d: dict[str, Any]) -> Account:
    return Account(
        id=int(d["id"]),
        full_name=_pick(d, "full_name", "fullName", default=""),
        email=_pick(d, "email", default=""),
        phone=_pick(d, "phone", default=""),
        username=_pick(d, "username", default=""),
        address=_pick(d, "address", default=""),
        role=_pick(d, "role", default=""),
        is_active=bool(_pick(d, "is_active", "isActive", default=True)),
        archived=bool(_pick(d, "archived", default=False)),
    )


def _athlete_from_api(d: dict[str, Any], family_id: int | None) -> Athlete:
    return Athlete(
        id=int(d["id"]),
        family_id=_pick(d, "family_id", "familyId", default=family_id),
        first_name=_pick(d, "first_name", "firstName", default=""),
        last_name=_pick(d, "last_name", "lastName", default=""),
        date_of_birth=parse_date_only(_pick(d, "date_of_birth", "dateOfBirth")),
        medical_notes=_pick(d, "medical_notes", "medicalNotes"),
        internal_flags=_pick(d, "internal_flags", "internalFlags"),
        user_id=_pick(d, "user_id", "userId"),
        archived=bool(_pick(d, "archived", default=False)),
        enrollment_count=int(_pick(d, "enrollment_count", "enrollmentCount", default=0)),
    )


def _family_from_api(d: dict[str, Any]) -> Family:
    family_id = int(d["id"])
    primary = _pick(d, "primary_user_id", "primaryUserId")
    return Family(
        id=family_id,
        family_name=_pick(d, "family_name", "familyName"),
        primary_user_id=primary,
        archived=bool(_pick(d, "archived", default=False)),
        guardians=[
            Guardian(
                id=int(g["id"]),
                full_name=_pick(g, "full_name", "fullName", default=""),
                email=_pick(g, "email", default=""),
                phone=_pick(g, "phone", default=""),
                is_primary_billing=bool(
                    _pick(g, "is_primary_billing", "isPrimaryBilling", default=g["id"] == primary)
                ),
            )
            for g in d.get("guardians") or []
        ],
        athletes=[_athlete_from_api(a, family_id) for a in d.get("athletes") or []],
        created_at=_pick(d, "created_at", "createdAt"),
        updated_at=_pick(d, "updated_at", "updatedAt"),
    )


def _enrollment_from_api(d: dict[str, Any]) -> Enrollment:
    days = _pick(d, "selected_days", "selectedDays", default=[])
    if isinstance(days, str):
        days = [s.strip() for s in days.strip("{}").split(",") if s.strip()]
    return Enrollment(
        id=int(d["id"]),
        program_id=int(_pick(d, "program_id", "programId")),
        days_per_week=int(_pick(d, "days_per_week", "daysPerWeek", default=len(days))),
        selected_days=list(days),
        program_display_name=_pick(d, "program_display_name", "display_name", "displayName", default=""),
    )


def _program_from_api(d: dict[str, Any]) -> Program:
    return Program(
        id=int(d["id"]),
        category=_pick(d, "category", default=""),
        display_name=_pick(d, "display_name", "displayName", "name", default=""),
        skill_level=_pick(d, "skill_level", "skillLevel"),
        is_active=bool(_pick(d, "is_active", "isActive", default=True)),
        archived=bool(_pick(d, "archived", default=False)),
        age_min=_pick(d, "age_min", "ageMin"),
        age_max=_pick(d, "age_max", "ageMax"),
    )
