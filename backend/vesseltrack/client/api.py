"""HTTP client for the VesselTrack backend.

Every call either returns decoded JSON or raises :class:`BackendError`
carrying the backend's ``detail`` message. Nothing is retried.

Usage:
    from vesseltrack.client.api import BackendClient

    client = BackendClient("http://127.0.0.1:8000/api/v1")
    session = client.sign_in("ops@example.com", "secret")
    client.token = session["access_token"]
"""
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from vesseltrack.config import settings

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """A failed auth or data call."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, list):
        # Pydantic validation errors
        parts = []
        for err in detail:
            loc = ".".join(str(p) for p in err.get("loc", []) if p != "body")
            parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
        return "; ".join(parts) or f"HTTP {resp.status_code}"
    if detail:
        return str(detail)
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP {resp.status_code}"


class BackendClient:
    """Thin wrapper over ``httpx.Client`` with bearer-token handling."""

    def __init__(
        self,
        base_url: str | None = None,
        http: httpx.Client | None = None,
        token: str | None = None,
        timeout: float | None = None,
    ):
        self.base_url = (base_url or settings.API_URL).rstrip("/")
        self._owns_http = http is None
        self._http = http or httpx.Client(timeout=timeout or settings.API_TIMEOUT, follow_redirects=True)
        self.token = token

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def _request(self, method: str, path: str, *, json: Any = None, params: dict | None = None) -> Any:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        try:
            resp = self._http.request(method, f"{self.base_url}{path}", json=json, params=params, headers=headers)
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise BackendError(f"Could not reach the server: {e}") from e

        if resp.status_code >= 400:
            message = _error_message(resp)
            logger.debug("%s %s -> %d %s", method, path, resp.status_code, message)
            raise BackendError(message, status_code=resp.status_code)
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    # -- auth ---------------------------------------------------------------

    def sign_up(self, email: str, password: str, username: str, name: str | None = None) -> dict:
        return self._request("POST", "/auth/signup", json={
            "email": email, "password": password, "username": username, "name": name,
        })

    def sign_in(self, email: str, password: str) -> dict:
        return self._request("POST", "/auth/token", json={"email": email, "password": password})

    def sign_out(self) -> None:
        self._request("POST", "/auth/logout")

    def get_session(self) -> dict:
        return self._request("GET", "/auth/session")

    def update_user(self, email: str | None = None, password: str | None = None) -> dict:
        body = {}
        if email is not None:
            body["email"] = email
        if password is not None:
            body["password"] = password
        return self._request("PUT", "/auth/user", json=body)

    def reset_password_for_email(self, email: str, redirect_to: str | None = None) -> None:
        self._request("POST", "/auth/recover", json={"email": email}, params={"redirect_to": redirect_to})

    def confirm_password_reset(self, token: str, password: str) -> None:
        self._request("POST", "/auth/recover/confirm", json={"token": token, "password": password})

    # -- profiles -----------------------------------------------------------

    def list_profiles(self, username: str | None = None) -> list[dict]:
        return self._request("GET", "/profiles", params={"username": username})

    def get_profile(self, profile_id: str) -> dict:
        return self._request("GET", f"/profiles/{profile_id}")

    def update_profile(self, profile_id: str, name: Optional[str]) -> dict:
        return self._request("PATCH", f"/profiles/{profile_id}", json={"name": name})

    # -- voyages ------------------------------------------------------------

    def list_trips(
        self,
        include_archived: bool = False,
        status: str | None = None,
        skip: int | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        params = {"status": status, "skip": skip, "limit": limit}
        if include_archived:
            params["include_archived"] = "true"
        return self._request("GET", "/trips", params=params)

    def create_trip(self, payload: dict) -> dict:
        return self._request("POST", "/trips", json=payload)

    def update_trip_status(self, trip_id: int, status: str) -> dict:
        return self._request("PATCH", f"/trips/{trip_id}", json={"status": status})

    def list_successful_trips(self, skip: int | None = None, limit: int | None = None) -> list[dict]:
        return self._request("GET", "/successful-trips", params={"skip": skip, "limit": limit})

    def create_successful_trip(self, payload: dict) -> dict:
        return self._request("POST", "/successful-trips", json=payload)

    # -- admin --------------------------------------------------------------

    def is_admin(self, user_id: str) -> bool:
        return bool(self._request("POST", "/rpc/is_admin", json={"user_id": user_id}))

    def list_admin_users(self) -> list[dict]:
        return self._request("GET", "/admin-users")

    def add_admin_user(self, user_id: str) -> dict:
        return self._request("POST", "/admin-users", json={"user_id": user_id})

    def remove_admin_user(self, user_id: str) -> None:
        self._request("DELETE", f"/admin-users/{user_id}")

    def list_auth_users(self) -> list[dict]:
        return self._request("GET", "/admin/users")

    def delete_auth_user(self, user_id: str) -> None:
        self._request("DELETE", f"/admin/users/{user_id}")
