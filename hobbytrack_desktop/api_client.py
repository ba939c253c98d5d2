"""HTTP client for the hosted Supabase backend (PostgREST + GoTrue)."""

from __future__ import annotations

from typing import Any, Mapping, Optional
from urllib.parse import urljoin

import requests


class ApiError(RuntimeError):
    """Error while talking to the backend."""

    def __init__(self, message: str, *, response: Optional[requests.Response] = None) -> None:
        super().__init__(message)
        self.response = response

    @property
    def status_code(self) -> Optional[int]:
        return self.response.status_code if self.response is not None else None


class SupabaseClient:
    """Wraps the REST calls the tracker needs: one table and the auth endpoints."""

    def __init__(self, base_url: str, anon_key: str, *, access_token: Optional[str] = None,
                 timeout: int = 15) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self.anon_key = anon_key
        self.access_token = access_token
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "apikey": self.anon_key,
            "Authorization": f"Bearer {self.access_token or self.anon_key}",
        }
        return headers

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = urljoin(self.base_url, path.lstrip("/"))
        kwargs.setdefault("timeout", self.timeout)
        extra_headers = kwargs.pop("headers", None) or {}
        headers = self._headers()
        headers.update(extra_headers)
        kwargs["headers"] = headers
        try:
            response = requests.request(method, url, **kwargs)
        except requests.RequestException as exc:
            raise ApiError(str(exc)) from exc

        if response.status_code >= 400:
            raise ApiError(f"API error {response.status_code}: {response.text}", response=response)

        if not response.content:
            return None
        if response.headers.get("Content-Type", "").startswith("application/json"):
            try:
                return response.json()
            except ValueError as exc:
                raise ApiError(f"Invalid JSON response: {exc}", response=response) from exc
        return response.content

    @staticmethod
    def _filters(filters: Optional[Mapping[str, Any]]) -> dict[str, str]:
        return {column: f"eq.{value}" for column, value in (filters or {}).items()}

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------
    def select(self, table: str, *, columns: str = "*",
               filters: Optional[Mapping[str, Any]] = None) -> list[dict[str, Any]]:
        params = {"select": columns}
        params.update(self._filters(filters))
        return self._request("GET", f"/rest/v1/{table}", params=params) or []

    def insert(self, table: str, row: Mapping[str, Any]) -> None:
        self._request("POST", f"/rest/v1/{table}", json=dict(row),
                      headers={"Prefer": "return=minimal"})

    def update(self, table: str, row: Mapping[str, Any], *, filters: Mapping[str, Any]) -> None:
        self._request("PATCH", f"/rest/v1/{table}", json=dict(row),
                      params=self._filters(filters), headers={"Prefer": "return=minimal"})

    def delete(self, table: str, *, filters: Mapping[str, Any]) -> None:
        self._request("DELETE", f"/rest/v1/{table}", params=self._filters(filters))

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------
    def token_with_password(self, email: str, password: str) -> dict[str, Any]:
        return self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        ) or {}

    def token_with_id_token(self, provider: str, id_token: str) -> dict[str, Any]:
        return self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "id_token"},
            json={"provider": provider, "id_token": id_token},
        ) or {}

    def get_user(self) -> dict[str, Any]:
        return self._request("GET", "/auth/v1/user") or {}

    def logout(self) -> None:
        self._request("POST", "/auth/v1/logout")


__all__ = ["ApiError", "SupabaseClient"]
