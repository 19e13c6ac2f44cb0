"""GHL API client - the few v2 endpoints the sync service calls."""

from __future__ import annotations

from typing import Any

import httpx

from ..config import settings


class GHLError(Exception):
    """Base exception for GHL API errors."""

    def __init__(self, message: str, status_code: int | None = None, response: Any = None):
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(self.message)


class GHLAuthError(GHLError):
    """Authentication error."""


class GHLRateLimitError(GHLError):
    """Rate limit exceeded."""


class GHLClient:
    """GoHighLevel API client bound to one location access token.

    Usage:
        async with GHLClient(access_token) as ghl:
            result = await ghl.contacts.create(location_id="loc", email="a@b.com")
    """

    def __init__(
        self,
        access_token: str,
        base_url: str | None = None,
        api_version: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url or settings.ghl_api_base
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            transport=transport,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
                "Version": api_version or settings.ghl_api_version,
            },
            timeout=timeout if timeout is not None else settings.http_timeout_seconds,
        )

        self.contacts = ContactsClient(self)
        self.locations = LocationsClient(self)
        self.users = UsersClient(self)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        json: dict | None = None,
    ) -> dict[str, Any]:
        """Make an API request, mapping failures onto GHLError."""
        try:
            response = await self._client.request(method=method, url=path, params=params, json=json)
        except httpx.TimeoutException as exc:
            raise GHLError(f"Request timed out: {method} {path}") from exc
        except httpx.HTTPError as exc:
            raise GHLError(f"Network error: {exc}") from exc

        if response.status_code == 401:
            raise GHLAuthError("Invalid token or token expired", 401, _body(response))

        if response.status_code == 429:
            raise GHLRateLimitError("Rate limit exceeded", 429, _body(response))

        if response.status_code >= 400:
            raise GHLError(
                f"API error: {response.status_code} - {response.text[:500]}",
                response.status_code,
                _body(response),
            )

        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as exc:
            raise GHLError(
                f"Invalid JSON response: {method} {path}",
                response.status_code,
                response.text[:500],
            ) from exc
        if not isinstance(data, dict):
            raise GHLError(
                f"Unexpected response shape: {method} {path}", response.status_code, data
            )
        return data


def _body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text[:500]


class ContactsClient:
    """Contacts API operations."""

    def __init__(self, client: GHLClient):
        self._client = client

    async def create(
        self,
        location_id: str,
        email: str,
        first_name: str | None = None,
        last_name: str | None = None,
        phone: str | None = None,
        source: str | None = None,
        tags: list[str] | None = None,
    ) -> dict[str, Any]:
        """Create a contact. Empty optional fields are left out of the payload."""
        data: dict[str, Any] = {
            "locationId": location_id,
            "email": email,
            "source": source or settings.contact_source,
            "tags": tags or [],
        }
        if first_name:
            data["firstName"] = first_name
        if last_name:
            data["lastName"] = last_name
        if phone:
            data["phone"] = phone
        return await self._client._request("POST", "/contacts/", json=data)


class LocationsClient:
    """Locations API operations."""

    def __init__(self, client: GHLClient):
        self._client = client

    async def get(self, location_id: str) -> dict[str, Any]:
        resp = await self._client._request("GET", f"/locations/{location_id}")
        return resp.get("location", resp)


class UsersClient:
    """Users API operations."""

    def __init__(self, client: GHLClient):
        self._client = client

    async def me(self) -> dict[str, Any]:
        resp = await self._client._request("GET", "/users/me")
        return resp.get("user", resp)
