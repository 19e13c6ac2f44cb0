"""OAuth 2.0 client for the GHL Marketplace app.

Handles the Authorization Code flow:
1. Generate authorization URL (or use the marketplace install URL)
2. Exchange the callback code for access + refresh tokens
3. Refresh tokens before they expire
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlencode

import httpx

from ..config import settings

GHL_AUTH_URL = "https://marketplace.leadconnectorhq.com/oauth/chooselocation"


@dataclass
class OAuthTokens:
    """OAuth tokens returned from GHL."""

    access_token: str
    refresh_token: str
    expires_in: int  # seconds
    token_type: str = "Bearer"
    scope: str = ""
    user_type: str | None = None  # "Company" or "Location"
    company_id: str | None = None
    location_id: str | None = None
    user_id: str | None = None
    _issued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def expires_at(self) -> datetime:
        """When the access token expires (based on issue time)."""
        return self._issued_at + timedelta(seconds=self.expires_in)


class OAuthError(Exception):
    """OAuth-related error."""

    def __init__(self, message: str, error_code: str | None = None, details: dict | None = None):
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}


class OAuthClient:
    """OAuth 2.0 client for GHL Marketplace Apps.

    Usage:
        client = OAuthClient.from_settings()
        url = client.get_authorization_url()
        tokens = await client.exchange_code(code)
        new_tokens = await client.refresh_tokens(tokens.refresh_token)
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        scopes: list[str] | None = None,
        token_url: str | None = None,
        timeout: float | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scopes = scopes or []
        self.token_url = token_url or settings.ghl_token_url
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds

    @classmethod
    def from_settings(cls) -> "OAuthClient":
        """Create client from GS_GHL_* settings.

        Raises:
            OAuthError: If client credentials are not configured
        """
        if not settings.ghl_client_id or not settings.ghl_client_secret:
            raise OAuthError(
                "OAuth not configured. Set GS_GHL_CLIENT_ID and GS_GHL_CLIENT_SECRET.",
                error_code="not_configured",
            )
        return cls(
            client_id=settings.ghl_client_id,
            client_secret=settings.ghl_client_secret,
            redirect_uri=settings.ghl_redirect_uri,
            scopes=settings.scopes_list,
        )

    def get_authorization_url(self, state: str | None = None) -> str:
        """Generate the authorization URL for user consent."""
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "state": state or secrets.token_urlsafe(32),
        }
        if self.scopes:
            params["scope"] = " ".join(self.scopes)
        return f"{GHL_AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> OAuthTokens:
        """Exchange authorization code for access tokens.

        Raises:
            OAuthError: If the exchange fails or times out
        """
        return await self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.redirect_uri,
            },
            failure="Token exchange failed",
            default_code="exchange_failed",
        )

    async def refresh_tokens(self, refresh_token: str) -> OAuthTokens:
        """Refresh access token using refresh token.

        Raises:
            OAuthError: If the refresh fails or times out
        """
        return await self._token_request(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            },
            failure="Token refresh failed",
            default_code="refresh_failed",
        )

    async def _token_request(
        self, form: dict[str, str], *, failure: str, default_code: str
    ) -> OAuthTokens:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.token_url,
                    data=form,
                    headers={
                        "Content-Type": "application/x-www-form-urlencoded",
                        "Accept": "application/json",
                    },
                )
        except httpx.TimeoutException as exc:
            raise OAuthError(f"{failure}: timed out", error_code="timeout") from exc
        except httpx.HTTPError as exc:
            raise OAuthError(f"{failure}: {exc}", error_code="network_error") from exc

        if response.status_code != 200:
            try:
                error_data = response.json() if response.content else {}
            except ValueError:
                error_data = None
            if not isinstance(error_data, dict):
                error_data = {"raw_response": response.text[:500]}
            raise OAuthError(
                f"{failure}: {response.status_code}",
                error_code=error_data.get("error", default_code),
                details=error_data,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise OAuthError(
                "Invalid token response: not JSON",
                error_code="invalid_response",
                details={"raw_response": response.text[:500]},
            ) from exc
        if not isinstance(data, dict):
            raise OAuthError(
                "Invalid token response: expected an object",
                error_code="invalid_response",
                details={"raw_response": response.text[:500]},
            )
        return self._parse_token_response(data)

    def _parse_token_response(self, data: dict[str, Any]) -> OAuthTokens:
        """Parse token response from GHL.

        Raises:
            OAuthError: If required fields are missing
        """
        try:
            return OAuthTokens(
                access_token=data["access_token"],
                refresh_token=data["refresh_token"],
                expires_in=int(data.get("expires_in", 86400)),  # Default 24 hours
                token_type=data.get("token_type", "Bearer"),
                scope=data.get("scope", ""),
                user_type=data.get("userType"),
                company_id=data.get("companyId"),
                location_id=data.get("locationId"),
                user_id=data.get("userId"),
            )
        except KeyError as e:
            raise OAuthError(
                f"Invalid token response: missing {e}",
                error_code="invalid_response",
                details={"missing_field": str(e), "response_keys": list(data.keys())},
            )
        except (TypeError, ValueError) as e:
            raise OAuthError(
                f"Invalid token response: bad expires_in ({e})",
                error_code="invalid_response",
                details={"expires_in": str(data.get("expires_in"))},
            )
