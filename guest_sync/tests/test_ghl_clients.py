"""Tests for the GHL OAuth and API clients."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from guest_sync.errors import CrmCallFailed
from guest_sync.ghl.client import GHLAuthError, GHLClient, GHLError, GHLRateLimitError
from guest_sync.ghl.oauth import GHL_AUTH_URL, OAuthClient, OAuthError
from guest_sync.services.crm_svc import GHLContactForwarder


def _response(status_code=200, payload=None, text=""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.content = b"{}" if payload is not None else text.encode()
    resp.text = text
    resp.json.return_value = payload if payload is not None else {}
    return resp


def _patched_async_client(mock_client):
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=None)
    return mock_client


class TestOAuthClient:
    @pytest.fixture
    def client(self):
        return OAuthClient(
            client_id="cid",
            client_secret="secret",
            redirect_uri="http://localhost:3000/oauth/callback",
            scopes=["contacts.write", "locations.readonly"],
            token_url="https://ghl.test/oauth/token",
        )

    def test_authorization_url(self, client):
        url = client.get_authorization_url(state="abc")
        assert url.startswith(GHL_AUTH_URL)
        assert "client_id=cid" in url
        assert "state=abc" in url
        assert "response_type=code" in url
        assert "scope=contacts.write+locations.readonly" in url

    def test_from_settings_requires_credentials(self, monkeypatch):
        from guest_sync.config import settings

        monkeypatch.setattr(settings, "ghl_client_id", "")
        with pytest.raises(OAuthError) as exc_info:
            OAuthClient.from_settings()
        assert exc_info.value.error_code == "not_configured"

    @pytest.mark.asyncio
    async def test_exchange_code(self, client):
        payload = {
            "access_token": "at",
            "refresh_token": "rt",
            "expires_in": 86399,
            "locationId": "loc_1",
            "companyId": "comp_1",
            "userType": "Location",
        }
        with patch("httpx.AsyncClient") as MockAsyncClient:
            mock_client = _patched_async_client(AsyncMock())
            mock_client.post = AsyncMock(return_value=_response(200, payload))
            MockAsyncClient.return_value = mock_client

            tokens = await client.exchange_code("code_1")

        assert tokens.access_token == "at"
        assert tokens.location_id == "loc_1"
        assert tokens.company_id == "comp_1"
        form = mock_client.post.await_args.kwargs["data"]
        assert form["grant_type"] == "authorization_code"
        assert form["code"] == "code_1"

    @pytest.mark.asyncio
    async def test_refresh_error_carries_code(self, client):
        with patch("httpx.AsyncClient") as MockAsyncClient:
            mock_client = _patched_async_client(AsyncMock())
            mock_client.post = AsyncMock(
                return_value=_response(400, {"error": "invalid_grant"})
            )
            MockAsyncClient.return_value = mock_client

            with pytest.raises(OAuthError) as exc_info:
                await client.refresh_tokens("rt")

        assert exc_info.value.error_code == "invalid_grant"
        assert mock_client.post.await_args.kwargs["data"]["grant_type"] == "refresh_token"

    @pytest.mark.asyncio
    async def test_refresh_timeout(self, client):
        with patch("httpx.AsyncClient") as MockAsyncClient:
            mock_client = _patched_async_client(AsyncMock())
            mock_client.post = AsyncMock(side_effect=httpx.ReadTimeout("slow"))
            MockAsyncClient.return_value = mock_client

            with pytest.raises(OAuthError) as exc_info:
                await client.refresh_tokens("rt")

        assert exc_info.value.error_code == "timeout"

    @pytest.mark.asyncio
    async def test_missing_fields(self, client):
        with patch("httpx.AsyncClient") as MockAsyncClient:
            mock_client = _patched_async_client(AsyncMock())
            mock_client.post = AsyncMock(return_value=_response(200, {"access_token": "at"}))
            MockAsyncClient.return_value = mock_client

            with pytest.raises(OAuthError) as exc_info:
                await client.exchange_code("code")

        assert exc_info.value.error_code == "invalid_response"

    @pytest.mark.asyncio
    async def test_non_json_token_response(self, client):
        with patch("httpx.AsyncClient") as MockAsyncClient:
            mock_client = _patched_async_client(AsyncMock())
            mock_client.post = AsyncMock(return_value=httpx.Response(200, text="<html>oops</html>"))
            MockAsyncClient.return_value = mock_client

            with pytest.raises(OAuthError) as exc_info:
                await client.refresh_tokens("rt")

        assert exc_info.value.error_code == "invalid_response"
        assert exc_info.value.details["raw_response"] == "<html>oops</html>"

    @pytest.mark.asyncio
    async def test_error_body_that_is_not_an_object(self, client):
        with patch("httpx.AsyncClient") as MockAsyncClient:
            mock_client = _patched_async_client(AsyncMock())
            mock_client.post = AsyncMock(return_value=httpx.Response(400, json=["bad"]))
            MockAsyncClient.return_value = mock_client

            with pytest.raises(OAuthError) as exc_info:
                await client.exchange_code("code")

        assert exc_info.value.error_code == "exchange_failed"
        assert exc_info.value.details == {"raw_response": '["bad"]'}


def _ghl(handler) -> GHLClient:
    return GHLClient("tok", base_url="https://ghl.test", transport=httpx.MockTransport(handler))


class TestGHLClient:
    @pytest.mark.asyncio
    async def test_create_contact_payload_and_headers(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["request"] = request
            return httpx.Response(201, json={"contact": {"id": "c_1"}})

        async with _ghl(handler) as ghl:
            result = await ghl.contacts.create(
                location_id="loc_1",
                email="a@b.com",
                first_name="Jane",
                last_name="",
                phone=None,
                source="WiFi Portal",
                tags=["device-network"],
            )

        assert result == {"contact": {"id": "c_1"}}
        request = seen["request"]
        assert request.method == "POST"
        assert request.url.path == "/contacts/"
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.headers["Version"] == "2021-07-28"
        body = json.loads(request.content)
        assert body == {
            "locationId": "loc_1",
            "email": "a@b.com",
            "source": "WiFi Portal",
            "tags": ["device-network"],
            "firstName": "Jane",
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,error_cls", [
        (401, GHLAuthError),
        (429, GHLRateLimitError),
        (500, GHLError),
    ])
    async def test_error_mapping(self, status, error_cls):
        async with _ghl(lambda request: httpx.Response(status, json={"message": "nope"})) as ghl:
            with pytest.raises(error_cls) as exc_info:
                await ghl.locations.get("loc_1")
        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_timeout_is_ghl_error(self):
        def handler(request):
            raise httpx.ConnectTimeout("slow", request=request)

        async with _ghl(handler) as ghl:
            with pytest.raises(GHLError) as exc_info:
                await ghl.users.me()
        assert "timed out" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_location_and_user_unwrap(self):
        def handler(request):
            if request.url.path == "/users/me":
                return httpx.Response(200, json={"email": "me@x.com"})
            return httpx.Response(200, json={"location": {"name": "Joe's", "email": "o@x.com"}})

        async with _ghl(handler) as ghl:
            assert (await ghl.locations.get("loc_1"))["name"] == "Joe's"
            assert (await ghl.users.me())["email"] == "me@x.com"

    @pytest.mark.asyncio
    async def test_non_json_success_is_ghl_error(self):
        async with _ghl(lambda request: httpx.Response(200, text="<html>gateway</html>")) as ghl:
            with pytest.raises(GHLError) as exc_info:
                await ghl.contacts.create(location_id="loc_1", email="a@b.com")
        assert exc_info.value.status_code == 200
        assert exc_info.value.message.startswith("Invalid JSON response")
        assert exc_info.value.response == "<html>gateway</html>"

    @pytest.mark.asyncio
    async def test_non_object_success_is_ghl_error(self):
        async with _ghl(lambda request: httpx.Response(200, json=["c_1"])) as ghl:
            with pytest.raises(GHLError) as exc_info:
                await ghl.locations.get("loc_1")
        assert exc_info.value.response == ["c_1"]

    @pytest.mark.asyncio
    async def test_empty_success_body(self):
        async with _ghl(lambda request: httpx.Response(204)) as ghl:
            assert await ghl.users.me() == {}


class TestContactForwarder:
    @pytest.mark.asyncio
    async def test_returns_contact_id(self):
        with patch("guest_sync.services.crm_svc.GHLClient") as MockClient:
            ghl = _patched_async_client(MagicMock())
            ghl.contacts.create = AsyncMock(return_value={"contact": {"id": "c_9"}})
            MockClient.return_value = ghl

            contact_id = await GHLContactForwarder().create_contact(
                "tok", tenant_id="loc_1", email="a@b.com", first_name="A", last_name="B",
                phone=None, source="WiFi Portal", tags=["device-network"],
            )

        assert contact_id == "c_9"
        MockClient.assert_called_once_with("tok")

    @pytest.mark.asyncio
    async def test_wraps_ghl_errors(self):
        with patch("guest_sync.services.crm_svc.GHLClient") as MockClient:
            ghl = _patched_async_client(MagicMock())
            ghl.contacts.create = AsyncMock(
                side_effect=GHLError("API error: 400 - bad", 400, {"message": "bad"})
            )
            MockClient.return_value = ghl

            with pytest.raises(CrmCallFailed) as exc_info:
                await GHLContactForwarder().create_contact(
                    "tok", tenant_id="loc_1", email="a@b.com", first_name="", last_name="",
                    phone=None, source="WiFi Portal", tags=[],
                )

        assert exc_info.value.reason == "API error: 400 - bad"
        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == 'status=400 response={"message": "bad"}'

    @pytest.mark.asyncio
    async def test_network_failure_detail_has_no_status(self):
        with patch("guest_sync.services.crm_svc.GHLClient") as MockClient:
            ghl = _patched_async_client(MagicMock())
            ghl.contacts.create = AsyncMock(
                side_effect=GHLError("Request timed out: POST /contacts/")
            )
            MockClient.return_value = ghl

            with pytest.raises(CrmCallFailed) as exc_info:
                await GHLContactForwarder().create_contact(
                    "tok", tenant_id="loc_1", email="a@b.com", first_name="", last_name="",
                    phone=None, source="WiFi Portal", tags=[],
                )

        assert exc_info.value.status_code is None
        assert exc_info.value.detail == "status=None response=None"

    @pytest.mark.asyncio
    async def test_contact_that_is_not_an_object(self):
        with patch("guest_sync.services.crm_svc.GHLClient") as MockClient:
            ghl = _patched_async_client(MagicMock())
            ghl.contacts.create = AsyncMock(return_value={"contact": "c_9"})
            MockClient.return_value = ghl

            with pytest.raises(CrmCallFailed) as exc_info:
                await GHLContactForwarder().create_contact(
                    "tok", tenant_id="loc_1", email="a@b.com", first_name="", last_name="",
                    phone=None, source="WiFi Portal", tags=[],
                )

        assert exc_info.value.reason == "Unexpected contact payload"
