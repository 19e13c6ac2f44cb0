"""Tests for the contact sync pipeline."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import select

from guest_sync.errors import CrmCallFailed
from guest_sync.ghl.client import GHLClient
from guest_sync.ghl.oauth import OAuthError
from guest_sync.models.ledger import SyncLedgerEntry
from guest_sync.services import audit_svc, connection_svc, mapping_svc
from guest_sync.services.crm_svc import GHLContactForwarder
from guest_sync.services.sync_svc import SyncPipeline

TENANT = "loc_123"
MAC = "00:18:0a:27:29:76"


def event(**overrides):
    data = {
        "device_id": "00-18-0A-27-29-76",
        "email": "guest@example.com",
        "name": "Jane van Doe",
        "phone": "+15550100",
        "opt_in": True,
    }
    data.update(overrides)
    return data


@pytest_asyncio.fixture
async def mapped(db, connection):
    await mapping_svc.create_or_update_mapping(db, MAC, TENANT, label="Maggies_Restaurant")
    return connection


async def ledger(db, tenant_id=TENANT):
    return await audit_svc.recent(db, tenant_id)


async def all_rows(db):
    return (await db.execute(select(SyncLedgerEntry))).scalars().all()


def ghl_responding(response):
    """Patch the forwarder's GHL client onto a canned HTTP response."""

    def build(access_token):
        return GHLClient(access_token, transport=httpx.MockTransport(lambda request: response))

    return patch("guest_sync.services.crm_svc.GHLClient", side_effect=build)


class TestProcessContact:
    @pytest.mark.asyncio
    async def test_success(self, db, mapped, pipeline, forwarder):
        result = await pipeline.process_contact(db, event())

        assert result.status == "success"
        assert result.ghl_contact_id == "contact_1"
        assert result.ghl_location_id == TENANT
        assert result.tags_applied == ["device-network", "Maggies_Restaurant"]

        forwarder.create_contact.assert_awaited_once_with(
            "access_ok",
            tenant_id=TENANT,
            email="guest@example.com",
            first_name="Jane",
            last_name="van Doe",
            phone="+15550100",
            source="WiFi Portal",
            tags=["device-network", "Maggies_Restaurant"],
        )
        assert await audit_svc.is_synced(db, TENANT, "Guest@Example.com ")
        entries = await ledger(db)
        assert [(e.status, e.crm_contact_id, e.device_id) for e in entries] == [
            ("success", "contact_1", MAC)
        ]

    @pytest.mark.asyncio
    async def test_no_label_means_network_tag_only(self, db, connection, pipeline):
        await mapping_svc.create_or_update_mapping(db, MAC, TENANT)
        result = await pipeline.process_contact(db, event())
        assert result.tags_applied == ["device-network"]

    @pytest.mark.asyncio
    async def test_legacy_field_names(self, db, mapped, pipeline, forwarder):
        payload = {"mac": "00180a272976", "email": "g@example.com", "mobile": "555", "opt_in": "yes"}
        result = await pipeline.process_contact(db, payload)

        assert result.status == "success"
        assert forwarder.create_contact.await_args.kwargs["phone"] == "555"
        assert forwarder.create_contact.await_args.kwargs["first_name"] == ""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("overrides,reason", [
        ({"device_id": None}, "Missing device id"),
        ({"device_id": "   "}, "Missing device id"),
        ({"email": ""}, "Missing email"),
    ])
    async def test_validation_errors_not_logged(self, db, mapped, pipeline, forwarder, overrides, reason):
        result = await pipeline.process_contact(db, event(**overrides))

        assert result.status == "error"
        assert result.reason == reason
        forwarder.create_contact.assert_not_called()
        assert await all_rows(db) == []

    @pytest.mark.asyncio
    async def test_wrong_field_types(self, db, mapped, pipeline, forwarder):
        result = await pipeline.process_contact(db, event(email=["a@example.com"]))

        assert result.status == "error"
        assert result.reason == "Invalid payload"
        forwarder.create_contact.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("opt_in", [None, False, "no", 1, [], {}])
    async def test_not_opted_in_logged_without_tenant(self, db, mapped, pipeline, forwarder, opt_in):
        result = await pipeline.process_contact(db, event(opt_in=opt_in))

        assert result.status == "skipped"
        assert result.reason == "Not opted in"
        assert result.ghl_location_id is None
        forwarder.create_contact.assert_not_called()

        rows = await all_rows(db)
        assert [(r.status, r.reason, r.tenant_id, r.device_id, r.contact_email) for r in rows] == [
            ("skipped", "Not opted in", None, MAC, "guest@example.com")
        ]

    @pytest.mark.asyncio
    async def test_missing_opt_in_field_is_logged(self, db, mapped, pipeline):
        payload = event()
        del payload["opt_in"]
        result = await pipeline.process_contact(db, payload)

        assert result.reason == "Not opted in"
        assert [r.status for r in await all_rows(db)] == ["skipped"]

    @pytest.mark.asyncio
    async def test_unmapped_device_logged_without_tenant(self, db, connection, pipeline, forwarder):
        result = await pipeline.process_contact(db, event())

        assert result.status == "skipped"
        assert result.reason == "Unmapped device"
        assert result.ghl_location_id is None
        forwarder.create_contact.assert_not_called()

        rows = await all_rows(db)
        assert [(r.status, r.tenant_id, r.device_id) for r in rows] == [("skipped", None, MAC)]

    @pytest.mark.asyncio
    async def test_inactive_tenant(self, db, mapped, pipeline, forwarder):
        await connection_svc.deactivate(db, TENANT)
        result = await pipeline.process_contact(db, event())

        assert result.status == "error"
        assert result.reason == "Inactive or missing connection"
        forwarder.create_contact.assert_not_called()
        assert [e.status for e in await ledger(db)] == ["error"]

    @pytest.mark.asyncio
    async def test_missing_connection(self, db, pipeline):
        await mapping_svc.create_or_update_mapping(db, MAC, "loc_without_connection")
        result = await pipeline.process_contact(db, event())
        assert result.reason == "Inactive or missing connection"

    @pytest.mark.asyncio
    async def test_second_delivery_is_skipped(self, db, mapped, pipeline, forwarder):
        first = await pipeline.process_contact(db, event())
        second = await pipeline.process_contact(db, event(email="GUEST@example.com"))

        assert first.status == "success"
        assert second.status == "skipped"
        assert second.reason == "Already synced"
        assert forwarder.create_contact.await_count == 1
        assert [e.status for e in await ledger(db)] == ["skipped", "success"]

    @pytest.mark.asyncio
    async def test_same_email_other_tenant_still_syncs(self, db, mapped, pipeline, forwarder):
        await audit_svc.mark_synced(db, "other_loc", "guest@example.com", "c_other")
        result = await pipeline.process_contact(db, event())
        assert result.status == "success"

    @pytest.mark.asyncio
    async def test_crm_failure_is_error_and_not_marked(self, db, mapped, pipeline, forwarder):
        forwarder.create_contact = AsyncMock(
            side_effect=CrmCallFailed(
                "API error: 422 - invalid email",
                status_code=422,
                detail='status=422 response={"message": "invalid email"}',
            )
        )
        result = await pipeline.process_contact(db, event())

        assert result.status == "error"
        assert result.reason == "API error: 422 - invalid email"
        assert not await audit_svc.is_synced(db, TENANT, "guest@example.com")
        entries = await ledger(db)
        assert [e.status for e in entries] == ["error"]
        assert entries[0].error_detail == 'status=422 response={"message": "invalid email"}'

    @pytest.mark.asyncio
    async def test_crm_rejection_keeps_provider_status_and_body(self, db, mapped, credentials):
        pipeline = SyncPipeline(credentials, GHLContactForwarder(), pacing_seconds=0)
        with ghl_responding(httpx.Response(429, json={"message": "Too many requests"})):
            result = await pipeline.process_contact(db, event())

        assert result.status == "error"
        assert result.reason == "Rate limit exceeded"
        entries = await ledger(db)
        assert entries[0].error_detail == 'status=429 response={"message": "Too many requests"}'

    @pytest.mark.asyncio
    async def test_crm_non_json_success_is_error_result(self, db, mapped, credentials):
        pipeline = SyncPipeline(credentials, GHLContactForwarder(), pacing_seconds=0)
        with ghl_responding(httpx.Response(200, text="<html>gateway</html>")):
            result = await pipeline.process_contact(db, event())

        assert result.status == "error"
        assert result.reason.startswith("Invalid JSON response")
        assert not await audit_svc.is_synced(db, TENANT, "guest@example.com")
        entries = await ledger(db)
        assert [e.status for e in entries] == ["error"]
        assert "<html>gateway</html>" in entries[0].error_detail

    @pytest.mark.asyncio
    async def test_refresh_failure_stops_before_crm(self, db, mapped, pipeline, forwarder, oauth_client):
        await connection_svc.update_tokens(
            db,
            TENANT,
            access_token="stale",
            refresh_token="refresh_ok",
            expires_at=datetime.now(timezone.utc) - timedelta(minutes=5),
        )
        oauth_client.refresh_tokens = AsyncMock(
            side_effect=OAuthError("Token refresh failed: timed out", error_code="timeout")
        )
        result = await pipeline.process_contact(db, event())

        assert result.status == "error"
        assert result.reason == "Token refresh failed: timed out"
        forwarder.create_contact.assert_not_called()
        entries = await ledger(db)
        assert entries[0].error_detail == "timeout"

    @pytest.mark.asyncio
    async def test_unexpected_exception_propagates(self, db, mapped, pipeline, forwarder):
        forwarder.create_contact = AsyncMock(side_effect=RuntimeError("boom"))
        with pytest.raises(RuntimeError):
            await pipeline.process_contact(db, event())


class TestProcessBatch:
    @pytest.mark.asyncio
    async def test_summary_counts(self, db, mapped, pipeline):
        events = [
            event(email="a@example.com"),
            event(email="b@example.com", opt_in=False),
            event(email="a@example.com"),
            event(email="", name="No Email"),
            event(email="c@example.com", device_id="ff:ff:ff:ff:ff:ff"),
        ]
        result = await pipeline.process_batch(db, events)

        assert result.summary.model_dump() == {"total": 5, "success": 1, "skipped": 3, "errors": 1}
        assert [r.status for r in result.results] == [
            "success", "skipped", "skipped", "error", "skipped"
        ]
        assert result.results[0].email == "a@example.com"
        assert {e.sync_type for e in await ledger(db)} == {"batch"}

    @pytest.mark.asyncio
    async def test_unexpected_failure_isolated(self, db, mapped, pipeline, forwarder):
        forwarder.create_contact = AsyncMock(side_effect=[RuntimeError("boom"), "contact_2"])

        result = await pipeline.process_batch(
            db, [event(email="a@example.com"), event(email="b@example.com")]
        )

        assert [r.status for r in result.results] == ["error", "success"]
        assert "boom" in result.results[0].reason
        assert result.results[1].ghl_contact_id == "contact_2"
        assert result.summary.errors == 1

    @pytest.mark.asyncio
    async def test_pacing_between_events(self, db, mapped, forwarder, credentials, monkeypatch):
        from guest_sync.services import sync_svc

        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        monkeypatch.setattr(sync_svc.asyncio, "sleep", fake_sleep)
        pipeline = sync_svc.SyncPipeline(credentials, forwarder, pacing_seconds=0.1)

        await pipeline.process_batch(db, [event(email=f"{i}@example.com") for i in range(3)])
        assert sleeps == [0.1, 0.1]

    @pytest.mark.asyncio
    async def test_empty_batch(self, db, pipeline):
        result = await pipeline.process_batch(db, [])
        assert result.summary.total == 0
        assert result.results == []
