"""Contact sync pipeline - captive-portal guest to GHL contact.

Each event walks the same fixed sequence and stops at the first check that
fails:

    validate -> opt-in -> mapping -> connection -> already synced?
             -> token -> name parsing -> create contact -> record

Modeled failures are ``SyncError`` subclasses; they are converted into a
``SyncResult`` at the pipeline boundary so webhook callers always get a
well-formed body. Anything else is a real fault and propagates.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Protocol

import pydantic
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..errors import (
    AlreadySynced,
    InactiveTenant,
    NotOptedIn,
    SyncError,
    UnmappedDevice,
    ValidationError,
)
from ..identity import parse_name
from ..opt_in import classify_opt_in
from ..schemas.sync import BatchItem, BatchResult, BatchSummary, ContactEvent, SyncResult
from . import audit_svc, connection_svc, mapping_svc
from .credential_svc import CredentialManager
from .crm_svc import GHLContactForwarder

logger = logging.getLogger(__name__)


class ContactForwarder(Protocol):
    async def create_contact(
        self,
        access_token: str,
        *,
        tenant_id: str,
        email: str,
        first_name: str,
        last_name: str,
        phone: str | None,
        source: str,
        tags: list[str],
    ) -> str | None: ...


@dataclass
class _Attempt:
    """What is known about an event so far, for the ledger entry."""

    device_id: str | None = None
    email: str | None = None
    tenant_id: str | None = None
    # Validation failures have no tenant context and are not logged.
    loggable: bool = False


class SyncPipeline:
    def __init__(
        self,
        credentials: CredentialManager | None = None,
        forwarder: ContactForwarder | None = None,
        *,
        pacing_seconds: float | None = None,
        network_tag: str | None = None,
        source: str | None = None,
    ):
        self.credentials = credentials or CredentialManager()
        self.forwarder = forwarder or GHLContactForwarder()
        self.pacing_seconds = (
            settings.batch_pacing_seconds if pacing_seconds is None else pacing_seconds
        )
        self.network_tag = network_tag or settings.device_network_tag
        self.source = source or settings.contact_source

    async def process_contact(
        self,
        db: AsyncSession,
        event: ContactEvent | dict[str, Any],
        *,
        sync_type: str = "webhook",
    ) -> SyncResult:
        """Run one event through the pipeline and return its terminal outcome."""
        if not isinstance(event, ContactEvent):
            try:
                event = ContactEvent.model_validate(event)
            except pydantic.ValidationError:
                return SyncResult(status="error", reason="Invalid payload")

        attempt = _Attempt(
            device_id=(event.device_id or "").strip() or None,
            email=(event.email or "").strip() or None,
        )
        try:
            result = await self._run(db, event, attempt)
        except SyncError as exc:
            logger.info(
                "Contact %s %s: %s", attempt.email or "<no email>", exc.status, exc.reason
            )
            if attempt.loggable:
                await audit_svc.append(
                    db,
                    status=exc.status,
                    tenant_id=attempt.tenant_id,
                    device_id=attempt.device_id,
                    contact_email=attempt.email,
                    reason=exc.reason,
                    error_detail=exc.detail,
                    sync_type=sync_type,
                )
            return SyncResult(
                status=exc.status, reason=exc.reason, ghl_location_id=attempt.tenant_id
            )

        await audit_svc.append(
            db,
            status="success",
            tenant_id=attempt.tenant_id,
            device_id=attempt.device_id,
            contact_email=attempt.email,
            crm_contact_id=result.ghl_contact_id,
            sync_type=sync_type,
        )
        logger.info("Synced %s to GHL location %s", attempt.email, attempt.tenant_id)
        return result

    async def _run(self, db: AsyncSession, event: ContactEvent, attempt: _Attempt) -> SyncResult:
        if not attempt.device_id:
            raise ValidationError("Missing device id")
        if not attempt.email:
            raise ValidationError("Missing email")

        attempt.loggable = True
        attempt.device_id = mapping_svc.mapping_key(attempt.device_id)

        if not classify_opt_in(event.opt_in).opted_in:
            raise NotOptedIn("Not opted in")

        mapping = await mapping_svc.resolve(db, attempt.device_id)
        if mapping is None:
            raise UnmappedDevice("Unmapped device")
        attempt.tenant_id = mapping.tenant_id

        connection = await connection_svc.get_active_connection(db, mapping.tenant_id)
        if connection is None:
            raise InactiveTenant("Inactive or missing connection")

        if await audit_svc.is_synced(db, mapping.tenant_id, attempt.email):
            raise AlreadySynced("Already synced")

        access_token = await self.credentials.ensure_valid(db, connection)

        first_name, last_name = parse_name(event.name)
        tags = [self.network_tag]
        if mapping.sub_venue_label:
            tags.append(mapping.sub_venue_label)

        contact_id = await self.forwarder.create_contact(
            access_token,
            tenant_id=mapping.tenant_id,
            email=attempt.email,
            first_name=first_name,
            last_name=last_name,
            phone=(event.phone or "").strip() or None,
            source=self.source,
            tags=tags,
        )
        await audit_svc.mark_synced(db, mapping.tenant_id, attempt.email, contact_id)

        return SyncResult(
            status="success",
            ghl_contact_id=contact_id,
            ghl_location_id=mapping.tenant_id,
            tags_applied=tags,
        )

    async def process_batch(
        self, db: AsyncSession, events: Iterable[ContactEvent | dict[str, Any]]
    ) -> BatchResult:
        """Process events one at a time; one failure never aborts the rest."""
        summary = BatchSummary()
        results: list[BatchItem] = []

        for index, event in enumerate(events):
            if index and self.pacing_seconds > 0:
                await asyncio.sleep(self.pacing_seconds)

            email = event.get("email") if isinstance(event, dict) else event.email
            try:
                result = await self.process_contact(db, event, sync_type="batch")
            except Exception as e:
                logger.exception("Unexpected failure syncing %s", email)
                await db.rollback()
                result = SyncResult(status="error", reason=f"Unexpected error: {e}")

            results.append(BatchItem(email=email, **result.model_dump()))
            summary.total += 1
            if result.status == "success":
                summary.success += 1
            elif result.status == "skipped":
                summary.skipped += 1
            else:
                summary.errors += 1

        logger.info(
            "Batch processed: %d total, %d success, %d skipped, %d errors",
            summary.total, summary.success, summary.skipped, summary.errors,
        )
        return BatchResult(summary=summary, results=results)
