"""Contact forwarding to GHL, translated onto the sync error taxonomy."""

from __future__ import annotations

import json

from ..errors import CrmCallFailed
from ..ghl.client import GHLClient, GHLError


def _failure_detail(exc: GHLError) -> str:
    """Provider status and response body, kept on the ledger entry."""
    body = exc.response
    if body is not None and not isinstance(body, str):
        body = json.dumps(body, default=str)
    return f"status={exc.status_code} response={body}"[:2000]


class GHLContactForwarder:
    """Creates one GHL contact per call. Never retries."""

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
    ) -> str | None:
        """Return the GHL contact id.

        Raises:
            CrmCallFailed: On any network, timeout or HTTP error, or a
                response body that is not a contact.
        """
        try:
            async with GHLClient(access_token) as ghl:
                result = await ghl.contacts.create(
                    location_id=tenant_id,
                    email=email,
                    first_name=first_name,
                    last_name=last_name,
                    phone=phone,
                    source=source,
                    tags=tags,
                )
        except GHLError as exc:
            raise CrmCallFailed(
                exc.message, status_code=exc.status_code, detail=_failure_detail(exc)
            ) from exc

        contact = result.get("contact") if isinstance(result, dict) else None
        if contact is None:
            return None
        if not isinstance(contact, dict):
            raise CrmCallFailed(
                "Unexpected contact payload", detail=json.dumps(result, default=str)[:2000]
            )
        return contact.get("id")
