# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

from collections.abc import AsyncIterator
from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel, Field

from career_relay.errors import CrmError, CrmListFailed, CrmRequestFailed, CrmUpdateFailed
from career_relay.models.crm import CrmRecord
from career_relay.ratelimit import RateLimiter, Unlimited

BITRIX_PAGE_SIZE = 50


class CrmPage(BaseModel):
    """One page of a list call."""

    records: list[CrmRecord] = Field(default_factory=list)
    next: int | None = None
    total: int | None = None


class BitrixClient:
    """Minimal Bitrix24 REST client for the calls the relay pipeline needs.

    ``webhook_url`` is the inbound webhook base (``https://…/rest/{user}/{token}``);
    every method is POSTed as JSON to ``{webhook_url}/{method}.json``.
    """

    def __init__(
        self,
        webhook_url: str | None,
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
        limiter: RateLimiter | None = None,
    ):
        """Initializes the BitrixClient.

        Args:
            webhook_url: Base URL with the embedded access token.
            timeout: Per-request timeout in seconds.
            client: Optional httpx.AsyncClient for connection pooling.
            limiter: Throttle shared by every call to respect the portal's rate limit.
        """
        self.webhook_url = webhook_url.rstrip("/") if webhook_url else None
        self.timeout = timeout
        self._internal_client = client is None
        self._client = client or httpx.AsyncClient()
        self.limiter = limiter or Unlimited()

    async def _call(
        self, method: str, payload: dict[str, Any], error_cls: type[CrmError] = CrmRequestFailed
    ) -> dict[str, Any]:
        if not self.webhook_url:
            raise error_cls("CRM webhook URL is not configured", method=method)

        await self.limiter.acquire()
        try:
            response = await self._client.post(
                f"{self.webhook_url}/{method}.json", json=payload, timeout=self.timeout
            )
        except httpx.HTTPError as e:
            raise error_cls(f"{method} request failed: {type(e).__name__}: {e}", method=method) from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_error or not isinstance(body, dict) or "error" in body:
            detail = "unparseable response"
            if isinstance(body, dict):
                detail = body.get("error_description") or body.get("error") or detail
            raise error_cls(
                f"{method} failed with HTTP {response.status_code}: {detail}",
                method=method,
                status_code=response.status_code,
            )
        return body

    async def list_contacts(
        self,
        select: list[str],
        filter: dict[str, Any] | None = None,
        start: int = 0,
        order: dict[str, str] | None = None,
    ) -> CrmPage:
        """Fetch one page of contacts.

        Raises:
            CrmListFailed: If the page cannot be fetched.
        """
        body = await self._call(
            "crm.contact.list",
            {"select": select, "filter": filter or {}, "order": order or {"ID": "ASC"}, "start": start},
            CrmListFailed,
        )
        result = body.get("result")
        if not isinstance(result, list):
            raise CrmListFailed("crm.contact.list returned no result list", method="crm.contact.list")
        return CrmPage(
            records=[CrmRecord.from_api(item) for item in result if isinstance(item, dict)],
            next=body.get("next"),
            total=body.get("total"),
        )

    async def iter_contacts(
        self,
        select: list[str],
        filter: dict[str, Any] | None = None,
        page_size: int = BITRIX_PAGE_SIZE,
    ) -> AsyncIterator[CrmRecord]:
        """Yield every contact, page by page.

        A short page ends the iteration. A full page always leads to a request
        for the next offset, since the portal caps pages at ``page_size``.
        """
        start = 0
        while True:
            page = await self.list_contacts(select, filter=filter, start=start)
            logger.debug(f"Fetched {len(page.records)} contacts at offset {start} (total={page.total})")
            for record in page.records:
                yield record
            if len(page.records) < page_size:
                return
            start = page.next if page.next is not None and page.next > start else start + len(page.records)

    async def get_contact(self, contact_id: str) -> CrmRecord:
        body = await self._call("crm.contact.get", {"id": contact_id})
        result = body.get("result")
        if not isinstance(result, dict):
            raise CrmRequestFailed(f"Contact {contact_id} not found", method="crm.contact.get")
        return CrmRecord.from_api(result)

    async def update_contact(self, contact_id: str, fields: dict[str, Any]) -> None:
        """Partially update a contact with exactly ``fields``.

        Raises:
            CrmUpdateFailed: If the call fails or the portal answers ``result: false``.
        """
        body = await self._call("crm.contact.update", {"id": contact_id, "fields": fields}, CrmUpdateFailed)
        if not body.get("result"):
            raise CrmUpdateFailed(f"Contact {contact_id} was not updated", method="crm.contact.update")

    async def add_contact(self, fields: dict[str, Any]) -> str:
        body = await self._call("crm.contact.add", {"fields": fields})
        return str(body.get("result"))

    async def find_contact_by_phone(self, phone: str) -> str | None:
        if not phone:
            return None
        page = await self.list_contacts(["ID"], filter={"PHONE": phone})
        return page.records[0].external_id if page.records else None

    async def find_deal_by_contact(self, contact_id: str) -> str | None:
        body = await self._call("crm.deal.list", {"filter": {"CONTACT_ID": contact_id}, "select": ["ID"]})
        deals = body.get("result") or []
        return str(deals[0]["ID"]) if deals else None

    async def add_deal(self, fields: dict[str, Any], params: dict[str, Any] | None = None) -> str:
        body = await self._call("crm.deal.add", {"fields": fields, "params": params or {}})
        return str(body.get("result"))

    async def update_deal(self, deal_id: str, fields: dict[str, Any], params: dict[str, Any] | None = None) -> None:
        body = await self._call("crm.deal.update", {"id": deal_id, "fields": fields, "params": params or {}})
        if not body.get("result"):
            raise CrmUpdateFailed(f"Deal {deal_id} was not updated", method="crm.deal.update")

    async def aclose(self) -> None:
        if self._internal_client:
            await self._client.aclose()
