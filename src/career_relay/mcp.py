# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

import asyncio
from typing import Any

from loguru import logger

from career_relay.config import RelayConfig
from career_relay.factory import RelayFactory, RelayServices
from career_relay.models.fields import FieldName
from career_relay.models.report import SweepReport


class RelayMCP:
    """
    MCP server logic wrapper for the relay pipeline.
    Exposes operator tools; services are built on first use.
    """

    def __init__(self, config: RelayConfig | None = None, services: RelayServices | None = None):
        self.config = config
        self._services = services
        self._creation_lock = asyncio.Lock()

    async def get_services(self) -> RelayServices:
        """
        Return the wired services, building them once.
        Thread-safe against concurrent first calls.
        """
        # Optimistic check
        if self._services is not None:
            return self._services

        async with self._creation_lock:
            # Double-check inside lock
            if self._services is None:
                logger.info("Building relay services")
                self._services = RelayFactory.build(self.config)
            return self._services

    async def run_sweep(
        self,
        fields: list[str] | None = None,
        contact_ids: list[str] | None = None,
        deadline: float | None = None,
    ) -> SweepReport:
        """
        Run one reconciliation sweep, optionally restricted to some contacts.
        """
        services = await self.get_services()
        crm_filter = {"ID": contact_ids} if contact_ids else None
        return await services.sweep.run(
            fields=fields,
            crm_filter=crm_filter,
            deadline=deadline if deadline is not None else services.config.sweep_deadline,
        )

    async def abort_sweep(self) -> bool:
        services = await self.get_services()
        return services.sweep.abort()

    async def relay_file(self, file_id: str, field_name: str, owner_id: str | None = None) -> dict[str, Any]:
        """
        Relay one ephemeral reference into durable storage.
        """
        services = await self.get_services()
        result = await services.relay.relay(file_id, FieldName(field_name), owner_id)
        return result.model_dump(mode="json")

    async def classify_value(self, value: str) -> dict[str, Any]:
        services = await self.get_services()
        return services.classifier.classify(value).model_dump(mode="json")

    async def shutdown(self) -> None:
        if self._services is not None:
            logger.info("Shutting down relay services")
            await self._services.aclose()
            self._services = None
