# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

from dataclasses import dataclass

import httpx
from loguru import logger

from career_relay.cache import Cache
from career_relay.classifier import ReferenceClassifier
from career_relay.config import RelayConfig
from career_relay.crm import BitrixClient
from career_relay.intake import WebhookIntake
from career_relay.ratelimit import TokenBucket
from career_relay.relay import FileRelayService
from career_relay.storage import DurableStorage, LocalFileStorage, S3Storage
from career_relay.sweep import ReconciliationSweep
from career_relay.telegram import TelegramFileClient


@dataclass
class RelayServices:
    """Every collaborator of the relay pipeline, wired from one config."""

    config: RelayConfig
    cache: Cache
    storage: DurableStorage
    classifier: ReferenceClassifier
    telegram: TelegramFileClient
    relay: FileRelayService
    crm: BitrixClient
    sweep: ReconciliationSweep
    intake: WebhookIntake

    async def aclose(self) -> None:
        await self.telegram.aclose()
        await self.crm.aclose()
        await self.cache.close()


class RelayFactory:
    """
    Factory to create the relay pipeline's services based on configuration.
    """

    @staticmethod
    def get_storage(config: RelayConfig) -> DurableStorage:
        """
        Returns an instance of the configured durable storage backend.
        """
        if config.storage_backend == "local":
            return LocalFileStorage(directory=config.storage_dir, public_base_url=config.public_base_url)
        elif config.storage_backend == "s3":
            if not config.s3_bucket:
                raise ValueError("s3_bucket is required when storage_backend is 's3'")
            return S3Storage(
                bucket=config.s3_bucket,
                public_base_url=config.public_base_url,
                region=config.s3_region,
                access_key=config.s3_access_key,
                secret_key=config.s3_secret_key,
                endpoint_url=config.s3_endpoint_url,
            )
        else:
            # This should be unreachable due to Pydantic validation, but for safety:
            raise ValueError(f"Unknown storage backend: {config.storage_backend}")  # pragma: no cover

    @staticmethod
    def build(config: RelayConfig | None = None, http_client: httpx.AsyncClient | None = None) -> RelayServices:
        """
        Wires cache, storage, clients, relay, sweep and intake from ``config``.

        The Telegram and CRM clients share ``http_client`` when one is given.
        """
        config = config or RelayConfig()

        cache = Cache(redis_url=config.redis_url, default_ttl=config.cache_ttl)
        storage = RelayFactory.get_storage(config)
        classifier = ReferenceClassifier.from_config(config)

        telegram = TelegramFileClient(
            bot_token=config.telegram_bot_token,
            api_base=config.telegram_api_base,
            metadata_timeout=config.metadata_timeout,
            download_timeout=config.download_timeout,
            client=http_client,
            cache=cache,
            limiter=TokenBucket(config.download_rate, config.download_burst),
        )
        relay = FileRelayService(
            telegram=telegram,
            storage=storage,
            classifier=classifier,
            content_addressed=config.content_addressed_names,
        )
        crm = BitrixClient(
            webhook_url=config.crm_webhook_url,
            timeout=config.crm_timeout,
            client=http_client,
            limiter=TokenBucket(config.crm_rate, config.crm_burst),
        )
        sweep = ReconciliationSweep(
            crm=crm,
            relay=relay,
            storage=storage,
            classifier=classifier,
            field_codes=config.crm_field_codes,
            page_size=config.crm_page_size,
            concurrency=config.sweep_concurrency,
        )
        intake = WebhookIntake(
            crm=crm,
            relay=relay,
            field_codes=config.crm_field_codes,
            deal_category_id=config.deal_category_id,
            deal_status_id=config.deal_status_id,
            deal_utm_source=config.deal_utm_source,
        )

        if not config.telegram_bot_token:
            logger.warning("No Telegram bot token configured; ephemeral references cannot be relayed")
        if not config.crm_webhook_url:
            logger.warning("No CRM webhook URL configured; CRM calls will fail")
        cache_kind = "memory" if cache.using_memory else "redis"
        logger.info(f"Relay services ready (storage={config.storage_backend}, cache={cache_kind})")

        return RelayServices(
            config=config,
            cache=cache,
            storage=storage,
            classifier=classifier,
            telegram=telegram,
            relay=relay,
            crm=crm,
            sweep=sweep,
            intake=intake,
        )


def build_services(config: RelayConfig | None = None) -> RelayServices:
    return RelayFactory.build(config)
