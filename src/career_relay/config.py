# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

from pathlib import Path
from typing import Any, Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from career_relay.integrations.secrets import SecretStore

DEFAULT_BROKEN_MARKERS = [
    "contact-pending_",
    "contact-undefined_",
    "contact-null_",
    "[EXPIRED]",
    "api.telegram.org/file/bot",
    "Request failed with status code",
]

DEFAULT_CRM_FIELD_CODES = {
    "resume": "UF_CRM_1752621810",
    "diploma": "UF_CRM_1752621831",
    "voice_answer_1": "UF_CRM_1752621857",
    "voice_answer_2": "UF_CRM_1752621874",
    "voice_answer_3": "UF_CRM_1752621887",
}


class SecretsSettingsSource(PydanticBaseSettingsSource):
    """
    Custom Pydantic Settings Source that reads credentials by their conventional names.
    """

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        # Required by the abstract base class; __call__ returns the full dict instead.
        return None, field_name, False  # pragma: no cover

    def __call__(self) -> dict[str, Any]:
        store = SecretStore()
        secrets: dict[str, Any] = {}

        # Config field -> secret name
        mapping = {
            "telegram_bot_token": "TELEGRAM_BOT_TOKEN",
            "crm_webhook_url": "BITRIX_WEBHOOK_URL",
            "redis_url": "REDIS_URL",
            "s3_access_key": "S3_ACCESS_KEY",
            "s3_secret_key": "S3_SECRET_KEY",
        }

        for field, key in mapping.items():
            val = store.get_secret(key)
            if val:
                secrets[field] = val

        return secrets


class RelayConfig(BaseSettings):
    """
    Configuration for the file relay, the CRM client and the reconciliation sweep.
    """

    # Durable storage
    storage_backend: Literal["local", "s3"] = "local"
    storage_dir: Path = Path("uploads/telegram-files")
    public_base_url: str = "https://career.millatumidi.uz/uploads/telegram-files"
    public_path_prefix: str = "/uploads/telegram-files"
    content_addressed_names: bool = False

    # Classification
    durable_path_prefixes: list[str] = ["/uploads/telegram-files/", "uploads/telegram-files/"]
    broken_markers: list[str] = DEFAULT_BROKEN_MARKERS

    # Telegram file API
    telegram_bot_token: str | None = None
    telegram_api_base: str = "https://api.telegram.org"
    metadata_timeout: float = 10.0
    download_timeout: float = 30.0
    download_rate: float = 5.0  # downloads per second
    download_burst: int = 5

    # Bitrix24 CRM
    crm_webhook_url: str | None = None
    crm_timeout: float = 15.0
    crm_page_size: int = 50
    crm_rate: float = 2.0  # requests per second
    crm_burst: int = 2
    crm_field_codes: dict[str, str] = DEFAULT_CRM_FIELD_CODES
    deal_category_id: str = "55"
    deal_status_id: str = "C55:NEW"
    deal_utm_source: str = "hr_telegram_bot"

    # Sweep
    sweep_concurrency: int = 4
    sweep_deadline: float | None = None

    # Cache
    redis_url: str | None = None
    cache_ttl: int = 300

    # S3 / Object Storage
    s3_bucket: str | None = None
    s3_region: str | None = None
    s3_access_key: str | None = None
    s3_secret_key: str | None = None
    s3_endpoint_url: str | None = None

    # HTTP surface
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    model_config = SettingsConfigDict(
        env_prefix="CAREER_RELAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("public_base_url", "telegram_api_base", "crm_webhook_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str | None) -> str | None:
        return value.rstrip("/") if value else value

    @field_validator("crm_page_size", "sweep_concurrency", "crm_burst", "download_burst")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            SecretsSettingsSource(settings_cls),
            file_secret_settings,
        )
